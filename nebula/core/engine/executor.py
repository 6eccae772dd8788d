"""
Module executor: runs module factories in dependency order.

Flow:
    modules → build graph → detect cycle → topological sort → execute

Execution is strictly sequential. Each tagged module receives the
handles produced by the modules providing its required capabilities;
its own non-None result becomes available to later modules.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from nebula.core.engine.graph import (
    CollisionPolicy,
    DependencyGraph,
    build_dependency_graph,
    detect_cycle,
    topological_sort,
)
from nebula.core.errors import DependencyCycleError, ModuleExecutionError
from nebula.core.models.module import ModuleContext, ModuleDescriptor

logger = logging.getLogger(__name__)


@dataclass
class ModuleFailure:
    """A module failure that did not abort the pass."""

    module: str
    error: str


@dataclass
class ExecutionReport:
    """Result of one orchestration pass."""

    order: list[str] = field(default_factory=list)
    module_instances: dict[str, Any] = field(default_factory=dict)
    failures: list[ModuleFailure] = field(default_factory=list)
    graph: DependencyGraph | None = None

    @property
    def total(self) -> int:
        return len(self.order)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def all_ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict:
        return {
            "order": list(self.order),
            "instances": sorted(self.module_instances),
            "failures": [{"module": f.module, "error": f.error} for f in self.failures],
        }


def _resolve_dependencies(
    mod: ModuleDescriptor,
    graph: DependencyGraph,
    instances: dict[str, Any],
) -> list[Any]:
    handles: list[Any] = []
    for cap in mod.requires:
        provider = graph.capability_providers.get(cap)
        if provider is None or provider == mod.name:
            continue
        handle = instances.get(provider)
        if handle is not None and not any(handle is h for h in handles):
            handles.append(handle)
    return handles


def execute_modules(
    sorted_modules: Iterable[ModuleDescriptor],
    graph: DependencyGraph,
    context: ModuleContext | None = None,
    *,
    strict: bool = False,
) -> ExecutionReport:
    """Invoke each module factory in the given order.

    Args:
        sorted_modules: Output of ``topological_sort``.
        graph: The graph the order was derived from.
        context: Base context (parent component, environment). Each
            module gets a copy carrying its own resolved dependencies.
        strict: Abort on legacy module failures too. By default a
            failing legacy module is logged and the pass continues.

    Raises:
        ModuleExecutionError: A tagged module (or, when strict, any
            module) raised.
    """
    base = context or ModuleContext()
    report = ExecutionReport(graph=graph)

    for mod in sorted_modules:
        label = mod.label
        report.order.append(label)

        if mod.is_legacy:
            try:
                mod(base.with_dependencies([]))
            except Exception as e:
                if strict:
                    logger.error("✗ [%s] module failed: %s", label, e)
                    raise ModuleExecutionError(label, e) from e
                logger.warning("⚠ [%s] legacy module failed: %s", label, e)
                report.failures.append(ModuleFailure(module=label, error=str(e)))
            continue

        deps = _resolve_dependencies(mod, graph, report.module_instances)
        logger.debug("[%s] executing with %d dependency handle(s)", label, len(deps))
        try:
            result = mod(base.with_dependencies(deps))
        except Exception as e:
            logger.error("✗ [%s] module failed: %s", label, e)
            raise ModuleExecutionError(label, e) from e

        if result is not None:
            report.module_instances[label] = result
        logger.info("✓ [%s] module created", label)

    return report


def run_modules(
    modules: Iterable[ModuleDescriptor],
    context: ModuleContext | None = None,
    *,
    strict: bool = False,
    collisions: CollisionPolicy = "warn",
) -> ExecutionReport:
    """Build, check, sort and execute a set of modules.

    Raises:
        DependencyCycleError: The capability graph has a cycle.
        CapabilityCollisionError: Duplicate provider with ``collisions="error"``.
        DuplicateModuleError: Duplicate module name with ``collisions="error"``.
        ModuleExecutionError: A module factory failed.
    """
    modules = list(modules)
    graph = build_dependency_graph(modules, collisions=collisions)

    cycle = detect_cycle(graph)
    if cycle:
        logger.error("Dependency cycle detected: %s", " -> ".join(cycle))
        raise DependencyCycleError(cycle)

    ordered = topological_sort(modules, graph)
    logger.info("Module order: %s", ", ".join(m.label for m in ordered))
    return execute_modules(ordered, graph, context, strict=strict)
