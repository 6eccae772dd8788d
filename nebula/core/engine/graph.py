"""
Dependency graph: capability resolution, cycle detection, ordering.

Modules declare the capabilities they provide and require. The graph
maps each tagged module to the modules providing its requirements:

    provides/requires → capability_providers → edges → cycle check → topological order

Legacy (untagged) modules never enter the graph; they are appended
after every tagged module by ``topological_sort``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Literal

from nebula.core.errors import CapabilityCollisionError, DuplicateModuleError
from nebula.core.models.module import ModuleDescriptor, as_descriptor

logger = logging.getLogger(__name__)

CollisionPolicy = Literal["warn", "error"]


@dataclass
class DependencyGraph:
    """Read-only view over the modules of one orchestration pass."""

    edges: dict[str, list[str]] = field(default_factory=dict)
    capability_providers: dict[str, str] = field(default_factory=dict)
    modules_by_name: dict[str, ModuleDescriptor] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def dependencies_of(self, name: str) -> list[str]:
        return list(self.edges.get(name, []))

    def provider_of(self, capability: str) -> str | None:
        return self.capability_providers.get(capability)

    def to_dict(self) -> dict:
        return {
            "edges": {k: list(v) for k, v in self.edges.items()},
            "capability_providers": dict(self.capability_providers),
            "modules": list(self.modules_by_name),
            "warnings": list(self.warnings),
        }


def _warn(graph: DependencyGraph, message: str) -> None:
    graph.warnings.append(message)
    logger.warning(message)


# ── Graph building ──────────────────────────────────────────────


def build_dependency_graph(
    modules: Iterable[ModuleDescriptor],
    *,
    collisions: CollisionPolicy = "warn",
) -> DependencyGraph:
    """Resolve requirements to providers and build the edge list.

    Args:
        modules: Module descriptors in declaration order.
        collisions: ``"warn"`` keeps the first provider of a capability,
            and the first module of a name, and records a warning;
            ``"error"`` raises instead.

    Raises:
        CapabilityCollisionError: Two modules provide the same capability
            and ``collisions="error"``.
        DuplicateModuleError: Two modules share a name and
            ``collisions="error"``.
    """
    graph = DependencyGraph()
    tagged: list[ModuleDescriptor] = []
    for mod in (as_descriptor(x) for x in modules):
        if mod.is_legacy:
            continue
        name = mod.name
        assert name is not None
        if name in graph.modules_by_name:
            if collisions == "error":
                raise DuplicateModuleError(name)
            _warn(graph, f"[{name}] module name already used by an earlier module; skipping the duplicate")
            continue
        graph.modules_by_name[name] = mod
        graph.edges[name] = []
        tagged.append(mod)

    # Pass 1: providers (first writer wins)
    for mod in tagged:
        name = mod.name
        assert name is not None
        for cap in mod.provides:
            existing = graph.capability_providers.get(cap)
            if existing is None:
                graph.capability_providers[cap] = name
                continue
            if existing == name:
                continue
            if collisions == "error":
                raise CapabilityCollisionError(cap, existing, name)
            _warn(
                graph,
                f"[{name}] capability '{cap}' already provided by '{existing}'; keeping '{existing}'",
            )

    # Pass 2: requirements → edges
    for mod in tagged:
        name = mod.name
        assert name is not None
        deps = graph.edges[name]
        for cap in mod.requires:
            provider = graph.capability_providers.get(cap)
            if provider is None:
                _warn(graph, f"[{name}] requires capability '{cap}' but no module provides it")
                continue
            if provider != name and provider not in deps:
                deps.append(provider)

    logger.debug(
        "Built dependency graph: %d module(s), %d capability provider(s)",
        len(graph.modules_by_name),
        len(graph.capability_providers),
    )
    return graph


# ── Cycle detection ─────────────────────────────────────────────


def detect_cycle(graph: DependencyGraph) -> list[str] | None:
    """Find a dependency cycle, if any.

    Returns the cycle as a path that starts and ends on the same module,
    e.g. ``["a", "b", "c", "a"]``, or None when the graph is acyclic.
    """
    visiting: set[str] = set()
    visited: set[str] = set()
    path: list[str] = []

    def visit(node: str) -> list[str] | None:
        if node in visiting:
            start = path.index(node)
            return path[start:] + [node]
        if node in visited:
            return None
        visiting.add(node)
        path.append(node)
        for dep in graph.edges.get(node, []):
            found = visit(dep)
            if found:
                return found
        path.pop()
        visiting.discard(node)
        visited.add(node)
        return None

    for node in graph.edges:
        cycle = visit(node)
        if cycle:
            return cycle
    return None


# ── Ordering ────────────────────────────────────────────────────


def topological_sort(
    modules: Iterable[ModuleDescriptor],
    graph: DependencyGraph,
) -> list[ModuleDescriptor]:
    """Order modules so every dependency precedes its dependents.

    Start nodes are taken in input order. Legacy modules follow all
    tagged ones, in their original relative order. Call
    ``detect_cycle`` first; this function does not re-check.
    """
    descriptors = [as_descriptor(m) for m in modules]
    visited: set[str] = set()
    ordered: list[ModuleDescriptor] = []

    def visit(name: str) -> None:
        if name in visited:
            return
        visited.add(name)
        for dep in graph.edges.get(name, []):
            visit(dep)
        mod = graph.modules_by_name.get(name)
        if mod is not None:
            ordered.append(mod)

    for mod in descriptors:
        if not mod.is_legacy:
            visit(mod.name)  # type: ignore[arg-type]

    ordered.extend(m for m in descriptors if m.is_legacy)
    return ordered


# ── Rendering ───────────────────────────────────────────────────


def format_dependency_graph(graph: DependencyGraph) -> str:
    """Render the graph as indented text, one module per line."""
    if not graph.modules_by_name:
        return "(no typed modules)"

    lines: list[str] = []
    for name in graph.modules_by_name:
        mod = graph.modules_by_name[name]
        deps = graph.edges.get(name, [])
        arrow = f" → {', '.join(deps)}" if deps else ""
        lines.append(f"• {name}{arrow}")
        if mod.provides:
            lines.append(f"    provides: {', '.join(mod.provides)}")
        if mod.requires:
            lines.append(f"    requires: {', '.join(mod.requires)}")
    if graph.warnings:
        lines.append("")
        lines.extend(f"⚠ {w}" for w in graph.warnings)
    return "\n".join(lines)
