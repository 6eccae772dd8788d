"""
Projects, environments and components: the stack programs.

A ``Project`` holds environments; each ``Environment`` holds component
and addon factories. One Pulumi stack exists per component
(``{env}-{component}``) and per addon (``{env}-addon-{addon}``).

A component factory is called with its environment and returns a
``ComponentSpec`` (or simply a list of modules). The stack program
calls the factory again every time the engine runs it, so each run
rebuilds exactly the resource graph of its own stack.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from nebula.core.engine.executor import ExecutionReport, run_modules
from nebula.core.engine.graph import CollisionPolicy, DependencyGraph, build_dependency_graph
from nebula.core.models.module import ModuleContext, ModuleDescriptor
from nebula.core.models.settings import EnvironmentSettings

logger = logging.getLogger(__name__)

StackKind = Literal["component", "addon"]

DEFAULT_RESOURCE_TYPE = "nebula:component"


@dataclass
class ComponentSpec:
    """What a component factory produces."""

    modules: list[ModuleDescriptor | Callable[[], Any]] = field(default_factory=list)
    name: str | None = None                # instance-name override
    config: dict[str, Any] = field(default_factory=dict)
    resource_type: str = DEFAULT_RESOURCE_TYPE
    strict: bool = False
    collisions: CollisionPolicy = "warn"


ComponentFactory = Callable[["Environment"], "ComponentSpec | list[Any]"]


def _as_spec(produced: Any) -> ComponentSpec:
    if isinstance(produced, ComponentSpec):
        return produced
    if isinstance(produced, (list, tuple)):
        return ComponentSpec(modules=list(produced))
    raise TypeError(
        f"Component factory must return a ComponentSpec or a list of modules, "
        f"got {type(produced).__name__}"
    )


@dataclass
class Environment:
    """One deployment environment (dev, staging, prod...)."""

    id: str
    settings: EnvironmentSettings = field(default_factory=EnvironmentSettings)
    components: dict[str, ComponentFactory] = field(default_factory=dict)
    addons: dict[str, ComponentFactory] = field(default_factory=dict)
    project_id: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.settings, dict):
            self.settings = EnvironmentSettings.model_validate(self.settings)
        elif self.settings is None:
            self.settings = EnvironmentSettings()

    def _factories(self, kind: StackKind) -> dict[str, ComponentFactory]:
        return self.addons if kind == "addon" else self.components

    def component_spec(self, key: str, kind: StackKind = "component") -> ComponentSpec:
        """Call the factory for ``key`` and normalise its result."""
        factories = self._factories(kind)
        if key not in factories:
            raise KeyError(f"Environment '{self.id}' has no {kind} '{key}'")
        return _as_spec(factories[key](self))

    def instance_name(self, key: str, kind: StackKind = "component") -> str:
        """Name of the component instance (and stack suffix) for ``key``.

        A factory may override it through ``ComponentSpec.name``. If the
        factory cannot run outside the engine, the lower-cased key is used.
        """
        default = key.lower()
        try:
            spec = self.component_spec(key, kind)
        except Exception as e:
            logger.debug("[%s] factory failed while resolving name, using '%s': %s", key, default, e)
            return default
        if isinstance(spec.name, str) and spec.name:
            return spec.name
        return default

    def program_for(self, key: str, kind: StackKind = "component") -> Callable[[], None]:
        """Zero-argument stack program for one component or addon."""

        def program() -> None:
            import pulumi

            spec = self.component_spec(key, kind)
            instance = spec.name or key.lower()
            scope = pulumi.ComponentResource(spec.resource_type, instance, None, None)
            ctx = ModuleContext(parent=scope, environment_id=self.id, component_name=instance)
            report = run_modules(spec.modules, ctx, strict=spec.strict, collisions=spec.collisions)
            scope.register_outputs({})
            logger.info(
                "[%s-%s] program created %d module(s)",
                self.id,
                instance,
                len(report.module_instances),
            )

        return program

    def run_component(
        self,
        key: str,
        kind: StackKind = "component",
        context: ModuleContext | None = None,
    ) -> ExecutionReport:
        """Run a component's modules outside the engine (no enclosing scope)."""
        spec = self.component_spec(key, kind)
        ctx = context or ModuleContext(environment_id=self.id, component_name=spec.name or key.lower())
        return run_modules(spec.modules, ctx, strict=spec.strict, collisions=spec.collisions)

    def dependency_graph(self, key: str, kind: StackKind = "component") -> DependencyGraph:
        spec = self.component_spec(key, kind)
        return build_dependency_graph(spec.modules, collisions=spec.collisions)


@dataclass
class Project:
    """Top-level object exported by ``nebula_config.py``."""

    id: str
    environments: dict[str, Environment] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for env_id, env in list(self.environments.items()):
            if not isinstance(env, Environment):
                raise TypeError(f"Environment '{env_id}' is not an Environment")
            env.project_id = self.id

    def environment(self, env_id: str) -> Environment:
        try:
            return self.environments[env_id]
        except KeyError:
            raise KeyError(f"Project '{self.id}' has no environment '{env_id}'") from None

    def first_backend_url(self) -> str | None:
        """Backend URL of the first environment that sets one."""
        for env in self.environments.values():
            if env.settings.backend_url:
                return env.settings.backend_url
        return None
