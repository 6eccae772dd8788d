"""
Stack backends: how stack items turn into something to operate on.

The caller picks the backend explicitly:

    AutomationBackend  : creates or selects real stacks via a StackManager
    SettingsOnlyBackend: resolves names and specs only, never calls the engine
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from nebula.core.automation.workspace import (
    StackManager,
    StackSpec,
    addon_stack_name_for,
    stack_name_for,
)
from nebula.core.config.settings import to_workspace_config
from nebula.core.engine.project import Environment, Project, StackKind

logger = logging.getLogger(__name__)


class StackBackend(Protocol):
    """Turns a ``StackSpec`` into the object operations run against."""

    def open(self, spec: StackSpec) -> Any: ...


class AutomationBackend:
    """Full backend: every item resolves to a live ``automation.Stack``."""

    def __init__(self, manager: StackManager | None = None) -> None:
        self.manager = manager or StackManager()

    def open(self, spec: StackSpec) -> Any:
        return self.manager.create_or_select_stack(spec)


class SettingsOnlyBackend:
    """Lightweight backend: items resolve to their ``StackSpec``."""

    def open(self, spec: StackSpec) -> StackSpec:
        return spec


@dataclass
class StackItem:
    """One selectable stack. ``resolve()`` opens it once and caches."""

    env_id: str
    name: str
    stack_name: str
    spec: StackSpec
    kind: StackKind = "component"
    opener: Callable[[StackSpec], Any] | None = None
    _resolved: Any = field(default=None, init=False, repr=False)

    @property
    def label(self) -> str:
        return f"{self.env_id}:{self.name}"

    def resolve(self) -> Any:
        if self._resolved is None:
            if self.opener is None:
                self._resolved = self.spec
            else:
                self._resolved = self.opener(self.spec)
        return self._resolved


def build_stack_spec(
    project: Project,
    env: Environment,
    key: str,
    kind: StackKind = "component",
    work_dir: str | None = None,
) -> StackSpec:
    """Assemble the ``StackSpec`` of one component or addon."""
    instance = env.instance_name(key, kind)
    name = addon_stack_name_for(env.id, instance) if kind == "addon" else stack_name_for(env.id, instance)
    settings = env.settings
    return StackSpec(
        stack_name=name,
        project_name=project.id,
        program=env.program_for(key, kind),
        backend_url=settings.backend_url,
        secrets_provider=settings.secrets_provider,
        config=to_workspace_config(settings.config),
        work_dir=work_dir or settings.work_dir,
    )


def collect_stacks(
    project: Project,
    backend: StackBackend,
    env_filter: str | None = None,
    work_dir: str | None = None,
) -> list[StackItem]:
    """List every component and addon stack, in declaration order."""
    items: list[StackItem] = []
    for env_id, env in project.environments.items():
        if env_filter and env_id != env_filter:
            continue
        for kind, factories in (("component", env.components), ("addon", env.addons)):
            for key in factories:
                spec = build_stack_spec(project, env, key, kind, work_dir)  # type: ignore[arg-type]
                items.append(
                    StackItem(
                        env_id=env_id,
                        name=key,
                        stack_name=spec.stack_name,
                        spec=spec,
                        kind=kind,  # type: ignore[arg-type]
                        opener=backend.open,
                    )
                )
    logger.debug("Collected %d stack(s)", len(items))
    return items
