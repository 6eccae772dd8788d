"""
Stack manager: create-or-select stacks through the Automation API.

A ``StackSpec`` describes one stack completely (name, project, program,
backend, secrets provider, flattened config). ``StackManager`` turns
specs into live ``automation.Stack`` objects and optionally persists
``Pulumi.yaml`` / ``Pulumi.<stack>.yaml`` next to the program.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, field

from pulumi import automation as auto

from nebula.core.errors import StackConfigError, StackOperationError

logger = logging.getLogger(__name__)

# Verbosity env vars forwarded to the engine when debugging.
DEBUG_ENV_VARS = ("PULUMI_LOG_LEVEL", "TF_LOG", "TF_LOG_PROVIDER", "PULUMI_KEEP_TEMP_DIRS")

RUNTIME = "python"


def stack_name_for(env_id: str, component: str) -> str:
    """Canonical stack name of a component."""
    return f"{env_id}-{component}".lower()


def addon_stack_name_for(env_id: str, addon: str) -> str:
    """Canonical stack name of an addon."""
    return f"{env_id}-addon-{addon}".lower()


@dataclass
class StackSpec:
    """Everything needed to create or select one stack."""

    stack_name: str
    project_name: str
    program: Callable[[], None] | None = None
    backend_url: str | None = None
    secrets_provider: str | None = None
    config: dict[str, str] = field(default_factory=dict)
    work_dir: str | None = None
    env_vars: dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        """Raise StackConfigError if a required field is missing."""
        missing = [
            name
            for name, value in (
                ("stack_name", self.stack_name),
                ("project_name", self.project_name),
                ("program", self.program),
            )
            if not value
        ]
        if missing:
            label = self.stack_name or "<unnamed>"
            raise StackConfigError(f"[{label}] missing stack configuration: {', '.join(missing)}")


class StackManager:
    """Creates or selects stacks from ``StackSpec`` objects.

    Settings files are written at most once per manager when
    ``persist_settings`` is set.
    """

    def __init__(self, persist_settings: bool = False, debug: bool = False) -> None:
        self.persist_settings = persist_settings
        self.debug = debug
        self._settings_saved = False

    # ── Workspace options ───────────────────────────────────────

    def project_settings(self, spec: StackSpec) -> auto.ProjectSettings:
        backend = auto.ProjectBackend(url=spec.backend_url) if spec.backend_url else None
        return auto.ProjectSettings(name=spec.project_name, runtime=RUNTIME, backend=backend)

    def stack_settings(self, spec: StackSpec) -> auto.StackSettings:
        return auto.StackSettings(
            secrets_provider=spec.secrets_provider or None,
            config=dict(spec.config) or None,
        )

    def env_vars(self, spec: StackSpec, debug: bool | None = None) -> dict[str, str]:
        env: dict[str, str] = dict(spec.env_vars)
        if spec.backend_url:
            env["PULUMI_BACKEND_URL"] = spec.backend_url
        if self.debug if debug is None else debug:
            for name in DEBUG_ENV_VARS:
                value = os.environ.get(name)
                if value:
                    env[name] = value
        return env

    def workspace_options(self, spec: StackSpec, debug: bool | None = None) -> auto.LocalWorkspaceOptions:
        return auto.LocalWorkspaceOptions(
            work_dir=spec.work_dir or None,
            env_vars=self.env_vars(spec, debug),
            secrets_provider=spec.secrets_provider or None,
            project_settings=self.project_settings(spec),
            stack_settings={spec.stack_name: self.stack_settings(spec)},
        )

    # ── Create / select ─────────────────────────────────────────

    def create_or_select_stack(
        self,
        spec: StackSpec,
        *,
        persist_settings: bool | None = None,
        debug: bool | None = None,
    ) -> auto.Stack:
        """Create the stack if it doesn't exist, select it otherwise.

        Raises:
            StackConfigError: The stack spec is incomplete.
            StackOperationError: The engine refused to create or select, or
                the settings files could not be written.
        """
        spec.validate()

        logger.info("[%s] selecting stack (project %s)", spec.stack_name, spec.project_name)
        try:
            stack = auto.create_or_select_stack(
                stack_name=spec.stack_name,
                project_name=spec.project_name,
                program=spec.program,
                opts=self.workspace_options(spec, debug),
            )
            if spec.config:
                stack.set_all_config(
                    {key: auto.ConfigValue(value=value) for key, value in spec.config.items()}
                )
        except Exception as e:
            raise StackOperationError.from_exception(spec.stack_name, "select", e) from e

        persist = self.persist_settings if persist_settings is None else persist_settings
        if persist:
            try:
                self.save_settings(stack, spec)
            except Exception as e:
                raise StackOperationError.from_exception(spec.stack_name, "save-settings", e) from e
        return stack

    def save_settings(self, stack: auto.Stack, spec: StackSpec) -> None:
        """Write project settings once, and the stack's own settings."""
        workspace = stack.workspace
        if not self._settings_saved:
            workspace.save_project_settings(self.project_settings(spec))
            self._settings_saved = True
            logger.debug("[%s] saved project settings", spec.stack_name)
        workspace.save_stack_settings(spec.stack_name, self.stack_settings(spec))
        logger.debug("[%s] saved stack settings", spec.stack_name)
