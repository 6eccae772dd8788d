"""
Generate use case: write Pulumi.yaml and Pulumi.<stack>.yaml.

Produces the settings files the pulumi CLI expects, without touching
the engine: stack names and config come from ``SettingsOnlyBackend``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from nebula.core.automation.backends import SettingsOnlyBackend, collect_stacks
from nebula.core.automation.workspace import RUNTIME, StackSpec
from nebula.core.config.loader import PROJECT_CONFIG_FILE
from nebula.core.engine.project import Project

logger = logging.getLogger(__name__)

HEADER = "# Generated by Nebula\n"


@dataclass
class GenerateResult:
    """Result of generating settings files."""

    work_dir: Path | None = None
    files: list[Path] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "work_dir": str(self.work_dir),
            "files": [str(f) for f in self.files],
        }


def project_document(project: Project, main: str = PROJECT_CONFIG_FILE) -> dict[str, Any]:
    """Contents of Pulumi.yaml."""
    doc: dict[str, Any] = {"name": project.id, "runtime": RUNTIME, "main": main}
    backend_url = project.first_backend_url()
    if backend_url:
        doc["backend"] = {"url": backend_url}
    return doc


def stack_document(spec: StackSpec) -> dict[str, Any]:
    """Contents of Pulumi.<stack>.yaml."""
    doc: dict[str, Any] = {"config": dict(spec.config)}
    if spec.secrets_provider:
        doc["secretsprovider"] = spec.secrets_provider
    return doc


def _write(path: Path, doc: dict[str, Any]) -> None:
    body = yaml.safe_dump(doc, sort_keys=False, default_flow_style=False)
    path.write_text(HEADER + body, encoding="utf-8")
    logger.debug("Wrote %s", path)


def generate_settings(
    project: Project,
    work_dir: Path | None = None,
    env_filter: str | None = None,
) -> GenerateResult:
    """Write the project file and one stack file per component and addon.

    Args:
        project: The loaded project.
        work_dir: Target directory (default: cwd). Created if missing.
        env_filter: Only generate stacks of this environment.
    """
    target = (work_dir or Path.cwd()).resolve()
    result = GenerateResult(work_dir=target)

    try:
        target.mkdir(parents=True, exist_ok=True)

        project_file = target / "Pulumi.yaml"
        _write(project_file, project_document(project))
        result.files.append(project_file)

        items = collect_stacks(project, SettingsOnlyBackend(), env_filter=env_filter, work_dir=str(target))
        for item in items:
            spec: StackSpec = item.resolve()
            stack_file = target / f"Pulumi.{spec.stack_name}.yaml"
            _write(stack_file, stack_document(spec))
            result.files.append(stack_file)
    except OSError as e:
        result.error = f"Cannot write settings to {target}: {e}"
        return result

    logger.info("Generated %d settings file(s) in %s", len(result.files), target)
    return result
