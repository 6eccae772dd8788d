"""
Bootstrap use case: create the environment stack from nebula.yml.

Steps:
    1. find nebula.yml (walking up from the working directory)
    2. derive GCP project/region from a gcpkms:// secrets provider
    3. create or select the ``<env>`` stack with an empty program
    4. persist Pulumi.yaml and Pulumi.<env>.yaml

Credentials, API enablement and bucket/KMS provisioning are left to
the operator's tooling.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from nebula.core.automation.workspace import RUNTIME, StackManager, StackSpec
from nebula.core.config.bootstrap_config import find_bootstrap_file, load_bootstrap_config
from nebula.core.errors import ConfigError, StackOperationError
from nebula.core.models.settings import BootstrapConfig

logger = logging.getLogger(__name__)

_KMS_PROJECT = re.compile(r"^gcpkms://projects/([^/]+)/")
_KMS_REGION = re.compile(r"^gcpkms://projects/[^/]+/locations/([^/]+)/")


@dataclass
class BootstrapResult:
    """Result of bootstrapping an environment."""

    config: BootstrapConfig | None = None
    config_path: Path | None = None
    work_dir: Path | None = None
    project_name: str = ""
    stack_name: str = ""
    gcp_project: str | None = None
    gcp_region: str | None = None
    stack_created: bool = False
    files: list[Path] = field(default_factory=list)
    exports: dict[str, str] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    def export_lines(self) -> list[str]:
        """Shell ``export`` lines for eval."""
        return [f'export {k}="{v}"' for k, v in self.exports.items()]

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "project": self.project_name,
            "stack": self.stack_name,
            "gcp_project": self.gcp_project,
            "gcp_region": self.gcp_region,
            "stack_created": self.stack_created,
            "files": [str(f) for f in self.files],
            "exports": dict(self.exports),
            "warnings": list(self.warnings),
        }


def gcp_project_from_kms(secrets_provider: str | None) -> str | None:
    """``gcpkms://projects/<p>/...`` → ``<p>``."""
    match = _KMS_PROJECT.match(secrets_provider or "")
    return match.group(1) if match else None


def gcp_region_from_kms(secrets_provider: str | None) -> str | None:
    """``gcpkms://projects/<p>/locations/<r>/...`` → ``<r>``."""
    match = _KMS_REGION.match(secrets_provider or "")
    return match.group(1) if match else None


def _empty_program() -> None:
    pass


def _write_settings_files(spec: StackSpec, work_dir: Path) -> list[Path]:
    project_doc: dict = {"name": spec.project_name, "runtime": RUNTIME}
    if spec.backend_url:
        project_doc["backend"] = {"url": spec.backend_url}
    stack_doc: dict = {"config": {}}
    if spec.secrets_provider:
        stack_doc["secretsprovider"] = spec.secrets_provider

    written = []
    for path, doc in (
        (work_dir / "Pulumi.yaml", project_doc),
        (work_dir / f"Pulumi.{spec.stack_name}.yaml", stack_doc),
    ):
        path.write_text(yaml.safe_dump(doc, sort_keys=False), encoding="utf-8")
        written.append(path)
    return written


def bootstrap(
    work_dir: Path | None = None,
    ci: bool = False,
    debug: bool = False,
    manager: StackManager | None = None,
) -> BootstrapResult:
    """Bootstrap the environment described by the nearest nebula.yml.

    A missing or invalid nebula.yml is reported through ``error``. A
    failed stack creation is a warning: the settings files are still
    written so the operator can retry with the pulumi CLI.
    """
    root = (work_dir or Path.cwd()).resolve()
    result = BootstrapResult(work_dir=root, project_name=root.name)

    # ── Config ──────────────────────────────────────────────────
    path = find_bootstrap_file(root)
    try:
        config = load_bootstrap_config(path, start_dir=root)
    except ConfigError as e:
        result.error = str(e)
        return result

    result.config = config
    result.config_path = path
    result.stack_name = config.env
    result.gcp_project = config.gcp_project or gcp_project_from_kms(config.secrets_provider)
    result.gcp_region = config.gcp_region or gcp_region_from_kms(config.secrets_provider)

    if result.gcp_project and not ci:
        result.exports["CLOUDSDK_CORE_PROJECT"] = result.gcp_project
        if result.gcp_region:
            result.exports["CLOUDSDK_COMPUTE_ZONE"] = f"{result.gcp_region}-a"

    # ── Stack ───────────────────────────────────────────────────
    spec = StackSpec(
        stack_name=config.env,
        project_name=result.project_name,
        program=_empty_program,
        backend_url=config.backend_url,
        secrets_provider=config.secrets_provider,
        work_dir=str(root),
    )
    manager = manager or StackManager(persist_settings=True, debug=debug)

    try:
        manager.create_or_select_stack(spec, persist_settings=True)
        result.stack_created = True
        result.files = [root / "Pulumi.yaml", root / f"Pulumi.{spec.stack_name}.yaml"]
        logger.info("✓ [%s] stack ready", spec.stack_name)
    except StackOperationError as e:
        logger.warning("⚠ %s", e.describe())
        result.warnings.append(str(e))
        try:
            result.files = _write_settings_files(spec, root)
        except OSError as write_error:
            result.error = f"Cannot write settings to {root}: {write_error}"

    return result
