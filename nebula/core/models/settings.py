"""
Settings models: per-environment workspace settings and nebula.yml.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator


class EnvironmentSettings(BaseModel):
    """Workspace settings shared by every stack of one environment.

    ``config`` is either a nested mapping or a raw YAML string; it is
    flattened to ``namespace:key`` pairs when a workspace is built.
    """

    backend_url: str | None = None
    secrets_provider: str | None = None
    config: dict[str, Any] | str | None = None
    work_dir: str | None = None


class BootstrapConfig(BaseModel):
    """Contents of ``nebula.yml``."""

    env: str
    backend_url: str
    secrets_provider: str | None = None
    gcp_project: str | None = None
    gcp_region: str | None = None
    domain: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @field_validator("env", "backend_url")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()
