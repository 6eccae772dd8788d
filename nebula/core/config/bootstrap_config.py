"""
Bootstrap config: reads nebula.yml.

    env: dev
    backend_url: gs://my-state-bucket
    secrets_provider: gcpkms://projects/p/locations/europe-west3/keyRings/r/cryptoKeys/k
    gcp_project: my-project     # optional, derived from secrets_provider
    gcp_region: europe-west3    # optional, derived from secrets_provider
    domain: dev.example.com
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from nebula.core.config.loader import find_upwards
from nebula.core.errors import ConfigError
from nebula.core.models.settings import BootstrapConfig

logger = logging.getLogger(__name__)

BOOTSTRAP_CONFIG_FILE = "nebula.yml"

# camelCase spellings accepted for the fields that have them
_ALIASES = {
    "backendUrl": "backend_url",
    "secretsProvider": "secrets_provider",
    "gcpProject": "gcp_project",
    "gcpRegion": "gcp_region",
}


def find_bootstrap_file(start_dir: Path | None = None) -> Path | None:
    return find_upwards(BOOTSTRAP_CONFIG_FILE, start_dir)


def load_bootstrap_config(path: Path | None = None, start_dir: Path | None = None) -> BootstrapConfig:
    """Load and validate nebula.yml.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_bootstrap_file(start_dir)

    if path is None:
        raise ConfigError(f"No {BOOTSTRAP_CONFIG_FILE} found in this directory or any parent.")

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    data = {_ALIASES.get(k, k): v for k, v in data.items()}
    known = set(BootstrapConfig.model_fields) - {"extra"}
    fields = {k: v for k, v in data.items() if k in known}
    fields["extra"] = {k: v for k, v in data.items() if k not in known}

    try:
        config = BootstrapConfig.model_validate(fields)
    except ValidationError as e:
        raise ConfigError(f"Invalid {BOOTSTRAP_CONFIG_FILE} ({path}): {e}") from e

    logger.info("Loaded bootstrap config for env '%s'", config.env)
    return config
