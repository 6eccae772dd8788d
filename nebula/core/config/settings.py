"""
Workspace config flattening.

Environment config is written the way people think about it, nested
by provider namespace:

    gcp:
      project: my-project
      region: europe-west3

Pulumi wants flat ``namespace:key`` strings. ``to_workspace_config``
converts one into the other; a raw YAML string is parsed first.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import yaml

from nebula.core.errors import ConfigError

logger = logging.getLogger(__name__)


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def to_workspace_config(config: dict[str, Any] | str | None) -> dict[str, str]:
    """Flatten environment config into ``namespace:key`` → string pairs.

    Top-level keys that already contain ``:`` are kept as-is. A nested
    mapping one level down becomes ``outer:inner``; anything deeper is
    JSON-encoded.

    Raises:
        ConfigError: The YAML string does not parse to a mapping.
    """
    if config is None:
        return {}

    if isinstance(config, str):
        if not config.strip():
            return {}
        try:
            parsed = yaml.safe_load(config)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in environment config: {e}") from e
        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigError(
                f"Environment config must be a mapping, got {type(parsed).__name__}"
            )
        config = parsed

    flat: dict[str, str] = {}
    for key, value in config.items():
        key = str(key)
        if isinstance(value, dict) and ":" not in key:
            for inner, inner_value in value.items():
                flat[f"{key}:{inner}"] = _stringify(inner_value)
        else:
            flat[key] = _stringify(value)

    logger.debug("Flattened %d workspace config key(s)", len(flat))
    return flat
