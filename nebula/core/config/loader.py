"""
Configuration loader: imports the project entrypoint.

A project is declared in Python, in ``nebula_config.py``. The module
must export one of:

    project         a Project instance, or a zero-argument callable returning one
    create_project  zero-argument callable returning a Project
    get_project     zero-argument callable returning a Project
"""

from __future__ import annotations

import importlib.util
import logging
import sys
from pathlib import Path
from typing import Any

from nebula.core.engine.project import Project
from nebula.core.errors import ConfigError

logger = logging.getLogger(__name__)

# Default entrypoint filename
PROJECT_CONFIG_FILE = "nebula_config.py"

_EXPORTS = ("project", "create_project", "get_project")


def find_upwards(filename: str, start_dir: Path | None = None) -> Path | None:
    """Search for ``filename`` starting from the given directory, walking up."""
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / filename
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def find_project_file(start_dir: Path | None = None) -> Path | None:
    """Search for nebula_config.py starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to nebula_config.py, or None if not found.
    """
    return find_upwards(PROJECT_CONFIG_FILE, start_dir)


def _import_file(path: Path) -> Any:
    module_name = f"nebula_user_config_{abs(hash(str(path)))}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ConfigError(f"Cannot import {path}")
    module = importlib.util.module_from_spec(spec)

    # Let the entrypoint import siblings from its own directory.
    project_dir = str(path.parent)
    added = project_dir not in sys.path
    if added:
        sys.path.insert(0, project_dir)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise ConfigError(f"Error while executing {path}: {e}") from e
    finally:
        if added:
            sys.path.remove(project_dir)
    return module


def load_project(path: Path | None = None) -> Project:
    """Import the entrypoint and return its Project.

    Args:
        path: Explicit path to the entrypoint. If None, searches upward.

    Raises:
        ConfigError: If the file is missing, fails to import, or does
            not export a Project.
    """
    if path is None:
        path = find_project_file()

    if path is None:
        raise ConfigError(
            f"No {PROJECT_CONFIG_FILE} found. "
            "Create one exporting 'project', or specify --config."
        )

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading project entrypoint from %s", path)
    module = _import_file(path)

    export = None
    for attr in _EXPORTS:
        if hasattr(module, attr):
            export = getattr(module, attr)
            break
    if export is None:
        raise ConfigError(f"{path} must export one of: {', '.join(_EXPORTS)}")

    if callable(export) and not isinstance(export, Project):
        try:
            export = export()
        except Exception as e:
            raise ConfigError(f"Project factory in {path} failed: {e}") from e

    if not isinstance(export, Project):
        raise ConfigError(f"{path} exported {type(export).__name__}, expected a Project")

    logger.info(
        "Loaded project '%s' with %d environment(s)", export.id, len(export.environments)
    )
    return export
