"""
Shared test fixtures.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tests.fakes import PROJECT_SOURCE, STACK_URN, FakeStack, urn


@pytest.fixture
def resource_tree() -> list[dict]:
    """root component → {child_a → grandchild, child_b}, plus an unrelated bucket."""
    root = urn("nebula:component", "root")
    child_a = urn("nebula:component$gcp:compute/network:Network", "child-a")
    return [
        {"urn": STACK_URN, "type": "pulumi:pulumi:Stack", "custom": False},
        {"urn": root, "type": "nebula:component", "custom": False, "parent": STACK_URN},
        {"urn": child_a, "type": "gcp:compute/network:Network", "custom": True, "parent": root},
        {
            "urn": urn("gcp:compute/subnetwork:Subnetwork", "grandchild"),
            "type": "gcp:compute/subnetwork:Subnetwork",
            "custom": True,
            "parent": child_a,
        },
        {
            "urn": urn("gcp:compute/router:Router", "child-b"),
            "type": "gcp:compute/router:Router",
            "custom": True,
            "parent": root,
        },
        {
            "urn": urn("gcp:storage/bucket:Bucket", "bucket"),
            "type": "gcp:storage/bucket:Bucket",
            "custom": True,
            "parent": STACK_URN,
        },
    ]


@pytest.fixture
def fake_stack(resource_tree: list[dict]) -> FakeStack:
    return FakeStack(resources=resource_tree)


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A directory holding a nebula_config.py with two environments."""
    (tmp_path / "nebula_config.py").write_text(PROJECT_SOURCE, encoding="utf-8")
    return tmp_path



@pytest.fixture(autouse=True)
def _restore_root_logger():
    """CLI tests call setup_logging, which replaces the root handlers."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
