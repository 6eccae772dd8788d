"""
Tests for the bootstrap use case.
"""

import textwrap
from pathlib import Path

import yaml

from nebula.core.automation import workspace
from nebula.core.automation.workspace import StackManager
from nebula.core.errors import StackOperationError
from nebula.core.use_cases.bootstrap import (
    bootstrap,
    gcp_project_from_kms,
    gcp_region_from_kms,
)

from tests.fakes import FakeStack

KMS = "gcpkms://projects/acme-dev/locations/europe-west3/keyRings/nebula/cryptoKeys/state"


class RecordingManager:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.specs = []

    def create_or_select_stack(self, spec, *, persist_settings=None, debug=None):
        self.specs.append((spec, persist_settings))
        if self.fail:
            raise StackOperationError("dev", "select", "backend unreachable", exit_code=1)
        return object()


def _write_config(root: Path, body: str) -> None:
    (root / "nebula.yml").write_text(textwrap.dedent(body))


class TestKmsParsing:
    def test_project_and_region(self):
        assert gcp_project_from_kms(KMS) == "acme-dev"
        assert gcp_region_from_kms(KMS) == "europe-west3"

    def test_other_providers(self):
        assert gcp_project_from_kms("awskms://alias/x") is None
        assert gcp_region_from_kms(None) is None


class TestBootstrap:
    def test_creates_env_stack(self, tmp_path: Path):
        root = tmp_path / "infra"
        root.mkdir()
        _write_config(root, f"""\
            env: dev
            backend_url: gs://acme-state
            secrets_provider: {KMS}
        """)
        manager = RecordingManager()
        result = bootstrap(root, manager=manager)

        assert result.error is None
        assert result.stack_created
        spec, persist = manager.specs[0]
        assert persist is True
        assert spec.stack_name == "dev"
        assert spec.project_name == "infra"
        assert spec.backend_url == "gs://acme-state"
        assert spec.secrets_provider == KMS
        assert spec.program() is None
        assert result.gcp_project == "acme-dev"
        assert result.exports == {
            "CLOUDSDK_CORE_PROJECT": "acme-dev",
            "CLOUDSDK_COMPUTE_ZONE": "europe-west3-a",
        }
        assert result.export_lines()[0] == 'export CLOUDSDK_CORE_PROJECT="acme-dev"'

    def test_config_found_in_parent(self, tmp_path: Path):
        _write_config(tmp_path, "env: prod\nbackend_url: gs://b\n")
        nested = tmp_path / "stacks"
        nested.mkdir()
        result = bootstrap(nested, manager=RecordingManager())
        assert result.stack_name == "prod"
        assert result.config_path == (tmp_path / "nebula.yml").resolve()

    def test_explicit_gcp_values_win(self, tmp_path: Path):
        _write_config(tmp_path, f"""\
            env: dev
            backend_url: gs://b
            secrets_provider: {KMS}
            gcp_project: override
            gcp_region: us-central1
        """)
        result = bootstrap(tmp_path, manager=RecordingManager())
        assert result.gcp_project == "override"
        assert result.exports["CLOUDSDK_COMPUTE_ZONE"] == "us-central1-a"

    def test_ci_skips_exports(self, tmp_path: Path):
        _write_config(tmp_path, f"env: dev\nbackend_url: gs://b\nsecrets_provider: {KMS}\n")
        result = bootstrap(tmp_path, ci=True, manager=RecordingManager())
        assert result.exports == {}

    def test_missing_config(self, tmp_path: Path):
        result = bootstrap(tmp_path, manager=RecordingManager())
        assert result.error is not None
        assert "nebula.yml" in result.error

    def test_stack_failure_still_writes_settings(self, tmp_path: Path):
        _write_config(tmp_path, f"env: dev\nbackend_url: gs://b\nsecrets_provider: {KMS}\n")
        result = bootstrap(tmp_path, manager=RecordingManager(fail=True))

        assert result.error is None
        assert not result.stack_created
        assert result.warnings
        project_doc = yaml.safe_load((tmp_path / "Pulumi.yaml").read_text())
        assert project_doc == {"name": tmp_path.name, "runtime": "python", "backend": {"url": "gs://b"}}
        stack_doc = yaml.safe_load((tmp_path / "Pulumi.dev.yaml").read_text())
        assert stack_doc == {"config": {}, "secretsprovider": KMS}

    def test_settings_write_failure_falls_back(self, tmp_path: Path, monkeypatch):
        stack = FakeStack(name="dev")

        def refuse(settings):
            raise OSError("workspace is read-only")

        stack.workspace.save_project_settings = refuse
        monkeypatch.setattr(workspace.auto, "create_or_select_stack", lambda **kwargs: stack)
        _write_config(tmp_path, f"env: dev\nbackend_url: gs://b\nsecrets_provider: {KMS}\n")

        result = bootstrap(tmp_path, manager=StackManager(persist_settings=True))

        assert result.error is None
        assert not result.stack_created
        assert any("save-settings failed" in w for w in result.warnings)
        assert (tmp_path / "Pulumi.dev.yaml").is_file()
