"""
Tests for configuration: entrypoint loading, config flattening, nebula.yml.
"""

import textwrap
from pathlib import Path

import pytest

from nebula.core.config.bootstrap_config import load_bootstrap_config
from nebula.core.config.loader import find_project_file, load_project
from nebula.core.config.settings import to_workspace_config
from nebula.core.engine.project import Project
from nebula.core.errors import ConfigError


class TestFindProjectFile:
    def test_found_in_parent(self, project_dir: Path):
        nested = project_dir / "a" / "b"
        nested.mkdir(parents=True)
        assert find_project_file(nested) == project_dir / "nebula_config.py"

    def test_not_found(self, tmp_path: Path):
        assert find_project_file(tmp_path) is None


class TestLoadProject:
    def test_project_instance(self, project_dir: Path):
        project = load_project(project_dir / "nebula_config.py")
        assert isinstance(project, Project)
        assert project.id == "demo"
        assert list(project.environments) == ["dev", "prod"]

    def test_factory_export(self, tmp_path: Path):
        path = tmp_path / "nebula_config.py"
        path.write_text(textwrap.dedent("""\
            from nebula.core.engine.project import Project

            def create_project():
                return Project(id="made")
        """))
        assert load_project(path).id == "made"

    def test_callable_project_export(self, tmp_path: Path):
        path = tmp_path / "nebula_config.py"
        path.write_text(textwrap.dedent("""\
            from nebula.core.engine.project import Project

            def project():
                return Project(id="lazy")
        """))
        assert load_project(path).id == "lazy"

    def test_missing_export(self, tmp_path: Path):
        path = tmp_path / "nebula_config.py"
        path.write_text("x = 1\n")
        with pytest.raises(ConfigError, match="must export"):
            load_project(path)

    def test_wrong_type(self, tmp_path: Path):
        path = tmp_path / "nebula_config.py"
        path.write_text("project = {'id': 'dict'}\n")
        with pytest.raises(ConfigError, match="expected a Project"):
            load_project(path)

    def test_import_error(self, tmp_path: Path):
        path = tmp_path / "nebula_config.py"
        path.write_text("raise RuntimeError('bad config')\n")
        with pytest.raises(ConfigError, match="bad config"):
            load_project(path)

    def test_factory_error(self, tmp_path: Path):
        path = tmp_path / "nebula_config.py"
        path.write_text("def get_project():\n    raise ValueError('nope')\n")
        with pytest.raises(ConfigError, match="nope"):
            load_project(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_project(tmp_path / "missing.py")

    def test_sibling_imports(self, tmp_path: Path):
        (tmp_path / "nebula_helpers_for_test.py").write_text("PROJECT_ID = 'sibling'\n")
        path = tmp_path / "nebula_config.py"
        path.write_text(textwrap.dedent("""\
            from nebula.core.engine.project import Project
            from nebula_helpers_for_test import PROJECT_ID

            project = Project(id=PROJECT_ID)
        """))
        assert load_project(path).id == "sibling"


class TestToWorkspaceConfig:
    def test_nested_mapping(self):
        flat = to_workspace_config({"gcp": {"project": "p", "region": "europe-west3"}, "app:replicas": 3})
        assert flat == {"gcp:project": "p", "gcp:region": "europe-west3", "app:replicas": "3"}

    def test_yaml_string(self):
        flat = to_workspace_config("gcp:\n  project: p\nnebula:\n  debug: true\n")
        assert flat == {"gcp:project": "p", "nebula:debug": "true"}

    def test_deep_values_json_encoded(self):
        flat = to_workspace_config({"app": {"zones": ["a", "b"], "limits": {"cpu": 2}}})
        assert flat == {"app:zones": '["a", "b"]', "app:limits": '{"cpu": 2}'}

    def test_empty(self):
        assert to_workspace_config(None) == {}
        assert to_workspace_config("") == {}
        assert to_workspace_config({}) == {}

    def test_invalid_yaml(self):
        with pytest.raises(ConfigError):
            to_workspace_config("gcp: [unclosed")

    def test_non_mapping_yaml(self):
        with pytest.raises(ConfigError, match="mapping"):
            to_workspace_config("- a\n- b\n")


class TestBootstrapConfig:
    def test_load(self, tmp_path: Path):
        (tmp_path / "nebula.yml").write_text(textwrap.dedent("""\
            env: dev
            backend_url: gs://state
            secretsProvider: gcpkms://projects/p/locations/l/keyRings/r/cryptoKeys/k
            domain: dev.example.com
            team: platform
        """))
        config = load_bootstrap_config(start_dir=tmp_path)
        assert config.env == "dev"
        assert config.backend_url == "gs://state"
        assert config.secrets_provider.startswith("gcpkms://")
        assert config.domain == "dev.example.com"
        assert config.extra == {"team": "platform"}

    def test_missing_env(self, tmp_path: Path):
        (tmp_path / "nebula.yml").write_text("backend_url: gs://state\n")
        with pytest.raises(ConfigError, match="env"):
            load_bootstrap_config(start_dir=tmp_path)

    def test_missing_backend(self, tmp_path: Path):
        (tmp_path / "nebula.yml").write_text("env: dev\n")
        with pytest.raises(ConfigError, match="backend_url"):
            load_bootstrap_config(start_dir=tmp_path)

    def test_not_found(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="No nebula.yml"):
            load_bootstrap_config(start_dir=tmp_path)

    def test_not_a_mapping(self, tmp_path: Path):
        (tmp_path / "nebula.yml").write_text("- dev\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_bootstrap_config(start_dir=tmp_path)
