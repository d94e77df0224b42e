"""Tests for layered configuration."""

import pytest
from stackforge.config import load_engine_config
from stackforge.ingest.models import ResourceKind
from stackforge.policy.registry import build_policy_table, get_policy
from stackforge.utils.errors import ConfigError


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep the real ~/.stackforge and cwd out of every test."""
    home = tmp_path / "home"
    project = tmp_path / "project"
    home.mkdir()
    project.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(project)
    return home, project


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadEngineConfig:
    """Test defaults and override layers."""

    def test_defaults(self):
        config = load_engine_config()

        assert config["engine"] == {"concurrency": 4, "refresh": False}
        assert config["state"]["path"] == ".stackforge/state.json"
        assert config["provider"]["name"] == "local"
        assert config["provider"]["options"]["path"] == ".stackforge/remote.json"
        assert config["policies"] == {}

    def test_layers_merge_in_order(self, isolated_home, tmp_path):
        home, project = isolated_home
        _write(home / ".stackforge" / "config.yaml", "engine:\n  concurrency: 2\n  refresh: true\n")
        _write(project / ".stackforge" / "config.yaml", "engine:\n  concurrency: 8\n")
        explicit = _write(tmp_path / "ci.yaml", "state:\n  path: /tmp/ci-state.json\n")

        config = load_engine_config(str(explicit))

        assert config["engine"] == {"concurrency": 8, "refresh": True}
        assert config["state"]["path"] == "/tmp/ci-state.json"
        assert config["provider"]["name"] == "local"

    def test_broken_user_config_is_ignored(self, isolated_home):
        home, _ = isolated_home
        _write(home / ".stackforge" / "config.yaml", "engine: [\n")

        assert load_engine_config()["engine"]["concurrency"] == 4

    def test_broken_project_config_is_fatal(self, isolated_home):
        _, project = isolated_home
        _write(project / ".stackforge" / "config.yaml", "engine: [\n")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_engine_config()

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_engine_config(str(tmp_path / "missing.yaml"))

    @pytest.mark.parametrize("value", ["0", "-1", "two", "true"])
    def test_invalid_concurrency(self, tmp_path, value):
        explicit = _write(tmp_path / "bad.yaml", f"engine:\n  concurrency: {value}\n")
        with pytest.raises(ConfigError, match="engine.concurrency"):
            load_engine_config(str(explicit))

    def test_non_mapping_document(self, tmp_path):
        explicit = _write(tmp_path / "list.yaml", "- a\n- b\n")
        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_engine_config(str(explicit))

    def test_policy_overrides_flow_into_table(self, tmp_path):
        explicit = _write(
            tmp_path / "policies.yaml",
            "policies:\n  iam_role:\n    replace_fields: [name, path, permissions_boundary]\n",
        )
        config = load_engine_config(str(explicit))
        policy = get_policy(build_policy_table(config["policies"]), "iam_role")

        assert policy.replace_fields == ["name", "path", "permissions_boundary"]
        assert policy.identity_fields == ["name"]


class TestPolicyTable:
    """Test policy override validation."""

    def test_unknown_kind(self):
        with pytest.raises(ConfigError, match="unknown resource kinds: teleporter"):
            build_policy_table({"teleporter": {}})

    def test_override_must_be_mapping(self):
        with pytest.raises(ConfigError, match="must be a mapping"):
            build_policy_table({"vpc": ["cidr_block"]})

    def test_invalid_field_type(self):
        with pytest.raises(ConfigError, match="Invalid policy for 'vpc'"):
            build_policy_table({"vpc": {"replace_on_any_change": "sometimes"}})

    def test_every_kind_has_a_policy(self):
        table = build_policy_table()
        assert set(table) == {kind.value for kind in ResourceKind}

    def test_replace_on_any_change(self):
        policy = get_policy(build_policy_table(), "iam_role_policy_attachment")
        assert policy.requires_replacement(["role"])
        assert not policy.requires_replacement([])
