"""Tests for the stackforge CLI."""

import json
import pytest
import yaml
from click.testing import CliRunner
from conftest import IAM_STACK_DOCUMENT
from stackforge import __version__
from stackforge.cli.main import cli


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Empty project directory with an IAM declaration and isolated HOME."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    project = tmp_path / "project"
    project.mkdir()
    monkeypatch.chdir(project)
    (project / "stack.yaml").write_text(yaml.safe_dump(IAM_STACK_DOCUMENT, sort_keys=False), encoding="utf-8")
    return project


@pytest.fixture
def runner():
    return CliRunner()


class TestPlanCommand:
    """Test plan output."""

    def test_plan_lists_creates(self, runner, workspace):
        result = runner.invoke(cli, ['plan', 'stack.yaml'])

        assert result.exit_code == 0
        assert "iam_role.app_role" in result.output
        assert "Plan: 4 to create" in result.output
        assert not (workspace / ".stackforge" / "state.json").exists()

    def test_plan_json(self, runner, workspace):
        result = runner.invoke(cli, ['plan', 'stack.yaml', '--json'])

        assert result.exit_code == 0
        plan = json.loads(result.output)
        assert [a["verb"] for a in plan["actions"]] == ["create"] * 4

    def test_missing_declaration(self, runner, workspace):
        result = runner.invoke(cli, ['plan', 'nope.yaml'])

        assert result.exit_code == 1
        assert "Declaration file not found" in result.output

    def test_cycle_is_reported(self, runner, workspace):
        (workspace / "cycle.yaml").write_text(
            "resources:\n"
            "  - {kind: vpc, name: a, depends_on: [vpc.b]}\n"
            "  - {kind: vpc, name: b, depends_on: [vpc.a]}\n",
            encoding="utf-8",
        )
        result = runner.invoke(cli, ['plan', 'cycle.yaml'])

        assert result.exit_code == 1
        assert "Dependency cycle detected" in result.output


class TestApplyCommand:
    """Test apply exit codes and state handling."""

    def test_apply_then_no_op(self, runner, workspace):
        first = runner.invoke(cli, ['apply', 'stack.yaml'])
        assert first.exit_code == 0
        assert "Status: FULLY APPLIED" in first.output
        assert (workspace / ".stackforge" / "state.json").exists()

        second = runner.invoke(cli, ['plan', 'stack.yaml', '--json'])
        assert [a["verb"] for a in json.loads(second.output)["actions"]] == ["no-op"] * 4

    def test_apply_json_report(self, runner, workspace):
        result = runner.invoke(cli, ['apply', 'stack.yaml', '--json', '--quiet'])

        assert result.exit_code == 0
        report = json.loads(result.output)
        assert report["status"] == "fully-applied"
        assert len(report["results"]) == 4

    def test_partial_apply_exits_2(self, runner, workspace):
        (workspace / "failing.yaml").write_text(
            "provider:\n"
            "  name: conftest:FailingProvider\n"
            "  options:\n"
            "    fail_kinds: [iam_role_policy_attachment]\n",
            encoding="utf-8",
        )
        result = runner.invoke(cli, ['apply', 'stack.yaml', '--config', 'failing.yaml', '--json', '--quiet'])

        assert result.exit_code == 2
        report = json.loads(result.output)
        assert report["status"] == "partially-applied"
        assert [r["outcome"] for r in report["results"]] == [
            "succeeded", "failed", "skipped-due-to-dependency-failure", "skipped-due-to-dependency-failure",
        ]

    def test_invalid_config_exits_1(self, runner, workspace):
        (workspace / "bad.yaml").write_text("engine:\n  concurrency: 0\n", encoding="utf-8")
        result = runner.invoke(cli, ['apply', 'stack.yaml', '--config', 'bad.yaml'])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


class TestOtherCommands:
    """Test graph, state, destroy and version."""

    def test_graph_order(self, runner, workspace):
        result = runner.invoke(cli, ['graph', 'stack.yaml'])

        assert result.exit_code == 0
        lines = [line.split(". ", 1)[1] for line in result.output.strip().splitlines()]
        assert lines == [
            "iam_role.app_role",
            "iam_role_policy_attachment.app_role_s3",
            "iam_instance_profile.app_profile",
            "instance.app_server",
        ]

    def test_graph_json_edges(self, runner, workspace):
        result = runner.invoke(cli, ['graph', 'stack.yaml', '--json'])

        assert result.exit_code == 0
        assert len(json.loads(result.output)["edges"]) == 4

    def test_state_list_and_destroy(self, runner, workspace):
        assert runner.invoke(cli, ['apply', 'stack.yaml', '--quiet']).exit_code == 0

        listed = runner.invoke(cli, ['state', 'list'])
        assert listed.exit_code == 0
        assert "instance.app_server" in listed.output

        destroyed = runner.invoke(cli, ['destroy', 'stack.yaml', '--yes', '--json', '--quiet'])
        assert destroyed.exit_code == 0
        report = json.loads(destroyed.output)
        assert [r["ref"]["name"] for r in report["results"]] == [
            "app_server", "app_profile", "app_role_s3", "app_role",
        ]
        assert "State is empty." in runner.invoke(cli, ['state', 'list']).output

    def test_version(self, runner):
        result = runner.invoke(cli, ['version'])
        assert result.exit_code == 0
        assert __version__ in result.output
