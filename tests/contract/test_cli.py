"""Contract tests for the agentbox command-line interface."""

import json
import os
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from agentbox.cli.main import cli

from conftest import ScriptedAgentStream


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point configuration at an absent file and keep logging untouched."""
    for name in ("AGENTBOX_TIMEOUT_MS", "AGENTBOX_ENABLE_BASH", "AGENTBOX_ALLOWED_COMMANDS",
                 "AGENTBOX_WORKSPACE_PATH", "AGENTBOX_LOG_LEVEL", "ANTHROPIC_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AGENTBOX_CONFIG_PATH", str(tmp_path / "absent.yaml"))
    with patch("agentbox.cli.main.setup_logging"):
        yield


class TestRunCommand:
    """agentbox run."""

    def test_run_prints_results(self, runner, tmp_path, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        stream = ScriptedAgentStream([{"type": "result", "result": "All done"}])

        with patch("agentbox.cli.main.create_agent_stream", return_value=stream):
            result = runner.invoke(cli, ["run", "Do the thing", "--workspace", str(tmp_path / "ws")])

        assert result.exit_code == 0, result.output
        [item] = json.loads(result.output)
        assert item["output"] == "All done"
        assert not os.path.exists(item["workspace"])

    def test_run_applies_options_and_flags(self, runner, tmp_path, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        stream = ScriptedAgentStream()

        with patch("agentbox.cli.main.create_agent_stream", return_value=stream):
            result = runner.invoke(cli, [
                "run", "Go",
                "--options", json.dumps({"maxTurns": 2, "allowedCommands": "git", "timeoutMs": 9000}),
                "--enable-bash",
                "--timeout-ms", "5000",
                "--workspace", str(tmp_path / "ws"),
            ])

        assert result.exit_code == 0, result.output
        [request] = stream.requests
        assert request.max_turns == 2
        assert request.policy.enable_bash_commands is True
        assert request.policy.allowed_commands == ("git",)
        assert request.policy.timeout_ms == 5000

    def test_run_reports_error_record(self, runner, tmp_path, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        stream = ScriptedAgentStream([
            {"type": "tool_use", "tool": "Bash", "input": {"command": "sudo rm -rf /"}},
        ])

        with patch("agentbox.cli.main.create_agent_stream", return_value=stream):
            result = runner.invoke(cli, ["run", "Clean", "--workspace", str(tmp_path / "ws")])

        assert result.exit_code == 1
        assert "Command blocked by security filters: sudo rm -rf /" in result.output

    def test_run_without_prompts(self, runner):
        result = runner.invoke(cli, ["run"])
        assert result.exit_code == 2

    def test_run_with_invalid_options_json(self, runner):
        result = runner.invoke(cli, ["run", "Go", "--options", "{not json"])
        assert result.exit_code == 1
        assert "Invalid --options JSON" in result.output


class TestCheckCommands:
    """agentbox check-command and check-path."""

    def test_blocked_command(self, runner):
        result = runner.invoke(cli, ["check-command", "sudo rm -rf /", "--allowed-commands", "node"])

        assert result.exit_code == 1
        decision = json.loads(result.output)
        assert decision["allowed"] is False
        assert decision["command"] == "sudo rm -rf /"

    def test_allowed_command(self, runner):
        result = runner.invoke(cli, ["check-command", "node index.js", "--allowed-commands", "node"])

        assert result.exit_code == 0
        assert json.loads(result.output)["allowed"] is True

    def test_disabled_bash_blocks(self, runner):
        result = runner.invoke(cli, ["check-command", "node index.js", "--disable-bash"])
        assert result.exit_code == 1

    def test_contained_path(self, runner, tmp_path):
        result = runner.invoke(cli, ["check-path", "src/main.py", "--workspace", str(tmp_path)])

        assert result.exit_code == 0
        assert json.loads(result.output)["contained"] is True

    def test_escaping_path(self, runner, tmp_path):
        result = runner.invoke(cli, ["check-path", "../outside", "--workspace", str(tmp_path)])

        assert result.exit_code == 1
        assert json.loads(result.output)["contained"] is False


class TestConfigCommands:
    """agentbox validate and init-config."""

    def test_init_then_validate(self, runner, tmp_path):
        path = tmp_path / "conf" / "agentbox.yaml"

        init_result = runner.invoke(cli, ["init-config", "--output", str(path)])
        assert init_result.exit_code == 0
        assert yaml.safe_load(path.read_text())["defaults"]["timeoutMs"] == 300000

        validate_result = runner.invoke(cli, ["--config", str(path), "validate"])
        assert validate_result.exit_code == 0
        assert "Configuration validation completed successfully!" in validate_result.output
        assert "No Anthropic API key configured" in validate_result.output

    def test_init_refuses_to_overwrite(self, runner, tmp_path):
        path = tmp_path / "agentbox.yaml"
        path.write_text("workflow_id: mine\n")

        assert runner.invoke(cli, ["init-config", "-o", str(path)]).exit_code == 1
        assert path.read_text() == "workflow_id: mine\n"
        assert runner.invoke(cli, ["init-config", "-o", str(path), "--force"]).exit_code == 0

    def test_validate_invalid_file(self, runner, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("defaults:\n  timeoutMs: -1\n")

        result = runner.invoke(cli, ["--config", str(path), "validate"])

        assert result.exit_code == 1
        assert "Configuration error" in result.output
