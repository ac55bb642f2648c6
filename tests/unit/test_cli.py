"""Tests for the commandgate CLI."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from commandgate.cli.main import (
    EXIT_NOT_RUNNABLE,
    EXIT_REJECTED,
    EXIT_TIMEOUT,
    cli,
    exit_status_for,
)
from commandgate.core.exceptions import (
    ConfigurationError,
    DeniedByConfirmationError,
    ProcessNonZeroExitError,
)


@pytest.fixture
def runner(tmp_path, monkeypatch):
    """CLI runner with an empty home directory and project root."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr(Path, "home", lambda: home)
    for name in (
        "COMMANDGATE_REQUIRE_CONFIRMATION",
        "COMMANDGATE_ENABLE_SANDBOX",
        "COMMANDGATE_SECURITY_THRESHOLD",
        "COMMANDGATE_EXECUTION_TIMEOUT_MS",
        "COMMANDGATE_MAX_CONCURRENT",
        "COMMANDGATE_CONFIRMATION_TIMEOUT_MS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return CliRunner()


class TestExitStatus:
    def test_rejections(self):
        error = DeniedByConfirmationError("denied", command="mkdir x", response="denied")
        assert exit_status_for(error) == EXIT_REJECTED

    def test_child_exit_code_passes_through(self):
        error = ProcessNonZeroExitError("failed", command="grep", exit_code=3)
        assert exit_status_for(error) == 3

    def test_other_errors(self):
        assert exit_status_for(ConfigurationError("bad")) == 1


class TestRun:
    """Test the run command."""

    def test_echo(self, runner):
        result = runner.invoke(cli, ["run", "--yes", "echo", "hi"])

        assert result.exit_code == 0
        assert "hi" in result.stdout

    def test_arguments_after_command_pass_through(self, runner):
        result = runner.invoke(cli, ["run", "ls", "-a", "."])

        assert result.exit_code == 0
        assert ".." in result.stdout

    def test_blacklisted_command_rejected(self, runner):
        result = runner.invoke(cli, ["run", "sudo", "rm", "-rf", "/"])

        assert result.exit_code == EXIT_REJECTED
        assert "below the threshold" in result.stdout

    def test_nonzero_exit(self, runner):
        result = runner.invoke(cli, ["run", "--yes", "false"])

        assert result.exit_code == 1

    def test_timeout(self, runner):
        result = runner.invoke(cli, ["run", "--timeout-ms", "100", "sleep", "5"])

        assert result.exit_code == EXIT_TIMEOUT
        assert "timed out" in result.stdout

    def test_missing_program(self, runner):
        result = runner.invoke(cli, ["run", "definitely-not-a-real-command-xyz"])

        assert result.exit_code == EXIT_NOT_RUNNABLE

    def test_sandbox_flag(self, runner):
        result = runner.invoke(
            cli, ["run", "--sandbox", "--threshold", "0", "--yes", "chown", "--version"]
        )

        assert result.exit_code == EXIT_REJECTED
        assert "sandbox" in result.stdout

    def test_workdir(self, runner, tmp_path):
        target = tmp_path / "work"
        target.mkdir()

        result = runner.invoke(cli, ["run", "--yes", "-C", str(target), "mkdir", "made"])

        assert result.exit_code == 0
        assert (target / "made").is_dir()

    def test_invalid_threshold(self, runner):
        result = runner.invoke(cli, ["run", "--threshold", "150", "echo", "hi"])

        assert result.exit_code == 1
        assert "Configuration error" in result.stdout


class TestAnalyze:
    """Test the analyze command."""

    def test_table_output(self, runner):
        result = runner.invoke(cli, ["analyze", "ls", "-la"])

        assert result.exit_code == 0
        assert "file-system-read" in result.stdout
        assert "100/100" in result.stdout

    def test_json_output(self, runner):
        result = runner.invoke(cli, ["analyze", "--json", "sudo", "rm", "-rf", "/"])

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["command"] == "sudo rm -rf /"
        assert payload["category"] == "destructive"
        assert payload["is_valid"] is False
        assert payload["score"] < 50
        failed = {c["name"] for c in payload["checks"] if not c["passed"]}
        assert "blacklist-check" in failed


class TestOtherCommands:
    def test_categories(self, runner):
        result = runner.invoke(cli, ["categories"])

        assert result.exit_code == 0
        for name in ("destructive", "system-admin", "network", "package-management"):
            assert name in result.stdout

    def test_config_show_defaults(self, runner):
        result = runner.invoke(cli, ["config", "show"])

        assert result.exit_code == 0
        assert "Security Threshold: 70" in result.stdout
        assert "Max Concurrent Executions: 5" in result.stdout

    def test_config_show_env_override(self, runner, monkeypatch):
        monkeypatch.setenv("COMMANDGATE_SECURITY_THRESHOLD", "55")

        result = runner.invoke(cli, ["config", "show"])

        assert "Security Threshold: 55" in result.stdout

    def test_banner(self, runner):
        result = runner.invoke(cli, [])

        assert result.exit_code == 0
        assert "Available Commands" in result.stdout
