"""
Tests for the command line interface.
"""

import logging

import pytest
import structlog
from click.testing import CliRunner

from featuredev_agent import __version__
from featuredev_agent.cli import main


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for name in ["RETRY_LIMIT", "LOW_ITERATION_THRESHOLD", "TELEMETRY_ENABLED",
                 "TELEMETRY_PATH", "LOG_LEVEL", "LOG_FILE"]:
        monkeypatch.delenv(f"FEATUREDEV_{name}", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    yield
    # The CLI points log handlers at the runner's streams
    logging.getLogger().handlers = []
    logging.getLogger().setLevel(logging.WARNING)
    structlog.reset_defaults()


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def no_telemetry_config(temp_file):
    return str(temp_file("config.yaml", "telemetry:\n  enabled: false\n"))


@pytest.fixture
def telemetry_config(temp_file, tmp_path):
    path = tmp_path / "telemetry.jsonl"
    return str(temp_file("config.yaml", f"telemetry:\n  output_path: {path}\n")), path


class TestMain:
    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert f"featuredev-agent v{__version__}" in result.output

    def test_help_without_command(self, runner):
        result = runner.invoke(main, [])

        assert result.exit_code == 0
        assert "simulate" in result.output


class TestSimulate:
    """Tests for the simulate command."""

    def test_successful_attempt(self, runner, no_telemetry_config):
        result = runner.invoke(main, ["simulate", "-c", no_telemetry_config])

        assert result.exit_code == 0, result.output
        assert "StartCodeGeneration -> Success" in result.output
        assert "EndCodeGeneration -> Success" in result.output

    def test_throttling_is_error(self, runner, no_telemetry_config):
        result = runner.invoke(main, ["simulate", "-c", no_telemetry_config, "--fail", "throttling"])

        assert result.exit_code == 1
        assert "EndCodeGeneration -> Error" in result.output
        assert "ThrottlingException" in result.output

    def test_empty_patch_is_llm_failure(self, runner, no_telemetry_config):
        result = runner.invoke(main, ["simulate", "-c", no_telemetry_config, "--fail", "empty-patch"])

        assert result.exit_code == 1
        assert "EndCodeGeneration -> LlmFailure" in result.output

    def test_unexpected_is_fault(self, runner, no_telemetry_config):
        result = runner.invoke(main, ["simulate", "-c", no_telemetry_config, "--fail", "unexpected"])

        assert result.exit_code == 1
        assert "EndCodeGeneration -> Fault" in result.output

    def test_invalid_counts(self, runner, no_telemetry_config):
        result = runner.invoke(
            main, ["simulate", "-c", no_telemetry_config, "--remaining", "6", "--total", "5"],
        )

        assert result.exit_code == 2

    def test_hidden_chat_notifies(self, runner, no_telemetry_config):
        result = runner.invoke(main, ["simulate", "-c", no_telemetry_config, "--hidden"])

        assert result.exit_code == 0
        assert "Code generation complete" in result.output

    def test_missing_config(self, runner, tmp_path):
        result = runner.invoke(main, ["simulate", "-c", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "Config file not found" in result.output


class TestStats:
    """Tests for the stats command."""

    def test_disabled(self, runner, no_telemetry_config):
        result = runner.invoke(main, ["stats", "-c", no_telemetry_config])

        assert result.exit_code == 0
        assert "Telemetry is disabled" in result.output

    def test_no_data(self, runner, telemetry_config):
        config_path, _ = telemetry_config

        result = runner.invoke(main, ["stats", "-c", config_path])

        assert "No telemetry found" in result.output

    def test_after_simulation(self, runner, telemetry_config):
        config_path, telemetry_path = telemetry_config
        runner.invoke(main, ["simulate", "-c", config_path])

        result = runner.invoke(main, ["stats", "-c", config_path])

        assert telemetry_path.exists()
        assert result.exit_code == 0, result.output
        assert "Conversations: 1" in result.output


class TestConfigCommand:
    def test_init_writes_defaults(self, runner, tmp_path):
        path = tmp_path / "new" / "config.yaml"

        result = runner.invoke(main, ["config", "--init", "-c", str(path)])

        assert result.exit_code == 0
        assert path.exists()

    def test_show(self, runner, no_telemetry_config):
        result = runner.invoke(main, ["config", "-c", no_telemetry_config])

        assert result.exit_code == 0
        assert "retry_limit: 3" in result.output
        assert "enabled: false" in result.output


class TestLogLevel:
    """The configured log level applies unless --verbose is given."""

    @pytest.fixture
    def quiet_config(self, temp_file):
        return str(temp_file("quiet.yaml", "telemetry:\n  enabled: false\nlogging:\n  level: ERROR\n"))

    def test_configured_level(self, runner, quiet_config):
        result = runner.invoke(main, ["simulate", "-c", quiet_config])

        assert result.exit_code == 0, result.output
        assert logging.getLogger().level == logging.ERROR

    def test_verbose_wins(self, runner, quiet_config):
        result = runner.invoke(main, ["-v", "simulate", "-c", quiet_config])

        assert result.exit_code == 0, result.output
        assert logging.getLogger().level == logging.DEBUG
