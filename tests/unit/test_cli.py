"""Tests for CLI entry points."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from dimstar import __version__
from dimstar.cli.main import dimstar_cli
from dimstar.core.orchestrator import EXIT_CONFIG_ERROR


@pytest.fixture
def credentials_path(tmp_path: Path, monkeypatch) -> Path:
    path = tmp_path / "home" / ".dimstar" / "credentials.yaml"
    monkeypatch.setattr("dimstar.core.credentials.DEFAULT_CREDENTIALS_PATH", path)
    monkeypatch.delenv("NVIDIA_API_KEY", raising=False)
    return path


class TestRunCommand:
    def test_requires_task(self):
        result = CliRunner().invoke(dimstar_cli, ["run"])
        assert result.exit_code == 2

    @patch("dimstar.core.orchestrator.run_task", new_callable=AsyncMock)
    def test_passes_options(self, mock_run, tmp_path):
        mock_run.return_value = 0

        result = CliRunner().invoke(
            dimstar_cli,
            ["run", "Plan a launch", "-t", "30", "--dry-run", "--calls-per-minute", "5", "-o", str(tmp_path / "r.md")],
        )

        assert result.exit_code == 0
        kwargs = mock_run.call_args.kwargs
        assert kwargs["task"] == "Plan a launch"
        assert kwargs["threshold"] == 30
        assert kwargs["dry_run"] is True
        assert kwargs["calls_per_minute"] == 5
        assert kwargs["output"] == tmp_path / "r.md"
        assert kwargs["json_output"] is None

    @patch("dimstar.core.orchestrator.run_task", new_callable=AsyncMock)
    def test_exit_code_propagates(self, mock_run):
        mock_run.return_value = 1
        result = CliRunner().invoke(dimstar_cli, ["run", "Plan a launch"])
        assert result.exit_code == 1

    def test_rejects_zero_threshold(self):
        result = CliRunner().invoke(dimstar_cli, ["run", "Plan a launch", "-t", "0"])
        assert result.exit_code == 2

    def test_dry_run_end_to_end(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(
                dimstar_cli,
                ["run", "Plan a launch", "--dry-run", "-o", "report.md", "--json", "run.json"],
            )

            assert result.exit_code == 0, result.output
            assert "Final answer" in result.output
            assert "Done" in result.output
            assert "Rate limit:" in result.output
            assert Path("report.md").read_text(encoding="utf-8").startswith("# DimStar Run Report")
            data = json.loads(Path("run.json").read_text(encoding="utf-8"))
            assert data["task"] == "Plan a launch"
            assert data["rounds"] == 1

    def test_missing_key_is_config_error(self, credentials_path):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(dimstar_cli, ["run", "Plan a launch"])

        assert result.exit_code == 13
        assert "API key not set" in result.output


class TestReasonCommand:
    def test_dry_run(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(dimstar_cli, ["reason", "What is 2 + 2?", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "Step 1" in result.output
        assert "Final answer" in result.output


class TestKeyCommands:
    def test_set_then_show(self, credentials_path):
        runner = CliRunner()
        with runner.isolated_filesystem():
            saved = runner.invoke(dimstar_cli, ["key", "set", "nvapi-1234567890abcd"])
            shown = runner.invoke(dimstar_cli, ["key", "show"])

        assert saved.exit_code == 0
        assert credentials_path.exists()
        assert shown.exit_code == 0
        assert "nvap...abcd" in shown.output
        assert "1234567890" not in shown.output

    def test_show_without_key(self, credentials_path):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(dimstar_cli, ["key", "show"])

        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "No API key configured." in result.output


class TestMiscCommands:
    def test_version(self):
        result = CliRunner().invoke(dimstar_cli, ["--version"])
        assert __version__ in result.output

    def test_models(self):
        result = CliRunner().invoke(dimstar_cli, ["models"])
        assert result.exit_code == 0
        assert "deepseek-ai/deepseek-v3.2" in result.output
        assert "qwen/qwen3-235b-a22b" in result.output
        assert "(thinking)" in result.output

    def test_models_from_config(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("models:\n  - id: local/llama\n    tags: [fast]\n")

        result = CliRunner().invoke(dimstar_cli, ["models", "--config", str(config)])

        assert result.exit_code == 0
        assert "local/llama" in result.output
        assert "deepseek" not in result.output
