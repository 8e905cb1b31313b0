"""Tests for the cachetron command line interface."""

import json
import logging
from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from cachetron.cli import cli
from cachetron.config import DEFAULT_CACHE_CONFIG
from cachetron.observability.monitoring import ROOT_LOGGER


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def restore_logger() -> Generator[None, None, None]:
    logger = logging.getLogger(ROOT_LOGGER)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


class TestCli:
    def test_no_command_shows_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, [])

        assert result.exit_code == 0
        assert "init" in result.output
        assert "dashboard" in result.output

    def test_help_command(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["help"])

        assert result.exit_code == 0
        assert "Usage:" in result.output
        assert "dashboard" in result.output

    def test_init_creates_config(self, runner: CliRunner, tmp_path: Path) -> None:
        target = tmp_path / "cachetron.json"

        result = runner.invoke(cli, ["init", "--path", str(target)])

        assert result.exit_code == 0
        assert f"Created cachetron config at: {target}" in result.output
        assert json.loads(target.read_text()) == DEFAULT_CACHE_CONFIG

    def test_init_keeps_existing_config(self, runner: CliRunner, tmp_path: Path) -> None:
        target = tmp_path / "cachetron.json"
        target.write_text('{"type": "memcache", "url": "localhost:11211"}', encoding="utf-8")

        result = runner.invoke(cli, ["init", "--path", str(target)])

        assert result.exit_code == 0
        assert "already exists" in result.output
        assert json.loads(target.read_text())["type"] == "memcache"

    def test_init_defaults_to_working_directory(
        self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("CACHETRON_CONFIG_PATH", raising=False)

        result = runner.invoke(cli, ["init"])

        assert result.exit_code == 0
        assert (tmp_path / "cachetron.json").exists()

    def test_dashboard_starts_uvicorn(
        self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("CACHETRON_METRICS_PATH", str(tmp_path / "metric.json"))

        with patch("uvicorn.run") as run:
            result = runner.invoke(cli, ["dashboard", "--port", "4000"])

        assert result.exit_code == 0, result.output
        assert "Dashboard running at http://127.0.0.1:4000" in result.output
        run.assert_called_once()
        _, kwargs = run.call_args
        assert kwargs == {"host": "127.0.0.1", "port": 4000, "log_level": "warning"}

    def test_dashboard_port_from_env(
        self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("PORT", "3100")

        with patch("uvicorn.run") as run:
            result = runner.invoke(cli, ["dashboard"])

        assert result.exit_code == 0, result.output
        assert run.call_args.kwargs["port"] == 3100

    def test_dashboard_invalid_settings(
        self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("PORT", "not-a-port")

        with patch("uvicorn.run") as run:
            result = runner.invoke(cli, ["dashboard"])

        assert result.exit_code == 1
        assert "Settings validation failed" in result.output
        run.assert_not_called()
