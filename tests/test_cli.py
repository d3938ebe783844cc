"""Smoke tests for the CLI.

These tests verify basic CLI functionality without requiring
network access or a compute provisioner.
"""

import json

import pytest
from typer.testing import CliRunner

from homelab_iso import __version__
from homelab_iso.cli import app

runner = CliRunner()

BUILD_ID = "3f2a9c1e-7b4d-4c1a-9e8f-0123456789ab"


@pytest.fixture
def env(tmp_path) -> dict[str, str]:
    """Point the local artifact store at a temporary directory."""
    return {"HOMELAB_ISO_ARTIFACTS_DIR": str(tmp_path)}


class TestCLIHelp:
    """Test CLI help and version commands."""

    def test_help_returns_zero(self) -> None:
        """CLI --help should return exit code 0."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Homelab ISO Builder" in result.stdout

    def test_version_flag(self) -> None:
        """CLI --version should print version and exit 0."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_short_version_flag(self) -> None:
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        """CLI with no args should show help."""
        result = runner.invoke(app, [])
        assert "Usage:" in result.stdout


class TestCLIConfig:
    """Test CLI config command."""

    def test_config_command_shows_all_sections(self, env) -> None:
        result = runner.invoke(app, ["config"], env=env)
        assert result.exit_code == 0
        for section in ("Backends:", "Limits:", "Timing:", "Behaviour:"):
            assert section in result.stdout

    def test_config_json(self, env) -> None:
        result = runner.invoke(app, ["config", "--json"], env=env)
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["max_concurrent_builds"] == 3


class TestCLICatalog:
    def test_catalog(self) -> None:
        result = runner.invoke(app, ["catalog"])
        assert result.exit_code == 0
        assert "ollama" in result.stdout
        assert "Model variants:" in result.stdout

    def test_catalog_json_hides_hidden(self) -> None:
        result = runner.invoke(app, ["catalog", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert "nextcloud" in data["components"]
        assert "nextcloud-db" not in data["components"]


class TestCLIEstimate:
    """Test CLI estimate command."""

    def test_estimate_valid(self) -> None:
        result = runner.invoke(
            app, ["estimate", "ollama", "-m", "qwen3:8b", "--json"]
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["valid"] is True
        assert data["estimated_minutes"] == 57
        assert data["output_name"] == "ubuntu-24.04.3-homelab-custom"

    def test_estimate_text(self) -> None:
        result = runner.invoke(app, ["estimate", "ollama", "-n", "lab-iso"])
        assert result.exit_code == 0
        assert "Request is valid" in result.stdout
        assert "lab-iso" in result.stdout

    def test_estimate_unknown_component(self) -> None:
        result = runner.invoke(app, ["estimate", "minecraft", "--json"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["valid"] is False
        assert data["code"] == "validation_error"

    def test_estimate_unknown_option(self) -> None:
        result = runner.invoke(app, ["estimate", "ollama", "-o", "turbo"])
        assert result.exit_code == 1
        assert "Unknown option" in result.stdout


class TestCLIStatus:
    """Test CLI status command."""

    def test_status_not_found(self, env) -> None:
        result = runner.invoke(app, ["status", BUILD_ID], env=env)
        assert result.exit_code == 1
        assert "Build not found" in result.stdout

    def test_status_from_blob(self, env, tmp_path) -> None:
        (tmp_path / "build-status-3f2a9c1e.json").write_text(
            json.dumps({"stage": "images", "progress": 40, "message": "pulling"})
        )

        result = runner.invoke(app, ["status", BUILD_ID, "--json"], env=env)

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["status"] == "running"
        assert data["progress"] == 40
        assert data["reconciled"] is True
