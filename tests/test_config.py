"""Tests for configuration module."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from homelab_iso.config import Settings, get_settings, print_settings_json


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self) -> None:
        """Settings should have sensible defaults."""
        settings = Settings()

        assert (
            settings.artifacts_dir
            == Path.home() / ".local" / "share" / "homelab-iso" / "artifacts"
        )
        assert settings.store_backend == "local"
        assert settings.max_concurrent_builds == 3
        assert settings.max_components_per_build == 50
        assert settings.max_variants_per_build == 10
        assert settings.poll_interval_seconds == 10.0
        assert settings.stalled_threshold_minutes == 30.0
        assert settings.build_timeout_hours == 4.0
        assert settings.build_retention_hours == 24.0
        assert settings.auto_cleanup is True
        assert settings.artifact_suffix == ".iso"

    def test_settings_from_env(self) -> None:
        """Settings should be loadable from environment variables."""
        with patch.dict(
            os.environ,
            {
                "HOMELAB_ISO_MAX_CONCURRENT_BUILDS": "5",
                "HOMELAB_ISO_AUTO_CLEANUP": "false",
                "HOMELAB_ISO_LOG_LEVEL": "DEBUG",
                "HOMELAB_ISO_PROVISIONER_TOKEN": "s3cret",
            },
        ):
            settings = Settings()
            assert settings.max_concurrent_builds == 5
            assert settings.auto_cleanup is False
            assert settings.log_level == "DEBUG"
            assert settings.provisioner_token.get_secret_value() == "s3cret"

    def test_artifacts_dir_from_env(self) -> None:
        with patch.dict(os.environ, {"HOMELAB_ISO_ARTIFACTS_DIR": "/tmp/isos"}):
            assert Settings().artifacts_dir == Path("/tmp/isos")

    def test_registry_must_hold_all_active_builds(self) -> None:
        """The registry bound may not be smaller than the concurrency limit."""
        with pytest.raises(ValidationError, match="max_builds_in_memory"):
            Settings(max_concurrent_builds=10, max_builds_in_memory=5)

    def test_concurrency_bounds(self) -> None:
        with pytest.raises(ValidationError):
            Settings(max_concurrent_builds=0)

    def test_invalid_suffix(self) -> None:
        with pytest.raises(ValidationError):
            Settings(artifact_suffix="iso")


class TestGetSettings:
    """Test get_settings function."""

    def test_get_settings_returns_settings(self) -> None:
        """get_settings should return a Settings instance."""
        assert isinstance(get_settings(), Settings)


class TestPrintSettingsJson:
    """Test print_settings_json function."""

    def test_print_settings_json(self) -> None:
        """print_settings_json should return valid JSON."""
        parsed = json.loads(print_settings_json(Settings(provisioner_token="s3cret")))

        assert parsed["max_concurrent_builds"] == 3
        assert "artifacts_dir" in parsed
        # SecretStr is masked on dump
        assert parsed["provisioner_token"] != "s3cret"
