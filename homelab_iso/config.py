"""Configuration settings for homelab_iso.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_artifacts_dir() -> Path:
    """Return the default artifact store directory."""
    return Path.home() / ".local" / "share" / "homelab-iso" / "artifacts"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the HOMELAB_ISO_
    prefix. CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="HOMELAB_ISO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    artifacts_dir: Path = Field(
        default_factory=_default_artifacts_dir,
        description="Root directory of the local artifact store",
    )
    catalog_path: Path | None = Field(
        default=None,
        description="YAML catalog overriding the built-in component whitelist",
    )

    # Backends
    store_backend: Literal["local", "http"] = Field(
        default="local",
        description="Artifact store backend",
    )
    store_url: str | None = Field(
        default=None,
        description="Base URL of the HTTP artifact store",
    )
    provisioner_url: str | None = Field(
        default=None,
        description="Base URL of the compute provisioning gateway",
    )
    provisioner_token: SecretStr | None = Field(
        default=None,
        description="Bearer token for the compute provisioning gateway",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single remote request",
    )
    resource_name_prefix: str = Field(
        default="iso-build",
        pattern=r"^[a-z][a-z0-9-]{0,30}$",
        description="Prefix for compute resource names",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Limits
    max_concurrent_builds: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Maximum number of non-terminal builds",
    )
    max_builds_in_memory: int = Field(
        default=1000,
        ge=1,
        description="Maximum number of builds kept in the registry",
    )
    max_components_per_build: int = Field(
        default=50,
        ge=1,
        description="Maximum components in a single request",
    )
    max_variants_per_build: int = Field(
        default=10,
        ge=0,
        description="Maximum variants in a single request",
    )
    max_log_entries: int = Field(
        default=500,
        ge=10,
        description="Maximum log entries kept per build",
    )

    # Timing
    poll_interval_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Delay between two polls of a running build",
    )
    stalled_threshold_minutes: float = Field(
        default=30.0,
        gt=0,
        description="Fail a build whose progress is static for this long",
    )
    build_timeout_hours: float = Field(
        default=4.0,
        gt=0,
        description="Absolute bound on the polling phase of a build",
    )
    artifact_grace_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Wait before re-checking a missing artifact once",
    )
    build_retention_hours: float = Field(
        default=24.0,
        gt=0,
        description="Age after which finished builds are swept from memory",
    )
    sweep_interval_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Interval of the registry sweep",
    )

    # Behaviour
    auto_cleanup: bool = Field(
        default=True,
        description="Destroy compute resources once a build succeeds",
    )
    default_output_name: str = Field(
        default="ubuntu-24.04.3-homelab-custom",
        description="Artifact base name when the request does not set one",
    )
    artifact_suffix: str = Field(
        default=".iso",
        pattern=r"^(\.[a-z0-9]{1,10})?$",
        description="Extension appended to artifact names",
    )

    # Retry
    retry_max_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Total attempts for a remote call",
    )
    retry_initial_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="First backoff delay",
    )
    retry_max_delay_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Upper bound of a single backoff delay",
    )
    retry_exponential_base: float = Field(
        default=2.0,
        ge=1.0,
        description="Backoff multiplier",
    )
    retry_jitter_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Maximum random jitter added to each delay",
    )

    @model_validator(mode="after")
    def _check_registry_bounds(self) -> "Settings":
        # Eviction never removes non-terminal builds, so the registry must
        # be able to hold every admitted build.
        if self.max_builds_in_memory < self.max_concurrent_builds:
            raise ValueError(
                "max_builds_in_memory must be >= max_concurrent_builds"
            )
        return self


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
