"""Build data models.

This module defines the in-memory Build entity and the pydantic models
exchanged with clients (BuildConfig, BuildAccepted, BuildSnapshot) and
with the remote side (StatusBlob).

A Build is mutated only through its mark_* methods, which enforce the
ordering queued -> provisioning -> running -> complete|failed and
refuse any change once the build is terminal.
"""

from __future__ import annotations

import math
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from homelab_iso.builds.errors import InvalidTransitionError
from homelab_iso.types import BuildStatus

DEFAULT_MAX_LOG_ENTRIES = 500

_ALLOWED_TRANSITIONS: dict[BuildStatus, frozenset[BuildStatus]] = {
    BuildStatus.QUEUED: frozenset({BuildStatus.PROVISIONING, BuildStatus.FAILED}),
    BuildStatus.PROVISIONING: frozenset({BuildStatus.RUNNING, BuildStatus.FAILED}),
    BuildStatus.RUNNING: frozenset({BuildStatus.COMPLETE, BuildStatus.FAILED}),
    BuildStatus.COMPLETE: frozenset(),
    BuildStatus.FAILED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BuildConfig(BaseModel):
    """A validated build request.

    Instances are only produced by validate_build_request(); every name
    in here has passed the catalog whitelist.
    """

    model_config = ConfigDict(frozen=True)

    components: tuple[str, ...]
    variants: tuple[str, ...] = ()
    options: dict[str, bool] = Field(default_factory=dict)
    output_name: str | None = None


class LogEntry(BaseModel):
    """A timestamped build log line."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    message: str


class StatusBlob(BaseModel):
    """Progress record written by the remote build resource.

    The remote side is trusted only as a hint: progress is clamped into
    0-100 and unknown fields are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    stage: str = "unknown"
    progress: int = 0
    message: str = ""
    timestamp: datetime | None = None
    artifact: str | None = None

    @field_validator("progress", mode="before")
    @classmethod
    def clamp_progress(cls, v: Any) -> int:
        """Clamp progress into the 0-100 range.

        Raises:
            ValueError: If progress is not a finite number.
        """
        if v is None:
            return 0
        if isinstance(v, bool) or not isinstance(v, (int, float, str)):
            raise ValueError(f"progress must be a number, got {type(v).__name__}")
        try:
            value = float(v)
        except ValueError:
            raise ValueError(f"progress must be a number, got {v!r}") from None
        if not math.isfinite(value):
            raise ValueError(f"progress must be finite, got {v!r}")
        return max(0, min(100, int(value)))

    @field_validator("stage", "message", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        """Accept null text fields from sloppy writers."""
        if v is None:
            return ""
        return str(v)

    @property
    def label(self) -> str:
        """Human-readable stage label."""
        return self.message or self.stage


# Responses serialize in snake_case; camelCase names are accepted on input
# and produced by model_dump(by_alias=True).
_WIRE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BuildAccepted(BaseModel):
    """Response to an accepted build request."""

    model_config = _WIRE_CONFIG

    id: str
    status: BuildStatus
    estimated_minutes: int


class BuildSnapshot(BaseModel):
    """Point-in-time view of a build, as returned by status queries."""

    model_config = _WIRE_CONFIG

    id: str
    status: BuildStatus
    progress: int
    stage: str
    resource_handle: str | None = None
    artifact_name: str | None = None
    logs_path: str | None = None
    log: list[LogEntry] = Field(default_factory=list)
    created: datetime | None = None
    updated: datetime | None = None
    estimated_completion: datetime | None = None
    error: str | None = None
    error_code: str | None = None
    reconciled: bool = False


class ArtifactDownload(BaseModel):
    """Where the artifact of a complete build can be fetched from."""

    model_config = _WIRE_CONFIG

    build_id: str
    artifact_name: str
    location: str
    size_bytes: int | None = None


@dataclass
class Build:
    """The orchestrator's unit of scheduling.

    Attributes:
        id: Unique build id (UUID4 string).
        config: Validated request.
        estimated_minutes: Advisory duration.
        estimated_completion: Advisory ETA.
        status: Current status.
        progress: 0-100, never decreases.
        stage: Human-readable current activity.
        resource_handle: Compute resource reference once provisioned.
        artifact_name: Artifact key, set only on success.
        logs_path: Location of exported remote logs, if any.
        log: Bounded, append-only log.
        created: Submission time.
        updated: Time of the last mutation.
        error: Failure message.
        error_code: Stable failure code.
    """

    id: str
    config: BuildConfig
    estimated_minutes: int
    estimated_completion: datetime
    status: BuildStatus = BuildStatus.QUEUED
    progress: int = 0
    stage: str = "Queued"
    resource_handle: str | None = None
    artifact_name: str | None = None
    logs_path: str | None = None
    log: deque[LogEntry] = field(
        default_factory=lambda: deque(maxlen=DEFAULT_MAX_LOG_ENTRIES)
    )
    created: datetime = field(default_factory=_utcnow)
    updated: datetime = field(default_factory=_utcnow)
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def new(
        cls,
        config: BuildConfig,
        estimated_minutes: int,
        estimated_completion: datetime,
        max_log_entries: int = DEFAULT_MAX_LOG_ENTRIES,
    ) -> Build:
        """Create a queued build with a fresh id."""
        build = cls(
            id=str(uuid.uuid4()),
            config=config,
            estimated_minutes=estimated_minutes,
            estimated_completion=estimated_completion,
            log=deque(maxlen=max_log_entries),
        )
        build.log.append(LogEntry(timestamp=build.created, message="Build queued"))
        return build

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def _touch(self) -> None:
        self.updated = _utcnow()

    def _ensure_mutable(self) -> None:
        if self.is_terminal:
            raise InvalidTransitionError(
                f"Build {self.id} is {self.status.value} and can no longer change"
            )

    def _transition(self, target: BuildStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Build {self.id} cannot go from {self.status.value} to {target.value}"
            )
        self.status = target

    def add_log(self, message: str) -> None:
        """Append a log line."""
        self._ensure_mutable()
        now = _utcnow()
        self.log.append(LogEntry(timestamp=now, message=message))
        self.updated = now

    def mark_provisioning(self) -> None:
        """Mark this build as provisioning its compute resource."""
        self._transition(BuildStatus.PROVISIONING)
        self.progress = max(self.progress, 10)
        self.stage = "Creating build resource"
        self._touch()

    def attach_resource(self, handle: str) -> None:
        """Record the compute resource handle."""
        self._ensure_mutable()
        self.resource_handle = handle
        self._touch()

    def mark_running(self) -> None:
        """Mark this build as running on its compute resource."""
        self._transition(BuildStatus.RUNNING)
        self.progress = max(self.progress, 20)
        self.stage = "Downloading dependencies"
        self._touch()

    def record_progress(self, progress: int, stage: str) -> bool:
        """Record an observed progress value and stage label.

        The stored progress never decreases; a lower observation only
        updates the stage label.

        Returns:
            True if progress or stage changed.
        """
        self._ensure_mutable()
        new_progress = max(self.progress, min(progress, 100))
        changed = new_progress != self.progress or stage != self.stage
        if changed:
            self.progress = new_progress
            self.stage = stage
            self._touch()
        return changed

    def set_logs_path(self, path: str) -> None:
        """Record where remote logs were exported."""
        self._ensure_mutable()
        self.logs_path = path
        self._touch()

    def mark_complete(self, artifact_name: str) -> None:
        """Mark this build as complete with a verified artifact."""
        self._transition(BuildStatus.COMPLETE)
        self.progress = 100
        self.stage = "Complete"
        self.artifact_name = artifact_name
        self._touch()

    def mark_failed(self, message: str, code: str = "build_failed") -> None:
        """Mark this build as failed.

        Args:
            message: Human-readable error.
            code: Stable error code.
        """
        self._transition(BuildStatus.FAILED)
        self.error = message
        self.error_code = code
        self.stage = "Failed"
        now = _utcnow()
        self.log.append(LogEntry(timestamp=now, message=f"ERROR: {message}"))
        self.updated = now

    def to_snapshot(self) -> BuildSnapshot:
        """Return an immutable view of this build."""
        return BuildSnapshot(
            id=self.id,
            status=self.status,
            progress=self.progress,
            stage=self.stage,
            resource_handle=self.resource_handle,
            artifact_name=self.artifact_name,
            logs_path=self.logs_path,
            log=list(self.log),
            created=self.created,
            updated=self.updated,
            estimated_completion=self.estimated_completion,
            error=self.error,
            error_code=self.error_code,
        )


__all__ = [
    "ArtifactDownload",
    "Build",
    "BuildAccepted",
    "BuildConfig",
    "BuildSnapshot",
    "LogEntry",
    "StatusBlob",
]
