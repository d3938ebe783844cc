"""Bounded in-process table of builds.

The registry is the only shared mutable state of the orchestrator. All
operations take one re-entrant lock, so the capacity check and the
registration of a new build happen in a single critical section.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone

from homelab_iso.builds.errors import BuildCapacityError, OrchestratorError
from homelab_iso.builds.models import Build
from homelab_iso.builds.naming import is_build_id, short_id
from homelab_iso.types import ACTIVE_STATUSES, BuildStatus

logger = logging.getLogger(__name__)


class BuildRegistry:
    """Holds at most ``max_builds`` builds, evicting finished ones first."""

    def __init__(self, max_builds: int = 1000, retention_hours: float = 24.0) -> None:
        if max_builds < 1:
            raise ValueError("max_builds must be >= 1")
        self.max_builds = max_builds
        self.retention = timedelta(hours=retention_hours)
        self._builds: dict[str, Build] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._builds)

    def __contains__(self, build_id: object) -> bool:
        with self._lock:
            return build_id in self._builds

    def get(self, build_id: str) -> Build | None:
        with self._lock:
            return self._builds.get(build_id)

    def find(self, build_id: str) -> Build | None:
        """Look up a build by full id or by an unambiguous id prefix.

        A prefix matching more than one build returns None.
        """
        key = build_id.strip().lower()
        with self._lock:
            build = self._builds.get(key)
            if build is not None or not is_build_id(key):
                return build
            matches = [b for b in self._builds.values() if b.id.startswith(key)]
        return matches[0] if len(matches) == 1 else None

    def put(self, build: Build) -> None:
        """Register a build.

        Raises:
            OrchestratorError: If a build with the same id is registered.
        """
        with self._lock:
            if build.id in self._builds:
                raise OrchestratorError(
                    f"Build id already registered: {build.id}", code="duplicate_build"
                )
            self._builds[build.id] = build
            self.evict()

    def admit(self, build: Build, limit: int) -> None:
        """Register a build if fewer than ``limit`` builds are active.

        Raises:
            BuildCapacityError: If the active count is at the limit.
        """
        with self._lock:
            if self.active_count() >= limit:
                raise BuildCapacityError(limit)
            self.put(build)

    def active_count(self) -> int:
        """Number of builds that are queued, provisioning or running."""
        with self._lock:
            return sum(1 for b in self._builds.values() if b.status in ACTIVE_STATUSES)

    def list(self, status: BuildStatus | None = None) -> list[Build]:
        """Return builds, newest first, optionally filtered by status."""
        with self._lock:
            builds = [
                b for b in self._builds.values() if status is None or b.status == status
            ]
        return sorted(builds, key=lambda b: b.created, reverse=True)

    def evict(self) -> int:
        """Evict the oldest finished builds until the table fits.

        Non-terminal builds are never evicted.

        Returns:
            Number of evicted builds.
        """
        with self._lock:
            excess = len(self._builds) - self.max_builds
            if excess <= 0:
                return 0
            finished = sorted(
                (b for b in self._builds.values() if b.is_terminal),
                key=lambda b: b.created,
            )
            evicted = finished[:excess]
            for build in evicted:
                del self._builds[build.id]
                logger.debug("Evicted build %s", short_id(build.id))
            if len(evicted) < excess:
                logger.warning(
                    "Registry holds %d builds, above its bound of %d",
                    len(self._builds),
                    self.max_builds,
                )
            return len(evicted)

    def sweep(self, now: datetime | None = None) -> int:
        """Remove finished builds older than the retention period.

        Returns:
            Number of removed builds.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        cutoff = now - self.retention
        with self._lock:
            expired = [
                b.id
                for b in self._builds.values()
                if b.is_terminal and b.created < cutoff
            ]
            for build_id in expired:
                del self._builds[build_id]
        if expired:
            logger.info("Swept %d finished builds from memory", len(expired))
        return len(expired)


__all__ = ["BuildRegistry"]
