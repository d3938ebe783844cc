"""Rebuild a build's status from its durable status blob.

When the orchestrator restarts, its in-memory registry is empty but the
remote resources keep writing status blobs. The reconciler turns such a
blob back into a BuildSnapshot so clients can still follow their build.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from pydantic import ValidationError

from homelab_iso.builds.errors import BuildValidationError, OrchestratorError
from homelab_iso.builds.models import BuildSnapshot, LogEntry, StatusBlob
from homelab_iso.builds.naming import (
    artifact_name,
    is_build_id,
    resource_name,
    short_id,
    status_blob_key,
)
from homelab_iso.builds.retry import RetryExecutor
from homelab_iso.builds.validation import validate_output_name
from homelab_iso.storage.base import ArtifactStore
from homelab_iso.types import BuildStatus

logger = logging.getLogger(__name__)

_STAGE_TO_STATUS = {
    "complete": BuildStatus.COMPLETE,
    "failed": BuildStatus.FAILED,
}


def _reported_artifact(blob: StatusBlob, build_id: str) -> str | None:
    """Return the blob's artifact field if it is a safe name for this build."""
    if not blob.artifact:
        return None
    try:
        name = validate_output_name(blob.artifact)
    except BuildValidationError:
        logger.warning("Ignoring unsafe artifact name in status blob of %s", build_id)
        return None
    return name if short_id(build_id) in name else None


class StatusReconciler:
    """Synthesizes BuildSnapshots from status blobs."""

    def __init__(
        self,
        store: ArtifactStore,
        *,
        retry: RetryExecutor | None = None,
        default_output_name: str = "ubuntu-24.04.3-homelab-custom",
        artifact_suffix: str = ".iso",
        resource_prefix: str = "iso-build",
    ) -> None:
        self.store = store
        self.retry = retry or RetryExecutor()
        self.default_output_name = default_output_name
        self.artifact_suffix = artifact_suffix
        self.resource_prefix = resource_prefix

    async def reconcile(self, build_id: str) -> BuildSnapshot | None:
        """Look up a build that is not in memory.

        Args:
            build_id: Id requested by the client.

        Returns:
            A reconciled snapshot, or None if no usable blob exists.
        """
        build_id = build_id.strip().lower()
        if not is_build_id(build_id):
            logger.debug("Not reconciling malformed build id")
            return None

        key = status_blob_key(build_id)
        try:
            data = await self.retry.call(self.store.read_json, key)
        except OrchestratorError as e:
            logger.warning("Cannot read status blob %s: %s", key, e)
            return None
        if data is None:
            return None

        try:
            blob = StatusBlob.model_validate(data)
        except ValidationError as e:
            logger.warning("Malformed status blob %s: %s", key, e)
            return None

        status = _STAGE_TO_STATUS.get(blob.stage.lower(), BuildStatus.RUNNING)
        timestamp = blob.timestamp or datetime.now(timezone.utc)
        message = blob.label

        snapshot = BuildSnapshot(
            id=build_id,
            status=status,
            progress=blob.progress,
            stage=blob.stage,
            resource_handle=resource_name(build_id, self.resource_prefix),
            log=[LogEntry(timestamp=timestamp, message=message)],
            created=timestamp,
            updated=timestamp,
            reconciled=True,
        )
        if status is BuildStatus.COMPLETE:
            snapshot.artifact_name = _reported_artifact(blob, build_id) or artifact_name(
                self.default_output_name, build_id, self.artifact_suffix
            )
        elif status is BuildStatus.FAILED:
            snapshot.error = blob.message or "Remote build failed"
            snapshot.error_code = "remote_failed"

        logger.info(
            "Reconciled build %s from status blob (%s)", short_id(build_id), status.value
        )
        return snapshot


__all__ = ["StatusReconciler"]
