"""Error taxonomy for build orchestration.

Every error carries a stable ``code`` for structured handling by the
HTTP layer and for the ``error_code`` field of failed builds.
"""

from __future__ import annotations


class OrchestratorError(Exception):
    """Base error for build orchestration."""

    def __init__(self, message: str, code: str = "orchestrator_error") -> None:
        super().__init__(message)
        self.code = code


class BuildValidationError(OrchestratorError):
    """Raised when a build request is malformed or unsafe."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, code="validation_error")
        self.field = field


class BuildCapacityError(OrchestratorError):
    """Raised when the concurrency limit is reached."""

    def __init__(self, limit: int) -> None:
        super().__init__(
            f"Maximum concurrent builds ({limit}) reached. Please try again later.",
            code="capacity_exceeded",
        )
        self.limit = limit


class BuildNotFoundError(OrchestratorError):
    """Raised when a build is not known to the registry."""

    def __init__(self, build_id: str) -> None:
        super().__init__(f"Build not found: {build_id}", code="build_not_found")
        self.build_id = build_id


class BuildNotCompleteError(OrchestratorError):
    """Raised when an artifact is requested for an unfinished or failed build."""

    def __init__(self, build_id: str, status: str) -> None:
        super().__init__(
            f"Build {build_id} is not complete (status: {status})",
            code="build_not_complete",
        )
        self.build_id = build_id
        self.status = status


class InvalidTransitionError(OrchestratorError):
    """Raised on an illegal build state change."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="invalid_transition")


class TransientInfrastructureError(OrchestratorError):
    """A remote call failed in a way that is worth retrying."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="transient_infrastructure")


class RetriesExhaustedError(OrchestratorError):
    """Raised when a transient failure persists past the attempt budget."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"Giving up after {attempts} attempts: {last_error}",
            code="retries_exhausted",
        )
        self.attempts = attempts
        self.last_error = last_error


class BuildFailure(OrchestratorError):
    """Base for errors that fail a running build pipeline."""


class ProvisioningError(BuildFailure):
    """Compute resource creation failed permanently."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="provisioning_failed")


class ResourceVanishedError(BuildFailure):
    """The compute resource disappeared while the build was running."""

    def __init__(self, handle: str) -> None:
        super().__init__(
            f"Compute resource vanished: {handle}", code="resource_vanished"
        )
        self.handle = handle


class RemoteBuildFailedError(BuildFailure):
    """The remote side reported a failure through its status blob."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Remote build failed: {message}", code="remote_failed")


class BuildStalledError(BuildFailure):
    """Progress has not changed for longer than the stall threshold."""

    def __init__(self, stage: str, stalled_minutes: float, progress: int) -> None:
        super().__init__(
            f"Build stalled: no progress for {int(stalled_minutes)} minutes "
            f"at {progress}%. Last stage: {stage}",
            code="build_stalled",
        )
        self.stage = stage
        self.stalled_minutes = stalled_minutes
        self.progress = progress


class BuildTimeoutError(BuildFailure):
    """The build exceeded its absolute time budget."""

    def __init__(self, timeout_hours: float) -> None:
        super().__init__(
            f"Build timeout exceeded ({timeout_hours:g} hours)", code="build_timeout"
        )
        self.timeout_hours = timeout_hours


class ArtifactMissingError(BuildFailure):
    """Completion was signalled but the artifact is not in the store."""

    def __init__(self, message: str, artifact_name: str) -> None:
        super().__init__(message, code="artifact_missing")
        self.artifact_name = artifact_name


class ArtifactStoreError(OrchestratorError):
    """Non-transient artifact store failure."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="store_error")


class ComputeProvisionerError(OrchestratorError):
    """Non-transient compute provisioner failure."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message, code="provisioner_error")
        self.status_code = status_code


__all__ = [
    "ArtifactMissingError",
    "ArtifactStoreError",
    "BuildCapacityError",
    "BuildFailure",
    "BuildNotCompleteError",
    "BuildNotFoundError",
    "BuildStalledError",
    "BuildTimeoutError",
    "BuildValidationError",
    "ComputeProvisionerError",
    "InvalidTransitionError",
    "OrchestratorError",
    "ProvisioningError",
    "RemoteBuildFailedError",
    "ResourceVanishedError",
    "RetriesExhaustedError",
    "TransientInfrastructureError",
]
