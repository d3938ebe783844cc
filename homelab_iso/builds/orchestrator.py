"""Build orchestrator: admission, pipeline, polling loop and cleanup.

The orchestrator accepts validated build requests, provisions one
ephemeral compute resource per build and follows it until the artifact
is verified in the artifact store. Each build's pipeline runs as its
own asyncio task; every remote call and every wait is a suspension
point, and every wait goes through the injected Clock.

Progress comes from the status blob the remote build writes. Without a
blob, a time-based heuristic fills in, capped below completion so that
only a real signal (blob at 100% or a stopped resource) can finish a
build, and only once the artifact exists.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx
from pydantic import ValidationError

from homelab_iso.builds.errors import (
    ArtifactMissingError,
    BuildNotCompleteError,
    BuildNotFoundError,
    BuildStalledError,
    BuildTimeoutError,
    InvalidTransitionError,
    OrchestratorError,
    ProvisioningError,
    RemoteBuildFailedError,
    ResourceVanishedError,
)
from homelab_iso.builds.estimate import (
    estimate_build_minutes,
    estimate_completion,
    heuristic_progress,
    stage_for_progress,
)
from homelab_iso.builds.models import (
    ArtifactDownload,
    Build,
    BuildAccepted,
    BuildSnapshot,
    StatusBlob,
)
from homelab_iso.builds.naming import artifact_name, short_id, status_blob_key
from homelab_iso.builds.reconciler import StatusReconciler
from homelab_iso.builds.registry import BuildRegistry
from homelab_iso.builds.retry import RetryConfig, RetryExecutor
from homelab_iso.builds.validation import validate_build_request
from homelab_iso.catalog import Catalog, get_catalog
from homelab_iso.clock import DEFAULT_CLOCK, Clock
from homelab_iso.compute.base import ComputeProvisioner, ProvisioningPayload
from homelab_iso.config import Settings, get_settings
from homelab_iso.storage.base import ArtifactStore
from homelab_iso.types import BuildStatus

logger = logging.getLogger(__name__)

# Observed progress at or above this is never considered stalled.
STALL_EXEMPT_PROGRESS = 95


class BuildOrchestrator:
    """Runs builds on ephemeral compute resources.

    Example:
        orchestrator = BuildOrchestrator(provisioner, store, settings)
        accepted = await orchestrator.start_build({"components": ["ollama"]})
        snapshot = await orchestrator.get_build_status(accepted.id)
    """

    def __init__(
        self,
        provisioner: ComputeProvisioner,
        store: ArtifactStore,
        settings: Settings | None = None,
        catalog: Catalog | None = None,
        clock: Clock | None = None,
        retry: RetryExecutor | None = None,
        registry: BuildRegistry | None = None,
    ) -> None:
        self.provisioner = provisioner
        self.store = store
        self.settings = settings or get_settings()
        self.catalog = catalog or get_catalog(self.settings)
        self.clock = clock or DEFAULT_CLOCK
        self.retry = retry or RetryExecutor(
            RetryConfig.from_settings(self.settings), sleep=self.clock.sleep
        )
        self.registry = registry or BuildRegistry(
            max_builds=self.settings.max_builds_in_memory,
            retention_hours=self.settings.build_retention_hours,
        )
        self.reconciler = StatusReconciler(
            store,
            retry=self.retry,
            default_output_name=self.settings.default_output_name,
            artifact_suffix=self.settings.artifact_suffix,
            resource_prefix=self.settings.resource_name_prefix,
        )
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._cancel_requested: set[str] = set()
        self._sweeper: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def start_build(self, request: Mapping[str, Any]) -> BuildAccepted:
        """Validate a request, register it and start its pipeline.

        Args:
            request: Decoded request body.

        Returns:
            Acceptance with the new build id.

        Raises:
            BuildValidationError: If the request is invalid.
            BuildCapacityError: If the concurrency limit is reached.
        """
        config = validate_build_request(request, self.catalog, self.settings)
        minutes = estimate_build_minutes(config, self.catalog)
        build = Build.new(
            config,
            estimated_minutes=minutes,
            estimated_completion=estimate_completion(minutes),
            max_log_entries=self.settings.max_log_entries,
        )
        self.registry.admit(build, self.settings.max_concurrent_builds)
        logger.info(
            "Accepted build %s: %d components, %d variants, ~%d minutes",
            short_id(build.id),
            len(config.components),
            len(config.variants),
            minutes,
        )

        task = asyncio.create_task(
            self._run_pipeline(build), name=f"build-{short_id(build.id)}"
        )
        self._tasks[build.id] = task
        task.add_done_callback(lambda _t, build_id=build.id: self._forget(build_id))

        return BuildAccepted(
            id=build.id, status=build.status, estimated_minutes=minutes
        )

    async def get_build_status(self, build_id: str) -> BuildSnapshot | None:
        """Return the status of a build.

        Falls back to reconciling from the status blob when the build is
        not in memory, for example after a restart.
        """
        build = self.registry.find(build_id)
        if build is not None:
            return build.to_snapshot()
        return await self.reconciler.reconcile(build_id)

    def list_builds(self, status: BuildStatus | None = None) -> list[BuildSnapshot]:
        """Return in-memory builds, newest first."""
        return [b.to_snapshot() for b in self.registry.list(status)]

    def cancel_build(self, build_id: str) -> BuildSnapshot:
        """Request cancellation of a running build.

        The pipeline releases the compute resource and fails the build
        with error code ``cancelled``.

        Raises:
            BuildNotFoundError: If the build is unknown.
            InvalidTransitionError: If the build already finished.
        """
        build = self.registry.find(build_id)
        if build is None:
            raise BuildNotFoundError(build_id)
        if build.is_terminal:
            raise InvalidTransitionError(
                f"Build {build_id} already {build.status.value}"
            )
        build_id = build.id

        if build_id in self._cancel_requested:
            return build.to_snapshot()

        task = self._tasks.get(build_id)
        if task is None or task.done() or build.status is BuildStatus.QUEUED:
            # The pipeline has not started, so nothing remote to release.
            if task is not None:
                task.cancel()
            build.mark_failed("Build cancelled by user", code="cancelled")
        else:
            self._cancel_requested.add(build_id)
            task.cancel()
        logger.info("Cancellation requested for build %s", short_id(build_id))
        return build.to_snapshot()

    async def wait(self, build_id: str) -> BuildSnapshot | None:
        """Wait for a build's pipeline to finish and return its status."""
        build = self.registry.find(build_id)
        if build is None:
            return None
        task = self._tasks.get(build.id)
        if task is not None:
            await asyncio.wait({task})
        return build.to_snapshot()

    async def get_download(self, build_id: str) -> ArtifactDownload:
        """Return where the artifact of a complete build can be fetched.

        Works for reconciled builds too, so artifacts stay reachable after
        a restart.

        Raises:
            BuildNotFoundError: If the build is unknown.
            BuildNotCompleteError: If the build has not completed.
            ArtifactMissingError: If the artifact is no longer stored.
        """
        snapshot = await self.get_build_status(build_id)
        if snapshot is None:
            raise BuildNotFoundError(build_id)
        if snapshot.status is not BuildStatus.COMPLETE or not snapshot.artifact_name:
            raise BuildNotCompleteError(build_id, snapshot.status.value)

        info = await self.retry.call(self.store.stat, snapshot.artifact_name)
        if info is None:
            raise ArtifactMissingError(
                f"Artifact no longer in storage: {snapshot.artifact_name}",
                snapshot.artifact_name,
            )
        return ArtifactDownload(
            build_id=snapshot.id,
            artifact_name=snapshot.artifact_name,
            location=info.location,
            size_bytes=info.size_bytes,
        )

    @property
    def active_builds(self) -> int:
        return self.registry.active_count()

    def start(self) -> None:
        """Start the periodic registry sweep."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(
                self._sweep_loop(), name="build-registry-sweeper"
            )

    async def shutdown(self) -> None:
        """Stop the sweeper and all pipelines.

        Builds are neither failed nor cleaned up: their resources keep
        running and stay observable through reconciliation.
        """
        tasks = list(self._tasks.values())
        if self._sweeper is not None:
            tasks.append(self._sweeper)
            self._sweeper = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Orchestrator stopped (%d tasks cancelled)", len(tasks))

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _forget(self, build_id: str) -> None:
        self._tasks.pop(build_id, None)
        self._cancel_requested.discard(build_id)

    def _expected_artifact(self, build: Build) -> str:
        output_name = build.config.output_name or self.settings.default_output_name
        return artifact_name(output_name, build.id, self.settings.artifact_suffix)

    async def _run_pipeline(self, build: Build) -> None:
        # Cancellation may also land while a failure is being cleaned up.
        try:
            try:
                await self._provision(build)
                artifact = await self._poll_until_done(build)
                await self._finish(build, artifact)
            except OrchestratorError as e:
                await self._fail(build, str(e), e.code)
            except Exception as e:
                logger.exception("Unexpected error in build %s", short_id(build.id))
                await self._fail(build, f"Internal error: {e}", "internal_error")
        except asyncio.CancelledError:
            if build.id in self._cancel_requested and not build.is_terminal:
                await self._fail(build, "Build cancelled by user", "cancelled")
            raise

    async def _provision(self, build: Build) -> None:
        build.mark_provisioning()
        build.add_log("Creating build resource")
        payload = ProvisioningPayload(
            build_id=build.id,
            components=list(build.config.components),
            variants=list(build.config.variants),
            options=dict(build.config.options),
            artifact_name=self._expected_artifact(build),
            status_blob_key=status_blob_key(build.id),
        )
        try:
            handle = await self.retry.call(self.provisioner.create, build.id, payload)
        except (OrchestratorError, httpx.HTTPError) as e:
            raise ProvisioningError(f"Failed to create build resource: {e}") from e

        build.attach_resource(handle)
        build.add_log(f"Build resource created: {handle}")
        build.mark_running()
        logger.info("Build %s running on %s", short_id(build.id), handle)

    async def _read_status_blob(self, key: str) -> StatusBlob | None:
        try:
            data = await self.retry.call(self.store.read_json, key)
        except OrchestratorError as e:
            logger.debug("Status blob %s unreadable: %s", key, e)
            return None
        if data is None:
            return None
        try:
            return StatusBlob.model_validate(data)
        except ValidationError as e:
            logger.debug("Status blob %s malformed: %s", key, e)
            return None

    async def _artifact_exists(self, name: str) -> bool:
        return await self.retry.call(self.store.exists, name)

    async def _poll_until_done(self, build: Build) -> str:
        """Poll until the build produced its artifact.

        Returns:
            The verified artifact name.

        Raises:
            BuildFailure: On timeout, stall, vanished resource, remote
                failure or missing artifact.
        """
        settings = self.settings
        handle = build.resource_handle
        if handle is None:
            raise InvalidTransitionError(
                f"Build {build.id} is running without a compute resource"
            )
        expected = self._expected_artifact(build)
        blob_key = status_blob_key(build.id)
        timeout_seconds = settings.build_timeout_hours * 3600
        stall_seconds = settings.stalled_threshold_minutes * 60

        started = self.clock.monotonic()
        last_observed: int | None = None
        last_change = started
        last_message: str | None = None

        while True:
            now = self.clock.monotonic()
            elapsed = now - started
            if elapsed > timeout_seconds:
                raise BuildTimeoutError(settings.build_timeout_hours)

            resource = await self.retry.call(self.provisioner.get_state, handle)
            if not resource.exists:
                raise ResourceVanishedError(handle)

            blob = await self._read_status_blob(blob_key)
            if blob is not None:
                if blob.stage.lower() == "failed":
                    raise RemoteBuildFailedError(blob.message or "no details reported")
                observed = blob.progress
                if blob.message and blob.message != last_message:
                    build.add_log(f"[{blob.stage}] {blob.message}")
                    last_message = blob.message
                build.record_progress(observed, blob.label)
                if observed >= 100:
                    await self._verify_artifact(expected)
                    return expected
            else:
                observed = heuristic_progress(elapsed, build.estimated_minutes)
                build.record_progress(
                    observed, stage_for_progress(max(observed, build.progress))
                )

            if resource.state.is_stopped:
                if await self._artifact_exists(expected):
                    return expected
                raise ArtifactMissingError(
                    "Resource stopped but no artifact - build likely failed", expected
                )

            if observed != last_observed:
                last_observed = observed
                last_change = now
            elif (
                observed < STALL_EXEMPT_PROGRESS and now - last_change > stall_seconds
            ):
                raise BuildStalledError(
                    build.stage, (now - last_change) / 60, build.progress
                )

            await self.clock.sleep(settings.poll_interval_seconds)

    async def _verify_artifact(self, expected: str) -> None:
        if await self._artifact_exists(expected):
            return
        logger.info(
            "Artifact %s not visible yet, re-checking in %.0fs",
            expected,
            self.settings.artifact_grace_seconds,
        )
        await self.clock.sleep(self.settings.artifact_grace_seconds)
        if not await self._artifact_exists(expected):
            raise ArtifactMissingError(
                "Build marked complete but artifact missing", expected
            )

    async def _finish(self, build: Build, artifact: str) -> None:
        await self._best_effort(
            build, "delete status blob", self.store.delete, status_blob_key(build.id)
        )
        if self.settings.auto_cleanup:
            await self._cleanup(build)
        build.mark_complete(artifact)
        logger.info("Build %s complete: %s", short_id(build.id), artifact)

    async def _fail(self, build: Build, message: str, code: str) -> None:
        logger.error("Build %s failed (%s): %s", short_id(build.id), code, message)
        await self._cleanup(build)
        build.mark_failed(message, code=code)

    async def _cleanup(self, build: Build) -> None:
        """Export logs and destroy the build's resource, never raising."""
        handle = build.resource_handle
        if handle is None:
            return
        logs_path = await self._best_effort(
            build, "export logs", self.provisioner.export_logs, handle, build.id
        )
        if logs_path:
            build.set_logs_path(logs_path)
            build.add_log(f"Logs exported to {logs_path}")
        await self._best_effort(
            build, "destroy build resource", self.provisioner.destroy, handle
        )

    async def _best_effort(
        self,
        build: Build,
        action: str,
        operation: Callable[..., Awaitable[Any]],
        *args: object,
    ) -> Any:
        try:
            return await self.retry.call(operation, *args)
        except Exception as e:
            logger.warning(
                "Cleanup step '%s' failed for build %s: %s",
                action,
                short_id(build.id),
                e,
            )
            build.add_log(f"Warning: could not {action}: {e}")
            return None

    async def _sweep_loop(self) -> None:
        while True:
            await self.clock.sleep(self.settings.sweep_interval_seconds)
            self.registry.sweep()


__all__ = ["STALL_EXEMPT_PROGRESS", "BuildOrchestrator"]
