"""Shared fixtures: in-memory fakes for the compute provisioner, the
artifact store and the clock, plus a small catalog and fast settings."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from homelab_iso.builds.errors import ArtifactStoreError
from homelab_iso.builds.naming import resource_name
from homelab_iso.catalog import Catalog, ComponentInfo, VariantInfo
from homelab_iso.compute.base import ProvisioningPayload
from homelab_iso.config import Settings
from homelab_iso.storage.base import ArtifactInfo
from homelab_iso.types import ResourceState, ResourceStatus


class FakeClock:
    """Clock whose sleep() advances time instantly.

    Callbacks registered with on_sleep() run after each sleep, which lets
    tests change the remote world between two polls.
    """

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []
        self._callbacks: list[Callable[[], None]] = []

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        for callback in list(self._callbacks):
            callback()
        await asyncio.sleep(0)

    def on_sleep(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)


class FakeProvisioner:
    """ComputeProvisioner that records calls instead of creating machines."""

    def __init__(self) -> None:
        self.created: list[tuple[str, ProvisioningPayload]] = []
        self.create_calls = 0
        self.create_failures: list[Exception] = []
        self.destroyed: list[str] = []
        self.destroy_error: Exception | None = None
        self.exported: list[str] = []
        self.export_path: str | None = "logs/build.log"
        self.state = ResourceState.RUNNING
        self.vanished = False
        self.state_error: Exception | None = None
        self.closed = False

    async def create(self, job_id: str, payload: ProvisioningPayload) -> str:
        self.create_calls += 1
        if self.create_failures:
            raise self.create_failures.pop(0)
        self.created.append((job_id, payload))
        return resource_name(job_id)

    async def get_state(self, handle: str) -> ResourceStatus:
        if self.state_error is not None:
            raise self.state_error
        if self.vanished:
            return ResourceStatus(exists=False)
        return ResourceStatus(exists=True, state=self.state)

    async def destroy(self, handle: str) -> None:
        if self.destroy_error is not None:
            raise self.destroy_error
        self.destroyed.append(handle)

    async def export_logs(self, handle: str, job_id: str) -> str | None:
        self.exported.append(handle)
        return self.export_path

    async def aclose(self) -> None:
        self.closed = True


class MemoryArtifactStore:
    """ArtifactStore holding objects in a dict."""

    def __init__(self) -> None:
        self.objects: dict[str, Any] = {}
        self.deleted: list[str] = []
        self.read_error: Exception | None = None
        self.reads = 0

    def put(self, key: str, content: Any = b"iso") -> None:
        self.objects[key] = content

    def put_json(self, key: str, data: dict[str, Any]) -> None:
        self.objects[key] = data

    async def exists(self, key: str) -> bool:
        return key in self.objects

    async def stat(self, key: str) -> ArtifactInfo | None:
        if key not in self.objects:
            return None
        content = self.objects[key]
        size = len(content) if isinstance(content, bytes) else None
        return ArtifactInfo(key=key, location=f"memory://{key}", size_bytes=size)

    async def read_json(self, key: str) -> dict[str, Any] | None:
        self.reads += 1
        if self.read_error is not None:
            raise self.read_error
        data = self.objects.get(key)
        if data is None:
            return None
        if not isinstance(data, dict):
            raise ArtifactStoreError(f"Expected a JSON object in {key}")
        return dict(data)

    async def delete(self, key: str) -> None:
        self.deleted.append(key)
        self.objects.pop(key, None)

    async def aclose(self) -> None:
        return None


def make_settings(tmp_path: Path | None = None, **overrides: Any) -> Settings:
    """Settings with instant retries and a small registry."""
    values: dict[str, Any] = {
        "retry_max_attempts": 3,
        "retry_initial_delay_seconds": 1.0,
        "retry_max_delay_seconds": 10.0,
        "retry_exponential_base": 2.0,
        "retry_jitter_seconds": 0.0,
        "max_builds_in_memory": 20,
    }
    if tmp_path is not None:
        values["artifacts_dir"] = tmp_path / "artifacts"
    values.update(overrides)
    return Settings(**values)


def make_catalog() -> Catalog:
    return Catalog(
        components={
            "a": ComponentInfo(display="A", description="Component A"),
            "b": ComponentInfo(display="B", description="Component B"),
            "c": ComponentInfo(display="C", description="Component C", hidden=True),
        },
        variants={
            "m1:latest": VariantInfo(display="Model 1", size_gb=4.5),
        },
        options={"gpu_enabled": "Install GPU drivers"},
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provisioner() -> FakeProvisioner:
    return FakeProvisioner()


@pytest.fixture
def store() -> MemoryArtifactStore:
    return MemoryArtifactStore()


@pytest.fixture
def catalog() -> Catalog:
    return make_catalog()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)
