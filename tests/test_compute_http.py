"""Tests for the HTTP compute provisioner."""

import json

import httpx
import pytest
import respx

from homelab_iso.builds.errors import (
    ComputeProvisionerError,
    TransientInfrastructureError,
)
from homelab_iso.compute import (
    HttpComputeProvisioner,
    ProvisioningPayload,
    create_provisioner,
)
from homelab_iso.types import ResourceState

BASE = "https://compute.example.test/v1"
BUILD_ID = "3f2a9c1e-7b4d-4c1a-9e8f-0123456789ab"
NAME = "iso-build-3f2a9c1e"


@pytest.fixture
def payload() -> ProvisioningPayload:
    return ProvisioningPayload(
        build_id=BUILD_ID,
        components=["ollama", "nginx"],
        variants=["qwen3:8b"],
        options={"gpu_enabled": True},
        artifact_name="demo-1-3f2a9c1e.iso",
        status_blob_key="build-status-3f2a9c1e.json",
    )


@pytest.fixture
def compute() -> HttpComputeProvisioner:
    return HttpComputeProvisioner(BASE, token="s3cret")


class TestCreate:
    """Test instance creation."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_create_sends_structured_payload(self, compute, payload) -> None:
        route = respx.post(f"{BASE}/instances").mock(
            return_value=httpx.Response(201, json={"name": NAME})
        )

        handle = await compute.create(BUILD_ID, payload)

        assert handle == NAME
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer s3cret"
        body = json.loads(request.content)
        assert body["name"] == NAME
        assert body["labels"] == {"purpose": "iso-build", "build-id": "3f2a9c1e"}
        assert body["payload"]["components"] == ["ollama", "nginx"]
        assert body["payload"]["options"] == {"gpu_enabled": True}
        assert body["payload"]["status_blob_key"] == "build-status-3f2a9c1e.json"

    @respx.mock
    @pytest.mark.asyncio
    async def test_create_conflict_reuses_instance(self, compute, payload) -> None:
        respx.post(f"{BASE}/instances").mock(return_value=httpx.Response(409))
        assert await compute.create(BUILD_ID, payload) == NAME

    @respx.mock
    @pytest.mark.asyncio
    async def test_create_quota_error(self, compute, payload) -> None:
        respx.post(f"{BASE}/instances").mock(return_value=httpx.Response(403))

        with pytest.raises(ComputeProvisionerError) as exc_info:
            await compute.create(BUILD_ID, payload)
        assert exc_info.value.status_code == 403

    @respx.mock
    @pytest.mark.asyncio
    async def test_create_unavailable_is_transient(self, compute, payload) -> None:
        respx.post(f"{BASE}/instances").mock(return_value=httpx.Response(503))
        with pytest.raises(TransientInfrastructureError):
            await compute.create(BUILD_ID, payload)

    @respx.mock
    @pytest.mark.asyncio
    async def test_create_timeout_is_transient(self, compute, payload) -> None:
        respx.post(f"{BASE}/instances").mock(
            side_effect=httpx.ReadTimeout("slow")
        )
        with pytest.raises(TransientInfrastructureError, match="timed out"):
            await compute.create(BUILD_ID, payload)


class TestState:
    """Test state queries."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_running(self, compute) -> None:
        respx.get(f"{BASE}/instances/{NAME}").mock(
            return_value=httpx.Response(200, json={"name": NAME, "status": "running"})
        )

        status = await compute.get_state(NAME)

        assert status.exists is True
        assert status.state is ResourceState.RUNNING

    @respx.mock
    @pytest.mark.asyncio
    async def test_unknown_state(self, compute) -> None:
        respx.get(f"{BASE}/instances/{NAME}").mock(
            return_value=httpx.Response(200, json={"status": "REPAIRING"})
        )
        assert (await compute.get_state(NAME)).state is ResourceState.UNKNOWN

    @respx.mock
    @pytest.mark.asyncio
    async def test_missing(self, compute) -> None:
        respx.get(f"{BASE}/instances/{NAME}").mock(return_value=httpx.Response(404))
        assert (await compute.get_state(NAME)).exists is False


class TestDestroyAndLogs:
    """Test deletion and log export."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_destroy(self, compute) -> None:
        route = respx.delete(f"{BASE}/instances/{NAME}").mock(
            return_value=httpx.Response(204)
        )
        await compute.destroy(NAME)
        assert route.called

    @respx.mock
    @pytest.mark.asyncio
    async def test_destroy_missing_is_ok(self, compute) -> None:
        respx.delete(f"{BASE}/instances/{NAME}").mock(return_value=httpx.Response(404))
        await compute.destroy(NAME)

    @respx.mock
    @pytest.mark.asyncio
    async def test_export_logs(self, compute) -> None:
        respx.post(f"{BASE}/instances/{NAME}/logs:export").mock(
            return_value=httpx.Response(200, json={"path": "logs/iso-build-3f2a9c1e.log"})
        )
        assert await compute.export_logs(NAME, BUILD_ID) == "logs/iso-build-3f2a9c1e.log"


class TestCreateProvisioner:
    """Test the provisioner factory."""

    def test_requires_url(self, settings) -> None:
        with pytest.raises(ValueError, match="PROVISIONER_URL"):
            create_provisioner(settings)

    def test_from_settings(self, settings) -> None:
        settings.provisioner_url = BASE
        settings.resource_name_prefix = "lab"

        provisioner = create_provisioner(settings)

        assert isinstance(provisioner, HttpComputeProvisioner)
        assert provisioner.name_prefix == "lab"
