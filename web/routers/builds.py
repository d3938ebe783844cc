"""Build management endpoints.

- POST /builds - Submit a build
- GET /builds - List builds held in memory
- GET /builds/{id} - Get build status (reconciled if not in memory)
- DELETE /builds/{id} - Cancel a running build
- GET /builds/{id}/download - Locate the artifact of a complete build
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi import status as http_status

from homelab_iso.builds.errors import (
    ArtifactMissingError,
    BuildCapacityError,
    BuildNotCompleteError,
    BuildNotFoundError,
    BuildValidationError,
    InvalidTransitionError,
)
from homelab_iso.builds.orchestrator import BuildOrchestrator
from homelab_iso.types import BuildStatus
from web.deps import get_orchestrator

router = APIRouter()


def _not_found(build_id: str) -> HTTPException:
    return HTTPException(
        status_code=http_status.HTTP_404_NOT_FOUND,
        detail={"code": "build_not_found", "message": f"Build not found: {build_id}"},
    )


@router.post("", status_code=http_status.HTTP_202_ACCEPTED)
async def start_build_endpoint(
    payload: Any = Body(..., description="Build request"),
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Submit a build.

    Args:
        payload: Request body with components, variants, options, output_name.
        orchestrator: Build orchestrator.

    Returns:
        Acceptance with build id and estimate.

    Raises:
        HTTPException: 400 on invalid input, 429 when at capacity.
    """
    try:
        accepted = await orchestrator.start_build(payload)
    except BuildValidationError as e:
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail={"code": e.code, "message": str(e), "field": e.field},
        ) from e
    except BuildCapacityError as e:
        raise HTTPException(
            status_code=http_status.HTTP_429_TOO_MANY_REQUESTS,
            detail={"code": e.code, "message": str(e)},
        ) from e
    return accepted.model_dump(mode="json")


@router.get("")
async def list_builds_endpoint(
    status: str | None = Query(None, description="Filter by status"),
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
) -> list[dict[str, Any]]:
    """List builds held in memory, newest first."""
    status_filter: BuildStatus | None = None
    if status:
        try:
            status_filter = BuildStatus(status)
        except ValueError:
            valid = ", ".join(s.value for s in BuildStatus)
            raise HTTPException(
                status_code=http_status.HTTP_400_BAD_REQUEST,
                detail={
                    "code": "invalid_status",
                    "message": f"Invalid status: {status}. Valid values: {valid}",
                },
            ) from None

    return [
        snapshot.model_dump(mode="json")
        for snapshot in orchestrator.list_builds(status_filter)
    ]


@router.get("/{build_id}")
async def get_build_endpoint(
    build_id: str,
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Get build status.

    Raises:
        HTTPException: If the build is neither in memory nor reconcilable.
    """
    snapshot = await orchestrator.get_build_status(build_id)
    if snapshot is None:
        raise _not_found(build_id)
    return snapshot.model_dump(mode="json")


@router.delete("/{build_id}", status_code=http_status.HTTP_202_ACCEPTED)
async def cancel_build_endpoint(
    build_id: str,
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Cancel a build.

    Raises:
        HTTPException: 404 if unknown, 409 if the build already finished.
    """
    try:
        snapshot = orchestrator.cancel_build(build_id)
    except BuildNotFoundError:
        raise _not_found(build_id) from None
    except InvalidTransitionError as e:
        raise HTTPException(
            status_code=http_status.HTTP_409_CONFLICT,
            detail={"code": "build_finished", "message": str(e)},
        ) from e
    return snapshot.model_dump(mode="json")


@router.get("/{build_id}/download")
async def download_build_endpoint(
    build_id: str,
    orchestrator: BuildOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Get the location and size of a complete build's artifact.

    Raises:
        HTTPException: 404 if the build or its artifact is gone, 400 if the
            build is not complete.
    """
    try:
        download = await orchestrator.get_download(build_id)
    except BuildNotFoundError:
        raise _not_found(build_id) from None
    except BuildNotCompleteError as e:
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail={"code": e.code, "message": str(e), "status": e.status},
        ) from e
    except ArtifactMissingError as e:
        raise HTTPException(
            status_code=http_status.HTTP_404_NOT_FOUND,
            detail={"code": e.code, "message": str(e)},
        ) from e
    return download.model_dump(mode="json")
