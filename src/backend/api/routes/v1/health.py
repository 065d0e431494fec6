"""
Health check endpoints (v1).

Reports the active backend and, for the tool backend, the shared session
state. Neither probe contacts a remote service.
"""

from __future__ import annotations

import time

from fastapi import APIRouter, Request

from api.dependencies import AppSettings, ToolClient
from models.schemas.health import HealthResponse, LivenessResponse, ToolClientHealth

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    response_model_exclude_none=True,
    summary="Health check",
    description="Relay status, active backend and tool session state.",
    responses={
        200: {
            "description": "Relay health status",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "backend": "tool_invocation",
                        "uptime_seconds": 12.5,
                        "tool_client": {"connected": False, "tools_cached": 0},
                    }
                }
            },
        }
    },
    tags=["Health"],
)
async def health_check(request: Request, settings: AppSettings, tool_client: ToolClient) -> HealthResponse:
    """Relay health check endpoint."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    started_at = getattr(request.app.state, "started_at", None)

    tool_health = None
    if tool_client is not None:
        tool_health = ToolClientHealth(connected=tool_client.connected, tools_cached=len(tool_client.tools))

    return HealthResponse(
        status="healthy" if orchestrator is not None else "unhealthy",
        version=settings.app_version,
        backend=orchestrator.backend_kind if orchestrator is not None else settings.chat_backend,
        uptime_seconds=round(time.monotonic() - started_at, 2) if started_at is not None else None,
        tool_client=tool_health,
    )


@router.get(
    "/health/live",
    response_model=LivenessResponse,
    summary="Liveness probe",
    description="Kubernetes-style liveness probe to confirm process is running.",
    tags=["Health"],
)
async def liveness_check() -> LivenessResponse:
    """Kubernetes-style liveness probe."""
    return LivenessResponse(alive=True)
