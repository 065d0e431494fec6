"""
Health check API schemas.

Response models for the health and liveness probes.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ToolClientHealth(BaseModel):
    """Session state of the shared tool-invocation client."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "connected": True,
                "tools_cached": 1,
            }
        }
    )

    connected: bool = Field(..., description="Service token acquired")
    tools_cached: int = Field(default=0, ge=0, description="Discovered tools held in the session")


class HealthResponse(BaseModel):
    """Relay health check response."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "version": "1.0.0",
                "backend": "tool_invocation",
                "uptime_seconds": 3600.5,
                "tool_client": {
                    "connected": True,
                    "tools_cached": 1,
                },
            }
        }
    )

    status: Literal["healthy", "unhealthy"] = Field(
        ...,
        description="Overall relay status",
        json_schema_extra={"example": "healthy"},
    )
    version: str = Field(..., description="Application version")
    backend: str = Field(..., description="Active chat backend")
    uptime_seconds: float | None = Field(default=None, description="Seconds since startup")
    tool_client: ToolClientHealth | None = Field(default=None, description="Tool backend session, when active")


class LivenessResponse(BaseModel):
    """Kubernetes-style liveness probe response."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "alive": True,
            }
        }
    )

    alive: bool = Field(
        default=True,
        description="Process is running",
        json_schema_extra={"example": True},
    )
