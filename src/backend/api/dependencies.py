from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from api.services.chat_orchestrator import ChatOrchestrator
from core.constants import Settings, get_settings
from integrations.tool_invocation_client import ToolInvocationClient


def get_app_settings() -> Settings:
    """Provide application settings via dependency injection.

    Settings are validated at startup and cached. With
    CONFIG_HOT_RELOAD=true they are re-read on each request to pick up
    .env file changes without restart.

    Usage in routes:
        @router.get("/example")
        async def example(settings: AppSettings):
            return {"debug": settings.debug}
    """
    return get_settings()


def get_orchestrator(request: Request) -> ChatOrchestrator:
    """Get the chat orchestrator built by the lifespan."""
    return request.app.state.orchestrator


def get_tool_client(request: Request) -> ToolInvocationClient | None:
    """Get the shared tool client, or None when the agent-run backend is active."""
    return getattr(request.app.state, "tool_client", None)


# Type aliases for cleaner route signatures
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Orchestrator = Annotated[ChatOrchestrator, Depends(get_orchestrator)]
ToolClient = Annotated[ToolInvocationClient | None, Depends(get_tool_client)]
