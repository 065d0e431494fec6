from __future__ import annotations

import time

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware.exception_handlers import register_exception_handlers
from api.middleware.request_context import RequestContextMiddleware
from api.routes.v1 import router as v1_router
from api.services.chat_orchestrator import ChatOrchestrator
from core.constants import Settings, _get_env_files, get_settings
from integrations.agent_run_client import AgentRunClientFactory
from integrations.tool_invocation_client import ToolInvocationClient
from utils.client_factory import create_http_client
from utils.logger import configure_uvicorn_logging, logger

# Configure uvicorn logging at module level to ensure workers use it
configure_uvicorn_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: build the selected backend, release it on shutdown.

    Only the configured backend is constructed, so missing settings for it
    abort startup with a ``ConfigurationError``.
    """
    settings: Settings = app.state.settings
    app.state.started_at = time.monotonic()

    http_client = create_http_client(
        enable_logging=settings.http_request_logging,
        read_timeout=settings.http_timeout,
    )
    app.state.http_client = http_client
    app.state.tool_client = None
    app.state.agent_factory = None

    try:
        if settings.chat_backend == "agent_run":
            app.state.agent_factory = AgentRunClientFactory(settings, http_client)
        else:
            app.state.tool_client = ToolInvocationClient.from_settings(settings, http_client)

        app.state.orchestrator = ChatOrchestrator(
            settings.chat_backend,
            tool_client=app.state.tool_client,
            agent_factory=app.state.agent_factory,
        )
        logger.info(f"Chat relay started (backend: {settings.chat_backend}, prefix: {settings.api_prefix})")

        yield
    finally:
        logger.info("Initiating graceful shutdown sequence")

        if app.state.tool_client is not None:
            await app.state.tool_client.aclose()
            logger.info("Tool client shutdown complete")

        await http_client.aclose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the relay application.

    Args:
        settings: explicit settings (tests); defaults to ``get_settings()``
    """
    settings = settings or get_settings()

    if settings.debug:
        logger.info(f"Env files: {[f.name for f in _get_env_files()]}")
        logger.info(f"Settings: app_env={settings.app_env}, chat_backend={settings.chat_backend}")

    app = FastAPI(
        title="Agent Chat Relay API",
        description="""
## Agent Chat Relay API

Thin relay between a chat UI and a remote agent backend.

### Backends
- **agent_run**: Azure AI Foundry threads API (thread, message, run, poll, reply)
- **tool_invocation**: Fabric Data Agent over MCP-style JSON-RPC

### Authentication
`POST /chat` requires an Azure AD bearer token, exchanged on-behalf-of the
caller. `POST /chat/demo` uses the service identity.
""",
        version=settings.app_version,
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "Health",
                "description": "Health check endpoints for monitoring and orchestration",
            },
            {
                "name": "Chat",
                "description": "Relay a chat message to the configured agent backend",
            },
        ],
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
    )
    app.state.settings = settings

    # Register global exception handlers for consistent error responses
    register_exception_handlers(app)

    # Request context middleware (adds request ID tracking)
    # Note: Middleware is executed in reverse order of registration
    app.add_middleware(RequestContextMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


app = create_app()


def run() -> None:
    """Serve the relay with uvicorn on the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        reload_dirs=["src/backend"],
        log_config=None,
    )


if __name__ == "__main__":
    run()
