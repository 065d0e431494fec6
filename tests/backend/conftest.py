"""Shared test fixtures for the agent chat relay test suite.

This module provides common fixtures used across all test modules,
including fakes for the outbound HTTP client and token providers.
"""

from __future__ import annotations

import os
import time

from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from azure.core.credentials import AccessToken

# ============================================================================
# EARLY INITIALIZATION: Runs before test collection
# ============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Pin the environment before any test module imports settings.

    ``api.main`` builds its app at import time, so backend selection and
    debug flags from a developer's shell must not leak into the suite.
    """
    os.environ["APP_ENV"] = "test"
    os.environ["CHAT_BACKEND"] = "tool_invocation"
    os.environ["DEBUG"] = "false"
    os.environ["CONFIG_HOT_RELOAD"] = "false"


# ============================================================================
# Test Isolation: Settings Management (MUST BE FIRST)
# ============================================================================


@pytest.fixture(autouse=True, scope="function")
def reset_settings_singleton() -> Generator[None, None, None]:
    """Reset settings singleton before and after each test to prevent state pollution."""
    from core.constants import clear_settings_cache

    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def tool_settings() -> Any:
    """Settings selecting the tool-invocation backend with full credentials."""
    from core.constants import Settings

    return Settings(
        chat_backend="tool_invocation",
        mcp_server_url="https://fabric.test/mcp/agent",
        fabric_tenant_id="fabric-tenant",
        fabric_client_id="fabric-client",
        fabric_client_secret="fabric-secret",
    )


@pytest.fixture
def agent_settings() -> Any:
    """Settings selecting the agent-run backend with on-behalf-of credentials."""
    from core.constants import Settings

    return Settings(
        chat_backend="agent_run",
        foundry_endpoint="https://foundry.test/",
        foundry_project_id="proj-1",
        foundry_agent_id="asst_1",
        azure_tenant_id="tenant",
        azure_client_id="client",
        azure_client_secret="secret",
        run_poll_interval=0,
        run_max_attempts=5,
    )


# ============================================================================
# Mock External Dependencies
# ============================================================================


@pytest.fixture
def token_provider() -> MagicMock:
    """Token provider handing out a token valid for one hour."""
    provider = MagicMock()
    provider.get_token = AsyncMock(return_value=AccessToken("test-token", int(time.time()) + 3600))
    provider.close = AsyncMock()
    return provider


@pytest.fixture
def mock_http_client() -> MagicMock:
    """Stand-in for the shared httpx.AsyncClient."""
    client = MagicMock(spec=httpx.AsyncClient)
    client.request = AsyncMock()
    client.post = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def json_response() -> Callable[..., httpx.Response]:
    """Factory for real httpx responses carrying a JSON body."""

    def _make(payload: Any, status_code: int = 200) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return _make


@pytest.fixture
def text_response() -> Callable[..., httpx.Response]:
    """Factory for real httpx responses carrying a raw text body."""

    def _make(body: str, status_code: int = 200) -> httpx.Response:
        return httpx.Response(status_code, text=body)

    return _make
