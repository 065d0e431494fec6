"""Tests for ChatOrchestrator dispatch and envelope rendering."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from api.middleware.exception_handlers import ConfigurationError, RunTerminalError, ValidationException
from api.services.chat_orchestrator import ChatOrchestrator, require_message
from core.constants import (
    AGENT_RUN_FAILURE_MESSAGE,
    AGENT_RUN_SUCCESS_MESSAGE,
    MESSAGE_REQUIRED,
    TOOL_INVOCATION_FAILURE_MESSAGE,
    TOOL_INVOCATION_SUCCESS_MESSAGE,
)
from integrations.chat_backend import BackendReply
from models.api_models import ChatRequest
from models.error_models import ErrorCode


@pytest.fixture
def tool_client() -> MagicMock:
    client = MagicMock()
    client.kind = "tool_invocation"
    client.converse = AsyncMock(return_value=BackendReply(content="42 orders", thread_id=None))
    return client


@pytest.fixture
def agent_client() -> MagicMock:
    client = MagicMock()
    client.kind = "agent_run"
    client.converse = AsyncMock(return_value=BackendReply(content="Hi there", thread_id="thread_1", run_id="run_1"))
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=None)
    return client


@pytest.fixture
def agent_factory(agent_client: MagicMock) -> MagicMock:
    factory = MagicMock()
    factory.create = MagicMock(return_value=agent_client)
    return factory


class TestValidation:
    def test_require_message_trims(self) -> None:
        assert require_message(ChatRequest(message="  top products  ")) == "top products"

    def test_require_message_raises_validation_exception(self) -> None:
        with pytest.raises(ValidationException) as exc_info:
            require_message(ChatRequest(message=" "))

        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR
        assert exc_info.value.message == MESSAGE_REQUIRED
        assert exc_info.value.errors[0].field == "message"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", ["", "   ", "\n\t"])
    async def test_empty_message_rejected_without_backend_call(self, tool_client: MagicMock, message: str) -> None:
        orchestrator = ChatOrchestrator("tool_invocation", tool_client=tool_client)

        result = await orchestrator.handle(ChatRequest(message=message))

        assert result.status_code == 400
        assert result.body.to_wire() == {"success": False, "message": MESSAGE_REQUIRED, "error": MESSAGE_REQUIRED}
        tool_client.converse.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_message_never_builds_agent_client(self, agent_factory: MagicMock) -> None:
        orchestrator = ChatOrchestrator("agent_run", agent_factory=agent_factory)

        result = await orchestrator.handle(ChatRequest(message=""), user_token="jwt")

        assert result.status_code == 400
        agent_factory.create.assert_not_called()

    def test_missing_backend_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            ChatOrchestrator("tool_invocation")
        with pytest.raises(ConfigurationError):
            ChatOrchestrator("agent_run")


class TestToolBackend:
    @pytest.mark.asyncio
    async def test_success_envelope(self, tool_client: MagicMock) -> None:
        orchestrator = ChatOrchestrator("tool_invocation", tool_client=tool_client)

        result = await orchestrator.handle(ChatRequest(message="How many orders?", thread_id="t-7"))

        assert result.status_code == 200
        assert result.body.to_wire() == {
            "success": True,
            "data": {"content": "42 orders"},
            "message": TOOL_INVOCATION_SUCCESS_MESSAGE,
        }
        tool_client.converse.assert_awaited_once_with("How many orders?", "t-7")

    @pytest.mark.asyncio
    async def test_backend_failure_rendered_as_500(self, tool_client: MagicMock) -> None:
        tool_client.converse.side_effect = RuntimeError("socket closed")
        orchestrator = ChatOrchestrator("tool_invocation", tool_client=tool_client)

        result = await orchestrator.handle(ChatRequest(message="q"))

        assert result.status_code == 500
        assert result.body.to_wire() == {
            "success": False,
            "message": TOOL_INVOCATION_FAILURE_MESSAGE,
            "error": "socket closed",
        }


class TestAgentBackend:
    @pytest.mark.asyncio
    async def test_success_envelope_carries_ids(self, agent_factory: MagicMock, agent_client: MagicMock) -> None:
        orchestrator = ChatOrchestrator("agent_run", agent_factory=agent_factory)

        result = await orchestrator.handle(ChatRequest(message="Hello"), user_token="jwt")

        assert result.status_code == 200
        assert result.body.to_wire() == {
            "success": True,
            "data": {"content": "Hi there", "threadId": "thread_1", "runId": "run_1"},
            "message": AGENT_RUN_SUCCESS_MESSAGE,
        }
        agent_factory.create.assert_called_once_with("jwt")
        agent_client.__aexit__.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_demo_path_passes_no_token(self, agent_factory: MagicMock) -> None:
        orchestrator = ChatOrchestrator("agent_run", agent_factory=agent_factory)

        await orchestrator.handle(ChatRequest(message="Hello"))

        agent_factory.create.assert_called_once_with(None)

    @pytest.mark.asyncio
    async def test_run_failure_rendered_and_client_closed(
        self, agent_factory: MagicMock, agent_client: MagicMock
    ) -> None:
        agent_client.converse.side_effect = RunTerminalError("failed", "run_1", "rate limited")
        orchestrator = ChatOrchestrator("agent_run", agent_factory=agent_factory)

        result = await orchestrator.handle(ChatRequest(message="Hello", thread_id="thread_1"))

        assert result.status_code == 500
        assert result.body.success is False
        assert result.body.message == AGENT_RUN_FAILURE_MESSAGE
        assert result.body.error == "Run failed: rate limited"
        agent_client.__aexit__.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_client_construction_failure_rendered(self, agent_factory: MagicMock) -> None:
        agent_factory.create.side_effect = ConfigurationError("On-behalf-of credential configuration is incomplete")
        orchestrator = ChatOrchestrator("agent_run", agent_factory=agent_factory)

        result = await orchestrator.handle(ChatRequest(message="Hello"), user_token="jwt")

        assert result.status_code == 500
        assert "incomplete" in (result.body.error or "")
