from __future__ import annotations

import time

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from api.middleware.exception_handlers import ConfigurationError, ValidationException
from api.middleware.request_context import bind_thread_id
from core.constants import (
    AGENT_RUN_FAILURE_MESSAGE,
    AGENT_RUN_SUCCESS_MESSAGE,
    MESSAGE_REQUIRED,
    TOOL_INVOCATION_FAILURE_MESSAGE,
    TOOL_INVOCATION_SUCCESS_MESSAGE,
    BackendKind,
)
from integrations.agent_run_client import AgentRunClientFactory
from integrations.chat_backend import ChatBackend
from integrations.tool_invocation_client import ToolInvocationClient
from models.api_models import ChatRequest, ChatResponse, ChatResponseData
from models.error_models import ErrorDetail, get_status_code
from utils.logger import logger


def require_message(request: ChatRequest) -> str:
    """Trimmed message text; raises ``ValidationException`` when blank."""
    message = request.message.strip()
    if not message:
        raise ValidationException(MESSAGE_REQUIRED, errors=[ErrorDetail(field="message", message=MESSAGE_REQUIRED)])
    return message


@dataclass(frozen=True, slots=True)
class OrchestratorResult:
    """HTTP status plus the chat envelope to send with it."""

    status_code: int
    body: ChatResponse


class ChatOrchestrator:
    """Routes a chat request to the configured backend and renders the envelope.

    The tool-invocation client is shared for the process lifetime; agent-run
    clients are built per request because their credential depends on the
    caller. Every backend failure is rendered here, so nothing below the
    routes needs an exception handler for the chat path.
    """

    def __init__(
        self,
        backend_kind: BackendKind,
        tool_client: ToolInvocationClient | None = None,
        agent_factory: AgentRunClientFactory | None = None,
    ):
        if backend_kind == "tool_invocation" and tool_client is None:
            raise ConfigurationError("Tool invocation backend selected but no client was provided")
        if backend_kind == "agent_run" and agent_factory is None:
            raise ConfigurationError("Agent run backend selected but no client factory was provided")

        self.backend_kind = backend_kind
        self.tool_client = tool_client
        self.agent_factory = agent_factory

    @property
    def success_message(self) -> str:
        if self.backend_kind == "agent_run":
            return AGENT_RUN_SUCCESS_MESSAGE
        return TOOL_INVOCATION_SUCCESS_MESSAGE

    @property
    def failure_message(self) -> str:
        if self.backend_kind == "agent_run":
            return AGENT_RUN_FAILURE_MESSAGE
        return TOOL_INVOCATION_FAILURE_MESSAGE

    @asynccontextmanager
    async def _open_backend(self, user_token: str | None) -> AsyncIterator[ChatBackend]:
        if self.backend_kind == "agent_run":
            assert self.agent_factory is not None
            async with self.agent_factory.create(user_token) as client:
                yield client
        else:
            assert self.tool_client is not None
            yield self.tool_client

    async def handle(self, request: ChatRequest, user_token: str | None = None) -> OrchestratorResult:
        """Validate, dispatch and render one chat turn.

        Args:
            request: inbound chat body
            user_token: caller's bearer token, ``None`` on the demo route

        Returns:
            400 for an empty message, 500 for any backend failure, else 200
        """
        try:
            message = require_message(request)
        except ValidationException as exc:
            logger.warning("Rejected chat request with empty message")
            return OrchestratorResult(
                status_code=get_status_code(exc.code),
                body=ChatResponse(success=False, message=exc.message, error=exc.message),
            )

        bind_thread_id(request.thread_id)

        logger.info(
            f"Chat request via {self.backend_kind}: {logger.preview(message)}",
            backend=self.backend_kind,
            thread_id=request.thread_id,
        )
        started = time.perf_counter()

        try:
            async with self._open_backend(user_token) as backend:
                reply = await backend.converse(message, request.thread_id)
        except Exception as exc:
            logger.error(
                f"Chat request failed via {self.backend_kind}: {type(exc).__name__}: {exc}",
                exc_info=True,
                backend=self.backend_kind,
            )
            return OrchestratorResult(
                status_code=500,
                body=ChatResponse(success=False, message=self.failure_message, error=str(exc)),
            )

        duration_ms = (time.perf_counter() - started) * 1000
        bind_thread_id(reply.thread_id)
        logger.log_conversation_turn(
            user_input=message,
            response=reply.content,
            backend=self.backend_kind,
            duration_ms=duration_ms,
            thread_id=reply.thread_id,
            run_id=reply.run_id,
        )

        return OrchestratorResult(
            status_code=200,
            body=ChatResponse(
                success=True,
                data=ChatResponseData(content=reply.content, thread_id=reply.thread_id, run_id=reply.run_id),
                message=self.success_message,
            ),
        )
