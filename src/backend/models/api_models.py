"""
Chat request/response models.

Server envelope (``ChatRequest`` / ``ChatResponse``) is what the relay routes
accept and return. Client envelope (``ClientChatRequest`` /
``ClientChatResponse``) is what ``chat_client.ChatService`` hands to a UI.
Wire names are camelCase; Python attributes are snake_case.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

#: Client-side backend modes
BackendMode = Literal["relay", "functions", "fabric-agent"]


class ChatRequest(BaseModel):
    """Inbound body of ``POST /chat`` and ``POST /chat/demo``.

    ``message`` defaults to empty so a missing field reaches the
    orchestrator's validation and yields the chat-shaped 400.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str = ""
    thread_id: str | None = Field(default=None, alias="threadId")


class ChatResponseData(BaseModel):
    """Payload of a successful chat response."""

    model_config = ConfigDict(populate_by_name=True)

    content: str
    thread_id: str | None = Field(default=None, alias="threadId")
    run_id: str | None = Field(default=None, alias="runId")


class ChatResponse(BaseModel):
    """Uniform chat envelope returned by the relay."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    data: ChatResponseData | None = None
    message: str
    error: str | None = None

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ClientChatRequest(BaseModel):
    """A message sent by the UI through ``ChatService``."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    thread_id: str | None = Field(default=None, alias="threadId")
    session_id: str | None = Field(default=None, alias="sessionId")
    backend_mode: BackendMode | None = Field(default=None, alias="backendMode")


class ClientChatResponse(BaseModel):
    """Reply handed back to the UI; never raised, always returned."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    thread_id: str | None = Field(default=None, alias="threadId")
    data: Any | None = None
    error: str | None = None
    cached: bool = False


__all__ = [
    "BackendMode",
    "ChatRequest",
    "ChatResponse",
    "ChatResponseData",
    "ClientChatRequest",
    "ClientChatResponse",
]
