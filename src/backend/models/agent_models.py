"""
Pydantic models for the agent-run (threads/messages/runs) backend.

Only the fields the relay reads are declared; everything else the service
returns is kept as extra data.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RunStatus(str, Enum):
    """Run status vocabulary reported by the threads API."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


#: Statuses that end polling with an error
TERMINAL_FAILURE_STATUSES = frozenset({RunStatus.FAILED, RunStatus.CANCELLED, RunStatus.EXPIRED})


class AgentThread(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str


class RunError(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: str | None = None
    message: str | None = None


class AgentRun(BaseModel):
    """One execution of the agent against a thread.

    ``status`` stays a plain string so unknown values keep polling
    instead of failing validation.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    status: str
    last_error: RunError | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == RunStatus.COMPLETED.value

    @property
    def is_terminal_failure(self) -> bool:
        return self.status in {s.value for s in TERMINAL_FAILURE_STATUSES}


class TextValue(BaseModel):
    model_config = ConfigDict(extra="allow")

    value: str | None = None


class MessageContentPart(BaseModel):
    """One typed fragment of a message (text, image file, tool output...)."""

    model_config = ConfigDict(extra="allow")

    type: str | None = None
    text: TextValue | None = None

    @property
    def text_value(self) -> str | None:
        if self.text is not None and self.text.value:
            return self.text.value
        return None


class AgentMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    role: str
    created_at: int | None = None
    content: list[MessageContentPart] = Field(default_factory=list)

    def text_fragments(self) -> list[str]:
        """Textual fragments in order; non-text parts are skipped."""
        return [value for part in self.content if (value := part.text_value)]


class MessageList(BaseModel):
    model_config = ConfigDict(extra="allow")

    data: list[AgentMessage] = Field(default_factory=list)


def parse_message_list(payload: dict[str, Any]) -> list[AgentMessage]:
    """Messages from a list response; a missing ``data`` member yields none."""
    return MessageList.model_validate(payload).data


__all__ = [
    "TERMINAL_FAILURE_STATUSES",
    "AgentMessage",
    "AgentRun",
    "AgentThread",
    "MessageContentPart",
    "MessageList",
    "RunError",
    "RunStatus",
    "TextValue",
    "parse_message_list",
]
