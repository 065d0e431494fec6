"""
Common shape of the server-side chat backends.

The orchestrator only knows ``ChatBackend``; the agent-run client and the
tool-invocation client each implement it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class BackendReply:
    """Agent reply plus the identifiers the caller may pass back next turn."""

    content: str
    thread_id: str | None = None
    run_id: str | None = None


@runtime_checkable
class ChatBackend(Protocol):
    #: Short backend label used in logs and envelopes
    kind: str

    async def converse(self, message: str, thread_id: str | None = None) -> BackendReply:
        """Send one user message and return the agent's reply."""
        ...
