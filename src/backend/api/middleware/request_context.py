"""
Per-request tracing state for the agent chat relay.

Every inbound request gets a ``RequestContext`` held in a ``ContextVar``.
Log records emitted from inside a backend client pick it up through
``utils.logger`` so a slow agent run can be traced back to its HTTP call.
"""

from __future__ import annotations

import secrets
import time

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_PREFIX = "req_"
REQUEST_ID_HEADER = "X-Request-ID"
RESPONSE_TIME_HEADER = "X-Response-Time"

_current: ContextVar[RequestContext | None] = ContextVar("relay_request_context", default=None)


@dataclass
class RequestContext:
    request_id: str
    path: str = ""
    method: str = ""
    client_ip: str | None = None
    backend: str | None = None
    # Agent thread the request is talking to, once known
    thread_id: str | None = None
    started: float = field(default_factory=time.monotonic)

    @property
    def elapsed_ms(self) -> float:
        return (time.monotonic() - self.started) * 1000

    def to_log_context(self) -> dict[str, Any]:
        """Fields merged into every log record emitted during the request."""
        fields: dict[str, Any] = {
            "request_id": self.request_id,
            "path": self.path,
            "method": self.method,
            "elapsed_ms": round(self.elapsed_ms, 2),
        }
        optional = {"client_ip": self.client_ip, "backend": self.backend, "thread_id": self.thread_id}
        fields.update({k: v for k, v in optional.items() if v})
        return fields


def generate_request_id() -> str:
    """``req_`` followed by 16 hex characters, e.g. ``req_9f2c4e1ab07d5536``."""
    return REQUEST_ID_PREFIX + secrets.token_hex(8)


def get_request_context() -> RequestContext | None:
    return _current.get()


def get_request_id() -> str | None:
    ctx = _current.get()
    return ctx.request_id if ctx else None


@contextmanager
def request_scope(context: RequestContext) -> Iterator[RequestContext]:
    """Make ``context`` current until the block exits, then restore the previous one."""
    token = _current.set(context)
    try:
        yield context
    finally:
        _current.reset(token)


def bind_thread_id(thread_id: str | None) -> None:
    """Attach the agent thread to the current request; no-op outside a request or for an empty id."""
    ctx = _current.get()
    if ctx is not None and thread_id:
        ctx.thread_id = thread_id


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # First hop is the original caller
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Opens a request scope and stamps the id and latency on the response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        settings = getattr(request.app.state, "settings", None)
        context = RequestContext(
            request_id=request.headers.get(REQUEST_ID_HEADER) or generate_request_id(),
            path=request.url.path,
            method=request.method,
            client_ip=_client_ip(request),
            backend=getattr(settings, "chat_backend", None),
        )

        with request_scope(context):
            response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = context.request_id
        response.headers[RESPONSE_TIME_HEADER] = f"{context.elapsed_ms:.2f}ms"
        return response


__all__ = [
    "REQUEST_ID_HEADER",
    "REQUEST_ID_PREFIX",
    "RESPONSE_TIME_HEADER",
    "RequestContext",
    "RequestContextMiddleware",
    "bind_thread_id",
    "generate_request_id",
    "get_request_context",
    "get_request_id",
    "request_scope",
]
