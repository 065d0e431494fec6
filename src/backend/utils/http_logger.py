"""
HTTP request/response logging for debugging agent and tool backend calls.

Captures request payloads and responses using httpx event hooks.
"""

from __future__ import annotations

import json

from typing import Any

import httpx

from utils.logger import logger

#: Headers whose values are masked before logging
SENSITIVE_HEADERS = ("authorization", "api-key", "x-api-key")


class HTTPLogger:
    """Logs outbound HTTP requests and responses for debugging."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    async def log_request(self, request: httpx.Request) -> None:
        if not self.enabled:
            return

        body = _decode_body(request.content)
        logger.info(
            f"HTTP Request: {request.method} {request.url}",
            http_request=True,
            http_method=request.method,
            url=str(request.url),
            headers=self._sanitize_headers(dict(request.headers)),
        )
        if body:
            logger.debug(f"Request Payload:\n{json.dumps(body, indent=2) if isinstance(body, dict) else body}")

    async def log_response(self, response: httpx.Response) -> None:
        """Log response status. The body is read by the caller, not here."""
        if not self.enabled:
            return

        logger.info(
            f"HTTP Response: {response.status_code} {response.request.method} {response.request.url}",
            http_response=True,
            status_code=response.status_code,
            content_type=response.headers.get("content-type", ""),
        )

    def _sanitize_headers(self, headers: dict[str, str]) -> dict[str, str]:
        """Mask sensitive header values, keeping the last 4 characters."""
        sanitized = headers.copy()
        for key, value in headers.items():
            if key.lower() in SENSITIVE_HEADERS:
                sanitized[key] = f"***{value[-4:]}" if len(value) > 4 else "***"
        return sanitized


def _decode_body(content: bytes) -> Any:
    if not content:
        return None
    text = content.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def create_logging_client(
    enabled: bool = True,
    timeout: httpx.Timeout | None = None,
) -> httpx.AsyncClient:
    """Create an httpx client with request/response logging hooks."""
    http_logger = HTTPLogger(enabled=enabled)

    event_hooks: dict[str, list[Any]] = {
        "request": [http_logger.log_request],
        "response": [http_logger.log_response],
    }
    return httpx.AsyncClient(event_hooks=event_hooks, timeout=timeout)
