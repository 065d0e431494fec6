"""
Error envelope for failures that escape the chat orchestrator.

The body keeps the ``{"success": false, "error": ...}`` shape of the chat
routes and adds a machine-readable code plus request tracking.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Error codes; the prefix names the category."""

    # Caller authentication and token acquisition
    AUTH_REQUIRED = "AUTH_1001"
    AUTH_INVALID_TOKEN = "AUTH_1002"
    AUTH_TOKEN_ACQUISITION_FAILED = "AUTH_1006"

    # Inbound request validation
    VALIDATION_ERROR = "VAL_2001"
    VALIDATION_MISSING_FIELD = "VAL_2002"

    # Agent and tool backends
    EXTERNAL_SERVICE_ERROR = "EXT_7001"
    EXTERNAL_TIMEOUT = "EXT_7002"
    MCP_SERVER_ERROR = "EXT_7020"
    MCP_PARSE_ERROR = "EXT_7021"
    AGENT_RUN_FAILED = "EXT_7030"
    AGENT_NO_RESPONSE = "EXT_7031"

    # Relay itself
    INTERNAL_ERROR = "INT_9001"
    INTERNAL_CONFIGURATION_ERROR = "INT_9002"
    INTERNAL_UNEXPECTED = "INT_9999"


class ErrorDetail(BaseModel):
    field: str | None = None
    message: str
    code: str | None = None


class ErrorResponse(BaseModel):
    """Error body, e.g.::

        {"success": false, "error": "No Bearer token provided. Please authenticate with Azure AD.",
         "code": "AUTH_1001", "request_id": "req_9f2c4e1ab07d5536",
         "timestamp": "2025-01-15T10:30:00+00:00", "path": "/api/chat"}
    """

    code: ErrorCode
    message: str
    request_id: str | None = None
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    details: list[ErrorDetail] | None = None
    path: str | None = None
    debug: dict[str, Any] | None = Field(default=None, exclude=True)

    def to_dict(self, include_debug: bool = False) -> dict[str, Any]:
        """JSON-ready body; ``message`` is published as ``error``, ``debug`` only on request."""
        fields = self.model_dump(exclude_none=True, mode="json")
        body: dict[str, Any] = {"success": False, "error": fields.pop("message"), **fields}
        if include_debug and self.debug:
            body["debug"] = self.debug
        return body


_STATUS_GROUPS: dict[int, tuple[ErrorCode, ...]] = {
    400: (ErrorCode.VALIDATION_ERROR, ErrorCode.VALIDATION_MISSING_FIELD),
    401: (ErrorCode.AUTH_REQUIRED, ErrorCode.AUTH_INVALID_TOKEN),
    502: (
        ErrorCode.EXTERNAL_SERVICE_ERROR,
        ErrorCode.MCP_SERVER_ERROR,
        ErrorCode.MCP_PARSE_ERROR,
        ErrorCode.AGENT_RUN_FAILED,
        ErrorCode.AGENT_NO_RESPONSE,
    ),
    504: (ErrorCode.EXTERNAL_TIMEOUT,),
}

#: HTTP status per error code; anything unlisted is a 500
ERROR_CODE_TO_STATUS: dict[ErrorCode, int] = {
    code: status for status, codes in _STATUS_GROUPS.items() for code in codes
}


def get_status_code(error_code: ErrorCode) -> int:
    return ERROR_CODE_TO_STATUS.get(error_code, 500)


__all__ = [
    "ERROR_CODE_TO_STATUS",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "get_status_code",
]
