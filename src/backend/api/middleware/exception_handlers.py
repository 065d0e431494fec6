"""
Error taxonomy and global exception handlers for the agent chat relay.

Clients raise the ``AppException`` subclasses below. The chat orchestrator
renders them into the chat envelope itself; anything that escapes a route
(authentication, body parsing, unexpected bugs) is rendered here.
"""

from __future__ import annotations

import traceback

from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from api.middleware.request_context import get_request_context, get_request_id
from core.constants import get_settings
from models.error_models import (
    ErrorCode,
    ErrorDetail,
    ErrorResponse,
    get_status_code,
)
from utils.logger import logger


class AppException(Exception):
    """Base application exception with error code support.

    Example:
        raise AppException(
            code=ErrorCode.INTERNAL_ERROR,
            message="Something broke",
            details={"thread_id": thread_id}
        )
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        self.cause = cause
        super().__init__(message)


class ValidationException(AppException):
    """Invalid chat request (e.g. empty message)."""

    def __init__(
        self,
        message: str = "Validation error",
        errors: list[ErrorDetail] | None = None,
    ):
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            details={"errors": [e.model_dump() for e in errors]} if errors else None,
        )
        self.errors = errors or []


class AuthenticationError(AppException):
    """Missing caller credential or failed token acquisition."""

    def __init__(
        self,
        message: str = "Authentication required",
        code: ErrorCode = ErrorCode.AUTH_REQUIRED,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(code=code, message=message, details=details, cause=cause)


class ConfigurationError(AppException):
    """Required settings are missing; raised when a client is constructed."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(
            code=ErrorCode.INTERNAL_CONFIGURATION_ERROR,
            message=message,
            details={"missing": ", ".join(missing)} if missing else None,
        )
        self.missing = missing or []


class RemoteServiceError(AppException):
    """Non-success HTTP status from an agent or tool backend."""

    def __init__(
        self,
        service: str,
        status_code: int,
        body: str = "",
        code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR,
    ):
        super().__init__(
            code=code,
            message=f"{service} API error: {status_code} - {body}",
            details={"service": service, "status_code": status_code},
        )
        self.service = service
        self.status_code = status_code
        self.body = body


class JsonRpcError(AppException):
    """JSON-RPC envelope carrying an ``error`` member."""

    def __init__(self, rpc_message: str, rpc_code: int | None = None, data: Any = None):
        super().__init__(
            code=ErrorCode.MCP_SERVER_ERROR,
            message=f"MCP error: {rpc_message}",
            details={"rpc_code": rpc_code} if rpc_code is not None else None,
        )
        self.rpc_message = rpc_message
        self.rpc_code = rpc_code
        self.data = data


class ParseError(AppException):
    """Reply body is neither valid JSON nor an SSE frame carrying JSON."""

    def __init__(self, message: str, raw: str = "", cause: Exception | None = None):
        super().__init__(code=ErrorCode.MCP_PARSE_ERROR, message=message, cause=cause)
        self.raw = raw


class RunTerminalError(AppException):
    """Agent run ended in ``failed``, ``cancelled`` or ``expired``."""

    def __init__(self, status: str, run_id: str, last_error: str | None = None):
        message = f"Run {status}"
        if last_error:
            message = f"{message}: {last_error}"
        super().__init__(
            code=ErrorCode.AGENT_RUN_FAILED,
            message=message,
            details={"run_id": run_id, "status": status},
        )
        self.status = status
        self.run_id = run_id
        self.last_error = last_error


class RunTimeoutError(AppException):
    """Polling exhausted its attempts before the run reached a terminal state."""

    def __init__(self, run_id: str, attempts: int, last_status: str | None = None):
        super().__init__(
            code=ErrorCode.EXTERNAL_TIMEOUT,
            message=f"Run timed out after {attempts} polls (last status: {last_status or 'unknown'})",
            details={"run_id": run_id, "attempts": attempts},
        )
        self.run_id = run_id
        self.attempts = attempts
        self.last_status = last_status


class NoResponseError(AppException):
    """Thread holds no assistant message with text content."""

    def __init__(self, thread_id: str, message: str = "No assistant response found"):
        super().__init__(
            code=ErrorCode.AGENT_NO_RESPONSE,
            message=message,
            details={"thread_id": thread_id},
        )
        self.thread_id = thread_id


#: Codes for HTTPExceptions raised by FastAPI itself or by route code
_HTTP_STATUS_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.AUTH_REQUIRED,
    403: ErrorCode.AUTH_REQUIRED,
    422: ErrorCode.VALIDATION_ERROR,
    502: ErrorCode.EXTERNAL_SERVICE_ERROR,
    504: ErrorCode.EXTERNAL_TIMEOUT,
}


def _details_from(exc: AppException) -> list[ErrorDetail] | None:
    if not exc.details:
        return None
    if "errors" in exc.details:
        return [ErrorDetail(**e) for e in exc.details["errors"]]
    return [ErrorDetail(field=k, message=str(v)) for k, v in exc.details.items()]


def _respond(
    request: Request,
    status_code: int,
    code: ErrorCode,
    message: str,
    details: list[ErrorDetail] | None = None,
    debug_info: dict[str, Any] | None = None,
) -> JSONResponse:
    """Render the error envelope, logging 5xx as errors and 4xx as warnings."""
    ctx = get_request_context()
    log_fields = {"error_code": code.value, "status_code": status_code}
    if ctx is None:
        log_fields["path"] = request.url.path

    if status_code >= 500:
        logger.error(f"Server error {code.value}: {message}", exc_info=True, **log_fields)
    else:
        logger.warning(f"Client error {code.value}: {message}", **log_fields)

    body = ErrorResponse(
        code=code,
        message=message,
        request_id=get_request_id(),
        path=request.url.path,
        details=details,
        debug=debug_info,
    )
    return JSONResponse(status_code=status_code, content=body.to_dict(include_debug=debug_info is not None))


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Relay errors that escaped a route, e.g. a rejected bearer token."""
    debug_info = None
    if get_settings().debug:
        debug_info = {"exception_type": type(exc).__name__, "cause": str(exc.cause) if exc.cause else None}
    return _respond(request, get_status_code(exc.code), exc.code, exc.message, _details_from(exc), debug_info)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    code = _HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _respond(request, exc.status_code, code, message)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed chat bodies are client errors (400), not 422."""
    details = [
        ErrorDetail(field=".".join(str(loc) for loc in error["loc"]), message=error["msg"], code=error["type"])
        for error in exc.errors()
    ]
    return _respond(request, 400, ErrorCode.VALIDATION_ERROR, "Request validation failed", details)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    debug_info = None
    if get_settings().debug:
        debug_info = {
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "traceback": traceback.format_exc(),
        }
    logger.error(f"Unhandled exception: {type(exc).__name__}: {exc}", exc_info=True)
    return _respond(request, 500, ErrorCode.INTERNAL_UNEXPECTED, "An unexpected error occurred", debug_info=debug_info)


def register_exception_handlers(app: FastAPI) -> None:
    # Starlette types handlers as taking Exception; the narrower signatures are fine at runtime
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)


__all__ = [
    "AppException",
    "AuthenticationError",
    "ConfigurationError",
    "JsonRpcError",
    "NoResponseError",
    "ParseError",
    "RemoteServiceError",
    "RunTerminalError",
    "RunTimeoutError",
    "ValidationException",
    "app_exception_handler",
    "generic_exception_handler",
    "http_exception_handler",
    "register_exception_handlers",
    "validation_exception_handler",
]
