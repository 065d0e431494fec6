"""
Relay logging: stdlib ``logging`` with python-json-logger file sinks.

Sinks:
- stderr: colored one-line records, DEBUG when ``DEBUG`` is set
- logs/conversations.jsonl: INFO and above, one JSON object per record
- logs/errors.jsonl: ERROR and above, one JSON object per record

Message text typed by users never reaches a sink unless
``ENABLE_CONTENT_LOGGING`` is on, and even then it is redacted.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
import sys
import uuid

from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pythonjsonlogger import json as jsonlogger

from api.middleware.request_context import get_request_context
from core.constants import (
    INSTANCE_ID_LENGTH,
    LOG_BACKUP_COUNT_CONVERSATIONS,
    LOG_BACKUP_COUNT_ERRORS,
    LOG_MAX_SIZE,
    LOG_PREVIEW_LENGTH,
    PROJECT_ROOT,
    get_settings,
)

#: Substitutions applied, in order, to any user text that is logged
REDACTIONS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\bBearer\s+[A-Za-z0-9._~+/=-]+"), "Bearer [REDACTED]"),
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[EMAIL]"),
    (re.compile(r"\b(?:\d{4}[- ]?){3}\d{4}\b"), "[CARD]"),
    (re.compile(r"\b(password|secret|token|api[-_]?key)\s*[:=]\s*\S+", re.IGNORECASE), "[REDACTED]"),
]

HIDDEN = "[HIDDEN]"


class LevelFilter(logging.Filter):
    """Pass records at or above ``min_level``."""

    def __init__(self, min_level: int) -> None:
        super().__init__()
        self.min_level = min_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.min_level


class ColoredConsoleFormatter(logging.Formatter):
    """``HH:MM:SS [LEVEL] logger - message`` with the level colored."""

    COLORS = {
        logging.DEBUG: "\x1b[38;20m",
        logging.INFO: "\x1b[32;20m",
        logging.WARNING: "\x1b[33;20m",
        logging.ERROR: "\x1b[31;20m",
        logging.CRITICAL: "\x1b[31;1m",
    }
    RESET = "\x1b[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, self.RESET)
        stamp = self.formatTime(record, "%H:%M:%S")
        line = f"{stamp} {color}[{record.levelname}]{self.RESET} {record.name} - {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_uvicorn_logging() -> None:
    """Route uvicorn's error and access logs through the relay console format."""
    logging.getLogger("uvicorn").handlers = []
    for name in ("uvicorn.error", "uvicorn.access"):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColoredConsoleFormatter())
        uv_logger = logging.getLogger(name)
        uv_logger.handlers = [handler]
        uv_logger.setLevel(logging.INFO)
        uv_logger.propagate = False


def _json_file_handler(path: Path, min_level: int, backup_count: int, fields: str) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=LOG_MAX_SIZE, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(min_level)
    handler.addFilter(LevelFilter(min_level))
    handler.setFormatter(jsonlogger.JsonFormatter(fields, timestamp=True))
    return handler


def setup_logging(name: str = "agent-relay", debug: bool | None = None) -> logging.Logger:
    """
    Attach the console and JSON file sinks to the named logger.

    Args:
        name: Logger name
        debug: Console at DEBUG; defaults to the ``DEBUG`` environment variable

    Returns:
        The configured logger; existing handlers are replaced
    """
    if debug is None:
        debug = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")

    log_dir = PROJECT_ROOT / "logs"
    log_dir.mkdir(exist_ok=True)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if debug else logging.INFO)
    console.setFormatter(ColoredConsoleFormatter())

    log = logging.getLogger(name)
    log.setLevel(logging.DEBUG)
    log.handlers = [
        console,
        _json_file_handler(
            log_dir / "conversations.jsonl",
            logging.INFO,
            LOG_BACKUP_COUNT_CONVERSATIONS,
            "%(timestamp)s %(levelname)s %(message)s %(request_id)s %(thread_id)s %(backend)s %(ms)s",
        ),
        _json_file_handler(
            log_dir / "errors.jsonl",
            logging.ERROR,
            LOG_BACKUP_COUNT_ERRORS,
            "%(timestamp)s %(levelname)s %(name)s %(message)s %(request_id)s",
        ),
    ]
    return log


class ChatLogger:
    """Keyword-context logging facade used across the relay.

    Keyword arguments become ``extra`` fields. Fields of the current request
    context are merged in, so records from inside a backend client still
    carry the request id and agent thread.
    """

    def __init__(self, name: str = "agent-relay"):
        self.logger = setup_logging(name)
        self.instance_id = uuid.uuid4().hex[:INSTANCE_ID_LENGTH]

    def _enrich_context(self, fields: dict[str, Any]) -> dict[str, Any]:
        fields.setdefault("instance_id", self.instance_id)
        ctx = get_request_context()
        if ctx is not None:
            fields.update(ctx.to_log_context())
        return fields

    def debug(self, message: str, **kwargs: Any) -> None:
        self.logger.debug(message, extra=self._enrich_context(kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self.logger.info(message, extra=self._enrich_context(kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self.logger.warning(message, extra=self._enrich_context(kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self.logger.error(message, extra=self._enrich_context(kwargs), exc_info=exc_info)

    def _should_log_content(self) -> bool:
        try:
            return bool(get_settings().enable_content_logging)
        except ValueError:
            # A broken .env must not take logging down with it
            return False

    def _redact_content(self, text: str) -> str:
        for pattern, replacement in REDACTIONS:
            text = pattern.sub(replacement, text)
        return text

    def preview(self, text: str) -> str:
        """First ``LOG_PREVIEW_LENGTH`` characters, redacted, or ``[HIDDEN]``."""
        if not self._should_log_content():
            return HIDDEN
        snippet = self._redact_content(text[:LOG_PREVIEW_LENGTH].replace("\n", " "))
        return snippet + "..." if len(text) > LOG_PREVIEW_LENGTH else snippet

    def log_conversation_turn(
        self,
        user_input: str,
        response: str,
        backend: str,
        duration_ms: float | None = None,
        thread_id: str | None = None,
        run_id: str | None = None,
    ) -> None:
        """One INFO record per completed chat exchange."""
        summary = f"User: {self.preview(user_input)} → Agent: {self.preview(response)}"
        if duration_ms:
            summary += f" [{duration_ms:.0f}ms]"

        fields: dict[str, Any] = {
            "conversation_turn": True,
            "timestamp": datetime.now(UTC).isoformat(),
            "backend": backend,
            "chars_input": len(user_input),
            "chars_response": len(response),
            "content_logging": self._should_log_content(),
        }
        optional = {"thread_id": thread_id, "run_id": run_id}
        fields.update({k: v for k, v in optional.items() if v})
        if duration_ms is not None:
            fields["ms"] = int(duration_ms)

        self.logger.info(summary, extra=self._enrich_context(fields))


logger = ChatLogger()
