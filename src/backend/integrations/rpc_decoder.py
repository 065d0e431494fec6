"""
Decoding of JSON-RPC replies from the tool backend.

The server answers either with a plain JSON body or with a server-sent-events
frame whose payload sits on a ``data:`` line. Both shapes decode to the same
envelope dict before the result is unwrapped.
"""

from __future__ import annotations

import json

from typing import Any

from api.middleware.exception_handlers import JsonRpcError, ParseError

SSE_PREFIXES = ("data:", "event:")


def _first_data_line(body: str) -> str:
    for line in body.splitlines():
        if line.startswith("data:"):
            payload = line[len("data:") :].strip()
            if payload:
                return payload
    raise ParseError("No data line in event-stream reply", raw=body)


def decode_rpc_body(body: str) -> dict[str, Any]:
    """Parse a reply body into a JSON-RPC envelope.

    Raises:
        ParseError: body is not JSON, carries no ``data:`` line, or is not an object
    """
    text = body.lstrip()
    payload = _first_data_line(text) if text.startswith(SSE_PREFIXES) else text

    try:
        envelope = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Malformed JSON-RPC reply: {payload[:200]}", raw=body, cause=exc) from exc

    if not isinstance(envelope, dict):
        raise ParseError(f"JSON-RPC reply is not an object: {payload[:200]}", raw=body)
    return envelope


def unwrap_rpc_result(envelope: dict[str, Any]) -> Any:
    """Return the ``result`` member, raising ``JsonRpcError`` for an ``error`` member.

    A null ``result`` yields an empty dict. An envelope with
    neither member is returned as-is.
    """
    error = envelope.get("error")
    if error is not None:
        if isinstance(error, dict):
            message = error.get("message") or json.dumps(error)
            raise JsonRpcError(str(message), rpc_code=error.get("code"), data=error.get("data"))
        raise JsonRpcError(str(error))

    if "result" in envelope:
        result = envelope["result"]
        return {} if result is None else result
    return envelope
