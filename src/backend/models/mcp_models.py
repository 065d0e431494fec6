"""
Pydantic models for the JSON-RPC tool backend (MCP-style).

- JsonRpcRequest: outbound envelope
- MCPTool: a discovered tool descriptor
- MCPResult: output of a ``tools/call`` invocation
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from core.constants import JSONRPC_VERSION


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request envelope."""

    jsonrpc: str = JSONRPC_VERSION
    id: int
    method: str
    params: dict[str, Any] = Field(default_factory=dict)


class MCPTool(BaseModel):
    """Model for an MCP tool definition."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    description: str | None = None
    inputSchema: dict[str, Any] = Field(default_factory=dict)


class MCPResult(BaseModel):
    """Model for an MCP tool execution result."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    content: list[Any] | None = None
    isError: bool = False

    def text_fragments(self) -> list[str]:
        """Text of every ``text``-typed content entry, in order."""
        if not self.content:
            return []
        return [
            str(item.get("text", ""))
            for item in self.content
            if isinstance(item, dict) and item.get("type") == "text"
        ]


__all__ = ["JsonRpcRequest", "MCPResult", "MCPTool"]
