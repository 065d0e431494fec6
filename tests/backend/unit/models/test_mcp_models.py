"""Tests for MCP Pydantic models.

Tests the JSON-RPC envelope, tool descriptors and result text extraction.
"""

from __future__ import annotations

from models.mcp_models import JsonRpcRequest, MCPResult, MCPTool


class TestJsonRpcRequest:
    def test_envelope(self) -> None:
        request = JsonRpcRequest(id=3, method="tools/call", params={"name": "query"})

        assert request.model_dump() == {
            "jsonrpc": "2.0",
            "id": 3,
            "method": "tools/call",
            "params": {"name": "query"},
        }

    def test_params_default_empty(self) -> None:
        assert JsonRpcRequest(id=1, method="tools/list").params == {}


class TestMCPTool:
    """Tests for MCPTool model."""

    def test_minimal_tool(self) -> None:
        tool = MCPTool(name="query")

        assert tool.name == "query"
        assert tool.description is None
        assert tool.inputSchema == {}

    def test_extra_fields_preserved(self) -> None:
        tool = MCPTool.model_validate({"name": "query", "annotations": {"readOnly": True}})
        assert tool.model_extra == {"annotations": {"readOnly": True}}


class TestMCPResult:
    """Tests for MCPResult text extraction."""

    def test_text_fragments_in_order(self) -> None:
        result = MCPResult.model_validate(
            {
                "content": [
                    {"type": "text", "text": "Total: 42"},
                    {"type": "image", "data": "..."},
                    {"type": "text", "text": "Region: West"},
                ]
            }
        )

        assert result.text_fragments() == ["Total: 42", "Region: West"]

    def test_no_content(self) -> None:
        assert MCPResult().text_fragments() == []
        assert MCPResult().isError is False

    def test_error_flag(self) -> None:
        result = MCPResult(content=[{"type": "text", "text": "denied"}], isError=True)
        assert result.isError is True
