"""
JSON-RPC tool backend client (Fabric Data Agent behind an MCP-style endpoint).

Unlike the agent-run backend there are no threads: every chat turn is one
``tools/call`` against the first tool the server advertises. The client is
long-lived. The app lifespan builds one instance and shares it across
requests so the service token and the discovered tool list are reused.
"""

from __future__ import annotations

import json
import time

from typing import Any

import httpx

from azure.core.credentials import AccessToken

from api.middleware.exception_handlers import AppException, RemoteServiceError
from core.constants import (
    DEFAULT_TOOL_NAME,
    FABRIC_TOKEN_SCOPE,
    FALLBACK_RPC_ARGUMENT,
    FALLBACK_RPC_METHOD,
    MCP_ACCEPT_HEADER,
    TOKEN_REFRESH_MARGIN_SECONDS,
    TOOL_QUESTION_ARGUMENT,
    Settings,
)
from integrations.chat_backend import BackendReply
from integrations.credentials import TokenProvider, client_secret_token_provider, require
from integrations.rpc_decoder import decode_rpc_body, unwrap_rpc_result
from models.mcp_models import JsonRpcRequest, MCPResult, MCPTool
from utils.logger import logger

SERVICE_NAME = "MCP server"


def extract_reply_text(result: Any) -> str:
    """Turn a tool result into display text.

    Text-typed content entries are joined by newline; a bare string is
    returned verbatim; anything else is pretty-printed JSON.
    """
    if isinstance(result, dict) and isinstance(result.get("content"), list):
        fragments = MCPResult.model_validate(result).text_fragments()
        if fragments:
            return "\n".join(fragments)
    if isinstance(result, str):
        return result
    return json.dumps(result, indent=2, ensure_ascii=False)


class ToolInvocationClient:
    """Session-holding JSON-RPC client.

    Session state (connected flag, tool cache, access token, request
    counter) lives on the instance. ``connect`` and ``list_tools`` are
    idempotent, so concurrent first calls only cost a redundant token fetch.
    """

    kind = "tool_invocation"

    def __init__(
        self,
        server_url: str,
        token_provider: TokenProvider,
        http_client: httpx.AsyncClient,
        default_tool: str = DEFAULT_TOOL_NAME,
    ) -> None:
        self.server_url = server_url
        self.default_tool = default_tool
        self._token_provider = token_provider
        self._http = http_client

        self._connected = False
        self._tools: list[MCPTool] = []
        self._access_token: AccessToken | None = None
        self._request_id = 0

        logger.info(f"ToolInvocationClient initialized with URL: {server_url}")

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient) -> ToolInvocationClient:
        """Build from settings, failing fast when the endpoint or service principal is missing."""
        require({"MCP_SERVER_URL": settings.mcp_server_url}, SERVICE_NAME)
        require(
            {
                "FABRIC_TENANT_ID": settings.fabric_tenant_id,
                "FABRIC_CLIENT_ID": settings.fabric_client_id,
                "FABRIC_CLIENT_SECRET": settings.fabric_client_secret,
            },
            "Fabric credential",
        )
        assert settings.mcp_server_url
        assert settings.fabric_tenant_id and settings.fabric_client_id and settings.fabric_client_secret
        provider = client_secret_token_provider(
            tenant_id=settings.fabric_tenant_id,
            client_id=settings.fabric_client_id,
            client_secret=settings.fabric_client_secret,
            scope=FABRIC_TOKEN_SCOPE,
            service="Fabric API",
        )
        return cls(settings.mcp_server_url, provider, http_client, default_tool=settings.mcp_default_tool)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def tools(self) -> list[MCPTool]:
        return list(self._tools)

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _token_is_fresh(self) -> bool:
        if self._access_token is None:
            return False
        return self._access_token.expires_on - time.time() > TOKEN_REFRESH_MARGIN_SECONDS

    async def _bearer(self) -> str:
        if not self._token_is_fresh():
            self._access_token = await self._token_provider.get_token()
            logger.debug("Fabric access token acquired")
        assert self._access_token is not None
        return self._access_token.token

    async def _request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Send one JSON-RPC call and return its unwrapped result."""
        token = await self._bearer()
        request = JsonRpcRequest(id=self._next_id(), method=method, params=params or {})
        logger.debug(f"MCP Request [{request.id}]: {method}")

        response = await self._http.post(
            self.server_url,
            json=request.model_dump(),
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Accept": MCP_ACCEPT_HEADER,
            },
        )

        if not response.is_success:
            logger.error(f"MCP server error ({response.status_code}): {response.text[:500]}")
            raise RemoteServiceError(SERVICE_NAME, response.status_code, response.text)

        logger.debug(f"MCP Response [{request.id}] raw: {response.text[:1000]}")
        return unwrap_rpc_result(decode_rpc_body(response.text))

    async def connect(self) -> None:
        """Acquire the service token and mark the session connected. No-op when connected."""
        if self._connected:
            return

        logger.info("Connecting to MCP server...")
        await self._bearer()
        self._connected = True

    async def list_tools(self) -> list[MCPTool]:
        """Discover tools via ``tools/list`` and cache them for the session.

        A result without a ``tools`` array yields an empty list.
        """
        if not self._connected:
            await self.connect()

        result = await self._request("tools/list", {})
        raw_tools = result.get("tools") if isinstance(result, dict) else None
        self._tools = [MCPTool.model_validate(t) for t in raw_tools or [] if isinstance(t, dict)]
        logger.info(f"Discovered {len(self._tools)} MCP tools: {[t.name for t in self._tools]}")
        return self.tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        if not self._connected:
            await self.connect()

        logger.info(f'Calling tool "{name}"')
        return await self._request("tools/call", {"name": name, "arguments": arguments})

    async def send_message(self, message: str) -> str:
        """Ask the agent a question through its first advertised tool.

        Falls back to the default tool name when discovery fails or finds
        nothing. When the tool call itself fails, one plain ``message`` RPC is
        attempted; if that fails too the tool call's error is raised.
        """
        if not self._connected:
            await self.connect()

        if not self._tools:
            try:
                await self.list_tools()
            except (AppException, httpx.HTTPError) as exc:
                logger.warning(f"Failed to list tools, will try direct call: {exc}")

        tool_name = self._tools[0].name if self._tools else self.default_tool

        try:
            result = await self.call_tool(tool_name, {TOOL_QUESTION_ARGUMENT: message})
        except (AppException, httpx.HTTPError) as exc:
            logger.error(f"Tool call failed: {exc}")
            try:
                result = await self._request(FALLBACK_RPC_METHOD, {FALLBACK_RPC_ARGUMENT: message})
            except (AppException, httpx.HTTPError) as fallback_exc:
                logger.warning(f"Fallback message call failed: {fallback_exc}")
                raise exc

        return extract_reply_text(result)

    async def converse(self, message: str, thread_id: str | None = None) -> BackendReply:
        # The tool backend is stateless; the caller's thread id is echoed back.
        content = await self.send_message(message)
        return BackendReply(content=content, thread_id=thread_id)

    async def close(self) -> None:
        """Reset the session to its initial state. Safe to call repeatedly."""
        self._connected = False
        self._tools = []
        self._access_token = None
        logger.info("MCP session closed")

    async def aclose(self) -> None:
        """Reset the session and release the credential (app shutdown)."""
        await self.close()
        await self._token_provider.close()
