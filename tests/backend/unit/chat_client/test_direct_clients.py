from __future__ import annotations

from collections.abc import Callable
from unittest.mock import MagicMock

import httpx
import pytest

from chat_client.direct_clients import FabricAgentApiClient, FunctionsApiClient
from core.constants import Settings
from models.api_models import ClientChatRequest


class TestFunctionsApiClient:
    @pytest.mark.asyncio
    async def test_returns_backend_envelope(
        self, mock_http_client: MagicMock, json_response: Callable[..., httpx.Response]
    ) -> None:
        mock_http_client.post.return_value = json_response(
            {"success": True, "message": "Done", "threadId": "t-9", "data": {"rows": 3}}
        )
        client = FunctionsApiClient("https://func.test/api/chat", mock_http_client)

        reply = await client.send_message(ClientChatRequest(message="hi", threadId="t-9", backendMode="functions"))

        assert reply.success is True
        assert reply.message == "Done"
        assert reply.thread_id == "t-9"
        assert reply.data == {"rows": 3}
        assert mock_http_client.post.call_args.kwargs["json"] == {"message": "hi", "threadId": "t-9"}

    @pytest.mark.asyncio
    async def test_http_failure(self, mock_http_client: MagicMock, json_response: Callable[..., httpx.Response]) -> None:
        mock_http_client.post.return_value = json_response({}, 503)

        reply = await FunctionsApiClient("https://func.test", mock_http_client).send_message(
            ClientChatRequest(message="hi")
        )

        assert reply.success is False
        assert reply.message == "Failed to communicate with Azure Functions backend"
        assert reply.error == "HTTP error! status: 503"

    @pytest.mark.asyncio
    async def test_unconfigured(self, mock_http_client: MagicMock) -> None:
        reply = await FunctionsApiClient(None, mock_http_client).send_message(ClientChatRequest(message="hi"))

        assert reply.success is False
        assert "FUNCTIONS_API_URL" in (reply.error or "")
        mock_http_client.post.assert_not_called()


class TestFabricAgentApiClient:
    @pytest.mark.asyncio
    async def test_keyed_request(self, mock_http_client: MagicMock, json_response: Callable[..., httpx.Response]) -> None:
        mock_http_client.post.return_value = json_response({"data": [{"region": "West"}]})
        client = FabricAgentApiClient("https://fabric.test/agent", mock_http_client, api_key="k-1")

        reply = await client.send_message(ClientChatRequest(message="sales", sessionId="s-1"))

        assert reply.success is True
        assert reply.data == [{"region": "West"}]
        assert reply.message == "Query executed successfully"
        call = mock_http_client.post.call_args
        assert call.kwargs["json"] == {"message": "sales", "sessionId": "s-1"}
        assert call.kwargs["headers"]["Authorization"] == "Bearer k-1"

    @pytest.mark.asyncio
    async def test_without_key_sends_no_authorization(
        self, mock_http_client: MagicMock, json_response: Callable[..., httpx.Response]
    ) -> None:
        mock_http_client.post.return_value = json_response({"message": "Answered"})

        reply = await FabricAgentApiClient("https://fabric.test/agent", mock_http_client).send_message(
            ClientChatRequest(message="q")
        )

        assert reply.message == "Answered"
        assert "Authorization" not in mock_http_client.post.call_args.kwargs["headers"]

    @pytest.mark.asyncio
    async def test_transport_failure(self, mock_http_client: MagicMock) -> None:
        mock_http_client.post.side_effect = httpx.ReadTimeout("timed out")

        reply = await FabricAgentApiClient("https://fabric.test/agent", mock_http_client).send_message(
            ClientChatRequest(message="q")
        )

        assert reply.success is False
        assert reply.message == "Failed to communicate with Fabric Agent API"
        assert reply.error == "timed out"

    @pytest.mark.asyncio
    async def test_non_object_payload(
        self, mock_http_client: MagicMock, json_response: Callable[..., httpx.Response]
    ) -> None:
        mock_http_client.post.return_value = json_response(["unexpected"])

        reply = await FabricAgentApiClient("https://fabric.test/agent", mock_http_client).send_message(
            ClientChatRequest(message="q")
        )

        assert reply.success is False


def test_from_settings(mock_http_client: MagicMock) -> None:
    settings = Settings(
        functions_api_url="https://func.test/api/chat",
        fabric_agent_api_url="https://fabric.test/agent",
        fabric_agent_api_key="k-2",
    )

    assert FunctionsApiClient.from_settings(settings, mock_http_client).api_url == "https://func.test/api/chat"
    fabric = FabricAgentApiClient.from_settings(settings, mock_http_client)
    assert fabric.api_url == "https://fabric.test/agent"
    assert fabric.api_key == "k-2"
