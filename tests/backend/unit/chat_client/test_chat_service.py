"""Tests for ChatService backend-mode dispatch."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from chat_client.service import ChatService
from core.constants import Settings
from models.api_models import ClientChatRequest, ClientChatResponse


def _client(label: str) -> MagicMock:
    client = MagicMock()
    client.send_message = AsyncMock(return_value=ClientChatResponse(success=True, message=label))
    return client


@pytest.fixture
def service() -> ChatService:
    return ChatService(relay=_client("relay"), functions=_client("functions"), fabric_agent=_client("fabric"))


class TestDispatch:
    @pytest.mark.asyncio
    async def test_default_mode_is_relay(self, service: ChatService) -> None:
        reply = await service.send_message(ClientChatRequest(message="hi"), access_token="jwt")

        assert service.get_mode() == "relay"
        assert reply.message == "relay"
        service.relay.send_message.assert_awaited_once()
        assert service.relay.send_message.call_args.kwargs == {"access_token": "jwt"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("mode", "label"), [("functions", "functions"), ("fabric-agent", "fabric")])
    async def test_set_mode(self, service: ChatService, mode: str, label: str) -> None:
        service.set_mode(mode)

        reply = await service.send_message(ClientChatRequest(message="hi"))

        assert service.get_mode() == mode
        assert reply.message == label
        service.relay.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_request_mode_overrides_active_mode(self, service: ChatService) -> None:
        service.set_mode("functions")

        reply = await service.send_message(ClientChatRequest(message="hi", backendMode="fabric-agent"))

        assert reply.message == "fabric"
        service.functions.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_mode(self, service: ChatService) -> None:
        service.set_mode("carrier-pigeon")

        reply = await service.send_message(ClientChatRequest(message="hi"))

        assert reply.success is False
        assert reply.message == "Invalid backend mode"
        assert reply.error == "Unknown backend mode: carrier-pigeon"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_from_settings_shares_one_http_client(self) -> None:
        http_client = MagicMock()
        http_client.aclose = AsyncMock()
        settings = Settings(relay_api_url="http://relay.test/api", http_request_logging=False)

        with patch("chat_client.service.create_http_client", return_value=http_client) as factory:
            service = ChatService.from_settings(settings, mode="functions")

        factory.assert_called_once_with(enable_logging=False, read_timeout=settings.http_timeout)
        assert service.get_mode() == "functions"
        assert service.relay.base_url == "http://relay.test/api"

        await service.aclose()
        http_client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_aclose_without_owned_client(self, service: ChatService) -> None:
        await service.aclose()
