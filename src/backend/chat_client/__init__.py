"""
Chat Client - UI-facing half of the relay.

Usage:
    service = ChatService.from_settings()
    reply = await service.send_message(ClientChatRequest(message="Top products?"))
"""

from chat_client.direct_clients import FabricAgentApiClient, FunctionsApiClient
from chat_client.relay_client import RelayApiClient
from chat_client.service import ChatService

__all__ = ["ChatService", "FabricAgentApiClient", "FunctionsApiClient", "RelayApiClient"]
