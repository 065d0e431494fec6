from __future__ import annotations

import httpx

from chat_client.direct_clients import FabricAgentApiClient, FunctionsApiClient
from chat_client.relay_client import RelayApiClient
from core.constants import Settings, get_settings
from models.api_models import ClientChatRequest, ClientChatResponse
from utils.client_factory import create_http_client
from utils.logger import logger


class ChatService:
    """Single entry point a UI sends messages through.

    Exactly one backend mode is active at a time; a request may override it
    with its own ``backend_mode``. Unknown modes produce a failure reply.
    """

    def __init__(
        self,
        relay: RelayApiClient,
        functions: FunctionsApiClient,
        fabric_agent: FabricAgentApiClient,
        mode: str = "relay",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.relay = relay
        self.functions = functions
        self.fabric_agent = fabric_agent
        self._mode = mode
        # Owned client, closed by aclose(); None when the caller owns it
        self._http = http_client

    @classmethod
    def from_settings(cls, settings: Settings | None = None, mode: str = "relay") -> ChatService:
        """Build all three backends on one shared httpx client."""
        settings = settings or get_settings()
        http_client = create_http_client(
            enable_logging=settings.http_request_logging,
            read_timeout=settings.http_timeout,
        )
        return cls(
            relay=RelayApiClient.from_settings(settings, http_client),
            functions=FunctionsApiClient.from_settings(settings, http_client),
            fabric_agent=FabricAgentApiClient.from_settings(settings, http_client),
            mode=mode,
            http_client=http_client,
        )

    def set_mode(self, mode: str) -> None:
        self._mode = mode
        logger.info(f"Chat backend mode set to {mode}")

    def get_mode(self) -> str:
        return self._mode

    async def send_message(self, request: ClientChatRequest, access_token: str | None = None) -> ClientChatResponse:
        """Route one message to the request's mode, or the active one.

        Args:
            request: the UI's message
            access_token: bearer for the relay's authenticated route; other modes ignore it
        """
        mode = request.backend_mode or self._mode

        if mode == "relay":
            return await self.relay.send_message(request, access_token=access_token)
        if mode == "functions":
            return await self.functions.send_message(request)
        if mode == "fabric-agent":
            return await self.fabric_agent.send_message(request)

        return ClientChatResponse(
            success=False,
            message="Invalid backend mode",
            error=f"Unknown backend mode: {mode}",
        )

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
