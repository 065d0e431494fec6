"""
Clients that bypass the relay and call an agent backend directly.

- FunctionsApiClient: a functions app that already answers in the client envelope
- FabricAgentApiClient: the Fabric agent API, optionally keyed
"""

from __future__ import annotations

import httpx

from core.constants import Settings
from models.api_models import ClientChatRequest, ClientChatResponse
from utils.logger import logger


class FunctionsApiClient:
    """Posts the request as-is and returns the backend's envelope."""

    def __init__(self, api_url: str | None, http_client: httpx.AsyncClient) -> None:
        self.api_url = api_url
        self._http = http_client

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient) -> FunctionsApiClient:
        return cls(settings.functions_api_url, http_client)

    async def send_message(self, request: ClientChatRequest) -> ClientChatResponse:
        if not self.api_url:
            return ClientChatResponse(
                success=False,
                message="Functions API URL is not configured",
                error="FUNCTIONS_API_URL setting is missing",
            )

        try:
            response = await self._http.post(
                self.api_url,
                json=request.model_dump(by_alias=True, exclude_none=True, exclude={"backend_mode"}),
            )
            if not response.is_success:
                raise ValueError(f"HTTP error! status: {response.status_code}")
            return ClientChatResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"Functions API error: {exc}")
            return ClientChatResponse(
                success=False,
                message="Failed to communicate with Azure Functions backend",
                error=str(exc),
            )


class FabricAgentApiClient:
    """Calls the Fabric agent API and maps its reply into the client envelope."""

    def __init__(self, api_url: str | None, http_client: httpx.AsyncClient, api_key: str | None = None) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self._http = http_client

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient) -> FabricAgentApiClient:
        return cls(settings.fabric_agent_api_url, http_client, api_key=settings.fabric_agent_api_key)

    async def send_message(self, request: ClientChatRequest) -> ClientChatResponse:
        if not self.api_url:
            return ClientChatResponse(
                success=False,
                message="Fabric Agent API URL is not configured",
                error="FABRIC_AGENT_API_URL setting is missing",
            )

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            response = await self._http.post(
                self.api_url,
                json={"message": request.message, "sessionId": request.session_id},
                headers=headers,
            )
            if not response.is_success:
                raise ValueError(f"HTTP error! status: {response.status_code}")
            payload = response.json()
            if not isinstance(payload, dict):
                raise ValueError("Unexpected Fabric Agent API payload")
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"Fabric Agent API error: {exc}")
            return ClientChatResponse(
                success=False,
                message="Failed to communicate with Fabric Agent API",
                error=str(exc),
            )

        return ClientChatResponse(
            success=True,
            data=payload.get("data"),
            message=payload.get("message") or "Query executed successfully",
        )
