"""
Client for this relay's own chat routes, with a reply cache in front.

Unauthenticated calls go to ``/chat/demo``; passing an access token sends
the call to ``/chat`` with that token as bearer. Successful replies are
cached by question text, and a cache hit is returned without any request.
"""

from __future__ import annotations

from typing import Any

import httpx

from core.constants import CACHED_RESPONSE_NOTE, Settings
from models.api_models import ClientChatRequest, ClientChatResponse
from utils.cache import ResponseCache
from utils.logger import logger


class RelayApiClient:
    def __init__(
        self,
        base_url: str | None,
        http_client: httpx.AsyncClient,
        cache: ResponseCache | None = None,
        cache_enabled: bool = True,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.cache = cache if cache is not None else ResponseCache()
        self.cache_enabled = cache_enabled
        self._http = http_client

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient) -> RelayApiClient:
        cache = ResponseCache(
            max_size=settings.response_cache_max_size,
            ttl_seconds=settings.response_cache_ttl_seconds,
        )
        return cls(settings.relay_api_url, http_client, cache=cache, cache_enabled=settings.response_cache_enabled)

    async def clear_cache(self) -> None:
        await self.cache.clear()
        logger.info("Response cache cleared")

    def cache_stats(self) -> dict[str, Any]:
        return self.cache.stats()

    async def send_message(self, request: ClientChatRequest, access_token: str | None = None) -> ClientChatResponse:
        """Send one question; failures are returned, never raised."""
        if not self.base_url:
            return ClientChatResponse(
                success=False,
                message="Backend API URL is not configured",
                error="RELAY_API_URL setting is missing",
            )

        if self.cache_enabled:
            cached = await self.cache.get(request.message)
            if cached is not None:
                logger.debug(f"Cache hit for: {logger.preview(request.message)}")
                return cached.model_copy(update={"message": cached.message + CACHED_RESPONSE_NOTE, "cached": True})

        path = "/chat" if access_token else "/chat/demo"
        headers = {"Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        payload: Any = None
        try:
            response = await self._http.post(
                f"{self.base_url}{path}",
                json={"message": request.message, "threadId": request.thread_id},
                headers=headers,
            )
            error = None if response.is_success else self._error_text(response)
            payload = response.json() if error is None else None
        except (httpx.HTTPError, ValueError) as exc:
            error = str(exc)

        if error is not None or not isinstance(payload, dict):
            error = error or "Malformed response from backend API"
            logger.error(f"Backend API error: {error}")
            return ClientChatResponse(
                success=False,
                message="Failed to communicate with backend API",
                error=error,
            )

        if not payload.get("success"):
            return ClientChatResponse(
                success=False,
                message=payload.get("message") or "Request failed",
                error=payload.get("error"),
            )

        data = payload.get("data")
        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, str):
            logger.error("Backend API error: success envelope without text content")
            return ClientChatResponse(
                success=False,
                message="Failed to communicate with backend API",
                error="Malformed response from backend API",
            )

        thread_id = data.get("threadId")
        reply = ClientChatResponse(
            success=True, message=content, thread_id=thread_id if isinstance(thread_id, str) else None
        )

        if self.cache_enabled:
            await self.cache.set(request.message, reply)
            logger.debug(f"Cached response ({len(self.cache)} entries)")

        return reply

    @staticmethod
    def _error_text(response: httpx.Response) -> str:
        try:
            error = response.json().get("error")
        except (ValueError, AttributeError):
            error = None
        return str(error) if error else f"HTTP {response.status_code}: {response.reason_phrase}"
