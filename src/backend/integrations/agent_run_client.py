"""
Agent-run backend client (Azure AI Foundry threads API).

A chat turn is an asynchronous remote workflow:

    create thread (once) -> post message -> create run -> poll run -> read reply

``converse`` drives it end to end so the HTTP route can stay a plain
request/response call. Polling sleeps with ``asyncio.sleep`` so a waiting
request never blocks the event loop.
"""

from __future__ import annotations

import asyncio

from typing import Any

import httpx

from api.middleware.exception_handlers import (
    NoResponseError,
    ParseError,
    RemoteServiceError,
    RunTerminalError,
    RunTimeoutError,
)
from core.constants import (
    DEFAULT_RUN_MAX_ATTEMPTS,
    DEFAULT_RUN_POLL_INTERVAL,
    FOUNDRY_API_VERSION,
    FOUNDRY_TOKEN_SCOPE,
    Settings,
)
from integrations.chat_backend import BackendReply
from integrations.credentials import (
    TokenProvider,
    ambient_token_provider,
    on_behalf_of_token_provider,
    require,
)
from models.agent_models import AgentMessage, AgentRun, AgentThread, parse_message_list
from utils.logger import logger

SERVICE_NAME = "Azure AI Foundry"


def select_latest_message(messages: list[AgentMessage]) -> AgentMessage:
    """Pick the most recent message.

    Uses ``created_at`` when every candidate carries one, otherwise falls back
    to the greatest identifier. The fallback assumes identifiers sort in
    creation order, which holds for the ids the service issues today.
    """
    if all(m.created_at is not None for m in messages):
        return max(messages, key=lambda m: (m.created_at, m.id))
    return max(messages, key=lambda m: m.id)


class AgentRunClient:
    """Thread/run client bound to one agent and one token provider.

    One instance serves one inbound request; ``close()`` releases the
    credential. The httpx client is shared and owned by the caller.
    """

    kind = "agent_run"

    def __init__(
        self,
        *,
        endpoint: str | None,
        project_id: str | None,
        agent_id: str | None,
        token_provider: TokenProvider,
        http_client: httpx.AsyncClient,
        api_version: str = FOUNDRY_API_VERSION,
        poll_interval: float = DEFAULT_RUN_POLL_INTERVAL,
        max_attempts: int = DEFAULT_RUN_MAX_ATTEMPTS,
    ) -> None:
        require(
            {
                "FOUNDRY_ENDPOINT": endpoint,
                "FOUNDRY_PROJECT_ID": project_id,
                "FOUNDRY_AGENT_ID": agent_id,
            },
            SERVICE_NAME,
        )
        assert endpoint is not None and agent_id is not None
        self.base_url = f"{endpoint.rstrip('/')}/api/projects/{project_id}"
        self.agent_id = agent_id
        self.api_version = api_version
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._token_provider = token_provider
        self._http = http_client
        logger.debug(f"AgentRunClient initialized with baseUrl: {self.base_url}")

    async def __aenter__(self) -> AgentRunClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._token_provider.close()

    async def _request(self, method: str, path: str, body: dict[str, Any] | None = None) -> dict[str, Any]:
        """Authenticated call against the project; non-2xx raises ``RemoteServiceError``."""
        token = await self._token_provider.get_token()
        url = f"{self.base_url}{path}"
        logger.debug(f"Making {method} request to: {url}")

        response = await self._http.request(
            method,
            url,
            params={"api-version": self.api_version},
            headers={
                "Authorization": f"Bearer {token.token}",
                "Content-Type": "application/json",
            },
            json=body,
        )

        if not response.is_success:
            logger.error(f"{SERVICE_NAME} API error: {response.status_code} - {response.text}")
            raise RemoteServiceError(SERVICE_NAME, response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ParseError(
                f"Invalid JSON from {SERVICE_NAME}: {response.text[:200]}", raw=response.text, cause=exc
            ) from exc
        if not isinstance(payload, dict):
            raise ParseError(f"Unexpected {SERVICE_NAME} payload: {response.text[:200]}", raw=response.text)
        return payload

    async def create_thread(self) -> str:
        """Create an empty conversation thread and return its id."""
        thread = AgentThread.model_validate(await self._request("POST", "/threads", {}))
        logger.info(f"Created thread {thread.id}", thread_id=thread.id)
        return thread.id

    async def post_message(self, thread_id: str, content: str) -> None:
        """Append a user message to the thread."""
        await self._request("POST", f"/threads/{thread_id}/messages", {"role": "user", "content": content})

    async def create_run(self, thread_id: str) -> str:
        """Start the agent against the thread's messages and return the run id."""
        payload = await self._request("POST", f"/threads/{thread_id}/runs", {"assistant_id": self.agent_id})
        return AgentRun.model_validate(payload).id

    async def get_run(self, thread_id: str, run_id: str) -> AgentRun:
        return AgentRun.model_validate(await self._request("GET", f"/threads/{thread_id}/runs/{run_id}"))

    async def wait_for_completion(self, thread_id: str, run_id: str, max_attempts: int | None = None) -> AgentRun:
        """Poll the run on a fixed interval until it reaches a terminal status.

        Raises:
            RunTerminalError: run ended ``failed``, ``cancelled`` or ``expired``
            RunTimeoutError: ``max_attempts`` polls without a terminal status
        """
        attempts = max_attempts if max_attempts is not None else self.max_attempts
        last_status: str | None = None

        for attempt in range(1, attempts + 1):
            run = await self.get_run(thread_id, run_id)
            last_status = run.status
            logger.debug(f"Run status (attempt {attempt}/{attempts}): {run.status}", run_id=run_id)

            if run.is_completed:
                return run

            if run.is_terminal_failure:
                last_error = run.last_error.message if run.last_error else None
                logger.warning(f"Run {run_id} ended with status {run.status}", run_id=run_id)
                raise RunTerminalError(run.status, run_id, last_error)

            if attempt < attempts:
                await asyncio.sleep(self.poll_interval)

        raise RunTimeoutError(run_id, attempts, last_status)

    async def get_latest_message(self, thread_id: str) -> str:
        """Text of the most recent assistant message, fragments joined by newline.

        Raises:
            NoResponseError: no assistant message, or one without text
        """
        messages = parse_message_list(await self._request("GET", f"/threads/{thread_id}/messages"))
        assistant_messages = [m for m in messages if m.role == "assistant"]
        if not assistant_messages:
            raise NoResponseError(thread_id)

        latest = select_latest_message(assistant_messages)
        fragments = latest.text_fragments()
        if not fragments:
            raise NoResponseError(thread_id, f"Assistant message {latest.id} has no text content")
        return "\n".join(fragments)

    async def converse(self, message: str, thread_id: str | None = None) -> BackendReply:
        """Run one full turn, creating the thread when the caller has none."""
        if not thread_id:
            thread_id = await self.create_thread()

        await self.post_message(thread_id, message)
        run_id = await self.create_run(thread_id)
        await self.wait_for_completion(thread_id, run_id)
        content = await self.get_latest_message(thread_id)
        return BackendReply(content=content, thread_id=thread_id, run_id=run_id)


class AgentRunClientFactory:
    """Builds a per-request ``AgentRunClient`` with the right credential.

    Foundry settings are checked on construction so a misconfigured
    deployment fails at startup. On-behalf-of settings are checked when an
    authenticated request asks for a delegated client.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient) -> None:
        require(
            {
                "FOUNDRY_ENDPOINT": settings.foundry_endpoint,
                "FOUNDRY_PROJECT_ID": settings.foundry_project_id,
                "FOUNDRY_AGENT_ID": settings.foundry_agent_id,
            },
            SERVICE_NAME,
        )
        self._settings = settings
        self._http = http_client
        logger.info(
            f"Agent run backend - endpoint: {settings.foundry_endpoint}, "
            f"project: {settings.foundry_project_id}, agent: {settings.foundry_agent_id}"
        )
        if not settings.use_managed_identity and not self._delegation_configured():
            logger.warning("On-behalf-of credentials not configured; authenticated chat requests will be rejected")

    def _delegation_configured(self) -> bool:
        s = self._settings
        return bool(s.azure_tenant_id and s.azure_client_id and s.azure_client_secret)

    def _build(self, token_provider: TokenProvider) -> AgentRunClient:
        s = self._settings
        return AgentRunClient(
            endpoint=s.foundry_endpoint,
            project_id=s.foundry_project_id,
            agent_id=s.foundry_agent_id,
            token_provider=token_provider,
            http_client=self._http,
            api_version=s.foundry_api_version,
            poll_interval=s.run_poll_interval,
            max_attempts=s.run_max_attempts,
        )

    def for_user(self, user_token: str) -> AgentRunClient:
        """Client acting for the caller (delegated, or ambient with managed identity)."""
        s = self._settings
        if s.use_managed_identity:
            return self._build(ambient_token_provider(FOUNDRY_TOKEN_SCOPE, SERVICE_NAME))

        require(
            {
                "AZURE_TENANT_ID": s.azure_tenant_id,
                "AZURE_CLIENT_ID": s.azure_client_id,
                "AZURE_CLIENT_SECRET": s.azure_client_secret,
            },
            "On-behalf-of credential",
        )
        assert s.azure_tenant_id and s.azure_client_id and s.azure_client_secret
        provider = on_behalf_of_token_provider(
            tenant_id=s.azure_tenant_id,
            client_id=s.azure_client_id,
            client_secret=s.azure_client_secret,
            user_assertion=user_token,
            scope=FOUNDRY_TOKEN_SCOPE,
            service=SERVICE_NAME,
        )
        return self._build(provider)

    def for_demo(self) -> AgentRunClient:
        """Client using the ambient identity, for unauthenticated requests."""
        return self._build(ambient_token_provider(FOUNDRY_TOKEN_SCOPE, SERVICE_NAME))

    def create(self, user_token: str | None) -> AgentRunClient:
        return self.for_user(user_token) if user_token else self.for_demo()
