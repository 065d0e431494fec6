"""
Bearer token acquisition for the outbound backends.

Three strategies, all backed by azure-identity async credentials:

- ambient: ``DefaultAzureCredential`` (managed identity, az login, env vars)
- on-behalf-of: exchange the caller's bearer token for a service token
- client secret: a service principal with its own secret (tool backend)

Every failure to obtain a token surfaces as ``AuthenticationError``.
"""

from __future__ import annotations

from typing import Protocol

from azure.core.credentials import AccessToken
from azure.core.credentials_async import AsyncTokenCredential
from azure.core.exceptions import AzureError
from azure.identity.aio import ClientSecretCredential, DefaultAzureCredential, OnBehalfOfCredential

from api.middleware.exception_handlers import AuthenticationError, ConfigurationError
from models.error_models import ErrorCode
from utils.logger import logger


class TokenProvider(Protocol):
    """Anything that can hand out bearer tokens for one scope."""

    async def get_token(self) -> AccessToken: ...

    async def close(self) -> None: ...


class AzureTokenProvider:
    """Adapts an azure-identity async credential to a single-scope provider."""

    def __init__(self, credential: AsyncTokenCredential, scope: str, service: str) -> None:
        self._credential = credential
        self._scope = scope
        self.service = service

    async def get_token(self) -> AccessToken:
        try:
            return await self._credential.get_token(self._scope)
        except (AzureError, ValueError) as exc:
            logger.error(f"Failed to get {self.service} token: {exc}")
            raise AuthenticationError(
                message=f"Authentication failed with {self.service}",
                code=ErrorCode.AUTH_TOKEN_ACQUISITION_FAILED,
                cause=exc,
            ) from exc

    async def close(self) -> None:
        await self._credential.close()


def require(values: dict[str, str | None], purpose: str) -> None:
    """Raise ``ConfigurationError`` listing every empty setting.

    Args:
        values: env-style setting names mapped to their configured values
        purpose: what the settings are needed for, used in the message
    """
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ConfigurationError(
            f"{purpose} configuration is incomplete: {', '.join(missing)} required",
            missing=missing,
        )


def ambient_token_provider(scope: str, service: str) -> AzureTokenProvider:
    """Token provider using whatever identity the process runs under."""
    return AzureTokenProvider(DefaultAzureCredential(), scope, service)


def on_behalf_of_token_provider(
    *,
    tenant_id: str,
    client_id: str,
    client_secret: str,
    user_assertion: str,
    scope: str,
    service: str,
) -> AzureTokenProvider:
    """Token provider exchanging the caller's token for a downstream one."""
    if not user_assertion:
        raise AuthenticationError(
            message="A user token is required for the on-behalf-of exchange",
            code=ErrorCode.AUTH_REQUIRED,
        )
    credential = OnBehalfOfCredential(
        tenant_id,
        client_id,
        client_secret=client_secret,
        user_assertion=user_assertion,
    )
    return AzureTokenProvider(credential, scope, service)


def client_secret_token_provider(
    *,
    tenant_id: str,
    client_id: str,
    client_secret: str,
    scope: str,
    service: str,
) -> AzureTokenProvider:
    """Token provider for a service principal with its own secret."""
    return AzureTokenProvider(ClientSecretCredential(tenant_id, client_id, client_secret), scope, service)
