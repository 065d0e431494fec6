from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.middleware.exception_handlers import AuthenticationError
from models.error_models import ErrorCode

bearer_scheme = HTTPBearer(auto_error=False)


async def require_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """Return the caller's raw bearer token.

    The token is not validated here; it is the user assertion for the
    on-behalf-of exchange, which rejects it if it is not genuine.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError(
            message="No Bearer token provided. Please authenticate with Azure AD.",
            code=ErrorCode.AUTH_REQUIRED,
        )

    token = credentials.credentials.strip()
    if not token:
        raise AuthenticationError(
            message="Invalid token format",
            code=ErrorCode.AUTH_INVALID_TOKEN,
        )
    return token


BearerToken = Annotated[str, Depends(require_bearer_token)]
