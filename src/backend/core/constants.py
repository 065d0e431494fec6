"""
Constants and configuration for the agent chat relay.
Every tunable number lives here; deployment values come from ``Settings``.
"""

from __future__ import annotations

import os
import threading

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import (
    DotEnvSettingsSource,
    PydanticBaseSettingsSource,
)

# ============================================================================
# Project Paths
# ============================================================================

#: Project root directory (parent of src/)
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent

# ============================================================================
# Logging Configuration
# ============================================================================

#: Maximum size in bytes for log files before rotation (10MB).
LOG_MAX_SIZE = 10 * 1024 * 1024

#: Number of conversation log backups to retain during rotation.
LOG_BACKUP_COUNT_CONVERSATIONS = 5

#: Number of error log backups to retain during rotation.
LOG_BACKUP_COUNT_ERRORS = 3

#: Maximum characters to show in log previews for user input/response.
LOG_PREVIEW_LENGTH = 50

#: Length of the per-process logger instance id (hex characters).
INSTANCE_ID_LENGTH = 8

# ============================================================================
# Agent Run Backend (Azure AI Foundry threads API)
# ============================================================================

#: Token audience for Azure AI Foundry project endpoints.
FOUNDRY_TOKEN_AUDIENCE = "https://ai.azure.com"

#: Scope requested for every Foundry token.
FOUNDRY_TOKEN_SCOPE = f"{FOUNDRY_TOKEN_AUDIENCE}/.default"

#: Default ``api-version`` query parameter sent with every Foundry call.
FOUNDRY_API_VERSION = "2025-05-01"

#: Seconds between two run status polls. Constant, no backoff.
DEFAULT_RUN_POLL_INTERVAL = 1.0

#: Poll attempts before a run is declared timed out (~3 minutes at 1s).
DEFAULT_RUN_MAX_ATTEMPTS = 180

# ============================================================================
# Tool Invocation Backend (Fabric Data Agent over JSON-RPC)
# ============================================================================

#: Scope requested for the Fabric service principal token.
FABRIC_TOKEN_SCOPE = "https://api.fabric.microsoft.com/.default"

#: JSON-RPC protocol version stamped on every envelope.
JSONRPC_VERSION = "2.0"

#: Accept header for the tool endpoint; it may answer with JSON or SSE.
MCP_ACCEPT_HEADER = "application/json, text/event-stream"

#: Tool name used when discovery returns no tools.
DEFAULT_TOOL_NAME = "query"

#: Argument key the Fabric Data Agent tool expects the question under.
TOOL_QUESTION_ARGUMENT = "userQuestion"

#: RPC method tried once when the primary tool call fails.
FALLBACK_RPC_METHOD = "message"

#: Argument key used by the fallback RPC method.
FALLBACK_RPC_ARGUMENT = "content"

#: Re-acquire the service token when it expires within this many seconds.
TOKEN_REFRESH_MARGIN_SECONDS = 300

# ============================================================================
# Chat Envelope Messages
# ============================================================================

#: Validation message for an empty chat request.
MESSAGE_REQUIRED = "Message is required"

#: Success message per backend kind.
AGENT_RUN_SUCCESS_MESSAGE = "Response received from Azure AI Foundry agent"
TOOL_INVOCATION_SUCCESS_MESSAGE = "Response received from Fabric Data Agent"

#: Generic failure description per backend kind.
AGENT_RUN_FAILURE_MESSAGE = "Failed to process chat request via Azure AI Foundry"
TOOL_INVOCATION_FAILURE_MESSAGE = "Failed to process chat request via MCP"

# ============================================================================
# Client-side Response Cache
# ============================================================================

#: Time-to-live of a cached reply in seconds (30 minutes).
RESPONSE_CACHE_TTL_SECONDS = 30 * 60

#: Maximum number of cached replies.
RESPONSE_CACHE_MAX_SIZE = 100

#: Note appended to a reply served from the cache.
CACHED_RESPONSE_NOTE = "\n\n---\n*⚡ Cached response*"

# ============================================================================
# Settings
# ============================================================================

Environment = Literal["development", "production", "test"]
BackendKind = Literal["agent_run", "tool_invocation"]

_ENVIRONMENTS: tuple[str, ...] = ("development", "production", "test")
_BACKEND_KINDS: tuple[str, ...] = ("agent_run", "tool_invocation")

#: Directory searched for .env files (the import root)
_BACKEND_DIR = Path(__file__).parent.parent


def _get_env_files() -> list[Path]:
    """Existing dotenv files for the current ``APP_ENV``, lowest priority first.

    ``.env`` < ``.env.{APP_ENV}`` < ``.env.local``; pydantic-settings lets the
    last file win. An unknown ``APP_ENV`` reads the development overrides.
    """
    env_name = os.getenv("APP_ENV", "development").lower()
    if env_name not in _ENVIRONMENTS:
        env_name = "development"
    names = (".env", f".env.{env_name}", ".env.local")
    return [path for path in (_BACKEND_DIR / name for name in names) if path.exists()]


def _choice(value: str, allowed: tuple[str, ...], setting: str) -> str:
    normalized = value.strip().lower().replace("-", "_")
    if normalized not in allowed:
        raise ValueError(f"{setting} must be one of {', '.join(allowed)}, got '{value}'")
    return normalized


class Settings(BaseSettings):
    """Relay configuration.

    Precedence: constructor arguments, then environment variables, then the
    dotenv chain from ``_get_env_files``. Backend credentials are optional
    here; each client checks what it needs when it is built and raises
    ``ConfigurationError`` naming the missing keys.
    """

    app_env: Environment = Field(default="development", description="Application environment")
    app_version: str = Field(default="1.0.0", description="Reported by /health")

    debug: bool = Field(default=False, description="Debug console logging and debug error payloads")
    http_request_logging: bool = Field(default=False, description="Log outbound HTTP requests/responses")
    enable_content_logging: bool = Field(
        default=False, description="Include redacted message previews in conversation logs"
    )

    api_host: str = Field(default="0.0.0.0", description="Uvicorn bind host")
    api_port: int = Field(default=3000, description="Uvicorn bind port")
    api_prefix: str = Field(default="/api", description="Base path for all routes")
    cors_allow_origins: str = Field(default="*", description="Comma separated CORS origins")

    chat_backend: BackendKind = Field(
        default="tool_invocation", description="Server-side backend: 'agent_run' or 'tool_invocation'"
    )

    # Agent run backend
    foundry_endpoint: str | None = Field(default=None, description="Azure AI Foundry endpoint URL")
    foundry_project_id: str | None = Field(default=None, description="Azure AI Foundry project identifier")
    foundry_agent_id: str | None = Field(default=None, description="Agent (assistant) identifier")
    foundry_api_version: str = Field(default=FOUNDRY_API_VERSION, description="Foundry api-version parameter")
    use_managed_identity: bool = Field(
        default=False, description="Use the ambient identity instead of the on-behalf-of exchange"
    )
    azure_tenant_id: str | None = Field(default=None, description="Tenant for on-behalf-of exchange")
    azure_client_id: str | None = Field(default=None, description="Client id for on-behalf-of exchange")
    azure_client_secret: str | None = Field(default=None, description="Client secret for on-behalf-of exchange")
    run_poll_interval: float = Field(default=DEFAULT_RUN_POLL_INTERVAL, description="Seconds between run polls")
    run_max_attempts: int = Field(default=DEFAULT_RUN_MAX_ATTEMPTS, description="Run polls before timing out")

    # Tool invocation backend
    mcp_server_url: str | None = Field(default=None, description="Fabric Data Agent MCP endpoint")
    fabric_tenant_id: str | None = Field(default=None, description="Fabric service principal tenant")
    fabric_client_id: str | None = Field(default=None, description="Fabric service principal client id")
    fabric_client_secret: str | None = Field(default=None, description="Fabric service principal secret")
    mcp_default_tool: str = Field(default=DEFAULT_TOOL_NAME, description="Tool used when discovery is empty")

    http_timeout: float = Field(default=60.0, description="Outbound read timeout (seconds)")

    # Client-side chat service
    relay_api_url: str | None = Field(default="http://localhost:3000/api", description="Base URL of the relay API")
    functions_api_url: str | None = Field(
        default="http://localhost:7071/api/chat", description="Functions backend chat URL"
    )
    fabric_agent_api_url: str | None = Field(default=None, description="Direct Fabric agent API URL")
    fabric_agent_api_key: str | None = Field(default=None, description="Direct Fabric agent API key")
    response_cache_enabled: bool = Field(default=True, description="Enable the client response cache")
    response_cache_ttl_seconds: float = Field(default=RESPONSE_CACHE_TTL_SECONDS, description="Cache TTL (seconds)")
    response_cache_max_size: int = Field(default=RESPONSE_CACHE_MAX_SIZE, description="Cache capacity")

    # Re-read settings on every get_settings() call; development only
    config_hot_reload: bool = Field(default=False, description="Re-read configuration on every access")

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore", env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # The dotenv chain depends on APP_ENV at construction time, not import time
        dotenv_chain = DotEnvSettingsSource(settings_cls, env_file=_get_env_files(), env_file_encoding="utf-8")
        return (init_settings, env_settings, dotenv_chain)

    @field_validator("app_env", mode="before")
    @classmethod
    def validate_app_env(cls, v: str | None) -> str:
        return "development" if v is None else _choice(str(v), _ENVIRONMENTS, "app_env")

    @field_validator("chat_backend", mode="before")
    @classmethod
    def validate_chat_backend(cls, v: str | None) -> str:
        """Accept any case and dashes, e.g. ``Agent-Run``."""
        return "tool_invocation" if v is None else _choice(str(v), _BACKEND_KINDS, "chat_backend")

    @field_validator(
        "foundry_endpoint", "mcp_server_url", "relay_api_url", "functions_api_url", "fabric_agent_api_url"
    )
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """URLs are stored without a trailing slash; a blank URL counts as unset."""
        if v is None:
            return None
        return v.strip().rstrip("/") or None

    @field_validator("run_poll_interval", "http_timeout", "response_cache_ttl_seconds")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("value must not be negative")
        return v

    @field_validator("run_max_attempts", "response_cache_max_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


# ============================================================================
# Settings Access
# ============================================================================


class _SettingsManager:
    """Process-wide ``Settings`` holder.

    Loads once and serves the cached instance, unless the loaded instance
    has ``config_hot_reload`` set, in which case every access re-reads.
    """

    __slots__ = ("_cached", "_lock")

    def __init__(self) -> None:
        self._cached: Settings | None = None
        self._lock = threading.Lock()

    def _usable(self) -> Settings | None:
        cached = self._cached
        return cached if cached is not None and not cached.config_hot_reload else None

    def get(self) -> Settings:
        if (cached := self._usable()) is not None:
            return cached
        with self._lock:
            # Another thread may have loaded while we waited
            if (cached := self._usable()) is not None:
                return cached
            self._cached = Settings()
            return self._cached

    def reload(self) -> Settings:
        with self._lock:
            self._cached = Settings()
            return self._cached

    def clear(self) -> None:
        with self._lock:
            self._cached = None


_settings_manager = _SettingsManager()


def get_settings() -> Settings:
    """Current settings.

    Raises:
        pydantic.ValidationError: a configured value is invalid
    """
    return _settings_manager.get()


def reload_settings() -> Settings:
    """Re-read environment and dotenv files unconditionally."""
    return _settings_manager.reload()


def clear_settings_cache() -> None:
    """Drop the cached instance; the next access loads afresh (used by tests)."""
    _settings_manager.clear()
