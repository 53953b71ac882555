"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class ExternalHTTPSettings:
    """
    Shared HTTP behavior settings for external connectors.
    """

    timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    rate_limit_per_second: float = 5.0


@dataclass(frozen=True)
class NangoSettings:
    """
    Integration broker settings.
    """

    secret_key: str | None = None
    base_url: str = "https://api.nango.dev"


@dataclass(frozen=True)
class WorkOSSettings:
    """
    Identity provider settings used for workspace resolution.
    """

    api_key: str | None = None
    base_url: str = "https://api.workos.com"
    directory_id: str | None = None
    directory_cache_seconds: int = 300


@dataclass(frozen=True)
class LLMSettings:
    adapter: str = "openai"
    api_key: str | None = None
    base_url: str = "https://openrouter.ai/api/v1"
    model: str = "anthropic/claude-sonnet-4"
    max_tokens: int = 4000


@dataclass(frozen=True)
class AuthSettings:
    """
    Bearer token verification settings.

    When jwks_url is set tokens are verified with RS256 against it;
    otherwise jwt_secret (HS256) is used.
    """

    jwks_url: str | None = None
    jwt_secret: str | None = None
    audience: str | None = None
    issuer: str | None = None


@dataclass(frozen=True)
class SandboxSettings:
    timeout_ms: int = 5000
    memory_limit_mb: int = 8


@dataclass(frozen=True)
class SchedulerSettings:
    """
    Periodic polling settings.
    """

    enabled: bool = False
    poll_interval_minutes: int = 15
    poll_batch_size: int = 50
    cron_secret: str | None = None


@dataclass(frozen=True)
class LinearSettings:
    api_key: str | None = None
    team_id: str | None = None
    api_url: str = "https://api.linear.app/graphql"


@lru_cache(maxsize=1)
def get_external_http_settings() -> ExternalHTTPSettings:
    """
    Return shared connector HTTP settings from environment variables.
    """

    return ExternalHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_TIMEOUT_SECONDS", 15.0)),
        max_retries=max(0, _get_int_env("EXTERNAL_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EXTERNAL_HTTP_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MULTIPLIER", 2.0)),
        rate_limit_per_second=max(0.1, _get_float_env("EXTERNAL_HTTP_RATE_LIMIT_PER_SECOND", 5.0)),
    )


@lru_cache(maxsize=1)
def get_nango_settings() -> NangoSettings:
    """
    Return Nango settings from environment variables.
    """

    return NangoSettings(
        secret_key=_get_optional_str_env("NANGO_SECRET_KEY"),
        base_url=_get_str_env("NANGO_HOST", "https://api.nango.dev").rstrip("/"),
    )


@lru_cache(maxsize=1)
def get_workos_settings() -> WorkOSSettings:
    """
    Return WorkOS settings from environment variables.
    """

    return WorkOSSettings(
        api_key=_get_optional_str_env("WORKOS_API_KEY"),
        base_url=_get_str_env("WORKOS_API_URL", "https://api.workos.com").rstrip("/"),
        directory_id=_get_optional_str_env("WORKOS_DIR_ID"),
        directory_cache_seconds=max(0, _get_int_env("WORKOS_DIRECTORY_CACHE_SECONDS", 300)),
    )


@lru_cache(maxsize=1)
def get_llm_settings() -> LLMSettings:
    """
    Return code-generation LLM settings from environment variables.
    """

    return LLMSettings(
        adapter=_get_str_env("LLM_ADAPTER", "openai").lower(),
        api_key=_get_optional_str_env("OPENROUTER_API_KEY"),
        base_url=_get_str_env("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"),
        model=_get_str_env("LLM_MODEL", "anthropic/claude-sonnet-4"),
        max_tokens=max(256, _get_int_env("LLM_MAX_TOKENS", 4000)),
    )


@lru_cache(maxsize=1)
def get_auth_settings() -> AuthSettings:
    return AuthSettings(
        jwks_url=_get_optional_str_env("AUTH_JWKS_URL"),
        jwt_secret=_get_optional_str_env("AUTH_JWT_SECRET"),
        audience=_get_optional_str_env("AUTH_JWT_AUDIENCE"),
        issuer=_get_optional_str_env("AUTH_JWT_ISSUER"),
    )


@lru_cache(maxsize=1)
def get_sandbox_settings() -> SandboxSettings:
    return SandboxSettings(
        timeout_ms=max(100, _get_int_env("SANDBOX_TIMEOUT_MS", 5000)),
        memory_limit_mb=max(1, _get_int_env("SANDBOX_MEMORY_LIMIT_MB", 8)),
    )


@lru_cache(maxsize=1)
def get_scheduler_settings() -> SchedulerSettings:
    """
    Return polling scheduler settings from environment variables.
    """

    return SchedulerSettings(
        enabled=_get_bool_env("ENABLE_CRON_JOBS", False),
        poll_interval_minutes=max(1, _get_int_env("POLL_INTERVAL_MINUTES", 15)),
        poll_batch_size=max(1, _get_int_env("POLL_BATCH_SIZE", 50)),
        cron_secret=_get_optional_str_env("CRON_SECRET"),
    )


@lru_cache(maxsize=1)
def get_linear_settings() -> LinearSettings:
    return LinearSettings(
        api_key=_get_optional_str_env("LINEAR_API_KEY"),
        team_id=_get_optional_str_env("LINEAR_TEAM_ID"),
        api_url=_get_str_env("LINEAR_API_URL", "https://api.linear.app/graphql"),
    )
