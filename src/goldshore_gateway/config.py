"""
Runtime configuration for the Goldshore gateway.

Read once from the environment at startup and immutable during runtime.
The CORS allow-list is the only tunable that changes gateway behaviour;
the trust header names exist so a different perimeter can be fronted
without code changes.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping

from .cors import DEFAULT_ALLOW_HEADERS, parse_allowed_origins


__all__ = [
    "GatewayConfig",
    "load_gateway_config",
    "get_gateway_config",
    "reset_config_cache",
]

DEFAULT_ASSERTION_HEADER = "cf-access-jwt-assertion"
DEFAULT_EMAIL_HEADER = "cf-access-authenticated-user-email"
DEFAULT_SCOPES_HEADER = "x-access-scopes"
DEFAULT_CORS_MAX_AGE_S = 86400

_ORIGIN_ENV_NAMES = ["GATEWAY_CORS_ALLOWED_ORIGINS", "CORS_ALLOWED_ORIGINS", "CORS_ORIGINS"]


@dataclass(frozen=True)
class GatewayConfig:
    """Immutable gateway configuration."""

    # CORS
    allowed_origins: tuple[str, ...] = ()
    cors_allow_headers: str = DEFAULT_ALLOW_HEADERS
    cors_max_age_s: int = DEFAULT_CORS_MAX_AGE_S

    # Trust headers set by the perimeter (lower case)
    assertion_header: str = DEFAULT_ASSERTION_HEADER
    email_header: str = DEFAULT_EMAIL_HEADER
    scopes_header: str = DEFAULT_SCOPES_HEADER

    log_level: int = logging.INFO

    def public_view(self) -> dict[str, object]:
        """Configuration that is safe to echo to callers."""
        return {"corsAllowedOrigins": list(self.allowed_origins)}


def load_gateway_config(env: Mapping[str, str] | None = None) -> GatewayConfig:
    """
    Build configuration from environment variables.

    Args:
        env: Mapping to read from. Defaults to os.environ.

    Returns:
        Immutable GatewayConfig.

    Raises:
        ValueError: If a header name is configured blank.
    """
    source = os.environ if env is None else env

    raw_origins = _read_str_env(source, _ORIGIN_ENV_NAMES, default="")
    allow_headers = _read_str_env(source, ["GATEWAY_CORS_ALLOW_HEADERS"], default=DEFAULT_ALLOW_HEADERS)
    max_age = _read_int_env(
        source, ["GATEWAY_CORS_MAX_AGE_S"], default=DEFAULT_CORS_MAX_AGE_S, minimum=0
    )

    return GatewayConfig(
        allowed_origins=parse_allowed_origins(raw_origins),
        cors_allow_headers=allow_headers,
        cors_max_age_s=max_age,
        assertion_header=_header_name(source, "GATEWAY_ASSERTION_HEADER", DEFAULT_ASSERTION_HEADER),
        email_header=_header_name(source, "GATEWAY_EMAIL_HEADER", DEFAULT_EMAIL_HEADER),
        scopes_header=_header_name(source, "GATEWAY_SCOPES_HEADER", DEFAULT_SCOPES_HEADER),
        log_level=_read_log_level(source),
    )


def _read_str_env(source: Mapping[str, str], names: list[str], *, default: str) -> str:
    # First variable that is set wins, even when set to an empty string.
    for name in names:
        raw = source.get(name)
        if raw is not None:
            return raw.strip()
    return default


def _read_int_env(
    source: Mapping[str, str], names: list[str], *, default: int, minimum: int = 1
) -> int:
    for name in names:
        raw = source.get(name, "").strip()
        if not raw:
            continue
        try:
            value = int(raw)
        except ValueError:
            continue
        return max(minimum, value)
    return max(minimum, default)


def _header_name(source: Mapping[str, str], name: str, default: str) -> str:
    raw = source.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value == "":
        raise ValueError(f"{name} must be a non-empty header name")
    return value


def _read_log_level(source: Mapping[str, str]) -> int:
    raw = source.get("GATEWAY_LOG_LEVEL", "").strip().upper()
    if raw == "":
        return logging.INFO
    level = logging.getLevelName(raw)
    if isinstance(level, int):
        return level
    return logging.INFO


@lru_cache(maxsize=1)
def get_gateway_config() -> GatewayConfig:
    """
    Get cached gateway configuration.

    Loads once at first call, immutable thereafter.
    """
    return load_gateway_config()


def reset_config_cache() -> None:
    """Reset config cache. Only for testing."""
    get_gateway_config.cache_clear()
