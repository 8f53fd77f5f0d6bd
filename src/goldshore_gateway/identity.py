"""
Caller identity derived from perimeter trust headers.

Nothing here verifies the identity assertion cryptographically. The gateway
trusts headers that an upstream access perimeter has already validated and
stripped from untrusted traffic; a deployment without such a perimeter must
not expose the gateway directly.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Mapping

from .config import GatewayConfig

__all__ = ["CallerIdentity", "extract_identity", "parse_scopes"]

_SCOPE_SPLIT = re.compile(r"[,\s]+")


@dataclass(frozen=True)
class CallerIdentity:
    asserted: bool
    email: str | None = None
    scopes: frozenset[str] = field(default_factory=frozenset)

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes


def parse_scopes(raw: str | None) -> frozenset[str]:
    """
    Normalize a scope header value.

    Accepts a JSON array of strings (``["reader","ops"]``) or a list delimited
    by commas and/or whitespace (``reader, ops``). A value that looks like an
    array but does not parse falls back to delimiter splitting.
    """
    if raw is None:
        return frozenset()
    value = raw.strip()
    if value == "":
        return frozenset()
    if value.startswith("["):
        parsed = _parse_json_scopes(value)
        if parsed is not None:
            return parsed
    return frozenset(item for item in _SCOPE_SPLIT.split(value) if item)


def _parse_json_scopes(value: str) -> frozenset[str] | None:
    try:
        data = json.loads(value)
    except ValueError:
        return None
    if not isinstance(data, list):
        return None
    scopes = (item.strip() for item in data if isinstance(item, str))
    return frozenset(scope for scope in scopes if scope)


def extract_identity(headers: Mapping[str, str], config: GatewayConfig) -> CallerIdentity:
    """Read identity from lower-cased request headers."""
    assertion = headers.get(config.assertion_header, "").strip()
    email = headers.get(config.email_header)
    if email is not None and email.strip() == "":
        email = None
    return CallerIdentity(
        asserted=assertion != "",
        email=email,
        scopes=parse_scopes(headers.get(config.scopes_header)),
    )
