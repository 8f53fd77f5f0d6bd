from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "ALLOW_METHODS",
    "DEFAULT_ALLOW_HEADERS",
    "CorsDecision",
    "compute_cors",
    "parse_allowed_origins",
]

ALLOW_METHODS = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
DEFAULT_ALLOW_HEADERS = "Cf-Access-Jwt-Assertion, Content-Type"


@dataclass(frozen=True)
class CorsDecision:
    allow_origin: str | None
    allow_headers: str = DEFAULT_ALLOW_HEADERS
    allow_methods: str = ALLOW_METHODS
    allow_credentials: bool = True
    vary: str = "Origin"

    def headers(self) -> dict[str, str]:
        """Headers attached to every non-preflight response."""
        out = {
            "Access-Control-Allow-Headers": self.allow_headers,
            "Access-Control-Allow-Methods": self.allow_methods,
            "Access-Control-Allow-Credentials": "true" if self.allow_credentials else "false",
            "Vary": self.vary,
        }
        if self.allow_origin is not None:
            out["Access-Control-Allow-Origin"] = self.allow_origin
        return out

    def preflight_headers(self, max_age_s: int) -> dict[str, str]:
        out = self.headers()
        out["Access-Control-Max-Age"] = str(max_age_s)
        return out


def parse_allowed_origins(raw: str | None) -> tuple[str, ...]:
    """Split a comma-separated allow-list; exact origins only, first occurrence wins."""
    if not raw:
        return ()
    seen: dict[str, None] = {}
    for item in raw.split(","):
        origin = item.strip()
        if origin:
            seen.setdefault(origin, None)
    return tuple(seen)


def compute_cors(
    origin: str | None,
    allowed: tuple[str, ...],
    *,
    allow_headers: str = DEFAULT_ALLOW_HEADERS,
) -> CorsDecision:
    # Unlisted origins still get a well-formed decision, just without
    # Access-Control-Allow-Origin, so browsers block the response.
    allow_origin = origin if origin and origin in allowed else None
    return CorsDecision(allow_origin=allow_origin, allow_headers=allow_headers)
