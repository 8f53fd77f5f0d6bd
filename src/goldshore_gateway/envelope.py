from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from fastapi.responses import JSONResponse

from .models import ResponseEnvelope

__all__ = [
    "ErrorKind",
    "error_response",
    "ok_response",
    "validate_envelope",
]


class ErrorKind(str, Enum):
    AUTH_REQUIRED = "AUTH_REQUIRED"
    FORBIDDEN = "FORBIDDEN"
    POLICY_DENIED = "POLICY_DENIED"
    INVALID_INPUT = "INVALID_INPUT"
    INSUFFICIENT_CONTEXT = "INSUFFICIENT_CONTEXT"
    UPSTREAM_FAILURE = "UPSTREAM_FAILURE"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorKind.AUTH_REQUIRED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.POLICY_DENIED: 403,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.INSUFFICIENT_CONTEXT: 400,
    ErrorKind.UPSTREAM_FAILURE: 500,
}


def ok_response(data: Mapping[str, Any] | None = None, *, status_code: int = 200) -> JSONResponse:
    body: ResponseEnvelope = {"ok": True}
    if data is not None:
        body["data"] = dict(data)
    return JSONResponse(status_code=status_code, content=validate_envelope(body))


def error_response(
    kind: ErrorKind,
    hint: str | None = None,
    *,
    status_code: int | None = None,
) -> JSONResponse:
    body: ResponseEnvelope = {"ok": False, "error": kind.value}
    if hint:
        body["hint"] = hint
    return JSONResponse(
        status_code=status_code or kind.status_code,
        content=validate_envelope(body),
    )


def validate_envelope(body: object) -> ResponseEnvelope:
    """Check the ok/data/error invariant; raises ValueError on violation."""
    if not isinstance(body, Mapping):
        raise ValueError("envelope must be a mapping")
    unknown = set(body) - {"ok", "data", "error", "hint"}
    if unknown:
        raise ValueError(f"unsupported envelope fields: {', '.join(sorted(unknown))}")
    ok = body.get("ok")
    if not isinstance(ok, bool):
        raise ValueError("ok must be a bool")
    out: ResponseEnvelope = {"ok": ok}
    if ok:
        if "error" in body:
            raise ValueError("successful envelope must not carry error")
        if "data" in body:
            out["data"] = _require_mapping(body, "data")
    else:
        if "data" in body:
            raise ValueError("failed envelope must not carry data")
        error = _require_str(body, "error")
        try:
            ErrorKind(error)
        except ValueError as exc:
            raise ValueError(f"unknown error kind: {error}") from exc
        out["error"] = error
    if "hint" in body:
        out["hint"] = _require_str(body, "hint")
    return out


def _require_str(mapping: Mapping[str, object], key: str) -> str:
    value = mapping.get(key)
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def _require_mapping(mapping: Mapping[str, object], key: str) -> dict[str, Any]:
    value = mapping.get(key)
    if not isinstance(value, Mapping):
        raise ValueError(f"{key} must be a mapping")
    return dict(value)
