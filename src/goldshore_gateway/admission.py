"""
Per-request admission pipeline.

Stages run in order over an immutable RequestContext. Each stage returns
either Continue (with a possibly updated context) or Terminate (with the
response to send). CORS negotiation runs before, and independently of, any
authentication so preflights always complete.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Mapping, Sequence, Union

from starlette.responses import Response

from .config import GatewayConfig
from .cors import CorsDecision, compute_cors
from .envelope import ErrorKind, error_response
from .identity import CallerIdentity, extract_identity

__all__ = [
    "ADMISSION_STAGES",
    "Continue",
    "RequestContext",
    "Stage",
    "Terminate",
    "require_identity",
    "resolve_cors",
    "run_admission",
    "short_circuit_preflight",
]


@dataclass(frozen=True)
class RequestContext:
    method: str
    path: str
    headers: Mapping[str, str]
    origin: str | None = None
    request_id: str | None = None
    cors: CorsDecision | None = None
    identity: CallerIdentity | None = None


@dataclass(frozen=True)
class Continue:
    context: RequestContext


@dataclass(frozen=True)
class Terminate:
    context: RequestContext
    response: Response
    reason: str


StageResult = Union[Continue, Terminate]
Stage = Callable[[RequestContext, GatewayConfig], StageResult]


def resolve_cors(context: RequestContext, config: GatewayConfig) -> StageResult:
    decision = compute_cors(
        context.origin,
        config.allowed_origins,
        allow_headers=config.cors_allow_headers,
    )
    return Continue(replace(context, cors=decision))


def short_circuit_preflight(context: RequestContext, config: GatewayConfig) -> StageResult:
    if context.method.upper() != "OPTIONS":
        return Continue(context)
    cors = context.cors or compute_cors(
        context.origin, config.allowed_origins, allow_headers=config.cors_allow_headers
    )
    response = Response(status_code=204, headers=cors.preflight_headers(config.cors_max_age_s))
    return Terminate(context, response, "preflight")


def require_identity(context: RequestContext, config: GatewayConfig) -> StageResult:
    identity = extract_identity(context.headers, config)
    if not identity.asserted:
        response = error_response(
            ErrorKind.AUTH_REQUIRED,
            "Sign in through the access perimeter; the identity assertion header is missing.",
        )
        return Terminate(context, response, "missing_identity_assertion")
    return Continue(replace(context, identity=identity))


ADMISSION_STAGES: tuple[Stage, ...] = (
    resolve_cors,
    short_circuit_preflight,
    require_identity,
)


def run_admission(
    context: RequestContext,
    config: GatewayConfig,
    stages: Sequence[Stage] = ADMISSION_STAGES,
) -> StageResult:
    result: StageResult = Continue(context)
    for stage in stages:
        result = stage(result.context, config)
        if isinstance(result, Terminate):
            return result
    return result
