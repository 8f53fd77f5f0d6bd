from __future__ import annotations

import argparse
import json
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version
from typing import Any

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .admission import RequestContext, Terminate, run_admission
from .agent import (
    InvalidInput,
    PlanMode,
    build_plan,
    build_report_receipt,
    parse_plan_request,
)
from .authz import OPS, READER, require_scope
from .config import GatewayConfig, get_gateway_config, reset_config_cache
from .envelope import ErrorKind, error_response, ok_response

_LOGGER = logging.getLogger("goldshore_gateway")
_SERVICE_NAME = "goldshore-gateway"


def _configure_logging(level: int = logging.INFO) -> None:
    _LOGGER.setLevel(level)
    if _LOGGER.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _LOGGER.addHandler(handler)


def _log_json(level: int, message: str, **fields: Any) -> None:
    payload = {"message": message, **fields}
    _LOGGER.log(level, json.dumps(payload, ensure_ascii=True))


def _get_version() -> str:
    try:
        return version(_SERVICE_NAME)
    except PackageNotFoundError:
        return "unknown"


def create_app(config: GatewayConfig | None = None) -> FastAPI:
    cfg = config or get_gateway_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _configure_logging(cfg.log_level)
        _log_json(
            logging.INFO,
            "gateway.started",
            allowed_origins=len(cfg.allowed_origins),
            assertion_header=cfg.assertion_header,
        )
        yield

    app = FastAPI(title="Goldshore Gateway", lifespan=lifespan)

    # Registered first so it runs inside request_logging.
    @app.middleware("http")
    async def admission(request: Request, call_next):
        context = RequestContext(
            method=request.method,
            path=request.url.path,
            headers={k.lower(): v for k, v in request.headers.items()},
            origin=request.headers.get("origin"),
            request_id=getattr(request.state, "request_id", None),
        )
        result = run_admission(context, cfg)
        if isinstance(result, Terminate):
            if result.reason != "preflight":
                _log_json(
                    logging.INFO,
                    "admission.rejected",
                    request_id=context.request_id,
                    method=context.method,
                    path=context.path,
                    reason=result.reason,
                )
            response = result.response
        else:
            request.state.admission = result.context
            try:
                response = await call_next(request)
            except Exception as exc:
                _log_json(
                    logging.ERROR,
                    "handler.failed",
                    request_id=context.request_id,
                    method=context.method,
                    path=context.path,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                response = error_response(
                    ErrorKind.UPSTREAM_FAILURE,
                    "The gateway could not complete the request. Retry later.",
                )
        cors = result.context.cors
        if cors is not None:
            response.headers.update(cors.headers())
        return response

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        request_id = request.headers.get("x-request-id", "").strip() or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            latency_ms = int((time.monotonic() - start) * 1000)
            _log_json(
                logging.ERROR,
                "request.failed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                latency_ms=latency_ms,
            )
            raise
        latency_ms = int((time.monotonic() - start) * 1000)
        response.headers["x-request-id"] = request_id
        _log_json(
            logging.INFO,
            "request.completed",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            latency_ms=latency_ms,
        )
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> Response:
        # Routing misses (including a known path with the wrong method) are 404s.
        if exc.status_code in (404, 405):
            return error_response(
                ErrorKind.INVALID_INPUT,
                f"No route for {request.method} {request.url.path}",
                status_code=404,
            )
        return error_response(_kind_for_status(exc.status_code), str(exc.detail), status_code=exc.status_code)

    @app.get("/v1/health")
    async def health(context: RequestContext = Depends(get_request_context)) -> Response:
        return ok_response({"service": "healthy"})

    @app.get("/v1/cors")
    async def cors_allow_list(context: RequestContext = Depends(get_request_context)) -> Response:
        return ok_response({"allowedOrigins": list(cfg.allowed_origins)})

    @app.get("/v1/config")
    async def public_config(context: RequestContext = Depends(get_request_context)) -> Response:
        data = cfg.public_view()
        data["service"] = _SERVICE_NAME
        data["version"] = _get_version()
        return ok_response(data)

    @app.get("/v1/whoami")
    async def whoami(context: RequestContext = Depends(get_request_context)) -> Response:
        identity = context.identity
        if identity is None or identity.email is None:
            return error_response(
                ErrorKind.INSUFFICIENT_CONTEXT,
                "The access perimeter did not forward an authenticated email.",
            )
        return ok_response({"sub": identity.email, "scopes": sorted(identity.scopes)})

    @app.post("/v1/agent/plan")
    async def agent_plan(
        request: Request,
        context: RequestContext = Depends(get_request_context),
    ) -> Response:
        denied = require_scope(context, READER)
        if denied is not None:
            return denied
        try:
            plan_request = parse_plan_request(await _read_json_object(request))
        except InvalidInput as exc:
            return error_response(ErrorKind.INVALID_INPUT, str(exc))
        if plan_request.mode is PlanMode.APPLY:
            denied = require_scope(context, OPS)
            if denied is not None:
                return denied
        return ok_response(build_plan(plan_request))

    @app.post("/v1/agent/exec")
    async def agent_exec(context: RequestContext = Depends(get_request_context)) -> Response:
        return error_response(
            ErrorKind.POLICY_DENIED,
            "Execution is disabled; use /v1/agent/plan and apply changes per runbook.",
        )

    @app.post("/v1/agent/report")
    async def agent_report(
        request: Request,
        context: RequestContext = Depends(get_request_context),
    ) -> Response:
        denied = require_scope(context, READER)
        if denied is not None:
            return denied
        try:
            receipt = build_report_receipt(await _read_json_object(request))
        except InvalidInput as exc:
            return error_response(ErrorKind.INVALID_INPUT, str(exc))
        _log_json(
            logging.INFO,
            "report.acknowledged",
            request_id=context.request_id,
            hash=receipt["hash"],
        )
        return ok_response(receipt)

    return app


def get_request_context(request: Request) -> RequestContext:
    context = getattr(request.state, "admission", None)
    if not isinstance(context, RequestContext) or context.identity is None:
        raise RuntimeError("request reached a handler without passing admission")
    return context


async def _read_json_object(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as exc:
        raise InvalidInput("body must be valid JSON") from exc
    if not isinstance(body, dict):
        raise InvalidInput("body must be a JSON object")
    return body


def _kind_for_status(status_code: int) -> ErrorKind:
    if status_code == 401:
        return ErrorKind.AUTH_REQUIRED
    if status_code == 403:
        return ErrorKind.FORBIDDEN
    if status_code >= 500:
        return ErrorKind.UPSTREAM_FAILURE
    return ErrorKind.INVALID_INPUT


def main() -> None:
    args = _parse_args()
    if args.allowed_origins is not None:
        os.environ["GATEWAY_CORS_ALLOWED_ORIGINS"] = args.allowed_origins
        reset_config_cache()
    app = create_app()
    uvicorn.run(app, host=args.host, port=args.port, reload=False)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="goldshore-gateway")
    sub = parser.add_subparsers(dest="command", required=True)
    serve = sub.add_parser("serve")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8787)
    serve.add_argument("--allowed-origins", default=None)
    return parser.parse_args()


app = create_app()
