from __future__ import annotations

from typing import Any, TypedDict


class ResponseEnvelope(TypedDict, total=False):
    ok: bool
    data: dict[str, Any]
    error: str
    hint: str


class WhoAmI(TypedDict):
    sub: str
    scopes: list[str]


class PlanResult(TypedDict):
    goal: str
    mode: str
    steps: list[str]
    executed: bool


class ReportReceipt(TypedDict):
    hash: str
    receivedAt: str
