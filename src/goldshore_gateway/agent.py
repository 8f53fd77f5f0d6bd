"""
Agent planning and reporting contracts.

Plans are fixed step sequences so responses are deterministic and testable.
Nothing here executes a plan or stores a report.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from .digest import report_digest
from .models import PlanResult, ReportReceipt

__all__ = [
    "InvalidInput",
    "PlanMode",
    "PlanRequest",
    "build_plan",
    "build_report_receipt",
    "normalize_mode",
    "parse_plan_request",
]

_COMMON_STEPS = (
    "resolve goal against service inventory",
    "collect current configuration",
    "evaluate policy and scope constraints",
)
_DRY_RUN_STEPS = _COMMON_STEPS + ("compile audit findings",)
_APPLY_STEPS = _COMMON_STEPS + ("stage change set", "apply per runbook order")


class InvalidInput(ValueError):
    pass


class PlanMode(str, Enum):
    DRY_RUN = "DRY_RUN"
    APPLY = "APPLY"


@dataclass(frozen=True)
class PlanRequest:
    goal: str
    mode: PlanMode = PlanMode.DRY_RUN


def normalize_mode(raw: object) -> PlanMode:
    # Only the exact literal selects APPLY; everything else stays a dry run.
    if raw == PlanMode.APPLY.value:
        return PlanMode.APPLY
    return PlanMode.DRY_RUN


def parse_plan_request(body: Mapping[str, Any]) -> PlanRequest:
    goal = body.get("goal")
    if not isinstance(goal, str) or goal.strip() == "":
        raise InvalidInput("goal must be a non-empty string")
    return PlanRequest(goal=goal.strip(), mode=normalize_mode(body.get("mode")))


def build_plan(request: PlanRequest) -> PlanResult:
    steps = _APPLY_STEPS if request.mode is PlanMode.APPLY else _DRY_RUN_STEPS
    return {
        "goal": request.goal,
        "mode": request.mode.value,
        "steps": list(steps),
        "executed": False,
    }


def build_report_receipt(body: Mapping[str, Any], *, now: datetime | None = None) -> ReportReceipt:
    report = body.get("report")
    if not isinstance(report, Mapping):
        raise InvalidInput("report must be a JSON object")
    try:
        digest = report_digest(report)
    except ValueError as exc:
        raise InvalidInput("report must be canonical JSON") from exc
    return {"hash": digest, "receivedAt": _iso_utc(now or datetime.now(timezone.utc))}


def _iso_utc(moment: datetime) -> str:
    text = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")
