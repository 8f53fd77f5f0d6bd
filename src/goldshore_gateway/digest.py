from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_bytes(value: Any) -> bytes:
    try:
        text = json.dumps(
            value,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=True,
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        raise ValueError(f"non-canonical payload: {exc}") from exc
    return text.encode("utf-8")


def report_digest(report: Any) -> str:
    """Lowercase SHA-256 hex of the canonical JSON form of ``report``."""
    return hashlib.sha256(canonical_bytes(report)).hexdigest()
