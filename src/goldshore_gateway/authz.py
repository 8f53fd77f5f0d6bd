from __future__ import annotations

from fastapi.responses import JSONResponse

from .admission import RequestContext
from .envelope import ErrorKind, error_response

__all__ = ["OPS", "READER", "require_scope"]

READER = "reader"
OPS = "ops"


def require_scope(context: RequestContext, scope: str) -> JSONResponse | None:
    """Return a 403 envelope when the caller lacks ``scope``, else None.

    Callers must check this before doing any work that could have side effects.
    """
    identity = context.identity
    if identity is not None and identity.has_scope(scope):
        return None
    return error_response(ErrorKind.FORBIDDEN, f"Missing required scope: {scope}")
