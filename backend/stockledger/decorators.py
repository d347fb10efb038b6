# Overview: Request decorators for API routes; caller identity and domain error mapping.

from functools import wraps
from flask import request, jsonify, g, current_app

from .errors import (
    AlertAlreadyAcknowledgedError,
    AlertNotFoundError,
    AlertValidationError,
    InsufficientStockError,
    MovementValidationError,
    ProductNotFoundError,
    ReportValidationError,
    StoreUnavailableError,
)

DEFAULT_ACTOR = "system"
ACTOR_HEADER = "X-Actor"

# Most specific first; the first match wins
ERROR_STATUS = (
    (MovementValidationError, 400, "VALIDATION_ERROR"),
    (AlertValidationError, 400, "VALIDATION_ERROR"),
    (ReportValidationError, 400, "VALIDATION_ERROR"),
    (ProductNotFoundError, 404, "NOT_FOUND"),
    (AlertNotFoundError, 404, "NOT_FOUND"),
    (InsufficientStockError, 409, "INSUFFICIENT_STOCK"),
    (AlertAlreadyAcknowledgedError, 409, "ALREADY_ACKNOWLEDGED"),
    (StoreUnavailableError, 503, "STORE_UNAVAILABLE"),
)


def _error_kind(exc: Exception) -> str:
    # UnknownProductError -> UNKNOWN_PRODUCT
    name = type(exc).__name__.removesuffix("Error")
    out = []
    for i, ch in enumerate(name):
        if ch.isupper() and i:
            out.append("_")
        out.append(ch.upper())
    return "".join(out)


def with_actor(f):
    """
    Resolve the caller identity for a mutating route.

    Sets g.actor from the JSON "actor" field, else the X-Actor header, else
    "system". The environment is never consulted.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        payload = request.get_json(silent=True)
        actor = None
        if isinstance(payload, dict):
            actor = payload.get("actor")
        if not actor:
            actor = request.headers.get(ACTOR_HEADER)
        g.actor = str(actor).strip() if actor and str(actor).strip() else DEFAULT_ACTOR
        return f(*args, **kwargs)

    return decorated_function


def map_ledger_errors(action: str):
    """
    Translate domain errors raised by a route into JSON error responses.

    Expected rejections are logged at warning level; anything else is logged
    with its traceback and answered with a 500.

    Usage:
        @movements_bp.post("")
        @map_ledger_errors("submit movement")
        def submit_movement_route():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except Exception as e:
                for exc_type, status, code in ERROR_STATUS:
                    if isinstance(e, exc_type):
                        if status >= 500:
                            current_app.logger.error("Failed to %s: %s", action, e)
                        else:
                            current_app.logger.warning("Rejected %s: %s", action, e)
                        return jsonify({"error": str(e), "code": code, "kind": _error_kind(e)}), status
                current_app.logger.exception("Failed to %s", action)
                return jsonify({"error": "Internal server error"}), 500

        return decorated_function

    return decorator
