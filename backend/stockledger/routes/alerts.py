# Overview: Flask API routes for low stock alerts; detection, listing and acknowledgment.

from flask import Blueprint, request, g

from ..decorators import with_actor, map_ledger_errors
from ..services import alert_service
from ..validation import ValidationError, parse_optional_int


alerts_bp = Blueprint("alerts", __name__, url_prefix="/api/alerts")

DETECT_FIELDS = {"threshold_override", "severity_filter", "actor"}


def _parse_bool_arg(name: str):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    value = raw.strip().lower()
    if value in ("1", "true", "yes"):
        return True
    if value in ("0", "false", "no"):
        return False
    raise ValidationError(f"{name} must be true or false")


@alerts_bp.post("/detect")
@with_actor
@map_ledger_errors("detect low stock")
def detect_low_stock_route():
    """
    Run one detection pass.

    Body (optional): {threshold_override?: int, severity_filter?: WARNING|CRITICAL}

    Returns the alerts created by this pass and the created/critical/warning counts.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = sorted(set(payload) - DETECT_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    result = alert_service.detect_low_stock(
        threshold_override=parse_optional_int(payload, "threshold_override"),
        severity_filter=payload.get("severity_filter") or None,
    )
    return result.to_dict(), 200


@alerts_bp.get("")
@map_ledger_errors("list alerts")
def list_alerts_route():
    limit = request.args.get("limit", default=200, type=int)
    limit = max(1, min(limit, 1000))

    alerts = alert_service.list_alerts(
        acknowledged=_parse_bool_arg("acknowledged"),
        product_id=request.args.get("product_id", type=int),
        limit=limit,
    )
    return {
        "items": [a.to_dict() for a in alerts],
        "open_counts": alert_service.count_open_alerts(),
        "limit": limit,
    }, 200


@alerts_bp.post("/<int:alert_id>/acknowledge")
@with_actor
@map_ledger_errors("acknowledge alert")
def acknowledge_alert_route(alert_id: int):
    """One-way transition; 404 unknown alert, 409 already acknowledged."""
    alert = alert_service.acknowledge_alert(alert_id, actor=g.actor)
    return {"alert": alert.to_dict()}, 200
