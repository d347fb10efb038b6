# Overview: Flask API routes for ledger entries; parses filters and returns JSON responses.

from flask import Blueprint, request

from stockledger.time_utils import parse_iso_datetime
from ..decorators import map_ledger_errors
from ..services import movement_service
from ..validation import ValidationError

"""
Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- start_date is inclusive, end_date is exclusive.
"""

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.get("")
@map_ledger_errors("list ledger entries")
def list_ledger_entries_route():
    limit = request.args.get("limit", default=200, type=int)
    limit = max(1, min(limit, 1000))

    start_raw = request.args.get("start_date")
    end_raw = request.args.get("end_date")

    try:
        start_dt = parse_iso_datetime(start_raw)
        end_dt = parse_iso_datetime(end_raw)
    except ValueError:
        raise ValidationError("start_date and end_date must be ISO-8601 datetimes")

    rows = movement_service.list_ledger_entries(
        product_id=request.args.get("product_id", type=int),
        batch_id=request.args.get("batch_id") or None,
        reference_type=request.args.get("reference_type") or None,
        reference_number=request.args.get("reference_number") or None,
        start=start_dt,
        end=end_dt,
        limit=limit,
    )

    return {"items": [r.to_dict() for r in rows], "limit": limit}, 200


@ledger_bp.get("/reconcile")
@map_ledger_errors("reconcile ledger")
def reconcile_route():
    """Products whose balance differs from SUM(IN) - SUM(OUT); empty when consistent."""
    mismatches = movement_service.reconcile_balances()
    return {"consistent": not mismatches, "mismatches": mismatches}, 200
