# Overview: Flask API routes for stock movements; validates input and returns JSON responses.
"""
Movement routes.

- POST /api/movements        one movement (a batch of one)
- POST /api/movements/batch  several movements applied atomically

Time semantics:
- occurred_at accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
"""
from flask import Blueprint, request, g

from ..models import InventoryTransaction
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    enforce_rules_movement,
)
from ..decorators import with_actor, map_ledger_errors
from ..services import balance_service, movement_service


movements_bp = Blueprint("movements", __name__, url_prefix="/api/movements")

# direction and quantity go to the ledger engine untouched so a bad value
# surfaces as InvalidDirectionError / InvalidQuantityError
MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id",
        "unit_cost_cents",
        "reference_type",
        "reference_number",
        "notes",
    },
    required_on_create={"product_id", "direction", "quantity"},
    passthrough_fields={"direction", "quantity", "actor", "occurred_at"},
)

BATCH_ITEM_POLICY = ModelValidationPolicy(
    writable_fields=MOVEMENT_POLICY.writable_fields,
    required_on_create=MOVEMENT_POLICY.required_on_create,
    passthrough_fields={"direction", "quantity"},
)

MAX_BATCH_SIZE = 500


def _movement_request(patch: dict) -> movement_service.MovementRequest:
    enforce_rules_movement(patch)
    return movement_service.MovementRequest.from_dict(patch)


@movements_bp.post("")
@with_actor
@map_ledger_errors("submit movement")
def submit_movement_route():
    """
    Apply one stock movement.

    Body: {product_id, direction: IN|OUT, quantity, unit_cost_cents?,
           reference_type?, reference_number?, notes?, occurred_at?, actor?}

    Returns 201 with the ledger entry and the resulting balance.
    """
    payload = request.get_json(silent=True)

    patch = validate_payload(
        model=InventoryTransaction,
        payload=payload,
        policy=MOVEMENT_POLICY,
        partial=False,
    )
    movement = _movement_request(patch)

    entries = movement_service.submit_movements(
        [movement],
        actor=g.actor,
        occurred_at=patch.get("occurred_at"),
    )
    entry = entries[0]
    balance = balance_service.get_balance(entry.product_id)

    return {"transaction": entry.to_dict(), "balance": balance.to_dict()}, 201


@movements_bp.post("/batch")
@with_actor
@map_ledger_errors("submit movement batch")
def submit_batch_route():
    """
    Apply several movements as one atomic unit.

    Body: {movements: [...], occurred_at?, actor?}

    All entries share one batch_id. Any rejection leaves no trace.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = sorted(set(payload) - {"movements", "actor", "occurred_at"})
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    items = payload.get("movements")
    if not isinstance(items, list) or not items:
        raise ValidationError("movements must be a non-empty list")
    if len(items) > MAX_BATCH_SIZE:
        raise ValidationError(f"a batch may hold at most {MAX_BATCH_SIZE} movements")

    movements = []
    for item in items:
        patch = validate_payload(
            model=InventoryTransaction,
            payload=item,
            policy=BATCH_ITEM_POLICY,
            partial=False,
        )
        movements.append(_movement_request(patch))

    entries = movement_service.submit_movements(
        movements,
        actor=g.actor,
        occurred_at=payload.get("occurred_at"),
    )

    return {
        "batch_id": entries[0].batch_id,
        "transactions": [e.to_dict() for e in entries],
    }, 201
