# Overview: Service-layer operations for stock movements; the ledger engine.

# backend/stockledger/services/movement_service.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import InventoryTransaction, Product
from ..models.ledger import TRANSACTION_TYPE_IN, TRANSACTION_TYPE_OUT, TRANSACTION_TYPES
from ..errors import (
    InsufficientStockError,
    InvalidDirectionError,
    InvalidQuantityError,
    MovementValidationError,
    StoreUnavailableError,
    UnknownProductError,
    WouldGoNegativeError,
)
from stockledger.time_utils import utcnow, parse_iso_datetime, to_utc_naive
from . import balance_service
from .concurrency import LockTimeoutError, product_locks
"""
Stock Ledger Engine Invariants (authoritative)

Ledger model:
- InventoryTransaction rows are the single source of truth; Product.stock_quantity
  is a materialized view equal to SUM(IN) - SUM(OUT).
- Rows are append-only. stock_before/stock_after are captured at apply time.

Atomicity:
- A submission (one movement or a batch) is one unit: product locks are taken
  (sorted by id), balances are read FOR UPDATE, OUT aggregates are validated
  against the pre-batch balance, one net delta per product is applied, ledger
  rows are appended, then the session commits.
- Any failure before commit (validation, insufficient stock, store error,
  cancellation) rolls back: no ledger row, no balance change.

Batch ordering:
- Per product, IN movements are applied before OUT movements, each group in
  submission order. Ledger rows are inserted in that order, so ascending ids
  chain snapshots: next.stock_before == prev.stock_after.

Retries:
- Submission is not idempotent (resubmission creates new rows), so the engine
  never retries. Store failures surface as StoreUnavailableError.
"""

MAX_REFERENCE_TYPE_LENGTH = 50
MAX_REFERENCE_NUMBER_LENGTH = 100
MAX_NOTES_LENGTH = 500
MAX_ACTOR_LENGTH = 128


@dataclass(frozen=True)
class MovementRequest:
    product_id: int
    direction: str
    quantity: int
    unit_cost_cents: int | None = None
    reference_type: str | None = None
    reference_number: str | None = None
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "MovementRequest":
        return cls(
            product_id=data.get("product_id"),
            direction=data.get("direction", data.get("transaction_type")),
            quantity=data.get("quantity"),
            unit_cost_cents=data.get("unit_cost_cents"),
            reference_type=data.get("reference_type"),
            reference_number=data.get("reference_number"),
            notes=data.get("notes"),
        )


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _clean_text(value, field: str, max_length: int) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        raise MovementValidationError(f"{field} must be at most {max_length} characters")
    return text


def validate_movement(request: MovementRequest) -> MovementRequest:
    """
    Pure input validation; no database access.

    Product existence is checked later, under the product lock.
    """
    if not _is_int(request.product_id):
        raise UnknownProductError(request.product_id)

    direction = request.direction.strip().upper() if isinstance(request.direction, str) else None
    if direction not in TRANSACTION_TYPES:
        raise InvalidDirectionError(request.direction)

    if not _is_int(request.quantity) or request.quantity <= 0:
        raise InvalidQuantityError(request.quantity)

    if request.unit_cost_cents is not None:
        if not _is_int(request.unit_cost_cents) or request.unit_cost_cents < 0:
            raise MovementValidationError("unit_cost_cents must be a non-negative integer")

    return replace(
        request,
        direction=direction,
        reference_type=_clean_text(request.reference_type, "reference_type", MAX_REFERENCE_TYPE_LENGTH),
        reference_number=_clean_text(request.reference_number, "reference_number", MAX_REFERENCE_NUMBER_LENGTH),
        notes=_clean_text(request.notes, "notes", MAX_NOTES_LENGTH),
    )


def _validate_actor(actor) -> str:
    cleaned = _clean_text(actor, "actor", MAX_ACTOR_LENGTH)
    if cleaned is None:
        raise MovementValidationError("actor is required")
    return cleaned


def _parse_occurred_at(value) -> datetime:
    """
    Normalize occurred_at to canonical UTC-naive datetime.

    Accepts:
    - None -> utcnow() (UTC-naive)
    - datetime (aware -> converted to UTC; naive -> treated as UTC)
    - str -> parse_iso_datetime
    """
    if value is None:
        return utcnow()

    if isinstance(value, datetime):
        return to_utc_naive(value)

    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            dt = None
        if dt is None:
            raise MovementValidationError("invalid occurred_at")
        return dt

    raise MovementValidationError("invalid occurred_at")


def _group_by_product(requests: Sequence[MovementRequest]) -> dict[int, list[MovementRequest]]:
    grouped: dict[int, list[MovementRequest]] = {}
    for req in requests:
        grouped.setdefault(req.product_id, []).append(req)
    return grouped


def _application_order(requests: Iterable[MovementRequest]) -> list[MovementRequest]:
    ins = [r for r in requests if r.direction == TRANSACTION_TYPE_IN]
    outs = [r for r in requests if r.direction == TRANSACTION_TYPE_OUT]
    return ins + outs


def _apply_batch(
    requests: Sequence[MovementRequest],
    *,
    actor: str,
    transaction_dt: datetime,
) -> list[InventoryTransaction]:
    grouped = _group_by_product(requests)
    balances = balance_service.get_balances(grouped.keys(), lock=True)

    for product_id in grouped:
        if product_id not in balances:
            raise UnknownProductError(product_id)

    # Validate every product before the first write
    plans = []
    for product_id, product_requests in grouped.items():
        ordered = _application_order(product_requests)
        total_in = sum(r.quantity for r in ordered if r.direction == TRANSACTION_TYPE_IN)
        total_out = sum(r.quantity for r in ordered if r.direction == TRANSACTION_TYPE_OUT)
        balance = balances[product_id]
        if total_out > balance.current_stock:
            raise InsufficientStockError(product_id, balance.current_stock, total_out, sku=balance.sku)
        plans.append((balance, ordered, total_in, total_out))

    batch_id = str(uuid.uuid4())
    entries: list[InventoryTransaction] = []

    for balance, ordered, total_in, total_out in plans:
        net = total_in - total_out
        try:
            stock_after = balance_service.apply_delta(
                balance.product_id, net, actor=actor, now=transaction_dt
            )
        except WouldGoNegativeError as exc:
            raise InsufficientStockError(balance.product_id, exc.current, total_out, sku=balance.sku) from exc

        # Authoritative pre-batch value at the atomicity boundary
        stock_before = stock_after - net
        if total_out > stock_before:
            raise InsufficientStockError(balance.product_id, stock_before, total_out, sku=balance.sku)

        running = stock_before
        for req in ordered:
            before = running
            running = before + req.quantity if req.direction == TRANSACTION_TYPE_IN else before - req.quantity
            entries.append(
                InventoryTransaction(
                    product_id=req.product_id,
                    batch_id=batch_id,
                    transaction_type=req.direction,
                    quantity=req.quantity,
                    unit_cost_cents=req.unit_cost_cents,
                    reference_type=req.reference_type,
                    reference_number=req.reference_number,
                    notes=req.notes,
                    transaction_date=transaction_dt,
                    created_by=actor,
                    stock_before=before,
                    stock_after=running,
                )
            )

    _append_entries(entries)
    return entries


def _append_entries(entries: list[InventoryTransaction]) -> None:
    db.session.add_all(entries)
    db.session.flush()


def submit_movements(
    movements: Sequence[MovementRequest | dict],
    *,
    actor: str = "system",
    occurred_at=None,
) -> list[InventoryTransaction]:
    """
    Apply a batch of movements atomically.

    Validation (direction, quantity, product existence) happens before any
    mutation. Per product, the OUT aggregate is checked against the pre-batch
    balance and a single net delta is applied. One ledger entry is written per
    movement, ordered IN-then-OUT per product.

    Returns:
        list[InventoryTransaction]: entries in application (and id) order

    Raises:
        UnknownProductError, InvalidDirectionError, InvalidQuantityError,
        MovementValidationError, InsufficientStockError, StoreUnavailableError
    """
    if not movements:
        raise MovementValidationError("at least one movement is required")

    requests = [
        validate_movement(m if isinstance(m, MovementRequest) else MovementRequest.from_dict(m))
        for m in movements
    ]
    actor = _validate_actor(actor)
    transaction_dt = _parse_occurred_at(occurred_at)
    if transaction_dt > (utcnow() + timedelta(minutes=2)):
        raise MovementValidationError("occurred_at cannot be in the future")

    timeout = current_app.config.get("PRODUCT_LOCK_TIMEOUT_SECONDS")
    product_ids = {r.product_id for r in requests}

    try:
        with product_locks(product_ids, timeout=timeout):
            try:
                entries = _apply_batch(requests, actor=actor, transaction_dt=transaction_dt)
                db.session.commit()
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise StoreUnavailableError(f"movement could not be applied: {exc}") from exc
            except BaseException:
                # Rejections and cancellations before commit leave no trace
                db.session.rollback()
                raise
    except LockTimeoutError as exc:
        raise StoreUnavailableError(str(exc)) from exc

    return entries


def submit_movement(
    product_id: int,
    direction: str,
    quantity: int,
    unit_cost_cents: int | None = None,
    reference_type: str | None = None,
    reference_number: str | None = None,
    notes: str | None = None,
    *,
    actor: str = "system",
    occurred_at=None,
) -> InventoryTransaction:
    """Apply a single movement; a batch of one."""
    request = MovementRequest(
        product_id=product_id,
        direction=direction,
        quantity=quantity,
        unit_cost_cents=unit_cost_cents,
        reference_type=reference_type,
        reference_number=reference_number,
        notes=notes,
    )
    return submit_movements([request], actor=actor, occurred_at=occurred_at)[0]


def list_ledger_entries(
    *,
    product_id: int | None = None,
    batch_id: str | None = None,
    reference_type: str | None = None,
    reference_number: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 200,
) -> list[InventoryTransaction]:
    """Ledger entries, newest first. start is inclusive, end is exclusive."""
    q = InventoryTransaction.query
    if product_id is not None:
        q = q.filter(InventoryTransaction.product_id == product_id)
    if batch_id is not None:
        q = q.filter(InventoryTransaction.batch_id == batch_id)
    if reference_type is not None:
        q = q.filter(InventoryTransaction.reference_type == reference_type)
    if reference_number is not None:
        q = q.filter(InventoryTransaction.reference_number == reference_number)
    if start is not None:
        q = q.filter(InventoryTransaction.transaction_date >= start)
    if end is not None:
        q = q.filter(InventoryTransaction.transaction_date < end)

    return q.order_by(InventoryTransaction.id.desc()).limit(limit).all()


def ledger_totals_by_product():
    """Subquery: product_id -> SUM(IN) - SUM(OUT)."""
    signed = case(
        (InventoryTransaction.transaction_type == TRANSACTION_TYPE_IN, InventoryTransaction.quantity),
        else_=-InventoryTransaction.quantity,
    )
    return (
        db.session.query(
            InventoryTransaction.product_id.label("product_id"),
            func.coalesce(func.sum(signed), 0).label("ledger_total"),
        )
        .group_by(InventoryTransaction.product_id)
        .subquery()
    )


def reconcile_balances() -> list[dict]:
    """
    Compare every product balance against its ledger.

    Returns one row per product whose stock_quantity differs from
    SUM(IN) - SUM(OUT); an empty list means the ledger and balances agree.
    """
    totals = ledger_totals_by_product()
    rows = (
        db.session.query(
            Product.id,
            Product.sku,
            Product.stock_quantity,
            func.coalesce(totals.c.ledger_total, 0).label("ledger_total"),
        )
        .outerjoin(totals, totals.c.product_id == Product.id)
        .order_by(Product.id)
        .all()
    )
    return [
        {
            "product_id": row.id,
            "sku": row.sku,
            "stock_quantity": int(row.stock_quantity),
            "ledger_total": int(row.ledger_total),
            "difference": int(row.stock_quantity) - int(row.ledger_total),
        }
        for row in rows
        if int(row.stock_quantity) != int(row.ledger_total)
    ]
