"""
Batch submission tests.

Per product, IN movements are applied before OUT movements (each in
submission order); the OUT aggregate is checked against the pre-batch
balance and a single net delta is written.
"""

import pytest

from stockledger.models import InventoryTransaction, Product
from stockledger.services import balance_service, movement_service
from stockledger.services.movement_service import MovementRequest
from stockledger.errors import (
    InsufficientStockError,
    InvalidQuantityError,
    MovementValidationError,
    UnknownProductError,
)


def _count_entries():
    return InventoryTransaction.query.count()


def test_batch_orders_in_before_out_per_product(db_session, webcam):
    entries = movement_service.submit_movements(
        [
            MovementRequest(webcam.id, "OUT", 3),
            MovementRequest(webcam.id, "IN", 5),
            MovementRequest(webcam.id, "OUT", 2),
        ],
        actor="alice",
    )

    assert [(e.transaction_type, e.quantity) for e in entries] == [("IN", 5), ("OUT", 3), ("OUT", 2)]
    assert [(e.stock_before, e.stock_after) for e in entries] == [(8, 13), (13, 10), (10, 8)]
    assert [e.id for e in entries] == sorted(e.id for e in entries)
    assert balance_service.get_balance(webcam.id).current_stock == 8


def test_batch_entries_share_one_batch_id(db_session, webcam, empty_product):
    first = movement_service.submit_movements(
        [
            {"product_id": webcam.id, "direction": "IN", "quantity": 1},
            {"product_id": empty_product.id, "transaction_type": "IN", "quantity": 4},
        ],
        actor="alice",
    )
    second = movement_service.submit_movements(
        [{"product_id": webcam.id, "direction": "OUT", "quantity": 1}],
        actor="alice",
    )

    assert len({e.batch_id for e in first}) == 1
    assert first[0].batch_id != second[0].batch_id


def test_out_aggregate_checked_against_pre_batch_balance(db_session, webcam):
    # The IN would cover it, but OUT totals are validated before anything is applied
    with pytest.raises(InsufficientStockError) as exc_info:
        movement_service.submit_movements(
            [MovementRequest(webcam.id, "IN", 5), MovementRequest(webcam.id, "OUT", 10)],
            actor="alice",
        )

    assert exc_info.value.available == 8
    assert exc_info.value.requested == 10
    assert balance_service.get_balance(webcam.id).current_stock == 8
    assert _count_entries() == 0


def test_out_aggregate_rejects_when_each_fits_alone(db_session, webcam):
    with pytest.raises(InsufficientStockError) as exc_info:
        movement_service.submit_movements(
            [MovementRequest(webcam.id, "OUT", 5), MovementRequest(webcam.id, "OUT", 5)],
            actor="alice",
        )

    assert exc_info.value.requested == 10
    assert _count_entries() == 0


def test_failure_on_one_product_writes_nothing(db_session, webcam, empty_product):
    with pytest.raises(InsufficientStockError):
        movement_service.submit_movements(
            [MovementRequest(webcam.id, "IN", 10), MovementRequest(empty_product.id, "OUT", 1)],
            actor="alice",
        )

    assert balance_service.get_balance(webcam.id).current_stock == 8
    assert balance_service.get_balance(empty_product.id).current_stock == 0
    assert _count_entries() == 0


def test_invalid_item_rejects_whole_batch(db_session, webcam):
    with pytest.raises(InvalidQuantityError):
        movement_service.submit_movements(
            [MovementRequest(webcam.id, "IN", 10), MovementRequest(webcam.id, "IN", 0)],
            actor="alice",
        )
    assert _count_entries() == 0


def test_unknown_product_rejects_whole_batch(db_session, webcam):
    with pytest.raises(UnknownProductError):
        movement_service.submit_movements(
            [MovementRequest(webcam.id, "IN", 10), MovementRequest(555555, "IN", 1)],
            actor="alice",
        )
    assert balance_service.get_balance(webcam.id).current_stock == 8
    assert _count_entries() == 0


def test_empty_batch_rejected(db_session):
    with pytest.raises(MovementValidationError):
        movement_service.submit_movements([], actor="alice")


def test_batch_applies_one_delta_per_product(db_session, webcam):
    version_before = webcam.version_id

    movement_service.submit_movements(
        [MovementRequest(webcam.id, "IN", 1) for _ in range(4)],
        actor="alice",
    )

    product = db_session.get(Product, webcam.id)
    assert product.stock_quantity == 12
    assert product.version_id == version_before + 1
