"""
Balance store tests.

Covers reads, the conditional delta write and its non-negative guard.
"""

import pytest

from stockledger.models import Product
from stockledger.services import balance_service
from stockledger.errors import ProductNotFoundError, WouldGoNegativeError


def test_get_balance_returns_current_stock(webcam):
    balance = balance_service.get_balance(webcam.id)

    assert balance.product_id == webcam.id
    assert balance.sku == "ELEC-004"
    assert balance.current_stock == 8
    assert balance.reorder_level == 20
    assert balance.reorder_quantity == 40
    assert balance.active is True
    assert balance.discontinued is False


def test_get_balance_unknown_product(db_session):
    with pytest.raises(ProductNotFoundError):
        balance_service.get_balance(999999)


def test_get_balances_skips_unknown_ids(webcam, empty_product):
    balances = balance_service.get_balances([webcam.id, empty_product.id, 999999])

    assert set(balances) == {webcam.id, empty_product.id}
    assert balances[empty_product.id].current_stock == 0


def test_list_balances_active_only(db_session, product_factory):
    product_factory("A-1", stock=5)
    product_factory("A-2", stock=5, is_active=False)
    product_factory("A-3", stock=5, is_discontinued=True)

    assert [b.sku for b in balance_service.list_balances()] == ["A-1", "A-2", "A-3"]
    assert [b.sku for b in balance_service.list_balances(active_only=True)] == ["A-1"]


def test_apply_delta_adds_and_bumps_version(db_session, webcam):
    before_version = webcam.version_id

    new_stock = balance_service.apply_delta(webcam.id, 5, actor="alice")
    db_session.commit()

    assert new_stock == 13
    product = db_session.get(Product, webcam.id)
    assert product.stock_quantity == 13
    assert product.version_id == before_version + 1
    assert product.modified_by == "alice"


def test_apply_delta_to_exactly_zero(db_session, webcam):
    assert balance_service.apply_delta(webcam.id, -8) == 0


def test_apply_delta_refuses_negative_result(db_session, webcam):
    with pytest.raises(WouldGoNegativeError) as exc_info:
        balance_service.apply_delta(webcam.id, -9)

    assert exc_info.value.current == 8
    assert exc_info.value.delta == -9
    db_session.rollback()
    assert balance_service.get_balance(webcam.id).current_stock == 8


def test_apply_delta_unknown_product(db_session):
    with pytest.raises(ProductNotFoundError):
        balance_service.apply_delta(424242, 1)


def test_apply_delta_refreshes_loaded_instance(db_session, webcam):
    # The instance was loaded before the UPDATE; it must not report a stale value
    balance_service.apply_delta(webcam.id, 2)
    assert webcam.stock_quantity == 10
