# Overview: Service-layer operations for product balances; reads and conditional balance writes.

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Iterable

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product
from ..errors import ProductNotFoundError, StoreUnavailableError, WouldGoNegativeError
from stockledger.time_utils import utcnow
from .concurrency import lock_for_update
"""
Balance Store Invariants (authoritative)

- Product.stock_quantity is only written here, by apply_delta.
- apply_delta is a single conditional UPDATE: the read-modify-write happens
  inside the database statement, so it cannot interleave with another writer.
- Reads go to the database (column queries), never to identity-map copies,
  so a caller always sees a committed pre- or post-state, never a torn value.
- Nothing here commits; the caller owns the transaction boundary.
"""


@dataclass(frozen=True)
class Balance:
    product_id: int
    sku: str
    name: str
    current_stock: int
    reorder_level: int
    reorder_quantity: int
    active: bool
    discontinued: bool

    def to_dict(self) -> dict:
        return asdict(self)


_BALANCE_COLUMNS = (
    Product.id,
    Product.sku,
    Product.name,
    Product.stock_quantity,
    Product.reorder_level,
    Product.reorder_quantity,
    Product.is_active,
    Product.is_discontinued,
)


def _to_balance(row) -> Balance:
    return Balance(
        product_id=row.id,
        sku=row.sku,
        name=row.name,
        current_stock=int(row.stock_quantity),
        reorder_level=int(row.reorder_level),
        reorder_quantity=int(row.reorder_quantity),
        active=bool(row.is_active),
        discontinued=bool(row.is_discontinued),
    )


def get_balance(product_id: int, *, lock: bool = False) -> Balance:
    """
    Current stock and reorder metadata for one product.

    Raises ProductNotFoundError for unknown ids.
    """
    try:
        query = db.session.query(*_BALANCE_COLUMNS).filter(Product.id == product_id)
        if lock:
            query = lock_for_update(query)
        row = query.first()
    except SQLAlchemyError as exc:
        raise StoreUnavailableError(f"balance read failed: {exc}") from exc
    if row is None:
        raise ProductNotFoundError(product_id)
    return _to_balance(row)


def get_balances(product_ids: Iterable[int], *, lock: bool = False) -> dict[int, Balance]:
    """Balances keyed by product id; unknown ids are simply absent."""
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    try:
        query = db.session.query(*_BALANCE_COLUMNS).filter(Product.id.in_(ids)).order_by(Product.id)
        if lock:
            query = lock_for_update(query)
        rows = query.all()
    except SQLAlchemyError as exc:
        raise StoreUnavailableError(f"balance read failed: {exc}") from exc
    return {row.id: _to_balance(row) for row in rows}


def list_balances(*, active_only: bool = False) -> list[Balance]:
    try:
        query = db.session.query(*_BALANCE_COLUMNS)
        if active_only:
            query = query.filter(Product.is_active.is_(True), Product.is_discontinued.is_(False))
        rows = query.order_by(Product.sku).all()
    except SQLAlchemyError as exc:
        raise StoreUnavailableError(f"balance read failed: {exc}") from exc
    return [_to_balance(row) for row in rows]


def _expire_cached_product(product_id: int) -> None:
    key = db.inspect(Product).identity_key_from_primary_key((product_id,))
    cached = db.session.identity_map.get(key)
    if cached is not None:
        db.session.expire(cached)


def apply_delta(
    product_id: int,
    delta: int,
    *,
    actor: str = "system",
    now: datetime | None = None,
) -> int:
    """
    Atomically add delta to a product's stock and return the new value.

    The WHERE clause carries the non-negative check (compare-and-swap), so the
    update either applies in full or not at all.

    Raises:
        WouldGoNegativeError: current + delta < 0 (nothing written)
        ProductNotFoundError: unknown product id
    """
    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.stock_quantity + delta >= 0)
        .values(
            stock_quantity=Product.stock_quantity + delta,
            version_id=Product.version_id + 1,
            modified_at=now or utcnow(),
            modified_by=actor,
        )
        .execution_options(synchronize_session=False)
    )

    try:
        result = db.session.execute(stmt)
        if result.rowcount != 1:
            current = db.session.query(Product.stock_quantity).filter(Product.id == product_id).scalar()
            if current is None:
                raise ProductNotFoundError(product_id)
            raise WouldGoNegativeError(product_id, int(current), delta)

        _expire_cached_product(product_id)
        new_stock = db.session.query(Product.stock_quantity).filter(Product.id == product_id).scalar()
    except SQLAlchemyError as exc:
        raise StoreUnavailableError(f"balance update failed: {exc}") from exc
    return int(new_stock)
