# backend/stockledger/services/reporting_service.py
"""
Monthly inventory movement report data.

WHY: Management needs per-product IN/OUT totals for a month alongside the
current balance. This module returns raw numbers only (quantities and cents);
layout and currency formatting belong to the presentation layer.

Values:
- stock_in_value_cents uses the entry's unit_cost_cents, falling back to the
  product's unit_cost_cents when the entry carries none.
- stock_out_value_cents uses the product's unit_price_cents.
"""
from __future__ import annotations

from sqlalchemy import and_, case, func

from stockledger.extensions import db
from stockledger.models import InventoryTransaction, Product, ProductCategory
from stockledger.models.ledger import TRANSACTION_TYPE_IN, TRANSACTION_TYPE_OUT
from stockledger.errors import ReportValidationError
from stockledger.time_utils import month_bounds, utcnow, to_utc_z


STOCK_STATUS_OUT = "OUT_OF_STOCK"
STOCK_STATUS_LOW = "LOW_STOCK"
STOCK_STATUS_NORMAL = "NORMAL"

UNCATEGORIZED = "Uncategorized"


def stock_status(current_stock: int, reorder_level: int) -> str:
    if current_stock <= 0:
        return STOCK_STATUS_OUT
    if current_stock < reorder_level:
        return STOCK_STATUS_LOW
    return STOCK_STATUS_NORMAL


def _validate_period(year, month) -> None:
    if isinstance(year, bool) or not isinstance(year, int) or year < 2000 or year > 2100:
        raise ReportValidationError("Year must be between 2000 and 2100.")
    if isinstance(month, bool) or not isinstance(month, int) or month < 1 or month > 12:
        raise ReportValidationError("Month must be between 1 and 12.")


def monthly_movement_report(year: int, month: int, category_id: int | None = None) -> dict:
    """
    Per-product movement totals for one calendar month (UTC).

    Args:
        year: 2000-2100
        month: 1-12
        category_id: optional category filter

    Returns:
        dict with "period", "rows" (ordered by total_stock_out desc, then name)
        and "summary".

    Raises:
        ReportValidationError: If the period is out of range
    """
    _validate_period(year, month)
    start, end = month_bounds(year, month)

    tx = InventoryTransaction
    in_month = and_(tx.transaction_date >= start, tx.transaction_date < end)
    is_in = and_(in_month, tx.transaction_type == TRANSACTION_TYPE_IN)
    is_out = and_(in_month, tx.transaction_type == TRANSACTION_TYPE_OUT)

    total_in = func.coalesce(func.sum(case((is_in, tx.quantity), else_=0)), 0)
    total_out = func.coalesce(func.sum(case((is_out, tx.quantity), else_=0)), 0)
    in_count = func.coalesce(func.sum(case((is_in, 1), else_=0)), 0)
    out_count = func.coalesce(func.sum(case((is_out, 1), else_=0)), 0)
    in_value = func.coalesce(
        func.sum(case((is_in, tx.quantity * func.coalesce(tx.unit_cost_cents, Product.unit_cost_cents)), else_=0)),
        0,
    )
    out_value = func.coalesce(func.sum(case((is_out, tx.quantity * Product.unit_price_cents), else_=0)), 0)

    q = (
        db.session.query(
            Product.id,
            Product.sku,
            Product.name,
            ProductCategory.name.label("category_name"),
            Product.stock_quantity,
            Product.reorder_level,
            Product.unit_cost_cents,
            total_in.label("total_in"),
            total_out.label("total_out"),
            in_count.label("in_count"),
            out_count.label("out_count"),
            in_value.label("in_value"),
            out_value.label("out_value"),
        )
        .outerjoin(ProductCategory, ProductCategory.id == Product.category_id)
        .outerjoin(tx, tx.product_id == Product.id)
        .filter(Product.is_active.is_(True))
    )
    if category_id is not None:
        q = q.filter(Product.category_id == category_id)

    rows = q.group_by(
        Product.id,
        Product.sku,
        Product.name,
        ProductCategory.name,
        Product.stock_quantity,
        Product.reorder_level,
        Product.unit_cost_cents,
    ).all()

    report_rows = []
    for row in rows:
        stock_in_value = int(row.in_value)
        stock_out_value = int(row.out_value)
        report_rows.append({
            "product_id": row.id,
            "sku": row.sku,
            "product_name": row.name,
            "category": row.category_name or UNCATEGORIZED,
            "total_stock_in": int(row.total_in),
            "total_stock_out": int(row.total_out),
            "net_movement": int(row.total_in) - int(row.total_out),
            "current_stock": int(row.stock_quantity),
            "in_transaction_count": int(row.in_count),
            "out_transaction_count": int(row.out_count),
            "total_transactions": int(row.in_count) + int(row.out_count),
            "stock_in_value_cents": stock_in_value,
            "stock_out_value_cents": stock_out_value,
            "gross_profit_cents": stock_out_value - stock_in_value,
            "stock_status": stock_status(int(row.stock_quantity), int(row.reorder_level)),
            "reorder_level": int(row.reorder_level),
            "inventory_value_cents": int(row.stock_quantity) * int(row.unit_cost_cents),
        })

    report_rows.sort(key=lambda r: (-r["total_stock_out"], r["product_name"]))

    summary = {
        "report_year": year,
        "report_month": month,
        "month_name": start.strftime("%B"),
        "total_products": len(report_rows),
        "out_of_stock_products": sum(1 for r in report_rows if r["stock_status"] == STOCK_STATUS_OUT),
        "low_stock_products": sum(1 for r in report_rows if r["stock_status"] == STOCK_STATUS_LOW),
        "grand_total_stock_in": sum(r["total_stock_in"] for r in report_rows),
        "grand_total_stock_out": sum(r["total_stock_out"] for r in report_rows),
        "total_current_inventory": sum(r["current_stock"] for r in report_rows),
        "total_inventory_value_cents": sum(r["inventory_value_cents"] for r in report_rows),
    }

    return {
        "period": {"start": to_utc_z(start), "end": to_utc_z(end)},
        "generated_at": to_utc_z(utcnow()),
        "category_id": category_id,
        "rows": report_rows,
        "summary": summary,
    }
