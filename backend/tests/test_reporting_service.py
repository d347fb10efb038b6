"""
Monthly movement report tests.
"""

import pytest

from stockledger.models import ProductCategory
from stockledger.services import movement_service, reporting_service
from stockledger.errors import ReportValidationError


@pytest.fixture
def report_data(db_session, category, product_factory):
    tools = ProductCategory(name="Tools")
    db_session.add(tools)
    db_session.commit()

    mouse = product_factory("R-MOUSE", "Mouse", unit_cost_cents=1000, unit_price_cents=2000, category_id=category.id)
    cable = product_factory("R-CABLE", "Cable", unit_cost_cents=500, unit_price_cents=900, category_id=category.id)
    drill = product_factory("R-DRILL", "Drill", reorder_level=8, category_id=tools.id)

    jan = "2026-01-15T10:00:00Z"
    movement_service.submit_movement(mouse.id, "IN", 10, unit_cost_cents=900, actor="alice", occurred_at=jan)
    movement_service.submit_movement(mouse.id, "OUT", 4, actor="alice", occurred_at=jan)
    movement_service.submit_movement(cable.id, "IN", 5, actor="alice", occurred_at=jan)
    movement_service.submit_movement(cable.id, "OUT", 5, actor="alice", occurred_at="2026-01-31T23:59:59Z")
    movement_service.submit_movement(mouse.id, "OUT", 1, actor="alice", occurred_at="2026-02-01T00:00:00Z")

    return {"mouse": mouse, "cable": cable, "drill": drill, "tools": tools}


def test_monthly_rows_and_ordering(report_data):
    report = reporting_service.monthly_movement_report(2026, 1)

    rows = {r["sku"]: r for r in report["rows"]}
    assert [r["sku"] for r in report["rows"]] == ["R-CABLE", "R-MOUSE", "R-DRILL"]

    mouse = rows["R-MOUSE"]
    assert mouse["total_stock_in"] == 10
    assert mouse["total_stock_out"] == 4
    assert mouse["net_movement"] == 6
    assert mouse["current_stock"] == 5
    assert mouse["in_transaction_count"] == 1
    assert mouse["out_transaction_count"] == 1
    assert mouse["total_transactions"] == 2
    assert mouse["stock_in_value_cents"] == 9000
    assert mouse["stock_out_value_cents"] == 8000
    assert mouse["gross_profit_cents"] == -1000
    assert mouse["stock_status"] == "LOW_STOCK"
    assert mouse["category"] == "Electronics"
    assert mouse["inventory_value_cents"] == 5000

    cable = rows["R-CABLE"]
    # No entry cost: falls back to the product's unit cost
    assert cable["stock_in_value_cents"] == 2500
    assert cable["stock_out_value_cents"] == 4500
    assert cable["stock_status"] == "OUT_OF_STOCK"

    drill = rows["R-DRILL"]
    assert drill["total_stock_in"] == drill["total_stock_out"] == 0
    assert drill["total_transactions"] == 0
    assert drill["category"] == "Tools"


def test_monthly_summary(report_data):
    summary = reporting_service.monthly_movement_report(2026, 1)["summary"]

    assert summary["report_year"] == 2026
    assert summary["report_month"] == 1
    assert summary["month_name"] == "January"
    assert summary["total_products"] == 3
    assert summary["out_of_stock_products"] == 2
    assert summary["low_stock_products"] == 1
    assert summary["grand_total_stock_in"] == 15
    assert summary["grand_total_stock_out"] == 9
    assert summary["total_current_inventory"] == 5
    assert summary["total_inventory_value_cents"] == 5000


def test_month_boundaries(report_data):
    february = reporting_service.monthly_movement_report(2026, 2)
    rows = {r["sku"]: r for r in february["rows"]}

    assert rows["R-MOUSE"]["total_stock_out"] == 1
    assert rows["R-CABLE"]["total_stock_out"] == 0
    assert february["period"] == {"start": "2026-02-01T00:00:00Z", "end": "2026-03-01T00:00:00Z"}


def test_category_filter(report_data):
    report = reporting_service.monthly_movement_report(2026, 1, category_id=report_data["tools"].id)
    assert [r["sku"] for r in report["rows"]] == ["R-DRILL"]


def test_uncategorized_products(db_session, product_factory):
    product_factory("R-LOOSE", "Loose item", stock=50)
    row = reporting_service.monthly_movement_report(2026, 1)["rows"][0]
    assert row["category"] == "Uncategorized"
    assert row["stock_status"] == "NORMAL"


@pytest.mark.parametrize("year,month", [(1999, 1), (2101, 1), (2026, 0), (2026, 13), (None, 1), (2026, None)])
def test_invalid_period(db_session, year, month):
    with pytest.raises(ReportValidationError):
        reporting_service.monthly_movement_report(year, month)


def test_stock_status():
    assert reporting_service.stock_status(0, 5) == "OUT_OF_STOCK"
    assert reporting_service.stock_status(4, 5) == "LOW_STOCK"
    assert reporting_service.stock_status(5, 5) == "NORMAL"
