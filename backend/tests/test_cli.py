"""
Flask CLI command tests.
"""

from stockledger.models import InventoryTransaction, LowStockAlert, Product, ProductCategory
from stockledger.services import balance_service


def test_seed_sample_posts_opening_balances(cli_runner, db_session):
    result = cli_runner.invoke(args=["system", "seed-sample", "--actor", "seed"])

    assert result.exit_code == 0, result.output
    assert "Products created: 20" in result.output
    assert ProductCategory.query.count() == 5
    assert Product.query.count() == 20

    webcam = Product.query.filter_by(sku="ELEC-004").one()
    assert webcam.stock_quantity == 8
    opening = InventoryTransaction.query.filter_by(product_id=webcam.id).one()
    assert opening.reference_type == "OPEN"
    assert opening.created_by == "seed"

    drill = Product.query.filter_by(sku="INDL-003").one()
    assert drill.stock_quantity == 0
    assert InventoryTransaction.query.filter_by(product_id=drill.id).count() == 0

    # Idempotent by SKU
    again = cli_runner.invoke(args=["system", "seed-sample"])
    assert again.exit_code == 0, again.output
    assert "Products created: 0" in again.output
    assert InventoryTransaction.query.count() == 19

    verify = cli_runner.invoke(args=["stock", "verify"])
    assert verify.exit_code == 0
    assert "All balances match" in verify.output


def test_stock_move_and_balance(cli_runner, webcam):
    result = cli_runner.invoke(args=[
        "stock", "move", "--product-id", str(webcam.id), "--direction", "out",
        "--quantity", "3", "--actor", "alice", "--reference-type", "SO",
    ])
    assert result.exit_code == 0, result.output
    assert "Stock: 8 -> 5" in result.output

    result = cli_runner.invoke(args=["stock", "balance", str(webcam.id)])
    assert result.exit_code == 0
    assert "ELEC-004" in result.output
    assert balance_service.get_balance(webcam.id).current_stock == 5


def test_stock_move_insufficient_fails(cli_runner, webcam):
    result = cli_runner.invoke(args=[
        "stock", "move", "--product-id", str(webcam.id), "--direction", "OUT",
        "--quantity", "50", "--actor", "alice",
    ])
    assert result.exit_code != 0
    assert "Insufficient stock" in result.output
    assert balance_service.get_balance(webcam.id).current_stock == 8


def test_stock_verify_reports_drift(cli_runner, webcam):
    result = cli_runner.invoke(args=["stock", "verify"])
    assert result.exit_code != 0
    assert "ELEC-004" in result.output


def test_alerts_detect_and_ack(cli_runner, webcam):
    result = cli_runner.invoke(args=["alerts", "detect"])
    assert result.exit_code == 0, result.output
    assert "[CRITICAL] Low stock alert for Webcam HD" in result.output
    assert "Alerts created: 1 (critical: 1, warning: 0)" in result.output

    alert = LowStockAlert.query.one()
    result = cli_runner.invoke(args=["alerts", "ack", str(alert.id), "--actor", "manager"])
    assert result.exit_code == 0, result.output
    assert "acknowledged by manager" in result.output

    result = cli_runner.invoke(args=["alerts", "ack", str(alert.id), "--actor", "manager"])
    assert result.exit_code != 0

    result = cli_runner.invoke(args=["alerts", "list"])
    assert "ACK" in result.output


def test_reports_monthly(cli_runner, webcam):
    result = cli_runner.invoke(args=["reports", "monthly", "--year", "2026", "--month", "3"])
    assert result.exit_code == 0, result.output
    assert "March 2026" in result.output
    assert "ELEC-004" in result.output

    result = cli_runner.invoke(args=["reports", "monthly", "--year", "1990", "--month", "3"])
    assert result.exit_code != 0
