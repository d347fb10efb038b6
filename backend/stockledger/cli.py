# Overview: Flask CLI command groups for bootstrap, stock movements, alerts and reports.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-sample [--actor seed]
#   Create the sample catalog; opening balances are posted as IN movements (reference OPEN).
#
# Stock movements and balances:
# - python -m flask stock move --product-id 4 --direction OUT --quantity 3 --actor alice --reference-type SO --reference-number SO-1
#   Apply one movement through the ledger engine.
# - python -m flask stock balance 4
#   Show the current balance of one product.
# - python -m flask stock balance
#   List all balances.
# - python -m flask stock verify
#   Compare every balance against SUM(IN) - SUM(OUT); exits non-zero on mismatch.
#
# Alerts:
# - python -m flask alerts detect [--threshold 15] [--severity CRITICAL]
#   Run one low stock detection pass.
# - python -m flask alerts list [--open]
#   List alerts, critical first.
# - python -m flask alerts ack 12 --actor alice
#   Acknowledge an alert.
#
# Reports:
# - python -m flask reports monthly --year 2026 --month 1 [--category-id 2]
#   Monthly inventory movement report (quantities and cents).

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import StockLedgerError
from .services import alert_service, balance_service, movement_service, reporting_service, seed_service


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-sample' to load sample data.")


@system_group.command('seed-sample')
@click.option('--actor', default='system', show_default=True, help='Identity recorded on seeded rows')
@with_appcontext
def seed_sample(actor):
    """
    Load the sample catalog (idempotent by SKU).

    Opening balances are posted as IN movements so the ledger explains all stock.
    """
    try:
        summary = seed_service.seed_sample_data(actor=actor)
    except StockLedgerError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Categories created: {summary['categories_created']}")
    click.echo(f"PASS Products created: {summary['products_created']}")
    click.echo(f"PASS Opening entries posted: {summary['opening_entries']}")


@click.group('stock')
def stock_group():
    """Stock movement and balance commands."""


@stock_group.command('move')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--direction', type=click.Choice(['IN', 'OUT'], case_sensitive=False), required=True)
@click.option('--quantity', type=int, required=True, help='Positive quantity')
@click.option('--unit-cost-cents', type=int, help='Unit cost in cents')
@click.option('--reference-type', help='PO, SO, ADJ, RET, ...')
@click.option('--reference-number', help='External document number')
@click.option('--notes', help='Free text')
@click.option('--actor', required=True, help='Who is recording this movement')
@with_appcontext
def move_cli(product_id, direction, quantity, unit_cost_cents, reference_type, reference_number, notes, actor):
    """
    Apply one stock movement.

    Example:
        flask stock move --product-id 4 --direction IN --quantity 40 --actor alice --reference-type PO
    """
    try:
        entry = movement_service.submit_movement(
            product_id,
            direction,
            quantity,
            unit_cost_cents=unit_cost_cents,
            reference_type=reference_type,
            reference_number=reference_number,
            notes=notes,
            actor=actor,
        )
    except StockLedgerError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Transaction {entry.id}: {entry.transaction_type} {entry.quantity}")
    click.echo(f"   Stock: {entry.stock_before} -> {entry.stock_after}")


@stock_group.command('balance')
@click.argument('product_id', type=int, required=False)
@with_appcontext
def balance_cli(product_id):
    """Show one balance, or all balances when no product id is given."""
    try:
        if product_id is not None:
            balances = [balance_service.get_balance(product_id)]
        else:
            balances = balance_service.list_balances()
    except StockLedgerError as e:
        raise click.ClickException(str(e))

    if not balances:
        click.echo("No products found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'SKU':<12} {'Name':<30} {'Stock':>8} {'Reorder':>8}")
    click.echo("="*80)
    for b in balances:
        click.echo(f"{b.product_id:<5} {b.sku:<12} {b.name[:30]:<30} {b.current_stock:>8} {b.reorder_level:>8}")
    click.echo("="*80 + "\n")


@stock_group.command('verify')
@with_appcontext
def verify_cli():
    """Check that every balance equals SUM(IN) - SUM(OUT) of its ledger."""
    mismatches = movement_service.reconcile_balances()
    if not mismatches:
        click.echo("PASS All balances match the ledger.")
        return

    for m in mismatches:
        click.echo(
            f"FAIL {m['sku']} (ID {m['product_id']}): stock {m['stock_quantity']}, "
            f"ledger {m['ledger_total']}, difference {m['difference']}"
        )
    raise click.ClickException(f"{len(mismatches)} product(s) out of balance")


@click.group('alerts')
def alerts_group():
    """Low stock alert commands."""


@alerts_group.command('detect')
@click.option('--threshold', 'threshold_override', type=int, help='Override every reorder level')
@click.option('--severity', 'severity_filter', type=click.Choice(['WARNING', 'CRITICAL'], case_sensitive=False))
@with_appcontext
def detect_cli(threshold_override, severity_filter):
    """Run one low stock detection pass."""
    try:
        result = alert_service.detect_low_stock(
            threshold_override=threshold_override,
            severity_filter=severity_filter,
        )
    except StockLedgerError as e:
        raise click.ClickException(str(e))

    for alert in result.created:
        click.echo(alert.alert_message)

    click.echo(
        f"Alerts created: {result.total_created} "
        f"(critical: {result.critical}, warning: {result.warning})"
    )


@alerts_group.command('list')
@click.option('--open', 'open_only', is_flag=True, help='Only unacknowledged alerts')
@click.option('--limit', type=int, default=50, show_default=True)
@with_appcontext
def list_alerts_cli(open_only, limit):
    """List alerts, critical first then deficit descending."""
    alerts = alert_service.list_alerts(acknowledged=False if open_only else None, limit=limit)
    if not alerts:
        click.echo("No alerts found.")
        return

    for a in alerts:
        state = "ACK" if a.is_acknowledged else "OPEN"
        click.echo(
            f"{a.id:<5} {a.alert_severity:<9} {state:<5} {a.sku:<12} "
            f"stock {a.current_stock}/{a.reorder_level} reorder {a.suggested_reorder}"
        )


@alerts_group.command('ack')
@click.argument('alert_id', type=int)
@click.option('--actor', required=True, help='Who acknowledges the alert')
@with_appcontext
def ack_cli(alert_id, actor):
    """Acknowledge an alert."""
    try:
        alert = alert_service.acknowledge_alert(alert_id, actor=actor)
    except StockLedgerError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Alert {alert.id} acknowledged by {alert.acknowledged_by}")


@click.group('reports')
def reports_group():
    """Reporting commands."""


@reports_group.command('monthly')
@click.option('--year', type=int, required=True)
@click.option('--month', type=int, required=True)
@click.option('--category-id', type=int, help='Filter by category')
@with_appcontext
def monthly_report_cli(year, month, category_id):
    """Monthly inventory movement report."""
    try:
        report = reporting_service.monthly_movement_report(year, month, category_id=category_id)
    except StockLedgerError as e:
        raise click.ClickException(str(e))

    summary = report["summary"]
    click.echo(f"\nINVENTORY MOVEMENT REPORT: {summary['month_name']} {summary['report_year']}")
    click.echo("="*110)
    click.echo(
        f"{'SKU':<10} {'Product':<26} {'Category':<20} {'In':>7} {'Out':>7} "
        f"{'Net':>7} {'Stock':>7} {'Status':<13}"
    )
    click.echo("="*110)
    for r in report["rows"]:
        click.echo(
            f"{r['sku']:<10} {r['product_name'][:26]:<26} {r['category'][:20]:<20} "
            f"{r['total_stock_in']:>7} {r['total_stock_out']:>7} {r['net_movement']:>7} "
            f"{r['current_stock']:>7} {r['stock_status']:<13}"
        )
    click.echo("="*110)
    click.echo(f"Products: {summary['total_products']}")
    click.echo(f"Out of stock: {summary['out_of_stock_products']}")
    click.echo(f"Low stock: {summary['low_stock_products']}")
    click.echo(f"Total stock in: {summary['grand_total_stock_in']}")
    click.echo(f"Total stock out: {summary['grand_total_stock_out']}")
    click.echo(f"Inventory value: {_money(summary['total_inventory_value_cents'])}\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(alerts_group)
    app.cli.add_command(reports_group)
