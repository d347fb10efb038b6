# Overview: Flask API routes for product balances; read-only JSON views of current stock.

from flask import Blueprint, request

from ..decorators import map_ledger_errors
from ..services import balance_service


balances_bp = Blueprint("balances", __name__, url_prefix="/api/balances")


@balances_bp.get("")
@map_ledger_errors("list balances")
def list_balances_route():
    active_only = request.args.get("active_only", "false").lower() in ("1", "true", "yes")
    balances = balance_service.list_balances(active_only=active_only)
    return {"items": [b.to_dict() for b in balances]}, 200


@balances_bp.get("/<int:product_id>")
@map_ledger_errors("read balance")
def get_balance_route(product_id: int):
    """Current stock and reorder metadata; 404 for unknown products."""
    balance = balance_service.get_balance(product_id)
    return {"balance": balance.to_dict()}, 200
