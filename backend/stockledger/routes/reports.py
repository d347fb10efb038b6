# Overview: Flask API routes for reporting; monthly movement report as raw numbers.

from flask import Blueprint, request

from ..decorators import map_ledger_errors
from ..services import reporting_service
from ..validation import parse_optional_int


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/monthly")
@map_ledger_errors("build monthly report")
def monthly_report_route():
    """
    Monthly inventory movement report.

    Query params:
    - year: 2000-2100 (required)
    - month: 1-12 (required)
    - category_id: optional filter

    All monetary values are integer cents.
    """
    args = request.args.to_dict()
    year = parse_optional_int(args, "year")
    month = parse_optional_int(args, "month")
    category_id = parse_optional_int(args, "category_id")

    report = reporting_service.monthly_movement_report(year, month, category_id=category_id)
    return report, 200
