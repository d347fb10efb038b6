# Overview: Service-layer operations for low stock alerts; detection pass and acknowledgment.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy import Integer, case, func, literal
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from ..extensions import db
from ..models import LowStockAlert, Product
from ..models.alerts import SEVERITY_CRITICAL, SEVERITY_WARNING, SEVERITIES
from ..errors import (
    AlertAlreadyAcknowledgedError,
    AlertNotFoundError,
    AlertValidationError,
    StoreUnavailableError,
)
from stockledger.time_utils import day_bounds, utcnow, to_utc_naive, to_utc_z
from .concurrency import detection_lock, run_with_retry
"""
Low Stock Detection (authoritative)

Candidates:
- Active, non-discontinued products with stock_quantity < effective threshold
  (threshold_override when given, else the product's reorder_level).
- Materialized by one filtered SELECT (point-in-time view of balances), ordered
  out-of-stock first, then by deficit descending.

Per candidate:
- deficit = threshold - stock
- CRITICAL if stock <= 0 or stock <= threshold // 2, else WARNING
- suggested reorder = reorder_quantity, doubled when stock <= 0
- skipped when severity_filter is given and does not match
- skipped when an unacknowledged alert for the product exists for the same
  calendar day (UTC); skipped candidates are not counted

Concurrency:
- Passes serialize on an in-process lock; across processes the unique
  open_key column rejects a duplicate and the pass is retried (dedup makes the
  rerun safe).
"""

SEVERITY_RANK = {SEVERITY_CRITICAL: 0, SEVERITY_WARNING: 1}


@dataclass(frozen=True)
class LowStockCandidate:
    product_id: int
    sku: str
    name: str
    current_stock: int
    threshold: int
    reorder_quantity: int

    @property
    def deficit(self) -> int:
        return self.threshold - self.current_stock

    @property
    def severity(self) -> str:
        return classify_severity(self.current_stock, self.threshold)

    @property
    def suggested_reorder(self) -> int:
        return suggested_reorder(self.current_stock, self.reorder_quantity)


@dataclass
class DetectionResult:
    created: list = field(default_factory=list)
    total_created: int = 0
    critical: int = 0
    warning: int = 0
    processed_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "created": [a.to_dict() for a in self.created],
            "total_created": self.total_created,
            "critical": self.critical,
            "warning": self.warning,
            "processed_at": to_utc_z(self.processed_at),
        }


def classify_severity(current_stock: int, threshold: int) -> str:
    if current_stock <= 0 or current_stock <= threshold // 2:
        return SEVERITY_CRITICAL
    return SEVERITY_WARNING


def suggested_reorder(current_stock: int, reorder_quantity: int) -> int:
    return reorder_quantity * 2 if current_stock <= 0 else reorder_quantity


def render_alert_message(candidate: LowStockCandidate) -> str:
    return (
        f"[{candidate.severity}] Low stock alert for {candidate.name} (SKU: {candidate.sku}). "
        f"Current stock: {candidate.current_stock} units. "
        f"Reorder level: {candidate.threshold} units. "
        f"Deficit: {candidate.deficit} units. "
        f"Recommended reorder quantity: {candidate.suggested_reorder} units."
    )


def open_key_for(product_id: int, moment: datetime) -> str:
    return f"{product_id}:{moment.date().isoformat()}"


def _validate_inputs(threshold_override, severity_filter) -> tuple[int | None, str | None]:
    if threshold_override is not None:
        if isinstance(threshold_override, bool) or not isinstance(threshold_override, int):
            raise AlertValidationError("threshold_override must be an integer")
        if threshold_override < 0:
            raise AlertValidationError("threshold_override cannot be negative")

    if severity_filter is not None:
        severity_filter = str(severity_filter).strip().upper()
        if severity_filter not in SEVERITIES:
            raise AlertValidationError("severity_filter must be WARNING or CRITICAL")

    return threshold_override, severity_filter


def find_low_stock_candidates(threshold_override: int | None = None) -> list[LowStockCandidate]:
    """
    Point-in-time scan of active products below their effective threshold.

    Ordered out-of-stock first, then by deficit descending (ties by product id).
    """
    if threshold_override is not None:
        threshold = literal(threshold_override, Integer)
    else:
        threshold = Product.reorder_level

    rows = (
        db.session.query(
            Product.id,
            Product.sku,
            Product.name,
            Product.stock_quantity,
            threshold.label("threshold"),
            Product.reorder_quantity,
        )
        .filter(
            Product.is_active.is_(True),
            Product.is_discontinued.is_(False),
            Product.stock_quantity < threshold,
        )
        .order_by(
            case((Product.stock_quantity <= 0, 0), else_=1),
            (threshold - Product.stock_quantity).desc(),
            Product.id,
        )
        .all()
    )
    return [
        LowStockCandidate(
            product_id=row.id,
            sku=row.sku,
            name=row.name,
            current_stock=int(row.stock_quantity),
            threshold=int(row.threshold),
            reorder_quantity=int(row.reorder_quantity),
        )
        for row in rows
    ]


def _has_open_alert_today(product_id: int, now: datetime) -> bool:
    start, end = day_bounds(now)
    existing = (
        db.session.query(LowStockAlert.id)
        .filter(
            LowStockAlert.product_id == product_id,
            LowStockAlert.is_acknowledged.is_(False),
            LowStockAlert.created_at >= start,
            LowStockAlert.created_at < end,
        )
        .first()
    )
    return existing is not None


def _detect_pass(threshold_override, severity_filter, now: datetime) -> DetectionResult:
    result = DetectionResult(processed_at=now)

    for candidate in find_low_stock_candidates(threshold_override):
        severity = candidate.severity
        if severity_filter is not None and severity != severity_filter:
            continue
        if _has_open_alert_today(candidate.product_id, now):
            continue

        alert = LowStockAlert(
            product_id=candidate.product_id,
            sku=candidate.sku,
            product_name=candidate.name,
            current_stock=candidate.current_stock,
            reorder_level=candidate.threshold,
            stock_deficit=candidate.deficit,
            suggested_reorder=candidate.suggested_reorder,
            alert_message=render_alert_message(candidate),
            alert_severity=severity,
            is_acknowledged=False,
            open_key=open_key_for(candidate.product_id, now),
            created_at=now,
        )
        db.session.add(alert)
        result.created.append(alert)
        result.total_created += 1
        if severity == SEVERITY_CRITICAL:
            result.critical += 1
        else:
            result.warning += 1

    db.session.commit()

    result.created.sort(key=lambda a: (SEVERITY_RANK[a.alert_severity], -a.stock_deficit, a.id))
    for alert in result.created:
        current_app.logger.info(alert.alert_message)
    return result


def detect_low_stock(
    threshold_override: int | None = None,
    severity_filter: str | None = None,
    *,
    now: datetime | None = None,
) -> DetectionResult:
    """
    Run one low stock detection pass.

    Returns:
        DetectionResult: alerts created by this pass (critical first, then
        deficit descending) and the created/critical/warning counts.

    Raises:
        AlertValidationError: invalid threshold_override or severity_filter
        StoreUnavailableError: the store kept failing after retries
    """
    threshold_override, severity_filter = _validate_inputs(threshold_override, severity_filter)
    moment = to_utc_naive(now) or utcnow()

    def _op():
        return _detect_pass(threshold_override, severity_filter, moment)

    with detection_lock:
        try:
            return run_with_retry(
                _op,
                attempts=current_app.config.get("DB_RETRY_ATTEMPTS", 3),
                backoff_base=current_app.config.get("DB_RETRY_BACKOFF_SECONDS", 0.1),
                retry_on=(IntegrityError, OperationalError),
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreUnavailableError(f"low stock detection failed: {exc}") from exc


def acknowledge_alert(alert_id: int, *, actor: str, now: datetime | None = None) -> LowStockAlert:
    """
    Acknowledge an alert (one-way transition).

    Clears open_key so a later pass on the same day may raise a new alert.
    """
    if not actor or not str(actor).strip():
        raise AlertValidationError("actor is required")

    def _op():
        alert = db.session.get(LowStockAlert, alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        if alert.is_acknowledged:
            raise AlertAlreadyAcknowledgedError(f"alert {alert_id} is already acknowledged")

        alert.is_acknowledged = True
        alert.acknowledged_at = to_utc_naive(now) or utcnow()
        alert.acknowledged_by = str(actor).strip()[:128]
        alert.open_key = None
        db.session.commit()
        return alert

    try:
        return run_with_retry(
            _op,
            attempts=current_app.config.get("DB_RETRY_ATTEMPTS", 3),
            backoff_base=current_app.config.get("DB_RETRY_BACKOFF_SECONDS", 0.1),
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreUnavailableError(f"alert acknowledgment failed: {exc}") from exc


def list_alerts(*, acknowledged: bool | None = None, product_id: int | None = None, limit: int = 200) -> list[LowStockAlert]:
    """Alerts ordered critical first, then deficit descending, newest first on ties."""
    q = LowStockAlert.query
    if acknowledged is not None:
        q = q.filter(LowStockAlert.is_acknowledged.is_(acknowledged))
    if product_id is not None:
        q = q.filter(LowStockAlert.product_id == product_id)

    severity_order = case((LowStockAlert.alert_severity == SEVERITY_CRITICAL, 1), else_=2)
    return (
        q.order_by(severity_order, LowStockAlert.stock_deficit.desc(), LowStockAlert.created_at.desc(), LowStockAlert.id.desc())
        .limit(limit)
        .all()
    )


def count_open_alerts() -> dict:
    rows = (
        db.session.query(LowStockAlert.alert_severity, func.count(LowStockAlert.id))
        .filter(LowStockAlert.is_acknowledged.is_(False))
        .group_by(LowStockAlert.alert_severity)
        .all()
    )
    counts = {SEVERITY_CRITICAL: 0, SEVERITY_WARNING: 0}
    for severity, total in rows:
        counts[severity] = int(total)
    return counts
