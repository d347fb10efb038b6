from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


SEVERITY_WARNING = "WARNING"
SEVERITY_CRITICAL = "CRITICAL"
SEVERITIES = (SEVERITY_WARNING, SEVERITY_CRITICAL)


class LowStockAlert(db.Model):
    """
    Low stock alert log.

    Snapshot fields are copied from the product at detection time.

    LIFECYCLE:
    1. Created unacknowledged by a detection pass
    2. Acknowledged by an external actor (one-way)

    open_key is "<product_id>:<YYYY-MM-DD>" while unacknowledged and NULL once
    acknowledged, so the unique constraint allows at most one open alert per
    product per calendar day. Alerts are never deleted.
    """
    __tablename__ = "low_stock_alerts"
    __table_args__ = (
        db.UniqueConstraint("open_key", name="uq_low_stock_alerts_open_key"),
        db.CheckConstraint("alert_severity IN ('WARNING', 'CRITICAL')", name="ck_low_stock_alerts_severity"),
        db.Index("ix_low_stock_alerts_product_created", "product_id", "created_at"),
        db.Index("ix_low_stock_alerts_ack_created", "is_acknowledged", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    sku = db.Column(db.String(50), nullable=False)
    product_name = db.Column(db.String(200), nullable=False)

    current_stock = db.Column(db.Integer, nullable=False)
    # Effective threshold used by the detection pass (may be an override)
    reorder_level = db.Column(db.Integer, nullable=False)
    stock_deficit = db.Column(db.Integer, nullable=False)
    suggested_reorder = db.Column(db.Integer, nullable=False)

    alert_message = db.Column(db.String(1000), nullable=False)
    alert_severity = db.Column(db.String(20), nullable=False, default=SEVERITY_WARNING)

    is_acknowledged = db.Column(db.Boolean, nullable=False, default=False)
    acknowledged_at = db.Column(db.DateTime(timezone=True), nullable=True)
    acknowledged_by = db.Column(db.String(128), nullable=True)

    open_key = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("alerts", lazy="dynamic"))

    def __repr__(self) -> str:
        return f"<LowStockAlert id={self.id} sku={self.sku!r} {self.alert_severity} ack={self.is_acknowledged}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "sku": self.sku,
            "product_name": self.product_name,
            "current_stock": self.current_stock,
            "reorder_level": self.reorder_level,
            "stock_deficit": self.stock_deficit,
            "suggested_reorder": self.suggested_reorder,
            "alert_severity": self.alert_severity,
            "alert_message": self.alert_message,
            "is_acknowledged": self.is_acknowledged,
            "acknowledged_at": to_utc_z(self.acknowledged_at) if self.acknowledged_at else None,
            "acknowledged_by": self.acknowledged_by,
            "created_at": to_utc_z(self.created_at),
        }
