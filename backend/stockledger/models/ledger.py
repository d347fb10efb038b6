from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..errors import LedgerImmutabilityError
from stockledger.time_utils import to_utc_z


TRANSACTION_TYPE_IN = "IN"
TRANSACTION_TYPE_OUT = "OUT"
TRANSACTION_TYPES = (TRANSACTION_TYPE_IN, TRANSACTION_TYPE_OUT)


class InventoryTransaction(db.Model):
    """
    One applied stock movement (ledger entry).

    - Append-only: persisted rows are never updated or deleted.
    - stock_before / stock_after are captured at apply time, never recomputed.
    - stock_after = stock_before + quantity (IN) or stock_before - quantity (OUT), and >= 0.
    - All entries written by one submission share a batch_id.
    """
    __tablename__ = "inventory_transactions"

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    batch_id = db.Column(db.String(36), nullable=False, index=True)

    transaction_type = db.Column(db.String(3), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=True)

    # Provenance: PO, SO, ADJ, RET, OPEN, ...
    reference_type = db.Column(db.String(50), nullable=True)
    reference_number = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    transaction_date = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    created_by = db.Column(db.String(128), nullable=False)

    stock_before = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product", backref=db.backref("transactions", lazy="dynamic"))

    __table_args__ = (
        db.CheckConstraint("transaction_type IN ('IN', 'OUT')", name="ck_invtx_type"),
        db.CheckConstraint("quantity > 0", name="ck_invtx_quantity_positive"),
        db.CheckConstraint("stock_after >= 0", name="ck_invtx_stock_after_non_negative"),
        db.Index("ix_invtx_product_date", "product_id", "transaction_date"),
        db.Index("ix_invtx_date_type", "transaction_date", "transaction_type"),
        db.Index("ix_invtx_reference", "reference_type", "reference_number"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction id={self.id} product_id={self.product_id} "
            f"{self.transaction_type} {self.quantity} {self.stock_before}->{self.stock_after}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.id,
            "product_id": self.product_id,
            "batch_id": self.batch_id,
            "transaction_type": self.transaction_type,
            "quantity": self.quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "reference_type": self.reference_type,
            "reference_number": self.reference_number,
            "notes": self.notes,
            "transaction_date": to_utc_z(self.transaction_date),
            "created_by": self.created_by,
            "stock_before": self.stock_before,
            "stock_after": self.stock_after,
        }


@event.listens_for(InventoryTransaction, "before_update")
def _prevent_ledger_update(mapper, connection, target):
    raise LedgerImmutabilityError(f"inventory transaction {target.id} is immutable")


@event.listens_for(InventoryTransaction, "before_delete")
def _prevent_ledger_delete(mapper, connection, target):
    raise LedgerImmutabilityError(f"inventory transaction {target.id} cannot be deleted")
