from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z


class ProductCategory(db.Model):
    """Lookup table for product categorization. Read-only to the ledger core."""
    __tablename__ = "product_categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_product_categories_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    modified_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<ProductCategory id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "modified_at": to_utc_z(self.modified_at),
        }


class Product(db.Model):
    """
    Product master data and the materialized stock balance.

    BALANCE DESIGN DECISION:
    stock_quantity is a materialized view of the inventory ledger.
    - It is written ONLY by balance_service.apply_delta (conditional UPDATE)
    - stock_quantity == SUM(IN quantities) - SUM(OUT quantities) at all times
    - version_id is bumped by every balance write

    Catalog fields (sku, name, pricing, reorder metadata) are maintained by
    external tooling; the ledger core only reads them.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_products_unit_price_non_negative"),
        db.CheckConstraint("unit_cost_cents >= 0", name="ck_products_unit_cost_non_negative"),
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("reorder_level >= 0", name="ck_products_reorder_level_non_negative"),
        db.CheckConstraint("reorder_quantity > 0", name="ck_products_reorder_quantity_positive"),
        db.Index("ix_products_stock_reorder", "stock_quantity", "reorder_level"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.String(1000), nullable=True)
    category_id = db.Column(db.Integer, db.ForeignKey("product_categories.id"), nullable=True, index=True)

    # Authoritative storage in cents (never formatted here)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=10)
    reorder_quantity = db.Column(db.Integer, nullable=False, default=50)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_discontinued = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    modified_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    created_by = db.Column(db.String(128), nullable=False, default="system")
    modified_by = db.Column(db.String(128), nullable=False, default="system")

    category = db.relationship("ProductCategory", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category_id": self.category_id,
            "unit_cost_cents": self.unit_cost_cents,
            "unit_price_cents": self.unit_price_cents,
            "stock_quantity": self.stock_quantity,
            "reorder_level": self.reorder_level,
            "reorder_quantity": self.reorder_quantity,
            "is_active": self.is_active,
            "is_discontinued": self.is_discontinued,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "modified_at": to_utc_z(self.modified_at),
            "created_by": self.created_by,
            "modified_by": self.modified_by,
        }
