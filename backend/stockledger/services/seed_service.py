# Overview: Service-layer operations for sample data; idempotent catalog seeding and opening balances.

from __future__ import annotations

from ..extensions import db
from ..models import Product, ProductCategory
from ..models.ledger import TRANSACTION_TYPE_IN
from .movement_service import MovementRequest, submit_movements

"""
Sample data seeding.

- Categories and products are matched by name / SKU; existing rows are left alone.
- Products are created with stock_quantity 0. Opening balances are posted as IN
  movements (reference_type OPEN) so the ledger explains every unit on hand.
- Opening balances are posted only for products created by this run.
"""

OPENING_REFERENCE_TYPE = "OPEN"
OPENING_REFERENCE_NUMBER = "OPENING-BALANCE"

SAMPLE_CATEGORIES = [
    ("Electronics", "Electronic devices and components"),
    ("Office Supplies", "General office supplies and stationery"),
    ("Furniture", "Office and warehouse furniture"),
    ("Industrial Equipment", "Heavy machinery and industrial tools"),
    ("Packaging Materials", "Boxes, tape, and packaging supplies"),
]

# sku, name, description, category, unit_cost_cents, unit_price_cents, opening_stock, reorder_level, reorder_quantity
SAMPLE_PRODUCTS = [
    ("ELEC-001", "Wireless Mouse", "Ergonomic wireless mouse with USB receiver", "Electronics", 1250, 2499, 150, 25, 100),
    ("ELEC-002", "USB-C Hub", "7-port USB-C hub with HDMI output", "Electronics", 3500, 6999, 75, 20, 50),
    ("ELEC-003", "Mechanical Keyboard", "RGB mechanical gaming keyboard", "Electronics", 4500, 8999, 40, 15, 30),
    ("ELEC-004", "Webcam HD", "1080p HD webcam with microphone", "Electronics", 2800, 5499, 8, 20, 40),
    ("ELEC-005", '27" Monitor', "27 inch 4K IPS Monitor", "Electronics", 25000, 44999, 12, 10, 20),
    ("OFFC-001", "A4 Paper Ream", "500 sheets, 80gsm white paper", "Office Supplies", 350, 799, 500, 100, 200),
    ("OFFC-002", "Ballpoint Pens (12pk)", "Blue ballpoint pens, pack of 12", "Office Supplies", 200, 599, 200, 50, 100),
    ("OFFC-003", "Stapler Heavy Duty", "Industrial stapler, 100 sheet capacity", "Office Supplies", 1500, 2999, 45, 10, 25),
    ("OFFC-004", "Whiteboard Markers", "Assorted colors, pack of 8", "Office Supplies", 400, 999, 180, 30, 60),
    ("OFFC-005", "Document Folders", "Plastic folders, pack of 25", "Office Supplies", 800, 1899, 5, 15, 50),
    ("FURN-001", "Office Chair Ergonomic", "Adjustable ergonomic office chair", "Furniture", 18000, 34999, 25, 5, 15),
    ("FURN-002", "Standing Desk", "Electric height-adjustable desk", "Furniture", 35000, 69999, 8, 3, 10),
    ("FURN-003", "Filing Cabinet 3-Drawer", "Metal filing cabinet with lock", "Furniture", 12000, 22999, 15, 5, 10),
    ("INDL-001", "Pallet Jack", "Manual hydraulic pallet jack", "Industrial Equipment", 25000, 44999, 6, 2, 5),
    ("INDL-002", "Safety Goggles (12pk)", "ANSI-rated safety goggles", "Industrial Equipment", 2400, 4999, 30, 10, 25),
    ("INDL-003", "Power Drill", "Cordless 20V power drill", "Industrial Equipment", 8500, 15999, 0, 8, 15),
    ("PACK-001", "Cardboard Boxes (Large)", "Large shipping boxes, 50 pack", "Packaging Materials", 4500, 8999, 60, 20, 50),
    ("PACK-002", "Packing Tape", "Heavy duty packing tape, 6 rolls", "Packaging Materials", 1200, 2499, 150, 30, 75),
    ("PACK-003", "Bubble Wrap Roll", "100ft bubble wrap roll", "Packaging Materials", 1800, 3499, 25, 10, 30),
    ("PACK-004", "Shipping Labels", "Self-adhesive labels, 500 pack", "Packaging Materials", 1500, 3299, 3, 10, 30),
]


def ensure_category(name: str, description: str | None = None) -> ProductCategory:
    category = ProductCategory.query.filter_by(name=name).first()
    if category:
        return category
    category = ProductCategory(name=name, description=description, is_active=True)
    db.session.add(category)
    db.session.flush()
    return category


def seed_sample_data(*, actor: str = "system") -> dict:
    """
    Create the sample catalog and post opening balances.

    Returns:
        dict with created category/product counts and the opening entries written.
    """
    categories = {}
    created_categories = 0
    for name, description in SAMPLE_CATEGORIES:
        existed = ProductCategory.query.filter_by(name=name).first() is not None
        categories[name] = ensure_category(name, description)
        if not existed:
            created_categories += 1

    created_products = []
    for sku, name, description, category_name, cost, price, _, reorder_level, reorder_qty in SAMPLE_PRODUCTS:
        if Product.query.filter_by(sku=sku).first():
            continue
        product = Product(
            sku=sku,
            name=name,
            description=description,
            category_id=categories[category_name].id,
            unit_cost_cents=cost,
            unit_price_cents=price,
            stock_quantity=0,
            reorder_level=reorder_level,
            reorder_quantity=reorder_qty,
            created_by=actor,
            modified_by=actor,
        )
        db.session.add(product)
        created_products.append(product)

    db.session.commit()

    opening_stock = {row[0]: (row[4], row[6]) for row in SAMPLE_PRODUCTS}
    openings = []
    for product in created_products:
        cost, quantity = opening_stock[product.sku]
        if quantity <= 0:
            continue
        openings.append(
            MovementRequest(
                product_id=product.id,
                direction=TRANSACTION_TYPE_IN,
                quantity=quantity,
                unit_cost_cents=cost,
                reference_type=OPENING_REFERENCE_TYPE,
                reference_number=OPENING_REFERENCE_NUMBER,
                notes="Opening balance",
            )
        )

    entries = submit_movements(openings, actor=actor) if openings else []

    return {
        "categories_created": created_categories,
        "products_created": len(created_products),
        "opening_entries": len(entries),
    }
