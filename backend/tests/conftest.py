"""
Pytest fixtures for stock ledger backend tests.

Provides test database setup, product fixtures, and test client.
"""

import pytest
from stockledger import create_app
from stockledger.extensions import db
from stockledger.models import ProductCategory, Product


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PRODUCT_LOCK_TIMEOUT_SECONDS': 2,
        'DB_RETRY_BACKOFF_SECONDS': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def cli_runner(app):
    return app.test_cli_runner()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Core deletes; the ledger's ORM guards only cover unit-of-work deletes
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def category(db_session):
    cat = ProductCategory(name="Electronics", description="Electronic devices and components")
    db_session.add(cat)
    db_session.commit()
    return cat


def make_product(session, sku, name, *, stock=0, reorder_level=10, reorder_quantity=50,
                 unit_cost_cents=1000, unit_price_cents=2000, category_id=None, **extra):
    """Insert a product row directly; stock set here bypasses the ledger."""
    product = Product(
        sku=sku,
        name=name,
        category_id=category_id,
        unit_cost_cents=unit_cost_cents,
        unit_price_cents=unit_price_cents,
        stock_quantity=stock,
        reorder_level=reorder_level,
        reorder_quantity=reorder_quantity,
        **extra,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def webcam(db_session, category):
    """Product with 8 on hand, reorder level 20, reorder quantity 40."""
    return make_product(
        db_session, "ELEC-004", "Webcam HD",
        stock=8, reorder_level=20, reorder_quantity=40,
        unit_cost_cents=2800, unit_price_cents=5499, category_id=category.id,
    )


@pytest.fixture(scope='function')
def empty_product(db_session):
    """Product with no stock, reorder level 8, reorder quantity 15."""
    return make_product(
        db_session, "INDL-003", "Power Drill",
        stock=0, reorder_level=8, reorder_quantity=15,
        unit_cost_cents=8500, unit_price_cents=15999,
    )


@pytest.fixture(scope='function')
def product_factory(db_session):
    def _make(sku, name=None, **kwargs):
        return make_product(db_session, sku, name or sku, **kwargs)
    return _make
