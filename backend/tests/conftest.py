"""
Pytest fixtures for Kelola backend tests.

Provides the test app on in-memory SQLite, a per-test table wipe, users with
bearer tokens, and a variant factory.
"""

import itertools

import pytest

from kelola import create_app
from kelola.extensions import db
from kelola.models import UserRole
from kelola.services import catalog_service, user_service
from kelola.validation import ProductRequest, VariantRequest


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STOCK_RETRY_BACKOFF': 0,
        'REORDER_WINDOW_MODE': 'assumed',
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
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def owner(db_session):
    user, token = user_service.create_user("Owner", "owner@kelola.test", UserRole.OWNER)
    user.token = token
    return user


@pytest.fixture(scope='function')
def staff(db_session):
    user, token = user_service.create_user("Kasir", "kasir@kelola.test", UserRole.STAFF)
    user.token = token
    return user


@pytest.fixture(scope='function')
def owner_headers(owner):
    return auth_headers(owner.token)


@pytest.fixture(scope='function')
def staff_headers(staff):
    return auth_headers(staff.token)


_sku_counter = itertools.count(1)


@pytest.fixture(scope='function')
def make_variant(db_session):
    """
    Factory: make_variant(stock=20, min_stock=5, ...) -> ProductVariant

    Each call creates a new product with one variant. Pass product_id to add
    another variant to an existing product instead.
    """
    def _make(
        stock=20,
        min_stock=5,
        price_cents=None,
        selling_price_cents=100,
        cost_price_cents=60,
        size="M",
        color="Black",
        barcode=None,
        product_id=None,
    ):
        variant_request = VariantRequest(
            size=size,
            color=color,
            stock=stock,
            min_stock=min_stock,
            price_cents=price_cents,
            barcode=barcode,
        )
        if product_id is not None:
            return catalog_service.add_variant(product_id, variant_request)

        n = next(_sku_counter)
        product = catalog_service.create_product(ProductRequest(
            sku=f"KMJ-{n:04d}",
            name=f"Kemeja Batik {n}",
            cost_price_cents=cost_price_cents,
            selling_price_cents=selling_price_cents,
            variants=[variant_request],
        ))
        return product.variants[0]

    return _make


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
