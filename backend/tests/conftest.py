"""
Pytest fixtures for storefront back-office tests.

Provides the test app and database, an authenticated admin, and small
factories for products and orders.
"""

import pytest
from sqlalchemy.exc import OperationalError

from storefront import create_app
from storefront.actor import Actor
from storefront.extensions import db
from storefront.models import Product
from storefront.services import order_service, session_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'NOTIFICATIONS_ENABLED': False,
        'MAIL_SERVER': None,
        'LOW_STOCK_ALERT_RECIPIENT': None,
        'ORDER_MODIFICATION_WINDOW_DAYS': 30,
        'LOW_STOCK_THRESHOLD_DEFAULT': 5,
        'CRITICAL_STOCK_THRESHOLD_DEFAULT': 1,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    # Clear all data but keep schema
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    # Cleanup after test
    db.session.rollback()
    db.session.remove()


@pytest.fixture(scope='function')
def fail_next_commit(db_session, monkeypatch):
    """
    Arm db.session.commit() to raise OperationalError the next `times` calls.
    Commits made before arming and after the failures go through.
    """
    real_commit = db.session.commit
    remaining = {"n": 0}

    def _commit():
        if remaining["n"]:
            remaining["n"] -= 1
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))
        return real_commit()

    monkeypatch.setattr(db.session, "commit", _commit)

    def _arm(times=1):
        remaining["n"] = times

    return _arm


@pytest.fixture(scope='function')
def admin(db_session):
    """Create an active back-office admin."""
    return session_service.create_admin("Ops Lead", "ops@storefront.test")


@pytest.fixture(scope='function')
def actor(admin):
    return Actor.from_admin(admin)


@pytest.fixture(scope='function')
def admin_token(admin):
    _, token = session_service.create_session(admin.id)
    return token


@pytest.fixture(scope='function')
def admin_headers(admin_token):
    return auth_headers(admin_token)


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: persist a product with the given stock."""
    counter = {"n": 0}

    def _make(quantity=10, *, price_cents=1000, name=None, category="general",
              low_stock_threshold=None, critical_stock_threshold=None):
        counter["n"] += 1
        product = Product(
            sku=f"SKU-{counter['n']:04d}",
            name=name or f"Product {counter['n']}",
            category=category,
            price_cents=price_cents,
            quantity=quantity,
            in_stock=quantity > 0,
            is_active=True,
            low_stock_threshold=low_stock_threshold,
            critical_stock_threshold=critical_stock_threshold,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def make_order(db_session, actor):
    """
    Factory: take a storefront order for `lines` ([(product, qty), ...]) and
    walk it through the given statuses.
    """
    def _make(lines, *, statuses=("confirmed",), shipping_cents=0):
        order = order_service.create_order(
            customer=customer_payload(),
            items=[{"product_id": p.id, "quantity": qty} for p, qty in lines],
            summary={"shipping_cents": shipping_cents},
        )
        for status in statuses:
            order_service.transition_order(order.id, status, actor=actor)
        return order

    return _make


def customer_payload(**overrides) -> dict:
    customer = {
        "name": "Dana Buyer",
        "email": "dana@example.com",
        "phone": "+1-555-0100",
        "address": {"street": "1 Main St", "city": "Springfield", "country": "US"},
    }
    customer.update(overrides)
    return customer


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
