"""
Pytest fixtures for OutletPOS backend tests.

Provides the in-memory database app, per-test table wipe, catalog and user
fixtures, and auth helpers for API tests.
"""

from datetime import datetime

import pytest
from outletpos import create_app
from outletpos.extensions import db
from outletpos.models import Category, Outlet, Product, ProductVariant, Customer, DiscountRule
from outletpos.services import drawer_service
from outletpos.services.auth_service import create_user

PASSWORD = "Password123"

# Fixed instant inside every test rule's validity window (UTC-naive).
NOW = datetime(2026, 3, 10, 5, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
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
def outlet(db_session):
    outlet = Outlet(name="Maujajan Kopi Senopati", address="Jl. Senopati 10")
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def other_outlet(db_session):
    outlet = Outlet(name="Maujajan Bintaro")
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def category(db_session):
    category = Category(name="Kopi")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def owner(db_session):
    return create_user("owner", "Owner", PASSWORD, role="owner")


@pytest.fixture(scope='function')
def cashier(db_session, outlet):
    return create_user("kasir", "Kasir Satu", PASSWORD, role="cashier", outlet_id=outlet.id)


@pytest.fixture(scope='function')
def make_product(db_session):
    """
    Factory: make_product("Es Kopi Susu", 25000, stock=5) -> Product with one variant.

    stock=None leaves the variant untracked (unlimited).
    """
    def _make(name, price, *, stock=None, category=None, outlet_id=None, variant_name="Regular", cogs=0):
        product = Product(
            name=name,
            category_id=category.id if category is not None else None,
            outlet_id=outlet_id,
            is_active=True,
        )
        product.variants.append(ProductVariant(
            name=variant_name,
            price=price,
            cogs=cogs,
            track_stock=stock is not None,
            stock=stock or 0,
        ))
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def make_rule(db_session):
    """Factory for persisted discount rules, valid since 2020 unless overridden."""
    def _make(**kwargs):
        fields = {
            "name": "Promo",
            "is_active": True,
            "valid_from": datetime(2020, 1, 1),
            "applies_to": "ALL",
            "discount_type": "PERCENTAGE",
            "discount_value": 10,
            "scope": "ENTIRE_ORDER",
        }
        fields.update(kwargs)
        rule = DiscountRule(**fields)
        db_session.add(rule)
        db_session.commit()
        return rule

    return _make


@pytest.fixture(scope='function')
def member(db_session, outlet):
    customer = Customer(
        name="Budi",
        phone_number="6281234567890",
        member_id="MBR-0001",
        outlet_id=outlet.id,
        is_active=True,
        total_spent=0,
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def open_drawer(db_session, cashier, outlet):
    """Active cashier session with 500,000 float."""
    return drawer_service.open_drawer(cashier, outlet.id, 500000)


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def owner_headers(client, owner):
    return auth_headers(get_auth_token(client, owner.username))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier):
    return auth_headers(get_auth_token(client, cashier.username))
