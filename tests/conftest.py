"""
Pytest fixtures for Storebook tests.

Provides the app on an in-memory database, a per-test clean session, a
signed-in user and a small catalogue.
"""

import pytest

from storebook import create_app
from storebook.extensions import db
from storebook.models import Account, Employee, Partner, Product
from storebook.services.auth_service import create_user
from storebook.services.session_service import create_session


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'SYNC_TOKEN': None,
        'DEFAULT_REMOTE_URL': 'http://peer.test',
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
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def user(db_session):
    return create_user(username="clerk", password="Password123", full_name="Front Clerk", role="employee")


@pytest.fixture(scope='function')
def admin(db_session):
    return create_user(username="owner", password="Password123", full_name="Store Owner", role="admin")


@pytest.fixture(scope='function')
def headers(user):
    _, token = create_session(user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin):
    _, token = create_session(admin.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def mouse(db_session):
    product = Product(
        name="Wireless Mouse",
        sku="MS-001",
        quantity=50,
        cost_price_cents=1000,
        selling_price_cents=2500,
        category="Electronics",
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def keyboard(db_session):
    product = Product(
        name="Mechanical Keyboard",
        sku="KB-002",
        quantity=20,
        cost_price_cents=4000,
        selling_price_cents=9000,
        category="Electronics",
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer(db_session):
    partner = Partner(name="Walk-in Customer", type="customer", email="guest@store.com")
    db_session.add(partner)
    db_session.commit()
    return partner


@pytest.fixture(scope='function')
def accounts(db_session):
    cash = Account(code="1000", name="Cash", type="asset", balance_cents=0)
    revenue = Account(code="4000", name="Sales Revenue", type="revenue", balance_cents=0)
    db_session.add_all([cash, revenue])
    db_session.commit()
    return {"cash": cash, "revenue": revenue}


@pytest.fixture(scope='function')
def employee(db_session):
    emp = Employee(full_name="Dana Reyes", position="Cashier", salary_cents=250000)
    db_session.add(emp)
    db_session.commit()
    return emp


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
