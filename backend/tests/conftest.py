"""
Pytest fixtures for BizManager backend tests.

Provides an in-memory database, a test client, and sample users/products.
"""

import pytest
from bizmanager import create_app
from bizmanager.extensions import db
from bizmanager.models import Product, ProductVariant, User, ROLE_ADMIN, ROLE_CUSTOMER, ROLE_SALESMAN


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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


@pytest.fixture(autouse=True)
def restore_config(app):
    """Undo per-test config tweaks."""
    saved = dict(app.config)
    yield
    app.config.clear()
    app.config.update(saved)


@pytest.fixture(scope='function')
def admin(db_session):
    user = User(name="Ada Admin", email="admin@test.local", role=ROLE_ADMIN, approved=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def salesman(db_session):
    """Approved salesman with a 10% discount ceiling."""
    user = User(
        name="Sam Seller",
        email="sam@test.local",
        role=ROLE_SALESMAN,
        approved=True,
        max_discount_percent=10,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def customer(db_session, salesman):
    user = User(
        name="Corner Boutique",
        email="shop@test.local",
        role=ROLE_CUSTOMER,
        approved=True,
        salesman_id=salesman.id,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def product(db_session):
    """Tracked product P1: variant (M, Default) with 5 units, cost 60, price 100."""
    product = Product(
        title="P1",
        selling_price_cents=10000,
        cost_price_cents=6000,
        images=[],
        variants=[ProductVariant(position=0, size="M", color="Default", stock=5, production=0)],
    )
    db_session.add(product)
    db_session.commit()
    return product


def make_product(session, title, variants, *, price=10000, cost=6000, fullstock=False, active=True):
    """Helper: variants is a list of (size, color, stock)."""
    product = Product(
        title=title,
        selling_price_cents=price,
        cost_price_cents=cost,
        images=[],
        fullstock=fullstock,
        active=active,
        variants=[
            ProductVariant(position=i, size=size, color=color, stock=stock, production=0)
            for i, (size, color, stock) in enumerate(variants)
        ],
    )
    session.add(product)
    session.commit()
    return product


def principal(user) -> dict:
    """Helper to create the principal header for a user."""
    return {'X-User-Id': str(user.id)}
