"""
Pytest fixtures for retail ledger backend tests.

Provides the test app (SQLite in-memory), per-test data cleanup, a
two-business tenant layout with one user per role, and product/login
helpers.

Layout:
- business_a: outlet_a1, outlet_a2
- business_b: outlet_b1
- admin (no tenant), owner_a, exec_a1, rep_a1, rep2_a1, owner_b, exec_b1
"""

import pytest

from retail_ledger import create_app
from retail_ledger.extensions import db
from retail_ledger.models import Business, Outlet, Product, UserRole, derive_product_status
from retail_ledger.scope import Actor
from retail_ledger.services.auth_service import create_user
from retail_ledger.services.registry import get_services

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'CACHE_ENABLED': True,
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
    """Fresh data (and an empty read cache) for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        get_services().cache.clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def services(db_session):
    return get_services()


@pytest.fixture(scope='function')
def business_a(db_session):
    business = Business(name="Business A - Acme Retail", is_active=True)
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def business_b(db_session):
    business = Business(name="Business B - Beta Stores", is_active=True)
    db_session.add(business)
    db_session.commit()
    return business


def _outlet(db_session, business, name):
    outlet = Outlet(business_id=business.id, name=name, address=f"{name} street")
    db_session.add(outlet)
    db_session.commit()
    return outlet


@pytest.fixture(scope='function')
def outlet_a1(db_session, business_a):
    return _outlet(db_session, business_a, "Outlet A1")


@pytest.fixture(scope='function')
def outlet_a2(db_session, business_a):
    return _outlet(db_session, business_a, "Outlet A2")


@pytest.fixture(scope='function')
def outlet_b1(db_session, business_b):
    return _outlet(db_session, business_b, "Outlet B1")


def _user(email, role, business=None, outlet=None):
    return create_user(
        email=email,
        password=PASSWORD,
        role=role,
        business_id=business.id if business is not None else None,
        outlet_id=outlet.id if outlet is not None else None,
        rounds=4,
    )


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _user("admin@ledger.test", UserRole.ADMIN)


@pytest.fixture(scope='function')
def owner_a(db_session, business_a):
    return _user("owner@acme.test", UserRole.OWNER, business=business_a)


@pytest.fixture(scope='function')
def exec_a1(db_session, outlet_a1):
    return _user("exec.a1@acme.test", UserRole.STORE_EXECUTIVE, outlet=outlet_a1)


@pytest.fixture(scope='function')
def rep_a1(db_session, outlet_a1):
    return _user("rep.a1@acme.test", UserRole.SALES_REP, outlet=outlet_a1)


@pytest.fixture(scope='function')
def rep2_a1(db_session, outlet_a1):
    return _user("rep2.a1@acme.test", UserRole.SALES_REP, outlet=outlet_a1)


@pytest.fixture(scope='function')
def owner_b(db_session, business_b):
    return _user("owner@beta.test", UserRole.OWNER, business=business_b)


@pytest.fixture(scope='function')
def exec_b1(db_session, outlet_b1):
    return _user("exec.b1@beta.test", UserRole.STORE_EXECUTIVE, outlet=outlet_b1)


@pytest.fixture(scope='function')
def actor_of():
    """Actor for a user, as require_auth would build it."""
    return Actor.from_user


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(outlet, name, price_cents, quantity, reorder_point=10)."""
    def _make(outlet, name="Product", price_cents=500, quantity=10, reorder_point=10, sku=None):
        product = Product(
            business_id=outlet.business_id,
            outlet_id=outlet.id,
            name=name,
            sku=sku,
            price_cents=price_cents,
            quantity=quantity,
            reorder_point=reorder_point,
            status=derive_product_status(quantity, reorder_point),
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def auth_headers(client):
    """Log in through the API and return Authorization headers."""
    def _login(user, password=PASSWORD):
        response = client.post("/api/auth/login", json={"email": user.email, "password": password})
        assert response.status_code == 200, response.get_json()
        return {"Authorization": f"Bearer {response.get_json()['token']}"}

    return _login


@pytest.fixture(scope='function')
def stock_of(db_session):
    """Live quantity straight from the database, bypassing the identity map."""
    def _stock(product_id):
        return db_session.execute(
            db.select(Product.quantity).where(Product.id == product_id)
        ).scalar_one()

    return _stock
