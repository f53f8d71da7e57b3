"""
Pytest fixtures for Atelier backend tests.

Provides an in-memory database, staff users for every role/location
combination the access policy distinguishes, and order factories.
"""

from datetime import date

import pytest
from atelier import create_app
from atelier.extensions import db
from atelier.models import Order, User
from atelier.services.auth_service import hash_password
from atelier.services.identity_service import principal_from_user


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOCATION_SCOPING_ENABLED': True,
        'STORE_RETRY_BACKOFF': 0.0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(PASSWORD)


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
def make_user(db_session, password_hash):
    def _make(email, role, location=None, name=None, is_active=True):
        user = User(
            email=email,
            name=name or email.split("@")[0],
            password_hash=password_hash,
            role=role,
            location=location,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user("admin@atelier.test", "admin", location="Unit 1", name="Ada Admin")


@pytest.fixture(scope='function')
def manager_user(make_user):
    """Manager of Unit 1."""
    return make_user("manager1@atelier.test", "manager", location="Unit 1", name="Mona Manager")


@pytest.fixture(scope='function')
def other_manager(make_user):
    """Manager of Unit 2."""
    return make_user("manager2@atelier.test", "manager", location="Unit 2", name="Max Manager")


@pytest.fixture(scope='function')
def tailor_user(make_user):
    """Tailor T1."""
    return make_user("tailor1@atelier.test", "tailor", location="Unit 1", name="Tomi Tailor")


@pytest.fixture(scope='function')
def other_tailor(make_user):
    """Tailor T2."""
    return make_user("tailor2@atelier.test", "tailor", location="Unit 1", name="Tunde Tailor")


@pytest.fixture(scope='function')
def admin(admin_user):
    return principal_from_user(admin_user)


@pytest.fixture(scope='function')
def manager(manager_user):
    return principal_from_user(manager_user)


@pytest.fixture(scope='function')
def manager2(other_manager):
    return principal_from_user(other_manager)


@pytest.fixture(scope='function')
def tailor(tailor_user):
    return principal_from_user(tailor_user)


@pytest.fixture(scope='function')
def tailor2(other_tailor):
    return principal_from_user(other_tailor)


@pytest.fixture(scope='function')
def make_order(db_session):
    """Insert an order row directly, bypassing the orchestrator."""
    def _make(**overrides):
        values = {
            "client_name": "Chidi Okafor",
            "phone": "08030000001",
            "garment_type": "Agbada",
            "delivery_date": date(2026, 12, 1),
            "status": "New",
            "location": "Unit 1",
        }
        values.update(overrides)
        order = Order(**values)
        db_session.add(order)
        db_session.commit()
        return order
    return _make


@pytest.fixture(scope='function')
def login(client):
    """Log in through the API and return Authorization headers."""
    def _login(user):
        response = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 200, response.get_json()
        return {"Authorization": f"Bearer {response.get_json()['token']}"}
    return _login
