"""
Pytest fixtures for CreditDesk backend tests.

Provides an in-memory database, seeded agencies and users, and a test client.
"""

from datetime import datetime

import pytest

from creditdesk import create_app
from creditdesk.extensions import db
from creditdesk.models import Agency, User
from creditdesk.services.auth_service import hash_password
from creditdesk.services.receipt_service import LedgerSettings, ReceiptLedger

TEST_PASSWORD = "Password123"

# 2025-10-15 09:00 UTC == 12:00 EAT
FIXED_NOW = datetime(2025, 10, 15, 9, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SECRET_KEY': 'test',
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
    """Fresh data for each test; schema is kept."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def agency(db_session):
    agency = Agency(
        agency_id="789456",
        agency_name="Equatoria Travel",
        contact_email="accounts@equatoria.example",
        contact_phone="+211 912 345 678",
        is_active=True,
    )
    db_session.add(agency)
    db_session.commit()
    return agency


@pytest.fixture(scope='function')
def inactive_agency(db_session):
    agency = Agency(agency_id="111222", agency_name="Dormant Tours", is_active=False)
    db_session.add(agency)
    db_session.commit()
    return agency


def _make_user(db_session, email, role, station="NBO", name=None):
    user = User(
        name=name or email.split("@")[0].title(),
        email=email,
        password_hash=hash_password(TEST_PASSWORD),
        role=role,
        station_code=station,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def staff_user(db_session):
    return _make_user(db_session, "amina@kushair.net", "staff", name="Amina Lado")


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user(db_session, "admin@kushair.net", "admin", station="JUB", name="Admin")


@pytest.fixture(scope='function')
def ledger(app, db_session):
    return ReceiptLedger(
        db_session,
        qr_generator=None,
        settings=LedgerSettings.from_config(app.config),
    )


def get_auth_token(client, email: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/v1/auth/login', json={
        'email': email,
        'password': password,
    })
    if response.status_code == 200:
        return response.json['data']['token']
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.email))


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email))


@pytest.fixture(scope='function')
def login(client):
    """Callable fixture: login(email) -> Authorization headers."""
    def _login(email: str, password: str = TEST_PASSWORD) -> dict:
        return auth_headers(get_auth_token(client, email, password))
    return _login
