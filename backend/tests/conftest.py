"""
Pytest fixtures for backend tests.

Provides test database setup, user/quotation factories, and test client.
"""

import io
import itertools
from decimal import Decimal

import pytest
from werkzeug.datastructures import FileStorage

from app import create_app
from app.extensions import db
from app.models import User, Quotation, Shipment
from app.models.auth import ROLE_ADMIN, ROLE_CUSTOMER
from app.services.auth_service import hash_password


PASSWORD = "Password123"

# bcrypt is slow on purpose; hash once for every fixture user
PASSWORD_HASH = hash_password(PASSWORD)

PRICED = {
    "title_option1": "Supplier A",
    "total_price_option1": Decimal("1250.00"),
    "delivery_time_option1": "15 days",
    "title_option2": "Supplier B",
    "total_price_option2": Decimal("1400.00"),
    "delivery_time_option2": "10 days",
}


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'MEDIA_ROOT': str(tmp_path_factory.mktemp("media")),
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


def _make_user(session, email: str, role: str) -> User:
    user = User(
        email=email,
        password_hash=PASSWORD_HASH,
        full_name=email.split("@")[0].title(),
        role=role,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def customer(db_session):
    """Customer who owns the quotations under test."""
    return _make_user(db_session, "buyer@example.com", ROLE_CUSTOMER)


@pytest.fixture(scope='function')
def other_customer(db_session):
    """Second customer, for ownership checks."""
    return _make_user(db_session, "other@example.com", ROLE_CUSTOMER)


@pytest.fixture(scope='function')
def admin(db_session):
    return _make_user(db_session, "ops@example.com", ROLE_ADMIN)


@pytest.fixture(scope='function')
def make_quotation(db_session):
    """Factory: make_quotation(user, **column_overrides) -> committed Quotation."""
    counter = itertools.count(1)

    def _make(user, **overrides):
        n = next(counter)
        fields = {
            "quotation_id": f"QT-2026-{n:04d}",
            "user_id": user.id,
            "product_name": f"Bluetooth Speaker {n}",
            "alibaba_url": "https://www.alibaba.com/product-detail/123.html",
            "quantity": 100,
            "destination_country": "Morocco",
            "destination_city": "Casablanca",
            "shipping_method": "Sea Freight",
            "service_type": "Sourcing & Shipping",
            "status": "Pending",
        }
        fields.update(overrides)
        quotation = Quotation(**fields)
        db_session.add(quotation)
        db_session.commit()
        return quotation

    return _make


@pytest.fixture(scope='function')
def priced_quotation(customer, make_quotation):
    """Pending quotation with options 1 ($1,250.00) and 2 ($1,400.00)."""
    return make_quotation(customer, **PRICED)


@pytest.fixture(scope='function')
def make_shipment(db_session):
    def _make(user, quotation=None, **overrides):
        fields = {
            "user_id": user.id,
            "quotation_id": quotation.id if quotation else None,
            "tracking_number": "TRK-0001",
            "status": "waiting",
        }
        fields.update(overrides)
        shipment = Shipment(**fields)
        db_session.add(shipment)
        db_session.commit()
        return shipment

    return _make


def make_upload(content: bytes = b"\x89PNG\r\n\x1a\nfake", filename: str = "receipt.png",
                content_type: str = "image/png") -> FileStorage:
    """In-memory upload as Flask hands it to a view."""
    return FileStorage(stream=io.BytesIO(content), filename=filename, content_type=content_type)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def customer_headers(client, customer):
    return auth_headers(get_auth_token(client, customer.email))


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, admin.email))
