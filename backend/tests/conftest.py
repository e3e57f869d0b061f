"""
Pytest fixtures for the document backend tests.

Provides an isolated app + in-memory database per test, users of both
roles with bearer tokens, and an in-memory notifier to inspect events.
"""

from datetime import timedelta

import pytest

from app import create_app
from app.extensions import db, notifications
from app.models import ROLE_ADMIN, ROLE_USER, User
from app.services import document_service
from app.services import session_service
from app.services.auth_service import hash_password
from app.services.notification_service import InMemoryNotifier
from app.time_utils import utcnow


PASSWORD = "Password123!"


@pytest.fixture(scope='function')
def app(tmp_path):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'NOTIFIER_BACKEND': 'memory',
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
        'INITIAL_EDIT_WINDOW_HOURS': 24,
        'EDIT_GRANT_DURATION_HOURS': 24,
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
    yield db.session
    db.session.rollback()


@pytest.fixture(scope='function')
def notifier(app):
    """Fresh in-memory notifier installed on the app."""
    recorder = InMemoryNotifier()
    notifications.set_notifier(app, recorder)
    return recorder


def make_user(username: str, role: str = ROLE_USER) -> User:
    user = User(username=username, password_hash=hash_password(PASSWORD), role=role)
    db.session.add(user)
    db.session.commit()
    return user


def auth_headers(user: User) -> dict:
    """Helper to create Authorization headers for a fresh session."""
    _, token = session_service.create_session(user_id=user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def owner(db_session):
    return make_user("owner")


@pytest.fixture(scope='function')
def other_user(db_session):
    return make_user("other")


@pytest.fixture(scope='function')
def admin(db_session):
    return make_user("admin", ROLE_ADMIN)


@pytest.fixture(scope='function')
def owner_headers(owner):
    return auth_headers(owner)


@pytest.fixture(scope='function')
def other_headers(other_user):
    return auth_headers(other_user)


@pytest.fixture(scope='function')
def admin_headers(admin):
    return auth_headers(admin)


def invoice_payload(invoice_id: str = "INV-001", **overrides) -> dict:
    payload = {
        "id": invoice_id,
        "purchase_date": "2025-03-10",
        "company_name": "Acme Traders",
        "order_or_serial_number": "ORD-77",
        "vendor_name": "Dell Distributors",
        "address": "12 Market Road",
        "total_amount": 1500.0,
        "products": [
            {"product_name": "Latitude 5440", "serial_number": "SN-1", "warranty_years": 3, "quantity": 1, "price": 1500.0},
        ],
    }
    payload.update(overrides)
    return payload


def purchase_order_payload(po_id: str = "PO-001", **overrides) -> dict:
    payload = {
        "id": po_id,
        "order_date": "2025-04-02",
        "from_address": "Head Office",
        "vendor_name": "Office Mart",
        "purchase_order_number": "PO/2025/001",
        "total_amount": 240.0,
        "items": [{"description": "A4 paper", "quantity": 20, "rate": 12.0}],
    }
    payload.update(overrides)
    return payload


def stock_payload(entry_id: str = "STK-001", **overrides) -> dict:
    payload = {
        "id": entry_id,
        "article_name": "Steel Almirah",
        "entry_date": "2025-05-01",
        "billing_date": "2025-04-28",
        "company_name": "Godrej",
        "voucher_or_bill_number": "VB-9",
        "cost_rate": 100.0,
        "cgst": 9.0,
        "sgst": 9.0,
    }
    payload.update(overrides)
    return payload


def create_aged(document_type: str, payload: dict, owner: User, age: timedelta):
    """Create a document whose created_at lies `age` in the past."""
    return document_service.create_document(
        document_type=document_type,
        payload=payload,
        owner=owner,
        now=utcnow() - age,
    )
