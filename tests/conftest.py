"""Shared test fixtures."""

import os
import tempfile

# Settings are read at import time, so the environment must be ready first.
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="pocketledger-uploads-")
for _var in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER"):
    os.environ.pop(_var, None)

import uuid
from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from pocketledger.core.jwt import mint
from pocketledger.core.storage import ReceiptStorage, get_receipt_storage
from pocketledger.database import build_engine, get_session, init_db
from pocketledger.main import app
from pocketledger.models.base import utcnow
from pocketledger.models.category import Category
from pocketledger.models.expense import Expense
from pocketledger.models.user import User
from pocketledger.routers.auth import get_sms_sender


class RecordingSmsSender:
    """Keeps every message instead of sending it."""

    def __init__(self, delivered=False):
        self.delivered = delivered
        self.messages = []

    def send(self, to, body):
        self.messages.append((to, body))
        return self.delivered


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test using in-memory SQLite."""
    engine = build_engine("sqlite://")
    init_db(engine)
    session = Session(engine)

    try:
        yield session
    finally:
        session.close()
        SQLModel.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def sms_sender():
    return RecordingSmsSender()


@pytest.fixture
def receipt_storage(tmp_path):
    return ReceiptStorage(tmp_path / "uploads")


@pytest.fixture(scope="function")
def client(db_session, sms_sender, receipt_storage):
    """Create a test client with database, SMS and storage overrides."""
    def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_sms_sender] = lambda: sms_sender
    app.dependency_overrides[get_receipt_storage] = lambda: receipt_storage
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    def _make_user(phone_number=None, is_verified=True):
        user = User(
            id=uuid.uuid4(),
            phone_number=phone_number or f"+1555{uuid.uuid4().int % 10**7:07d}",
            is_verified=is_verified,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def user(make_user):
    return make_user("+15550001111")


@pytest.fixture
def other_user(make_user):
    return make_user("+447700900123")


@pytest.fixture
def headers_for():
    def _headers_for(owner):
        return {"Authorization": f"Bearer {mint(owner.id)}"}

    return _headers_for


@pytest.fixture
def auth_headers(headers_for, user):
    return headers_for(user)


@pytest.fixture
def make_category(db_session):
    def _make_category(owner, name="Groceries", color="#22C55E", icon="🛒"):
        category = Category(
            id=uuid.uuid4(),
            user_id=owner.id,
            name=name,
            color=color,
            icon=icon,
        )
        db_session.add(category)
        db_session.commit()
        db_session.refresh(category)
        return category

    return _make_category


@pytest.fixture
def category(make_category, user):
    return make_category(user)


@pytest.fixture
def make_expense(db_session):
    def _make_expense(owner, category_id, amount, expense_date=None, created_at=None,
                      description="Lunch", receipt_path=None):
        created_at = created_at or utcnow()
        expense = Expense(
            id=uuid.uuid4(),
            user_id=owner.id,
            amount=Decimal(str(amount)),
            description=description,
            category_id=category_id,
            expense_date=expense_date or date.today(),
            receipt_path=receipt_path,
            created_at=created_at,
            updated_at=created_at,
        )
        db_session.add(expense)
        db_session.commit()
        db_session.refresh(expense)
        return expense

    return _make_expense
