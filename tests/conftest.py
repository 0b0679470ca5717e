"""Pytest fixtures."""

import os
import re

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SMS_PROVIDER"] = "console"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from safecircle.core.config import settings
from safecircle.core.deps import get_sms_transport
from safecircle.core.security import create_access_token
from safecircle.db.base import Base
from safecircle.db.session import get_db
from safecircle.main import app
from safecircle.models import CircleMember, Emergency, Journey, MessageLog, OtpCode, User, WebLinkAccess  # noqa: F401 - register for create_all
from safecircle.models.user import UserStatus
from safecircle.services.sms_transport import SendResult, SmsTransport

TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# cheap hashes keep the suite fast
settings.otp_bcrypt_rounds = 4


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class FakeTransport(SmsTransport):
    """Records every message; numbers in ``fail_numbers`` fail, ``raise_numbers`` raise."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.fail_numbers: set[str] = set()
        self.raise_numbers: set[str] = set()

    async def send(self, phone_number: str, text: str) -> SendResult:
        if phone_number in self.raise_numbers:
            raise RuntimeError("transport exploded")
        self.sent.append((phone_number, text))
        if phone_number in self.fail_numbers:
            return SendResult(success=False, provider_status="rejected")
        return SendResult(success=True, provider_status="Successfully Sent")

    def last_code(self, phone_number: str) -> str:
        texts = [text for to, text in self.sent if to == phone_number]
        return re.search(r"\b(\d{6})\b", texts[-1]).group(1)


@pytest.fixture(scope="session")
def setup_db():
    """Create tables once for test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(setup_db):
    """Session for direct service calls; every table is emptied afterwards."""
    session = TestingSessionLocal()
    yield session
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(db, transport):
    """Test client with overridden DB and SMS transport."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sms_transport] = lambda: transport
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make(phone_number="2348012345678", verified=True, **fields):
        fields.setdefault("status", UserStatus.ACTIVE.value if verified else UserStatus.PENDING_VERIFICATION.value)
        user = User(phone_number=phone_number, phone_verified=verified, **fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_journey(db):
    def _make(user, destination_name="Yaba Market"):
        journey = Journey(user_id=user.id, start_location_name="Home", destination_name=destination_name)
        db.add(journey)
        db.commit()
        db.refresh(journey)
        return journey

    return _make


@pytest.fixture
def make_emergency(db):
    def _make(journey, resolved_at=None):
        emergency = Emergency(journey_id=journey.id, user_id=journey.user_id, resolved_at=resolved_at)
        db.add(emergency)
        db.commit()
        db.refresh(emergency)
        return emergency

    return _make


@pytest.fixture
def make_member(db):
    def _make(user, name, phone, verified=True, active=True, receive_sms=True):
        member = CircleMember(
            user_id=user.id,
            contact_name=name,
            contact_phone=phone,
            relationship="friend",
            is_verified=verified,
            is_active=active,
            receive_sms=receive_sms,
        )
        db.add(member)
        db.commit()
        db.refresh(member)
        return member

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers
