"""Pytest configuration and fixtures."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import IdentityConfig
from app.database import Base, get_db
from app.models.user import UserRecord
from app.services.hasher import CredentialHasher
from app.services.identity import IdentityService
from app.services.notifier import NotificationError
from app.services.user_store import UserStore

TOKEN_PATTERN = re.compile(r"\b[0-9a-f]{20}\b")


@dataclass
class SentMail:
    to_address: str
    subject: str
    html_body: str


@dataclass
class RecordingNotifier:
    """Notifier double that keeps sent mail in memory."""

    sent: list[SentMail] = field(default_factory=list)
    fail: bool = False

    def send(self, to_address: str, subject: str, html_body: str) -> None:
        if self.fail:
            raise NotificationError("SMTP server unavailable")
        self.sent.append(SentMail(to_address, subject, html_body))

    def last_token(self) -> str:
        """Reset token from the most recent reset email."""
        match = TOKEN_PATTERN.search(self.sent[-1].html_body)
        assert match, "no reset token in last email"
        return match.group(0)


class FakeClock:
    """Settable clock for expiry tests."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="identity_config")
def identity_config_fixture() -> IdentityConfig:
    return IdentityConfig(
        table_name=UserRecord.__tablename__,
        mutable_fields=frozenset({"username", "bio"}),
        retrievable_fields=frozenset({"username", "email", "provider", "bio"}),
    )


@pytest.fixture(name="hasher")
def hasher_fixture() -> CredentialHasher:
    """Minimum bcrypt cost keeps the suite fast."""
    return CredentialHasher(rounds=4)


@pytest.fixture(name="notifier")
def notifier_fixture() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture(name="clock")
def clock_fixture() -> FakeClock:
    return FakeClock()


@pytest.fixture(name="store")
def store_fixture(db_session: Session, identity_config: IdentityConfig) -> UserStore:
    return UserStore(db_session, identity_config.table_name)


@pytest.fixture(name="service")
def service_fixture(
    store: UserStore,
    hasher: CredentialHasher,
    notifier: RecordingNotifier,
    identity_config: IdentityConfig,
    clock: FakeClock,
) -> IdentityService:
    return IdentityService(store=store, hasher=hasher, notifier=notifier, config=identity_config, clock=clock)


@pytest.fixture(name="client")
def client_fixture(
    db_session: Session,
    hasher: CredentialHasher,
    notifier: RecordingNotifier,
    identity_config: IdentityConfig,
):
    """Create a test client with overridden DB session, hasher, notifier and config."""
    from app.dependencies import get_identity_config
    from app.services.hasher import get_hasher
    from app.services.notifier import get_notifier
    from main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_hasher] = lambda: hasher
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_identity_config] = lambda: identity_config
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(name="test_user")
def test_user_fixture(service: IdentityService) -> dict:
    """Register a password account and return its details."""
    result = service.register("alice", "password123", "alice@example.com")
    return {
        "user_id": result.user_id,
        "username": result.username,
        "email": result.email,
        "password": "password123",
    }


@pytest.fixture(name="oauth_user")
def oauth_user_fixture(service: IdentityService) -> dict:
    """Register an account signed up through Google."""
    user_id = service.authenticate_or_register_oauth("bob", "google", "bob@example.com")
    return {"user_id": user_id, "username": "bob", "email": "bob@example.com", "provider": "google"}
