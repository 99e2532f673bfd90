"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Settings are read at import time: configure before importing the app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "testing"
os.environ["FIREBASE_CREDENTIALS_PATH"] = ""
os.environ["LIVE_LISTENER_KEY"] = ""
os.environ["REVOCATION_BACKEND"] = "memory"

import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from incident_shared.infrastructure.db import get_db
from incident_shared.security.auth import AuthGate, Principal
from incident_shared.security.password import hash_password
from incident_shared.security.revocation import InMemoryRevocationStore
from incident_api.core.dependencies import build_services, configure_services
from incident_api.main import app
from incident_api.models import Admin, Base, User
from incident_api.services.push.messages import PushMessage, SendResult


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
PASSWORD = "secret123"

# bcrypt is slow on purpose; hash once per test run
PASSWORD_HASH = hash_password(PASSWORD)


class FakePushSender:
    """
    Scripted push sender.

    Tokens with no scripted outcome are delivered. A scripted exception is
    raised from ``send`` instead of returned.
    """

    def __init__(self):
        self.outcomes: dict[str, SendResult | BaseException] = {}
        self.sent: list[tuple[str, PushMessage]] = []
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    def script(self, token: str, outcome: SendResult | BaseException) -> None:
        self.outcomes[token] = outcome

    def tokens_sent(self) -> list[str]:
        return [token for token, _ in self.sent]

    async def send(self, token: str, message: PushMessage) -> SendResult:
        self.sent.append((token, message))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            outcome = self.outcomes.get(token)
            if outcome is None:
                return SendResult.delivered(f"msg-{len(self.sent)}")
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1

    def close(self) -> None:
        self.closed = True


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def push_sender():
    return FakePushSender()


@pytest.fixture
def auth_gate():
    return AuthGate(InMemoryRevocationStore(), secret=TEST_SECRET)


@pytest.fixture
def services(db_session, push_sender, auth_gate):
    """Alert services wired to the test database and the fake sender."""
    alert_services = build_services(TestingSessionLocal, sender=push_sender, auth_gate=auth_gate)
    configure_services(alert_services)
    yield alert_services
    configure_services(None)


@pytest.fixture(scope="function")
def client(db_session, services):
    """
    Create a test client with database session override.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def drain(client, services):
    """Wait for the background fan-out tasks spawned by earlier requests."""
    def _drain():
        client.portal.call(services.tasks.drain)
    return _drain


@pytest.fixture
def make_admin(db_session):
    """Factory creating administrators with the shared test password."""
    def _make(username: str, name: str | None = None, role: str = "admin") -> Admin:
        admin = Admin(
            username=username,
            name=name or username.title(),
            role=role,
            password=PASSWORD_HASH,
        )
        db_session.add(admin)
        db_session.commit()
        db_session.refresh(admin)
        return admin
    return _make


@pytest.fixture
def seed_admin(make_admin):
    return make_admin("admin1", name="Admin One", role="superadmin")


@pytest.fixture
def seed_user(db_session):
    user = User(
        username="citizen1",
        name="Citizen One",
        address="Jl. Merdeka 1",
        phone="08123456789",
        password=PASSWORD_HASH,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def bearer(gate: AuthGate, principal: Principal) -> dict[str, str]:
    return {"Authorization": f"Bearer {gate.issue(principal)}"}


@pytest.fixture
def admin_headers(auth_gate, seed_admin):
    return bearer(auth_gate, Principal(id=seed_admin.id, is_admin=True, role=seed_admin.role))


@pytest.fixture
def user_headers(auth_gate, seed_user):
    return bearer(auth_gate, Principal(id=seed_user.id, is_admin=False))


@pytest.fixture
def headers_for(auth_gate):
    """Factory returning Authorization headers for any principal."""
    def _headers(principal_id: int, is_admin: bool, role: str | None = None) -> dict[str, str]:
        return bearer(auth_gate, Principal(id=principal_id, is_admin=is_admin, role=role))
    return _headers


@pytest.fixture
def session_factory(db_session):
    """Session factory bound to the test database, tables created."""
    return TestingSessionLocal


async def _longest_stall(coro, tick: float = 0.02) -> float:
    loop = asyncio.get_running_loop()
    gaps = []
    done = asyncio.Event()

    async def heartbeat():
        last = loop.time()
        while not done.is_set():
            await asyncio.sleep(tick)
            now = loop.time()
            gaps.append(now - last)
            last = now

    ticker = asyncio.create_task(heartbeat())
    try:
        await coro
    finally:
        done.set()
        await ticker
    return max(gaps, default=0.0)


@pytest.fixture
def loop_stall():
    """Await a coroutine next to a ticking one; returns the longest gap between ticks."""
    return _longest_stall
