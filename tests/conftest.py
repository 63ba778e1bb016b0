"""Pytest fixtures: SQLite file database, recreated for every test."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("MAIL_TRANSPORT", "log")

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from event_manager.database import Base, build_engine, get_db  # noqa: E402
from event_manager.deps import get_dispatcher  # noqa: E402
from event_manager.errors import TransientDeliveryError  # noqa: E402
from event_manager.main import app  # noqa: E402
from event_manager.notifications.dispatcher import NotificationDispatcher  # noqa: E402
from event_manager.notifications.transport import MailTransport  # noqa: E402
import event_manager.models  # noqa: E402,F401

SQLITE_URL = os.environ["DATABASE_URL"]


class RecordingTransport(MailTransport):
    """Mail transport that records every attempt and fails for chosen addresses."""

    def __init__(self):
        super().__init__(from_address="noreply@example.com", from_name="Event Manager")
        self.attempts: list[str] = []
        self.sent: list[dict] = []
        self.failing: set[str] = set()

    def send(self, to, subject, html, text):
        self.attempts.append(to)
        if to in self.failing:
            raise TransientDeliveryError(f"mailbox unavailable: {to}")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return f"<{len(self.sent)}@example.com>"

    def attempts_for(self, address: str) -> int:
        return self.attempts.count(address)


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine (foreign keys on) for each test."""
    engine = build_engine(SQLITE_URL)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def sleeps():
    """Backoff delays requested by the dispatcher (nothing actually sleeps)."""
    return []


@pytest.fixture
def dispatcher(transport, session_factory, sleeps):
    return NotificationDispatcher(
        transport=transport,
        session_factory=session_factory,
        max_attempts=3,
        backoff_seconds=2.0,
        backoff_max_seconds=30.0,
        sleep=sleeps.append,
    )


@pytest.fixture(scope="function")
def client(session_factory, dispatcher):
    """TestClient with the database and dispatcher dependencies overridden."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def register_user(client: TestClient, name: str = "Test User", email: str = None,
                  password: str = "secret123") -> dict:
    """POST /api/auth/register and return {token, user, headers}."""
    email = email or f"{name.lower().replace(' ', '.')}@example.com"
    resp = client.post("/api/auth/register", json={
        "name": name,
        "email": email,
        "password": password,
    })
    assert resp.status_code == 201, resp.text
    data = resp.json()
    data["headers"] = auth_headers(data["token"])
    return data


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def create_test_event(client: TestClient, headers: dict, title: str = "Standup",
                      date: str = "2024-01-10", time: str = "09:00",
                      location: str = "Room 1", attendee_ids: list = None, **extra):
    """POST /api/events and return the response."""
    payload = {
        "title": title,
        "date": date,
        "time": time,
        "location": location,
        "attendee_ids": attendee_ids or [],
    }
    payload.update(extra)
    return client.post("/api/events", json=payload, headers=headers)
