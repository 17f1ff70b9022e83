"""
Pytest configuration and shared fixtures.

Environment variables are set here, before any app import, so the settings
object is built against an in-memory SQLite database and a temp upload dir.
"""

import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="crewlink-uploads-")
os.environ["MEDIA_BASE_URL"] = "https://cdn.test"
os.environ["DEBUG"] = "false"

import pytest
from fastapi.testclient import TestClient

from app.core.rate_limiter import PairRateLimiter, set_rate_limiter
from app.core.security import create_access_token
from app.database import Base, SessionLocal, engine
from app.main import app
from app.models import Profile
from app.services.realtime import realtime_hub


# Smallest valid PNG header, enough for magic-byte validation
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def fresh_state():
    """Create tables and reset process-wide singletons for each test."""
    Base.metadata.create_all(bind=engine)
    set_rate_limiter(None)
    realtime_hub.clear()
    yield
    realtime_hub.clear()
    set_rate_limiter(None)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    """Process-wide limiter with the default 5/10s and 60/1h windows on a fake clock."""
    rate_limiter = PairRateLimiter(
        short_limit=5,
        short_window_seconds=10,
        long_limit=60,
        long_window_seconds=3600,
        reset_on_reply=True,
        clock=clock,
    )
    set_rate_limiter(rate_limiter)
    return rate_limiter


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def profiles(db):
    """Two crew members with profiles and one user without any."""
    db.add_all([
        Profile(id="u1", username="ana01", full_name="Ana Lima", display_name="Ana", role="Director"),
        Profile(id="u2", username="ben77", full_name="Ben Ito", avatar_url="https://cdn.test/ben.png", role="Cinematographer"),
    ])
    db.commit()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def auth_headers(user_id: str) -> dict:
    token = create_access_token({"sub": user_id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    """Build bearer headers for a user id."""
    return auth_headers


@pytest.fixture
def png_bytes():
    return PNG_BYTES
