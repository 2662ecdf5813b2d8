# tests/conftest.py
import os
import pytest
from fastapi.testclient import TestClient

# Tests run against an in-memory SQLite database and without Redis
# (fallback-only cache). Must be set before the app modules are imported.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.pop("REDIS_URL", None)
os.environ.setdefault("CACHE_SWEEP_INTERVAL_SECONDS", "0")

from app.main import app  # import after env is set
from app.database import Base, engine
from app.models import user as _user_model  # noqa: F401  (registers the users table)


class FakeClock:
    """Manually advanced monotonic clock for expiry tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_schema():
    """Fresh users table for every test."""
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def client(db_schema):
    """A FastAPI TestClient; entering it runs the lifespan (fresh cache per test)."""
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
