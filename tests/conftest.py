import os

os.environ["ENV"] = "test"
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")
os.environ.setdefault("EVENT_SWEEP_BACKEND", "off")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import fakeredis  # noqa: E402
import pytest  # noqa: E402
from faker import Faker  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import app.models  # noqa: E402,F401
from app.db import Base, SessionLocal, engine, get_db  # noqa: E402
from app.main import create_app  # noqa: E402
from app.services.event_buffer import RedisEventBuffer  # noqa: E402

pytest_plugins = [
    "tests.fixtures.user_fixtures",
    "tests.fixtures.group_fixtures",
    "tests.fixtures.event_fixtures",
    "tests.fixtures.hub_fixtures",
]


@pytest.fixture(scope="session")
def faker():
    return Faker()


@pytest.fixture(scope="function")
def db():
    """Fresh schema per test on the shared in-memory SQLite engine."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def redis_client():
    client = fakeredis.FakeRedis(decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture(scope="function")
def event_buffer(redis_client):
    return RedisEventBuffer(redis_client, namespace="test", ttl_seconds=3600)


@pytest.fixture
def client(db, event_buffer):
    """API client with db override and testing mode (token = raw user id)."""
    app = create_app(testing=True, event_buffer=event_buffer)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
