import os

# must be set before app.config is imported anywhere
os.environ["ENV"] = "test"
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")
os.environ.setdefault("REALTIME_BACKEND", "memory")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import app.models  # noqa: F401
from app.config import get_settings
from app.db import Base, build_engine, get_db
from app.main import create_app
from app.realtime.bus import InMemoryRealtimeBus

pytest_plugins = [
    "tests.fixtures.console_fixtures",
    "tests.fixtures.line_fixtures",
    "tests.fixtures.messaging_fixtures",
]


@pytest.fixture(scope="session")
def engine():
    engine = build_engine(get_settings().database_url)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine):
    """Session on a freshly created schema; dropped after the test."""
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def bus():
    bus = InMemoryRealtimeBus()
    yield bus
    bus.close()


@pytest.fixture(scope="function")
def client(db):
    """TestClient with get_db overridden to the test session."""
    app = create_app(testing=True)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def app_bus(client):
    """The realtime bus of the app behind `client`."""
    return client.app.state.realtime_bus
