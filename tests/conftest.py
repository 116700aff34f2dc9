import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.core.db import Base, get_db
from app.main import app # Import the FastAPI app
from app.core.config import settings
import logging

# Use an in-memory SQLite database for tests, shared across threads for the TestClient
TEST_DATABASE_URL = "sqlite:///:memory:"

@pytest.fixture(autouse=True)
def setup_test_logging():
    """
    Sets logging to CRITICAL to suppress most output during tests,
    then restores the previous configuration.
    """
    root_logger = logging.getLogger()
    original_level = root_logger.level
    original_handlers = root_logger.handlers[:]

    root_logger.handlers = [logging.StreamHandler()]
    root_logger.setLevel(logging.CRITICAL)

    yield

    root_logger.setLevel(original_level)
    root_logger.handlers = original_handlers

@pytest.fixture(name="db_engine")
def db_engine_fixture():
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()

@pytest.fixture(name="session_factory")
def session_factory_fixture(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

@pytest.fixture(name="db_session")
def db_session_fixture(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture(name="client")
def client_fixture(db_session, db_engine, monkeypatch):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    # No background sync against the real subgraph, no tables in the default database
    monkeypatch.setattr(settings, "SYNC_ON_STARTUP", False)
    monkeypatch.setattr("app.main.engine", db_engine)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
