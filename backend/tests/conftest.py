"""Shared test fixtures for all test modules."""

import contextlib

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import subdoctor.models  # noqa: F401  (registers every table on Base.metadata)
from subdoctor.core import database as db_module
from subdoctor.core.database import Base, get_db
from subdoctor.main import app
from subdoctor.repositories.api_key_repository import ApiKeyRepository
from subdoctor.routers.troubleshooter import troubleshooter_rate_limiter
from subdoctor.services.anti_forgery import AntiForgeryService

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def db_session():
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def operator_key(db_session):
    """An active operator key with the required capability; returns (model, raw_key)."""
    return ApiKeyRepository(db_session).create(
        name="Support desk", capabilities=["manage_commerce"]
    )


@pytest.fixture
def auth_headers(operator_key):
    """Bearer key plus a valid anti-forgery token for it."""
    api_key, raw_key = operator_key
    token, _ = AntiForgeryService.generate_token(api_key.id)
    return {
        "Authorization": f"Bearer {raw_key}",
        "X-Troubleshooter-Token": token,
    }


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Start every test with an empty troubleshooter rate limit window."""
    troubleshooter_rate_limiter.reset()
    yield
    troubleshooter_rate_limiter.reset()
