"""Pytest configuration and fixtures."""

import os

# Keep the app's own engine off the filesystem during tests
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.routes.iiko import get_sync_service
from app.db.base import Base
from app.db.session import get_db
from app.main import app
# Import all models to ensure they're registered with Base.metadata
from app.models import *
from app.models.iiko import IikoSettings
from app.services.iiko import IikoSyncService
from app.services.iiko.sync_service import hash_password
from iiko_fakes import IIKO_URL, FakeIikoServer

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def iiko_server() -> FakeIikoServer:
    """A fake iiko server with working auth and logout."""
    return FakeIikoServer()


@pytest.fixture
def iiko_settings(db_session: Session) -> IikoSettings:
    """Active iiko connection settings."""
    config = IikoSettings(
        server_url=IIKO_URL,
        login="api-user",
        password_hash=hash_password("secret"),
        is_active=True,
    )
    db_session.add(config)
    db_session.commit()
    db_session.refresh(config)
    return config


@pytest.fixture
def sync_service(db_session: Session, iiko_server: FakeIikoServer) -> IikoSyncService:
    """Sync service wired to the fake iiko server."""
    return IikoSyncService(db_session, transport=iiko_server.transport)


@pytest.fixture(scope="function")
def client(db_session: Session, iiko_server: FakeIikoServer) -> Generator[TestClient, None, None]:
    """Create a test client with database and iiko server overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    def override_get_sync_service():
        return IikoSyncService(db_session, transport=iiko_server.transport)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sync_service] = override_get_sync_service
    # Disable rate limiters during tests to avoid flaky failures
    from app.core.rate_limit import limiter as global_limiter
    global_limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    global_limiter.enabled = True
    app.dependency_overrides.clear()
