"""Pytest configuration and shared fixtures."""

import os

# Must be set before docflow.db.session builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from docflow.core.config import Settings
from docflow.db.base import Base
from docflow.db import models  # noqa: F401
from docflow.services.collaborators import Collaborators

from tests.fakes import (
    ACC_URL,
    DAO_URL,
    EXCHANGE_URL,
    HISTORY_URL,
    RDA_DAO_URL,
    UM_URL,
    FakeDirectory,
    FakeUpstream,
)


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        acc_service_url=ACC_URL,
        dao_service_url=DAO_URL,
        rda_dao_service_url=RDA_DAO_URL,
        um_service_url=UM_URL,
        exchange_service_url=EXCHANGE_URL,
        history_service_url=HISTORY_URL,
        history_actor_id="1",
        collaborator_timeout=2.0,
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Session bound to a fresh in-memory database."""
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def collaborators(settings, upstream):
    http = httpx.Client(transport=httpx.MockTransport(upstream.handler))
    yield Collaborators.from_settings(settings, http=http)
    http.close()


@pytest.fixture
def client(engine, collaborators):
    """API client wired to the test database and fake collaborators."""
    from docflow.api.deps import get_collaborators, get_db
    from docflow.api.main import app

    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def _get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_collaborators] = lambda: collaborators
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
