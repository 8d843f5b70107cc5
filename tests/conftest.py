"""Test configuration and fixtures."""

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from illustration_versions.config import Settings
from illustration_versions.db.base import create_tables, get_db, set_engine


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite://", version_number_max_attempts=3)


@pytest.fixture
def engine():
    """A fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(engine, session_factory) -> Generator[TestClient, None, None]:
    """API client bound to the per-test database."""
    from illustration_versions.api import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    set_engine(engine)
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
    set_engine(None)
