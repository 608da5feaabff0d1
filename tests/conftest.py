"""Shared fixtures: an in-memory SQLite database and an authenticated test client."""

import os

# Must be set before crm.database creates its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("LOGFIRE_TOKEN", None)

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from crm import models
from crm.auth import CurrentUser, get_current_user
from crm.database import Base, get_db
from crm.main import app

USER = CurrentUser(id="user-1", email="agent@example.com")
OTHER_USER = CurrentUser(id="user-2", email="rival@example.com")
OPEN_HOME_START = datetime(2025, 3, 1, 10, 0)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory database per test; StaticPool shares one connection."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# API client
# =============================================================================


@pytest.fixture
def current_user():
    """Mutable holder for the signed-in user; tests swap ``["user"]`` to act as someone else."""
    return {"user": USER}


@pytest.fixture
def client(session_factory, current_user):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: current_user["user"]
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(session_factory):
    """Client with the real auth dependency in place."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# =============================================================================
# Seed helpers
# =============================================================================


@pytest.fixture
def make_property(db):
    def _make(user_id=USER.id, **fields):
        fields.setdefault("street_address", "1 Main St")
        fields.setdefault("suburb", "Perth")
        fields.setdefault("state", "WA")
        prop = models.Property(user_id=user_id, **fields)
        db.add(prop)
        db.commit()
        return prop

    return _make


@pytest.fixture
def make_contact(db):
    def _make(user_id=USER.id, **fields):
        contact = models.Contact(user_id=user_id, **fields)
        db.add(contact)
        db.commit()
        return contact

    return _make


@pytest.fixture
def make_attendee(db, make_property):
    """Attendee on a fresh open home for the test user."""

    def _make(user_id=USER.id, **fields):
        prop = make_property(user_id=user_id)
        event = models.OpenHomeEvent(user_id=user_id, property_id=prop.id, start_at=OPEN_HOME_START)
        db.add(event)
        db.commit()
        attendee = models.OpenHomeAttendee(
            user_id=user_id, event_id=event.id, property_id=prop.id, **fields
        )
        db.add(attendee)
        db.commit()
        return attendee

    return _make
