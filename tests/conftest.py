"""Shared fixtures: a throwaway SQLite database per test and a populated circle."""

from __future__ import annotations

import os

# Must be set before circle_api.database builds its module-level engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from circle_api.database import Base, create_db_engine, get_db
from circle_api.domain.circles.service import CircleService
from circle_api.domain.claims.locks import ResourceLockRegistry, get_resource_locks
from circle_api.domain.claims.service import ClaimScheduler
from circle_api.domain.resources.service import ResourceService
from circle_api.domain.users.service import UserService
from circle_api.main import app
from circle_api.services.event_broker import get_event_broker

from .support import RecordingBroker, at


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'circle-test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def events():
    return RecordingBroker()


@pytest.fixture
def locks():
    return ResourceLockRegistry()


@pytest.fixture
def scheduler(db, events, locks):
    return ClaimScheduler(db, events, locks)


@pytest.fixture
def users(db):
    return UserService(db)


@pytest.fixture
def circles(db, events):
    return CircleService(db, events)


@pytest.fixture
def resources(db, events, locks):
    return ResourceService(db, events, locks, clock=lambda: at(12))


@pytest.fixture
def alice(users):
    return users.create_user("Alice")


@pytest.fixture
def bob(users):
    return users.create_user("Bob")


@pytest.fixture
def outsider(users):
    return users.create_user("Mallory")


@pytest.fixture
def circle(circles, alice, bob):
    """A circle created by Alice that Bob has joined."""
    circle = circles.create_circle("Tool Library", "Shared garage tools", creator=alice)
    circles.join_circle(circle.slug, bob.id)
    return circle


@pytest.fixture
def resource(resources, circle, alice):
    return resources.create_resource(circle.slug, alice, "Cordless drill", category="tools")


@pytest.fixture
def client(session_factory, events, locks):
    """TestClient bound to the per-test database, broker and lock registry"""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_broker] = lambda: events
    app.dependency_overrides[get_resource_locks] = lambda: locks
    yield TestClient(app)
    app.dependency_overrides.clear()
