"""Pytest fixtures for the token service.

Every test gets a fresh application bound to its own in-memory SQLite
database, so state written through separate sessions and engine connections
never leaks between cases.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from typing import Any

import pytest
from flask import Flask

from authsvc import create_app
from authsvc.core.config import TestingConfig
from authsvc.core.extensions import db as _db
from authsvc.core.extensions import get_notifier
from authsvc.services._shared.ports import InMemoryNotifier


class TestConfig(TestingConfig):
    """Testing configuration for creating the Flask app.

    Notes
    -----
    - Uses an in-memory SQLite database for speed.
    - Keeps warnings in memory instead of sending email.
    - Disables the refresh deadline so slow CI hosts do not flake.
    """

    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    NOTIFIER_BACKEND = "memory"
    LOG_LEVEL = "WARNING"


@pytest.fixture()
def app() -> Generator[Flask, None, None]:
    """Create a Flask application with the schema created."""
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    application = create_app(TestConfig, instance_relative_config=False)
    with application.app_context():
        _db.create_all()
        yield application
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def db(app: Flask) -> Any:
    """Database extension bound to the testing application."""
    return _db


@pytest.fixture()
def session(db: Any) -> Any:
    """Flask-scoped session; factories commit through it."""
    return db.session


@pytest.fixture()
def client(app: Flask) -> Any:
    """Return a Flask test client."""
    return app.test_client()


@pytest.fixture()
def notifier(app: Flask) -> InMemoryNotifier:
    """The in-memory notifier wired into the application."""
    sent = get_notifier()
    assert isinstance(sent, InMemoryNotifier)
    return sent


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# -- Hook up Factory Boy to the application session ---------------------------
@pytest.fixture(autouse=True)
def _factories_session(request: pytest.FixtureRequest):
    """Wire Factory Boy's session helper when the test uses the database."""
    from tests.factories import SQLAlchemySession

    if "app" in request.fixturenames:
        SQLAlchemySession.set(request.getfixturevalue("session"))
    yield
    SQLAlchemySession.set(None)
