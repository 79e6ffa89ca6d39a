"""Idempotent database seed helpers for local development environments."""

from __future__ import annotations

import logging
from typing import cast
from uuid import UUID

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import Session

from authsvc.models.user import User

LOGGER = logging.getLogger(__name__)

# Well-known identities used by local clients and the HTTP smoke scenario
USER_FIXTURES: list[dict[str, str]] = [
    {"id": "00000000-0000-0000-0000-000000000000", "email": "first@test.com"},
    {"id": "00000000-0000-0000-0000-000000000001", "email": "second@test.com"},
]


def _session(database: SQLAlchemy) -> Session:
    """Return the current SQLAlchemy session."""
    return cast(Session, database.session)


def _touch(summary: dict[str, dict[str, int]], table: str, created: bool) -> None:
    """Update summary counters for the given table."""
    entry = summary.setdefault(table, {"created": 0, "existing": 0})
    entry["created" if created else "existing"] += 1


def seed_users(database: SQLAlchemy, *, verbose: bool = False) -> dict[str, dict[str, int]]:
    """Create the demo users, refreshing their email when they already exist."""
    if verbose:
        LOGGER.info("Seeding users...")
    session = _session(database)
    summary: dict[str, dict[str, int]] = {}

    with session.begin():
        for fixture in USER_FIXTURES:
            user_id = UUID(fixture["id"])
            user = session.get(User, user_id)
            created = user is None
            if user is None:
                session.add(User(id=user_id, email=fixture["email"]))
            else:
                user.email = fixture["email"]
            _touch(summary, "users", created)
            if verbose:
                LOGGER.info("user %s %s", user_id, "created" if created else "exists")
    return summary


def run_all(database: SQLAlchemy, *, verbose: bool = False) -> dict[str, dict[str, int]]:
    """Run all seeders in foreign-key order."""
    if verbose:
        LOGGER.info("Running full seed pipeline...")
    combined: dict[str, dict[str, int]] = {}
    for func in (seed_users,):
        for table, counters in func(database, verbose=verbose).items():
            entry = combined.setdefault(table, {"created": 0, "existing": 0})
            entry["created"] += counters.get("created", 0)
            entry["existing"] += counters.get("existing", 0)
    return combined


__all__ = ["USER_FIXTURES", "run_all", "seed_users"]
