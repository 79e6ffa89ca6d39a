"""Global Flask extension instances and initialization helpers."""

from __future__ import annotations

from pathlib import Path

from flask import Flask, current_app
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData

# Global naming convention for all constraints
convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"

# Global singletons (import-safe)
db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True, directory=str(MIGRATIONS_DIR))
jwt = JWTManager()


def init_app(app: Flask) -> None:
    """Initialize SQLAlchemy, migrations, JWT and the warning notifier.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. This call imports the
        :mod:`authsvc.models` package to ensure SQLAlchemy metadata is ready for
        migrations.
    """
    db.init_app(app)

    # Ensure models are imported so Alembic sees metadata
    from authsvc import models as _models  # noqa: F401

    migrate.init_app(app, db)
    jwt.init_app(app)

    app.extensions["notifier"] = build_notifier(app)


def build_notifier(app: Flask):
    """Select the warning notifier from ``NOTIFIER_BACKEND``.

    ``smtp`` resolves addresses through the ``users`` table; ``memory`` keeps
    warnings on the notifier instance (tests); ``log`` writes them to the log.
    """
    from authsvc.infra.mail.smtp_notifier import SMTPWarningNotifier
    from authsvc.repositories.user import UserRepository
    from authsvc.services._shared.ports import InMemoryNotifier, LoggingNotifier

    backend = str(app.config.get("NOTIFIER_BACKEND", "log")).lower()
    if backend == "smtp":
        return SMTPWarningNotifier(
            users=UserRepository(),
            host=app.config["SMTP_HOST"],
            port=int(app.config["SMTP_PORT"]),
            sender=app.config["SMTP_SENDER"],
            username=app.config.get("SMTP_USERNAME"),
            password=app.config.get("SMTP_PASSWORD"),
            use_tls=bool(app.config.get("SMTP_USE_TLS")),
            timeout=float(app.config.get("SMTP_TIMEOUT_SECONDS", 10.0)),
        )
    if backend == "memory":
        return InMemoryNotifier()
    return LoggingNotifier()


def get_notifier():
    """Return the notifier configured for the current application."""
    try:
        return current_app.extensions["notifier"]
    except KeyError as exc:
        raise RuntimeError("Notifier is not initialized. Call init_app() first.") from exc
