"""``flask bootstrap``: wait for the database, then apply migrations."""

from __future__ import annotations

import logging

import click
from flask import current_app
from flask.cli import with_appcontext
from flask_migrate import upgrade

from authsvc.core.extensions import db
from authsvc.core.startup import StartupError, wait_for_database

LOGGER = logging.getLogger(__name__)


@click.command("bootstrap")
@click.option("--skip-migrations", is_flag=True, help="Only check database connectivity.")
@with_appcontext
def bootstrap_command(skip_migrations: bool) -> None:
    """Prepare the database before the web process starts."""
    cfg = current_app.config
    try:
        wait_for_database(
            db.engine,
            attempts=int(cfg.get("DB_CONNECT_ATTEMPTS", 3)),
            delay=float(cfg.get("DB_CONNECT_DELAY_SECONDS", 1.0)),
        )
    except StartupError as exc:
        raise click.ClickException(str(exc)) from exc
    if skip_migrations:
        return
    LOGGER.info("Applying migrations...")
    upgrade()
    click.echo("Database is up to date.")
