"""Operator commands for stored device secrets."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import click
from flask import current_app
from flask.cli import with_appcontext

from authsvc.repositories.device_secret import SQLAlchemyDeviceSecretStore
from authsvc.services._shared.errors import PersistenceError


@click.group("secrets")
def secrets_cli() -> None:
    """Maintenance of per-device refresh secrets."""


@secrets_cli.command("prune")
@click.option(
    "--days",
    type=click.IntRange(min=1),
    default=None,
    help="Retention window; defaults to DEVICE_SECRET_RETENTION_DAYS.",
)
@with_appcontext
def prune_command(days: int | None) -> None:
    """Delete device secrets that were not rotated within the retention window.

    A pruned session can no longer be refreshed; its owner has to log in again.
    """
    retention = days if days is not None else int(current_app.config["DEVICE_SECRET_RETENTION_DAYS"])
    cutoff = datetime.now(timezone.utc) - timedelta(days=retention)
    try:
        removed = SQLAlchemyDeviceSecretStore().prune_stale(cutoff)
    except PersistenceError as exc:
        raise click.ClickException(exc.detail) from exc
    click.echo(f"Pruned {removed} device secret(s) older than {retention} day(s).")
