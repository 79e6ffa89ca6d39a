"""Command-line interface registration for the Flask application."""

from __future__ import annotations

from flask import Flask

from .bootstrap import bootstrap_command
from .secrets import secrets_cli
from .seed import seed_cli


def init_app(app: Flask) -> None:
    """Register application-specific CLI commands.

    Parameters
    ----------
    app:
        Flask application instance whose CLI registry receives the ``seed``
        and ``secrets`` groups and the ``bootstrap`` command.
    """
    app.cli.add_command(seed_cli)
    app.cli.add_command(secrets_cli)
    app.cli.add_command(bootstrap_command)
