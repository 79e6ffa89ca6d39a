"""Startup checks run before the service accepts traffic."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a dependency stays unavailable after all attempts."""


def wait_for_database(
    engine: Engine,
    *,
    attempts: int = 3,
    delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """
    Block until ``engine`` answers ``SELECT 1``.

    :param engine: Engine to check.
    :param attempts: Total number of attempts (at least one).
    :param delay: Seconds to wait between failed attempts.
    :param sleep: Injected for tests.
    :raises StartupError: If every attempt fails.
    """
    attempts = max(int(attempts), 1)
    last_error: SQLAlchemyError | None = None
    for attempt in range(1, attempts + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            last_error = exc
            log.warning(
                "can't connect to database: %s",
                exc,
                extra={"attempts_left": attempts - attempt},
            )
            if attempt < attempts:
                sleep(delay)
            continue
        log.info("database is reachable")
        return
    raise StartupError(f"database unavailable after {attempts} attempts") from last_error
