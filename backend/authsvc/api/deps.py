"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Response, current_app, jsonify, request

from authsvc.core.errors import APIError
from authsvc.core.extensions import get_notifier
from authsvc.infra.jwt.flask_jwt_token_codec import JWTTokenCodec
from authsvc.repositories.device_secret import SQLAlchemyDeviceSecretStore
from authsvc.repositories.user import UserRepository
from authsvc.services.auth.service import RotationConfig, RotationCoordinator
from authsvc.uow.sqlalchemy_uow import sqlalchemy_scope_factory

F = TypeVar("F", bound=Callable[..., Any])


def get_rotation_coordinator() -> RotationCoordinator:
    """Wire the coordinator with the adapters of the current application."""

    cfg = current_app.config
    return RotationCoordinator(
        token_codec=JWTTokenCodec(),
        secret_store=SQLAlchemyDeviceSecretStore(),
        scope_factory=sqlalchemy_scope_factory(
            isolation_level=cfg.get("AUTH_TRANSACTION_ISOLATION", "SERIALIZABLE")
        ),
        users=UserRepository(),
        notifier=get_notifier(),
        config=RotationConfig(hash_method=cfg.get("AUTH_SECRET_HASH_METHOD", "scrypt")),
    )


def client_address() -> str:
    """Return the transport-level client address (after ProxyFix, if enabled)."""

    addr = request.remote_addr
    if not addr:
        raise APIError("Client address unavailable", code="client_address_missing")
    return addr


def refresh_deadline() -> float | None:
    """Absolute monotonic deadline for the refresh transaction, if configured."""

    timeout = float(current_app.config.get("AUTH_REFRESH_TIMEOUT_SECONDS") or 0)
    if timeout <= 0:
        return None
    return time.monotonic() + timeout


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]
