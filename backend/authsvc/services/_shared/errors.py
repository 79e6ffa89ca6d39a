"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and should never import or depend
on Flask, HTTP, or SQLAlchemy directly. They serve as stable contracts between
stores, token adapters, and the rotation coordinator.

Every error carries two messages:

* ``message`` is safe to hand to a client (no internal detail).
* ``detail`` (the ``str()`` of the exception) is meant for operators; the
  full internal cause chain is kept through ``raise ... from``.

The translation to HTTP responses (RFC 7807) is handled by
``authsvc/core/errors.py``.
"""

from __future__ import annotations

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    :param message: Caller-safe summary. Defaults to ``default_message``.
    :type message: str | None
    :param detail: Internal description used in logs. Defaults to ``message``.
    :type detail: str | None

    Notes
    -----
    - These are *not* HTTP errors.
    - ``expected`` tells whether the failure was caused by the caller
      (client error) or by the service itself (server error).
    """

    expected: bool = True
    default_message: str = "request could not be processed"

    def __init__(self, message: str | None = None, *, detail: str | None = None) -> None:
        self.message = message or self.default_message
        self.detail = detail or self.message
        super().__init__(self.detail)

    def cause_chain(self) -> list[str]:
        """
        Return the internal cause chain, outermost first.

        :returns: ``"<ExcType>: <text>"`` entries following ``__cause__`` and
            ``__context__`` links.
        :rtype: list[str]
        """
        chain: list[str] = []
        seen: set[int] = set()
        exc: BaseException | None = self
        while exc is not None and id(exc) not in seen:
            seen.add(id(exc))
            chain.append(f"{type(exc).__name__}: {exc}")
            exc = exc.__cause__ or exc.__context__
        return chain


class InternalError(ServiceError):
    """Base class for failures that are not the caller's fault."""

    expected = False
    default_message = "internal error"


# --------------------------------------------------------------------------- #
# Expected (caller-caused) errors
# --------------------------------------------------------------------------- #


class ValidationError(ServiceError):
    """Raised when a token is malformed, unsigned, or does not verify."""

    default_message = "invalid token"


class AuthenticationError(ServiceError):
    """Raised when the user identity is unknown to the directory."""

    default_message = "invalid credentials"


class ReplayDetected(ServiceError):
    """
    Raised when a refresh attempt presents a retired or unknown pair.

    The message never distinguishes "never issued" from "already rotated" or
    "wrong secret".
    """

    default_message = "invalid refresh token"


class BindingMismatch(ServiceError):
    """Raised when the refresh token is not bound to the presented access token."""

    default_message = "tokens mismatch"


# --------------------------------------------------------------------------- #
# Unexpected (internal) errors
# --------------------------------------------------------------------------- #


class PersistenceError(InternalError):
    """Raised when the storage backend fails outside of a transaction outcome."""

    default_message = "failed to persist token"


class SigningError(InternalError):
    """Raised when a token cannot be signed."""

    default_message = "failed to sign token"


class TransactionError(InternalError):
    """Raised when a unit of work cannot be opened, continued, or committed."""

    default_message = "failed to persist token"


class NotFoundError(InternalError):
    """
    Raised by stores when no row matches the requested key.

    Callers decide how to classify it; left uncaught it surfaces as internal.

    :param entity: Entity name (e.g., ``"DeviceSecret"``).
    :type entity: str
    :param key: Identifier or search key.
    :type key: object
    """

    def __init__(self, entity: str, key: object) -> None:
        self.entity = entity
        self.key = key
        super().__init__(detail=f"{entity} not found: {key}")


__all__ = [
    "AuthenticationError",
    "BindingMismatch",
    "InternalError",
    "NotFoundError",
    "PersistenceError",
    "ReplayDetected",
    "ServiceError",
    "SigningError",
    "TransactionError",
    "ValidationError",
]
