"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import timedelta
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

PLACEHOLDER_JWT_SECRET: Final[str] = "CHANGE_ME_JWT"

# Loads .env in development (no-op when missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val)


def env_float(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return float(val)


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    AUTH_ROOT_ROUTES: bool
        Also serve ``POST /login`` and ``POST /refresh`` at the root.
    SECRET_KEY: str
        Flask secret. Unused for tokens but required by extensions.
    JWT_SECRET_KEY: str
        Shared HMAC key used to sign and verify both tokens of a pair.
    JWT_ALGORITHM: str
        The single accepted signing algorithm (``HS512``).
    JWT_ACCESS_TOKEN_EXPIRES / JWT_REFRESH_TOKEN_EXPIRES: timedelta
        Token lifetimes. An expired access token is still accepted on refresh.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    AUTH_SECRET_HASH_METHOD: str
        Werkzeug hashing method for stored fingerprints.
    AUTH_REFRESH_TIMEOUT_SECONDS: float
        Budget for one refresh transaction; ``0`` disables the deadline.
    AUTH_TRANSACTION_ISOLATION: str
        Isolation level of the refresh transaction.
    NOTIFIER_BACKEND: str
        ``"log"``, ``"smtp"`` or ``"memory"``.
    DB_CONNECT_ATTEMPTS / DB_CONNECT_DELAY_SECONDS:
        Startup connection retry policy.
    DEVICE_SECRET_RETENTION_DAYS: int
        Records not rotated for longer are removed by ``flask secrets prune``.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.
    USE_PROXYFIX: bool
        Trust one hop of ``X-Forwarded-*`` headers for the client address.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"
    AUTH_ROOT_ROUTES = env_bool("AUTH_ROOT_ROUTES", True)

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", PLACEHOLDER_JWT_SECRET)
    JWT_ALGORITHM = "HS512"
    JWT_DECODE_ALGORITHMS = ["HS512"]
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(seconds=env_int("JWT_ACCESS_TOKEN_EXPIRES", 15 * 60))
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(
        seconds=env_int("JWT_REFRESH_TOKEN_EXPIRES", 30 * 24 * 3600)
    )

    # Rotation
    AUTH_SECRET_HASH_METHOD = os.getenv("AUTH_SECRET_HASH_METHOD", "scrypt")
    AUTH_REFRESH_TIMEOUT_SECONDS = env_float("AUTH_REFRESH_TIMEOUT_SECONDS", 5.0)
    AUTH_TRANSACTION_ISOLATION = os.getenv("AUTH_TRANSACTION_ISOLATION", "SERIALIZABLE")
    DEVICE_SECRET_RETENTION_DAYS = env_int("DEVICE_SECRET_RETENTION_DAYS", 90)

    # Notifications
    NOTIFIER_BACKEND = os.getenv("NOTIFIER_BACKEND", "log")
    SMTP_HOST = os.getenv("SMTP_HOST", "localhost")
    SMTP_PORT = env_int("SMTP_PORT", 25)
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_SENDER = os.getenv("SMTP_SENDER", "no-reply@localhost")
    SMTP_USE_TLS = env_bool("SMTP_USE_TLS", False)
    SMTP_TIMEOUT_SECONDS = env_float("SMTP_TIMEOUT_SECONDS", 10.0)

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    DB_CONNECT_ATTEMPTS = env_int("DB_CONNECT_ATTEMPTS", 3)
    DB_CONNECT_DELAY_SECONDS = env_float("DB_CONNECT_DELAY_SECONDS", 1.0)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False
    MAX_CONTENT_LENGTH = 4 * 1024

    # Logging, CORS & proxy
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    USE_PROXYFIX = env_bool("USE_PROXYFIX", False)

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and honors ``SQLALCHEMY_ECHO`` for verbose
    SQL logging when requested.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Uses a fast hashing method and an in-memory notifier.
    - Exceptions are not propagated so error handlers render responses.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length-for-hs512-signing-0123456789"
    AUTH_SECRET_HASH_METHOD = "pbkdf2:sha256:1000"
    AUTH_REFRESH_TIMEOUT_SECONDS = 0.0
    NOTIFIER_BACKEND = "memory"
    DB_CONNECT_ATTEMPTS = 1
    DB_CONNECT_DELAY_SECONDS = 0.0
    PROPAGATE_EXCEPTIONS = False


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug and SQL echoing disabled while relying on WSGI-level log
    configuration for noise control. :func:`validate_config` refuses the
    placeholder JWT secret.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)


def validate_config(config: Mapping[str, object]) -> None:
    """Fail fast on settings that must never reach a production process.

    :raises RuntimeError: If the JWT secret is the placeholder outside
        debug/testing, or the notifier backend is unknown.
    """
    if not (config.get("DEBUG") or config.get("TESTING")):
        if config.get("JWT_SECRET_KEY") in (None, "", PLACEHOLDER_JWT_SECRET):
            raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    backend = str(config.get("NOTIFIER_BACKEND", "log")).lower()
    if backend not in {"log", "smtp", "memory"}:
        raise RuntimeError(f"Unknown NOTIFIER_BACKEND {backend!r}.")
