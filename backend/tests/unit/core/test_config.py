from __future__ import annotations

import pytest

from authsvc.core.config import (
    PLACEHOLDER_JWT_SECRET,
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    env_bool,
    get_config,
    validate_config,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("1", True), ("Yes", True), (" on ", True), ("0", False), ("nope", False)],
)
def test_env_bool(monkeypatch, raw, expected):
    monkeypatch.setenv("AUTHSVC_FLAG", raw)
    assert env_bool("AUTHSVC_FLAG") is expected


def test_env_bool_default_when_unset(monkeypatch):
    monkeypatch.delenv("AUTHSVC_FLAG", raising=False)
    assert env_bool("AUTHSVC_FLAG", True) is True


@pytest.mark.parametrize(
    ("name", "expected"),
    [("production", ProductionConfig), ("TESTING", TestingConfig), ("bogus", DevelopmentConfig)],
)
def test_get_config_selects_by_app_env(monkeypatch, name, expected):
    monkeypatch.setenv("APP_ENV", name)
    assert get_config() is expected


def test_defaults_pin_single_strong_algorithm():
    assert ProductionConfig.JWT_ALGORITHM == "HS512"
    assert ProductionConfig.JWT_DECODE_ALGORITHMS == ["HS512"]
    assert ProductionConfig.AUTH_TRANSACTION_ISOLATION == "SERIALIZABLE"


def test_production_refuses_placeholder_secret():
    config = {"DEBUG": False, "TESTING": False, "JWT_SECRET_KEY": PLACEHOLDER_JWT_SECRET}
    with pytest.raises(RuntimeError, match="JWT_SECRET_KEY"):
        validate_config(config)


def test_debug_tolerates_placeholder_secret():
    validate_config({"DEBUG": True, "JWT_SECRET_KEY": PLACEHOLDER_JWT_SECRET})


def test_unknown_notifier_backend_is_rejected():
    config = {"TESTING": True, "JWT_SECRET_KEY": "x" * 64, "NOTIFIER_BACKEND": "pigeon"}
    with pytest.raises(RuntimeError, match="NOTIFIER_BACKEND"):
        validate_config(config)
