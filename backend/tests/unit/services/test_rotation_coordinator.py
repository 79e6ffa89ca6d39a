# tests/unit/services/test_rotation_coordinator.py
from __future__ import annotations

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from flask_jwt_extended import create_refresh_token
from freezegun import freeze_time
from sqlalchemy import select

from authsvc.infra.jwt.flask_jwt_token_codec import JWTTokenCodec
from authsvc.models.device_secret import DeviceSecret
from authsvc.repositories import SQLAlchemyDeviceSecretStore, UserRepository
from authsvc.services._shared.errors import (
    AuthenticationError,
    BindingMismatch,
    InternalError,
    PersistenceError,
    ReplayDetected,
    TransactionError,
    ValidationError,
)
from authsvc.services._shared.ports import (
    InMemoryNotifier,
    InMemorySecretStore,
    InMemoryUserDirectory,
)
from authsvc.services.auth import binding
from authsvc.services.auth.dto import IssueIn, RefreshIn, TokenPairOut
from authsvc.services.auth.service import RotationConfig, RotationCoordinator
from authsvc.uow import sqlalchemy_scope_factory
from tests.factories.user import UserFactory

USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000000")
OTHER_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
HOME = "127.0.0.1"
AWAY = "127.0.0.2"

SERVICE_LOGGER = "authsvc.services.auth.service"


class InterleavingSecretStore(InMemorySecretStore):
    """Runs a one-shot callback right after the next scoped read."""

    def __init__(self) -> None:
        super().__init__()
        self.after_lookup = None

    def lookup_secret(self, scope, user_id, device_id):
        value = super().lookup_secret(scope, user_id, device_id)
        callback, self.after_lookup = self.after_lookup, None
        if callback is not None:
            callback()
        return value


class FailingNotifier:
    def send_warning(self, user_id, message):
        raise ConnectionError("smtp down")


class BrokenDirectory:
    def exists(self, user_id):
        raise OSError("directory unavailable")


# ------------------------------ Fixtures ---------------------------------- #
@pytest.fixture()
def users() -> InMemoryUserDirectory:
    return InMemoryUserDirectory({USER_ID: "first@test.com", OTHER_USER_ID: "second@test.com"})


@pytest.fixture()
def store() -> InterleavingSecretStore:
    return InterleavingSecretStore()


@pytest.fixture()
def sent() -> InMemoryNotifier:
    return InMemoryNotifier()


def _coordinator(store, users, notifier) -> RotationCoordinator:
    return RotationCoordinator(
        token_codec=JWTTokenCodec(),
        secret_store=store,
        scope_factory=store.begin,
        users=users,
        notifier=notifier,
        config=RotationConfig(hash_method="pbkdf2:sha256:1000"),
    )


@pytest.fixture()
def service(app, store, users, sent) -> RotationCoordinator:
    """
    Build a RotationCoordinator wired to in-memory doubles and the real JWT codec.

    .. note::
       The codec needs the app context pushed by the ``app`` fixture.
    """
    return _coordinator(store, users, sent)


def _refresh(service, pair: TokenPairOut, ip: str = HOME, **kwargs) -> TokenPairOut:
    return service.refresh(
        RefreshIn(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            client_address=ip,
            **kwargs,
        )
    )


def _issue(service, user_id=USER_ID, ip: str = HOME) -> TokenPairOut:
    return service.issue_tokens(IssueIn(user_id=user_id, client_address=ip))


# ------------------------------ Issuance ---------------------------------- #
def test_issue_binds_pair_and_stores_secret(service, store):
    """The refresh token carries sha256(access); the store keeps its salted hash."""
    pair = _issue(service)
    codec = JWTTokenCodec()

    access = codec.decode(pair.access_token, token_type="access")
    assert access["sub"] == str(USER_ID)
    assert access["ip"] == HOME
    assert access["jti"]

    refresh = codec.decode(binding.unwrap_refresh_token(pair.refresh_token), token_type="refresh")
    fp = binding.fingerprint(pair.access_token)
    assert binding.b64url_decode(refresh["sub"]) == fp
    assert refresh["ip"] == HOME

    stored = store.get(USER_ID, binding.device_id(HOME))
    assert stored == pair.secret_hash
    assert binding.verify_fingerprint(stored, fp)


def test_issue_twice_from_same_device_keeps_one_slot(service, store):
    first = _issue(service)
    second = _issue(service)

    assert first.access_token != second.access_token
    assert store.keys() == [(USER_ID, binding.device_id(HOME))]
    assert store.get(USER_ID, binding.device_id(HOME)) == second.secret_hash


def test_issue_unknown_user_is_rejected(service, store):
    with pytest.raises(AuthenticationError) as excinfo:
        _issue(service, user_id=uuid.uuid4())
    assert excinfo.value.expected is True
    assert excinfo.value.message == "invalid credentials"
    assert store.keys() == []


def test_issue_directory_failure_is_unexpected(app, store, sent):
    service = _coordinator(store, BrokenDirectory(), sent)
    with pytest.raises(PersistenceError) as excinfo:
        _issue(service)
    assert excinfo.value.expected is False
    assert isinstance(excinfo.value.__cause__, OSError)


def test_pair_is_not_exposed_in_repr(service):
    pair = _issue(service)
    assert "secret_hash" not in repr(pair)


# ------------------------------ Rotation ---------------------------------- #
def test_refresh_rotates_and_retires_previous_pair(service, store, sent):
    """Round trip: issue, refresh, then the old pair is replay and the new one works."""
    original = _issue(service)
    rotated = _refresh(service, original)

    assert rotated.access_token != original.access_token
    assert rotated.refresh_token != original.refresh_token
    stored = store.get(USER_ID, binding.device_id(HOME))
    assert binding.verify_fingerprint(stored, binding.fingerprint(rotated.access_token))

    with pytest.raises(ReplayDetected) as excinfo:
        _refresh(service, original)
    assert excinfo.value.message == "invalid refresh token"

    assert _refresh(service, rotated).access_token != rotated.access_token
    assert sent.sent == []


def test_refresh_is_not_idempotent(service, store, caplog):
    pair = _issue(service)
    _refresh(service, pair)
    after_first = store.get(USER_ID, binding.device_id(HOME))

    caplog.set_level(logging.WARNING, logger=SERVICE_LOGGER)
    with pytest.raises(ReplayDetected):
        _refresh(service, pair)

    assert store.get(USER_ID, binding.device_id(HOME)) == after_first
    records = [r for r in caplog.records if r.getMessage() == "stale tokens pair reuse attempt"]
    assert len(records) == 1
    assert records[0].user_id == str(USER_ID)
    assert records[0].ip == HOME


def test_refresh_accepts_expired_access_token(service):
    with freeze_time("2030-01-01 12:00:00") as frozen:
        pair = _issue(service)
        frozen.tick(timedelta(hours=2))
        rotated = _refresh(service, pair)
    assert rotated.access_token != pair.access_token


def test_refresh_rejects_expired_refresh_token(service):
    with freeze_time("2030-01-01 12:00:00") as frozen:
        pair = _issue(service)
        frozen.tick(timedelta(days=31))
        with pytest.raises(ValidationError) as excinfo:
            _refresh(service, pair)
    assert excinfo.value.message == "invalid refresh token"


# ------------------------------ Relocation -------------------------------- #
def test_relocation_moves_slot_and_warns_once(service, store, sent, caplog):
    caplog.set_level(logging.WARNING, logger=SERVICE_LOGGER)
    pair = _issue(service, ip=HOME)

    rotated = _refresh(service, pair, ip=AWAY)

    assert store.keys() == [(USER_ID, binding.device_id(AWAY))]
    assert store.get(USER_ID, binding.device_id(HOME)) is None
    access = JWTTokenCodec().decode(rotated.access_token, token_type="access")
    assert access["ip"] == AWAY

    assert len(sent.for_user(USER_ID)) == 1
    message = sent.for_user(USER_ID)[0].message
    assert HOME in message and AWAY in message

    mismatch = [r for r in caplog.records if r.getMessage() == "ip mismatch"]
    assert len(mismatch) == 1
    assert (mismatch[0].old_ip, mismatch[0].new_ip) == (HOME, AWAY)


def test_old_pair_after_relocation_is_reuse_of_missing_slot(service, caplog):
    pair = _issue(service, ip=HOME)
    _refresh(service, pair, ip=AWAY)

    caplog.set_level(logging.WARNING, logger=SERVICE_LOGGER)
    with pytest.raises(ReplayDetected) as excinfo:
        _refresh(service, pair, ip=HOME)
    assert excinfo.value.message == "invalid refresh token"
    assert any(r.getMessage() == "refresh token reuse attempt" for r in caplog.records)


def test_relocation_supersedes_existing_session_on_target_device(service, store):
    home_pair = _issue(service, ip=HOME)
    away_pair = _issue(service, ip=AWAY)

    _refresh(service, home_pair, ip=AWAY)

    assert store.keys() == [(USER_ID, binding.device_id(AWAY))]
    with pytest.raises(ReplayDetected):
        _refresh(service, away_pair, ip=AWAY)


def test_notifier_failure_does_not_undo_rotation(app, store, users, caplog):
    service = _coordinator(store, users, FailingNotifier())
    pair = _issue(service)

    caplog.set_level(logging.WARNING, logger=SERVICE_LOGGER)
    rotated = _refresh(service, pair, ip=AWAY)

    stored = store.get(USER_ID, binding.device_id(AWAY))
    assert binding.verify_fingerprint(stored, binding.fingerprint(rotated.access_token))
    failures = [r for r in caplog.records if r.getMessage() == "failed to send warning"]
    assert len(failures) == 1
    assert failures[0].exc_info is not None


# ------------------------------ Rejections -------------------------------- #
def test_tokens_from_different_pairs_are_a_binding_mismatch(service):
    first = _issue(service, ip=HOME)
    second = _issue(service, ip=AWAY)
    mixed = TokenPairOut(
        access_token=first.access_token,
        refresh_token=second.refresh_token,
        secret_hash=b"",
    )
    with pytest.raises(BindingMismatch) as excinfo:
        _refresh(service, mixed)
    assert excinfo.value.message == "tokens mismatch"
    assert excinfo.value.expected is True


def test_deleted_user_cannot_refresh(service, users):
    pair = _issue(service)
    users.remove(USER_ID)
    with pytest.raises(AuthenticationError):
        _refresh(service, pair)


@pytest.mark.parametrize(
    ("access", "refresh", "message"),
    [
        ("garbage", None, "invalid access token"),
        (None, "***", "invalid refresh token encoding"),
        (None, binding.wrap_refresh_token("not.a.jwt"), "invalid refresh token"),
    ],
)
def test_malformed_tokens_are_validation_errors(service, access, refresh, message):
    pair = _issue(service)
    bad = TokenPairOut(
        access_token=access or pair.access_token,
        refresh_token=refresh or pair.refresh_token,
        secret_hash=b"",
    )
    with pytest.raises(ValidationError) as excinfo:
        _refresh(service, bad)
    assert excinfo.value.message == message


def test_swapped_token_types_are_rejected(service):
    pair = _issue(service)
    signed_refresh = binding.unwrap_refresh_token(pair.refresh_token)
    swapped = TokenPairOut(
        access_token=signed_refresh,
        refresh_token=binding.wrap_refresh_token(pair.access_token),
        secret_hash=b"",
    )
    with pytest.raises(ValidationError):
        _refresh(service, swapped)


def test_undecodable_subject_of_signed_refresh_token_is_internal(service):
    pair = _issue(service)
    forged = binding.wrap_refresh_token(create_refresh_token(identity="***", additional_claims={"ip": HOME}))
    with pytest.raises(InternalError) as excinfo:
        _refresh(service, TokenPairOut(pair.access_token, forged, b""))
    assert excinfo.value.expected is False
    assert excinfo.value.message == "failed to decode access token"


def test_expired_deadline_aborts_before_any_write(service, store):
    pair = _issue(service)
    before = store.get(USER_ID, binding.device_id(HOME))

    with pytest.raises(TransactionError):
        _refresh(service, pair, deadline=time.monotonic() - 1)

    assert store.get(USER_ID, binding.device_id(HOME)) == before
    assert _refresh(service, pair).access_token


# ------------------------------ Concurrency ------------------------------- #
def test_same_pair_race_commits_once(service, store):
    """A refresh completing mid-flight makes the slower one fail its commit."""
    pair = _issue(service)
    inner: list[TokenPairOut] = []
    store.after_lookup = lambda: inner.append(_refresh(service, pair))

    with pytest.raises(TransactionError):
        _refresh(service, pair)

    assert len(inner) == 1
    stored = store.get(USER_ID, binding.device_id(HOME))
    assert binding.verify_fingerprint(stored, binding.fingerprint(inner[0].access_token))


class InterleavingSQLStore(SQLAlchemyDeviceSecretStore):
    """SQL-backed store running a one-shot callback after the next scoped read."""

    def __init__(self) -> None:
        super().__init__()
        self.after_lookup = None

    def lookup_secret(self, scope, user_id, device_id):
        value = super().lookup_secret(scope, user_id, device_id)
        callback, self.after_lookup = self.after_lookup, None
        if callback is not None:
            callback()
        return value


def test_same_pair_race_commits_once_on_sql_store(app, session, sent):
    """The SQL store rejects a rotation whose read was overtaken by a commit."""
    user = UserFactory(id=USER_ID, email="first@test.com")
    store = InterleavingSQLStore()
    service = RotationCoordinator(
        token_codec=JWTTokenCodec(),
        secret_store=store,
        scope_factory=sqlalchemy_scope_factory(),
        users=UserRepository(),
        notifier=sent,
        config=RotationConfig(hash_method="pbkdf2:sha256:1000"),
    )
    pair = _issue(service)
    inner: list[TokenPairOut] = []
    store.after_lookup = lambda: inner.append(_refresh(service, pair))

    with pytest.raises(TransactionError):
        _refresh(service, pair)

    assert len(inner) == 1
    stored = session.execute(
        select(DeviceSecret.token_hash).where(DeviceSecret.user_id == user.id)
    ).scalar_one()
    assert binding.verify_fingerprint(bytes(stored), binding.fingerprint(inner[0].access_token))
    # the losing pair is not usable either
    with pytest.raises(ReplayDetected):
        _refresh(service, pair)


def test_distinct_keys_rotate_concurrently(app, service, store, users):
    """Sessions of different users and devices never interfere."""
    sessions = []
    for n in range(8):
        user_id = uuid.uuid4()
        users.add(user_id, f"u{n}@example.com")
        ip = f"10.0.0.{n}"
        sessions.append((user_id, ip, _issue(service, user_id=user_id, ip=ip)))

    def rotate(item):
        user_id, ip, pair = item
        with app.app_context():
            return user_id, ip, _refresh(service, pair, ip=ip)

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(rotate, sessions))

    for user_id, ip, rotated in results:
        stored = store.get(user_id, binding.device_id(ip))
        assert binding.verify_fingerprint(stored, binding.fingerprint(rotated.access_token))
    assert len(store.keys()) == len(sessions)

