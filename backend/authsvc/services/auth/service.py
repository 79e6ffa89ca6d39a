# authsvc/services/auth/service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Generic, TypeVar
from uuid import UUID, uuid4

from authsvc.services._shared.errors import (
    AuthenticationError,
    BindingMismatch,
    InternalError,
    NotFoundError,
    PersistenceError,
    ReplayDetected,
    ServiceError,
    TransactionError,
    ValidationError,
)
from authsvc.services._shared.ports import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    Notifier,
    SecretStore,
    TokenCodec,
    UserDirectory,
)
from authsvc.services.auth import binding
from authsvc.services.auth.dto import IssueIn, RefreshIn, TokenPairOut
from authsvc.uow.base import ScopeFactory

T = TypeVar("T")

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RotationConfig:
    """
    Tunables for the rotation protocol.

    :param hash_method: Werkzeug method used to hash stored fingerprints.
    :type hash_method: str
    """

    hash_method: str = "scrypt"


class RotationCoordinator(Generic[T]):
    """
    Issues token pairs and rotates them on refresh.

    The access and refresh tokens form one unit: the refresh token embeds the
    SHA-256 fingerprint of its access token, and the store keeps a salted hash
    of that fingerprint per ``(user, device)``. A refresh succeeds once per
    pair; the stored hash is replaced inside a serializable scope so a second
    presentation of the same pair finds a different hash (or no row) and is
    reported as reuse.

    The coordinator holds no mutable state between calls.
    """

    def __init__(
        self,
        *,
        token_codec: TokenCodec,
        secret_store: SecretStore[T],
        scope_factory: ScopeFactory[T],
        users: UserDirectory,
        notifier: Notifier,
        config: RotationConfig | None = None,
    ) -> None:
        """
        Initialize the coordinator with its collaborators.

        :param token_codec: Adapter signing/verifying tokens.
        :param secret_store: Device secret persistence.
        :param scope_factory: Creates a fresh serializable scope per refresh.
        :param users: User existence oracle.
        :param notifier: Best-effort warning delivery.
        :param config: Protocol tunables.
        """
        self.tokens = token_codec
        self.secrets = secret_store
        self.scope_factory = scope_factory
        self.users = users
        self.notifier = notifier
        self.cfg = config or RotationConfig()

    # ------------------------------------------------------------------ #
    # Issue
    # ------------------------------------------------------------------ #

    def issue_tokens(self, dto: IssueIn) -> TokenPairOut:
        """
        Issue a fresh token pair for a known user.

        :param dto: Issue input.
        :returns: New token pair.
        :raises AuthenticationError: If the user does not exist.
        :raises SigningError: If signing fails.
        :raises PersistenceError: If the secret cannot be stored.
        """
        self._ensure_user(dto.user_id)
        pair = self._mint_pair(dto.user_id, dto.client_address)

        # First write for this key: no prior state to race against.
        try:
            self.secrets.upsert_secret(
                dto.user_id, binding.device_id(dto.client_address), pair.secret_hash
            )
        except ServiceError:
            raise
        except Exception as exc:
            raise PersistenceError(detail=f"save token hash: {exc}") from exc
        return pair

    # ------------------------------------------------------------------ #
    # Refresh with atomic rotation
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn) -> TokenPairOut:
        """
        Validate the presented pair and rotate it.

        Security
        --------
        - Both tokens must verify and be bound to each other.
        - The stored hash for the device must match the presented pair;
          anything else is treated as reuse of a retired pair.
        - A change of client address relocates the record and warns the user
          once the rotation has been committed.
        """
        # 1) Signatures, transport encoding and binding
        access_claims = self._decode(
            dto.access_token, ACCESS_TOKEN_TYPE, "invalid access token", allow_expired=True
        )
        try:
            signed_refresh = binding.unwrap_refresh_token(dto.refresh_token)
        except ValueError as exc:
            raise ValidationError(
                "invalid refresh token encoding", detail=f"refresh token: {exc}"
            ) from exc
        refresh_claims = self._decode(signed_refresh, REFRESH_TOKEN_TYPE, "invalid refresh token")

        fp = binding.fingerprint(dto.access_token)
        try:
            bound_fp = binding.b64url_decode(str(refresh_claims["sub"]))
        except (KeyError, ValueError) as exc:
            raise InternalError(
                "failed to decode access token", detail=f"access token hash: {exc}"
            ) from exc
        if not binding.fingerprints_match(fp, bound_fp):
            raise BindingMismatch(detail="access token fingerprint differs from refresh subject")

        # 2) Identity and previous device
        user_id = self._subject_as_user_id(access_claims)
        self._ensure_user(user_id)
        old_ip = access_claims.get("ip")
        if not isinstance(old_ip, str):
            raise ValidationError("invalid access token", detail="access token has no ip claim")
        old_device_id = binding.device_id(old_ip)
        new_ip = dto.client_address

        # 3) Compare-then-replace inside one serializable scope
        message: str | None = None
        try:
            scope = self.scope_factory(deadline=dto.deadline)
        except ServiceError:
            raise
        except Exception as exc:
            raise TransactionError(detail=f"create unit of work: {exc}") from exc

        with scope:
            try:
                stored = self.secrets.lookup_secret(scope, user_id, old_device_id)
            except NotFoundError as exc:
                log.warning(
                    "refresh token reuse attempt",
                    extra={"user_id": str(user_id), "ip": new_ip},
                )
                raise ReplayDetected(detail="token hash not found") from exc

            try:
                matches = binding.verify_fingerprint(stored, fp)
            except ValueError as exc:
                raise InternalError(
                    "failed to check refresh token", detail=f"compare hash: {exc}"
                ) from exc
            if not matches:
                log.warning(
                    "stale tokens pair reuse attempt",
                    extra={"user_id": str(user_id), "ip": new_ip},
                )
                raise ReplayDetected(detail="compare hash: mismatch")

            pair = self._mint_pair(user_id, new_ip)

            new_device_id = old_device_id
            if new_ip != old_ip:
                log.warning(
                    "ip mismatch",
                    extra={"user_id": str(user_id), "old_ip": old_ip, "new_ip": new_ip},
                )
                new_device_id = binding.device_id(new_ip)
                message = f"ip mismatch: {old_ip} != {new_ip}"

            try:
                self.secrets.replace_secret(
                    scope,
                    user_id,
                    old_device_id,
                    new_device_id,
                    pair.secret_hash,
                    expected_hash=stored,
                )
            except NotFoundError as exc:
                # Row rotated by a concurrent transaction after our read.
                raise TransactionError(detail="replace token hash: no rows affected") from exc

            scope.commit()

        # 4) Post-commit, best effort
        if message is not None:
            self._warn_user(user_id, message)
        return pair

    # ------------------------------------------------------------------ #
    # Utilities
    # ------------------------------------------------------------------ #

    def _mint_pair(self, user_id: UUID, client_address: str) -> TokenPairOut:
        access = self.tokens.create_access_token(
            identity=str(user_id),
            additional_claims={"ip": client_address},
            jti=uuid4().hex,
        )
        fp = binding.fingerprint(access)
        refresh = self.tokens.create_refresh_token(
            identity=binding.b64url_encode(fp),
            additional_claims={"ip": client_address},
        )
        try:
            secret_hash = binding.hash_fingerprint(fp, method=self.cfg.hash_method)
        except (TypeError, ValueError) as exc:
            raise InternalError(
                "failed to generate refresh token", detail=f"access token hash: {exc}"
            ) from exc
        return TokenPairOut(
            access_token=access,
            refresh_token=binding.wrap_refresh_token(refresh),
            secret_hash=secret_hash,
        )

    def _decode(
        self, token: str, token_type: str, message: str, *, allow_expired: bool = False
    ) -> dict[str, Any]:
        try:
            return self.tokens.decode(token, token_type=token_type, allow_expired=allow_expired)
        except ValidationError as exc:
            raise ValidationError(message, detail=f"{token_type} token: {exc.detail}") from exc

    def _ensure_user(self, user_id: UUID) -> None:
        try:
            exists = self.users.exists(user_id)
        except Exception as exc:
            raise PersistenceError(
                "failed to get user info", detail=f"check if user exists: {exc}"
            ) from exc
        if not exists:
            raise AuthenticationError(detail=f"user not found: {user_id}")

    @staticmethod
    def _subject_as_user_id(claims: dict[str, Any]) -> UUID:
        """Ensure the access token subject is a user UUID."""
        try:
            return UUID(str(claims["sub"]))
        except (KeyError, ValueError) as exc:
            raise ValidationError(
                "invalid access token", detail=f"access token subject: {exc}"
            ) from exc

    def _warn_user(self, user_id: UUID, message: str) -> None:
        try:
            self.notifier.send_warning(user_id, message)
        except Exception:
            log.exception(
                "failed to send warning",
                extra={"user_id": str(user_id)},
            )
