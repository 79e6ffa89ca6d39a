# authsvc/infra/jwt/flask_jwt_token_codec.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast

from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import InvalidTokenError, PyJWTError

from authsvc.services._shared.errors import SigningError, ValidationError
from authsvc.services._shared.ports import TokenCodec


@dataclass(slots=True)
class JWTTokenCodec(TokenCodec):
    """
    Adapter for Flask-JWT-Extended.

    Algorithm, secret and lifetimes come from the app config
    (``JWT_ALGORITHM``, ``JWT_SECRET_KEY``, ``JWT_ACCESS_TOKEN_EXPIRES``,
    ``JWT_REFRESH_TOKEN_EXPIRES``). Verification accepts only the configured
    algorithm, so ``none``, asymmetric or weaker HMAC headers are rejected.

    .. note::
       Requires an active Flask app context with proper JWT settings.
    """

    def _merge_claims(self, base: dict[str, Any] | None, extra: dict[str, Any]) -> dict[str, Any]:
        """Merge claim dictionaries without mutating inputs."""
        merged = dict(base or {})
        merged.update(extra)
        return merged

    def create_access_token(
        self,
        *,
        identity: str,
        additional_claims: dict[str, Any] | None = None,
        jti: str | None = None,
    ) -> str:
        # Flask-JWT-Extended generates a jti by default; additional_claims
        # override it.
        from flask_jwt_extended import create_access_token as _create_access

        claims = dict(additional_claims or {})
        if jti is not None:
            claims = self._merge_claims(claims, {"jti": jti})

        try:
            return cast(str, _create_access(identity=identity, additional_claims=claims))
        except (PyJWTError, RuntimeError, TypeError, ValueError) as exc:
            raise SigningError(detail=f"sign access token: {exc}") from exc

    def create_refresh_token(
        self,
        *,
        identity: str,
        additional_claims: dict[str, Any] | None = None,
    ) -> str:
        from flask_jwt_extended import create_refresh_token as _create_refresh

        try:
            return cast(
                str,
                _create_refresh(identity=identity, additional_claims=dict(additional_claims or {})),
            )
        except (PyJWTError, RuntimeError, TypeError, ValueError) as exc:
            raise SigningError(detail=f"sign refresh token: {exc}") from exc

    def decode(
        self,
        token: str,
        *,
        token_type: str,
        allow_expired: bool = False,
    ) -> dict[str, Any]:
        from flask_jwt_extended import decode_token

        try:
            claims = cast(dict[str, Any], decode_token(token, allow_expired=allow_expired))
        except (InvalidTokenError, JWTExtendedException) as exc:
            raise ValidationError(detail=f"decode: {exc}") from exc

        # Flask-JWT-Extended sets "type": "access" | "refresh"
        actual = claims.get("type")
        if actual != token_type:
            raise ValidationError(detail=f"unexpected token type: {actual!r}")
        return claims


__all__ = ["JWTTokenCodec"]
