"""Pure helpers binding tokens to each other and sessions to devices.

Nothing here holds state: the same input always yields the same output, so
issuance and refresh derive identical keys for the same session.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac

from werkzeug.security import check_password_hash, generate_password_hash

DEVICE_ID_SIZE = 32


def device_id(client_address: str) -> bytes:
    """
    Derive the fixed-width device identifier for a client address.

    :param client_address: Network address as seen by the transport.
    :type client_address: str
    :returns: 32-byte SHA-256 digest of the address.
    :rtype: bytes

    .. note::
       The address stands in for a real device fingerprint; clients behind
       the same NAT share an identifier.
    """
    return hashlib.sha256(client_address.encode("utf-8")).digest()


def fingerprint(token: str) -> bytes:
    """Return ``sha256(token)`` as a raw 32-byte digest."""
    return hashlib.sha256(token.encode("utf-8")).digest()


def fingerprints_match(left: bytes, right: bytes) -> bool:
    """Constant-time byte comparison of two fingerprints."""
    return hmac.compare_digest(left, right)


# ------------------------------ Transport encoding ------------------------------


def b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii")


def b64url_decode(value: str) -> bytes:
    """
    Strictly decode padded base64url.

    :raises ValueError: If ``value`` has characters outside the alphabet or
        bad padding.
    """
    # b64decode maps altchars onto "+/" before validating, so reject them first
    if "+" in value or "/" in value:
        raise ValueError("malformed base64url value")
    try:
        return base64.b64decode(value.encode("ascii"), altchars=b"-_", validate=True)
    except (UnicodeEncodeError, binascii.Error) as exc:
        raise ValueError("malformed base64url value") from exc


def wrap_refresh_token(signed: str) -> str:
    """Encode a signed refresh token as an opaque transport string."""
    return b64url_encode(signed.encode("utf-8"))


def unwrap_refresh_token(transport: str) -> str:
    """
    Reverse :func:`wrap_refresh_token`.

    :raises ValueError: If the string is not base64url or not UTF-8 inside.
    """
    raw = b64url_decode(transport)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ValueError("refresh token is not valid UTF-8") from exc


# ------------------------------ Secret hashing ----------------------------------


def hash_fingerprint(fp: bytes, *, method: str = "scrypt") -> bytes:
    """
    Salted one-way hash of an access-token fingerprint, as stored bytes.

    :param fp: Raw fingerprint digest.
    :param method: Werkzeug hashing method (e.g. ``"scrypt"``,
        ``"pbkdf2:sha256:600000"``).
    """
    return generate_password_hash(fp.hex(), method=method).encode("ascii")


def verify_fingerprint(stored: bytes, fp: bytes) -> bool:
    """
    Compare a stored hash with a fingerprint in constant time.

    :returns: ``True`` on match, ``False`` on mismatch.
    :raises ValueError: If ``stored`` is not a hash this module produced.
    """
    return bool(check_password_hash(stored.decode("ascii"), fp.hex()))
