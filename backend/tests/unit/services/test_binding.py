# tests/unit/services/test_binding.py
from __future__ import annotations

import base64
import hashlib

import pytest

from authsvc.services.auth import binding


def test_device_id_is_sha256_of_address():
    did = binding.device_id("127.0.0.1")
    assert did == hashlib.sha256(b"127.0.0.1").digest()
    assert len(did) == binding.DEVICE_ID_SIZE


def test_device_id_is_deterministic_and_distinct():
    assert binding.device_id("10.0.0.1") == binding.device_id("10.0.0.1")
    assert binding.device_id("10.0.0.1") != binding.device_id("10.0.0.2")


def test_fingerprints_match_compares_bytes():
    fp = binding.fingerprint("a.b.c")
    assert binding.fingerprints_match(fp, hashlib.sha256(b"a.b.c").digest())
    assert not binding.fingerprints_match(fp, binding.fingerprint("a.b.d"))


def test_refresh_wrapping_round_trips_and_is_padded():
    signed = "header.payload.signature"
    wrapped = binding.wrap_refresh_token(signed)
    assert wrapped == base64.urlsafe_b64encode(signed.encode()).decode()
    assert binding.unwrap_refresh_token(wrapped) == signed


@pytest.mark.parametrize("value", ["not base64!", "abc", "YWJj\n", "ä"])
def test_b64url_decode_rejects_malformed_input(value):
    with pytest.raises(ValueError):
        binding.b64url_decode(value)


def test_b64url_decode_rejects_standard_alphabet():
    # "+" and "/" belong to the standard alphabet only
    std = base64.b64encode(b"\xfb\xff\xbf").decode()
    assert "+" in std or "/" in std
    with pytest.raises(ValueError):
        binding.b64url_decode(std)


def test_unwrap_rejects_non_utf8_payload():
    with pytest.raises(ValueError):
        binding.unwrap_refresh_token(binding.b64url_encode(b"\xff\xfe"))


def test_hash_fingerprint_is_salted_and_verifiable():
    fp = binding.fingerprint("token")
    first = binding.hash_fingerprint(fp, method="pbkdf2:sha256:1000")
    second = binding.hash_fingerprint(fp, method="pbkdf2:sha256:1000")

    assert first != second
    assert fp.hex().encode() not in first
    assert binding.verify_fingerprint(first, fp)
    assert binding.verify_fingerprint(second, fp)
    assert not binding.verify_fingerprint(first, binding.fingerprint("other"))
