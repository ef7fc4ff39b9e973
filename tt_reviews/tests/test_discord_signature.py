"""
Tests for Ed25519 verification of Discord requests.
"""

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from tt_reviews.services.discord_signature import (
    SignatureConfigurationError,
    verify_signature,
)


@pytest.fixture
def signing_key():
    return Ed25519PrivateKey.generate()


@pytest.fixture
def public_key_hex(signing_key):
    return signing_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw).hex()


def _sign(key, timestamp, body):
    return key.sign(timestamp.encode() + body).hex()


def test_valid_signature(signing_key, public_key_hex):
    body = b'{"type":1}'
    signature = _sign(signing_key, "1700000000", body)

    assert verify_signature(signature, "1700000000", body, public_key=public_key_hex) is True


def test_tampered_body(signing_key, public_key_hex):
    signature = _sign(signing_key, "1700000000", b'{"type":1}')

    assert verify_signature(signature, "1700000000", b'{"type":2}', public_key=public_key_hex) is False


def test_wrong_timestamp(signing_key, public_key_hex):
    body = b'{"type":1}'
    signature = _sign(signing_key, "1700000000", body)

    assert verify_signature(signature, "1700000001", body, public_key=public_key_hex) is False


def test_non_hex_signature(public_key_hex):
    assert verify_signature("not-hex", "1700000000", b"{}", public_key=public_key_hex) is False


def test_key_from_environment(monkeypatch, signing_key, public_key_hex):
    monkeypatch.setenv("DISCORD_PUBLIC_KEY", public_key_hex)
    body = b"{}"

    assert verify_signature(_sign(signing_key, "1", body), "1", body) is True


@pytest.mark.parametrize(
    "key", ["", "your_discord_application_public_key_here", "abcd", "zz" * 32]
)
def test_misconfigured_key(key):
    with pytest.raises(SignatureConfigurationError):
        verify_signature("00" * 64, "1", b"{}", public_key=key)


def test_missing_key(monkeypatch):
    monkeypatch.delenv("DISCORD_PUBLIC_KEY", raising=False)
    with pytest.raises(SignatureConfigurationError):
        verify_signature("00" * 64, "1", b"{}")
