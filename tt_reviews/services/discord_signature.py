"""
Ed25519 verification of Discord interaction requests.

Discord signs ``timestamp + raw_body`` with the application's private key and
sends the signature in the X-Signature-Ed25519 header (hex encoded).
"""

import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

logger = logging.getLogger(__name__)

PLACEHOLDER_KEYS = {"your_discord_application_public_key_here"}
PUBLIC_KEY_HEX_LENGTH = 64


class SignatureConfigurationError(RuntimeError):
    """Raised when the Discord public key is missing or malformed."""


def get_public_key() -> Optional[str]:
    """Read the Discord application public key from the environment."""
    return os.environ.get("DISCORD_PUBLIC_KEY")


def _load_public_key(key_hex: Optional[str]) -> Ed25519PublicKey:
    if not key_hex:
        raise SignatureConfigurationError("Discord verification key not configured")
    key_hex = key_hex.strip()
    if key_hex in PLACEHOLDER_KEYS or len(key_hex) != PUBLIC_KEY_HEX_LENGTH:
        raise SignatureConfigurationError("Discord verification key is not properly configured")
    try:
        return Ed25519PublicKey.from_public_bytes(bytes.fromhex(key_hex))
    except ValueError as e:
        raise SignatureConfigurationError(f"Discord verification key is invalid: {e}")


def verify_signature(
    signature: str, timestamp: str, body: bytes, public_key: Optional[str] = None
) -> bool:
    """
    Check a Discord request signature.

    Args:
        signature: Hex signature from X-Signature-Ed25519
        timestamp: Value of X-Signature-Timestamp
        body: Raw request body
        public_key: Hex public key; defaults to DISCORD_PUBLIC_KEY

    Returns:
        True if the signature is valid

    Raises:
        SignatureConfigurationError: If the public key is missing or malformed
    """
    key = _load_public_key(public_key if public_key is not None else get_public_key())
    try:
        key.verify(bytes.fromhex(signature), timestamp.encode() + body)
        return True
    except (InvalidSignature, ValueError):
        logger.warning("Rejected Discord interaction with invalid signature")
        return False
