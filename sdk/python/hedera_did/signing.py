"""Canonical serialization and signature verification.

Message signatures are computed over canonical JSON bytes so that a
message decoded from the mirror node re-serializes to exactly the bytes
its author signed.
"""

import base64
import binascii
from typing import Any, Callable

import canonicaljson
import coincurve
from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

from hedera_did.codec import KeyType, detect_key_type
from hedera_did.errors import (
    DecodeError,
    HederaDidError,
    InvalidSignatureError,
    SerializationError,
)

Signer = Callable[[bytes], bytes]


def canonicalize(value: Any) -> bytes:
    """Canonical JSON bytes (sorted keys, no whitespace)."""
    try:
        return canonicaljson.encode_canonical_json(value)
    except Exception as exc:
        raise SerializationError(f"canonicalization failed: {exc}") from exc


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(value: str) -> bytes:
    """Strict base64 decode.

    Raises:
        DecodeError: If the value is not valid base64.
    """
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError, TypeError) as exc:
        raise DecodeError(f"invalid base64: {exc}") from exc


def verify_bytes(message: bytes, signature: bytes, public_key: bytes) -> bool:
    """Verify a signature with an Ed25519 or Secp256k1 public key.

    Returns False for any malformed key or signature.
    """
    try:
        key_type = detect_key_type(public_key)
    except HederaDidError:
        return False

    if key_type is KeyType.ED25519:
        try:
            VerifyKey(bytes(public_key)).verify(message, signature)
            return True
        except (BadSignatureError, ValueError, TypeError):
            return False

    try:
        return coincurve.PublicKey(bytes(public_key)).verify(signature, message)
    except (ValueError, TypeError):
        return False


def verify_b64(message: bytes, signature_b64: str, public_key: bytes) -> bool:
    """Verify a base64-encoded signature."""
    try:
        signature = b64decode(signature_b64)
    except DecodeError:
        return False
    return verify_bytes(message, signature, public_key)


def verify_b64_strict(message: bytes, signature_b64: str, public_key: bytes) -> None:
    """Verify a base64-encoded signature, raising on failure.

    Raises:
        InvalidSignatureError: If verification fails.
    """
    if not verify_b64(message, signature_b64, public_key):
        raise InvalidSignatureError(
            f"Signature verification failed for key {bytes(public_key).hex()[:16]}..."
        )
