"""Public key encodings used by did:hedera.

- Multibase prefix: z (base58btc)
- Multicodec prefixes: 0xed01 (Ed25519 public key), 0xe701 (Secp256k1 public key)
- JWK: Ed25519/X25519 as OKP, secp256k1/P-256 as EC

Secp256k1 keys are always carried in their 33-byte compressed form.
"""

import base64
import binascii
from enum import Enum
from typing import Any, Dict, Tuple

import base58
import coincurve

from hedera_did.errors import (
    CodecMismatchError,
    DecodeError,
    UnsupportedKeyError,
    ValidationError,
)

# Multibase prefix for base58btc
BASE58BTC_PREFIX = "z"

MULTICODECS: Dict[str, bytes] = {
    "ed25519-pub": bytes([0xED, 0x01]),
    "secp256k1-pub": bytes([0xE7, 0x01]),
    "ed25519-priv": bytes([0x80, 0x26]),
    "secp256k1-priv": bytes([0x81, 0x26]),
}

ED25519_KEY_LENGTH = 32
SECP256K1_COMPRESSED_LENGTH = 33
SECP256K1_UNCOMPRESSED_LENGTH = 65


class KeyType(str, Enum):
    """Curve of a public key."""

    ED25519 = "Ed25519"
    SECP256K1 = "Secp256k1"


class PublicKeyFormat(str, Enum):
    """How a public key is rendered in events and documents."""

    ED25519_VERIFICATION_KEY_2020 = "Ed25519VerificationKey2020"
    ECDSA_SECP256K1_VERIFICATION_KEY_2020 = "EcdsaSecp256k1VerificationKey2020"
    JSON_WEB_KEY_2020 = "JsonWebKey2020"

    @classmethod
    def default_for(cls, key_type: KeyType) -> "PublicKeyFormat":
        if key_type is KeyType.ED25519:
            return cls.ED25519_VERIFICATION_KEY_2020
        return cls.ECDSA_SECP256K1_VERIFICATION_KEY_2020


_PUBLIC_CODECS = {
    KeyType.ED25519: "ed25519-pub",
    KeyType.SECP256K1: "secp256k1-pub",
}


def add_multicodec_prefix(codec: str, data: bytes) -> bytes:
    """Prefix raw bytes with the multicodec identifier for `codec`."""
    prefix = MULTICODECS.get(codec)
    if prefix is None:
        raise ValidationError(f"multicodec not recognized: {codec}")
    return prefix + bytes(data)


def remove_multicodec_prefix(codec: str, data: bytes) -> bytes:
    """Strip the multicodec prefix for `codec`.

    Raises:
        CodecMismatchError: If the stored prefix is a different codec.
    """
    prefix = MULTICODECS.get(codec)
    if prefix is None:
        raise ValidationError(f"multicodec not recognized: {codec}")
    if bytes(data[: len(prefix)]) != prefix:
        raise CodecMismatchError(f"invalid multicodec prefix, expected {codec}")
    return bytes(data[len(prefix) :])


def multibase_encode(data: bytes) -> str:
    """Encode bytes as a base58btc multibase string."""
    encoded = base58.b58encode(bytes(data)).decode("ascii")
    return f"{BASE58BTC_PREFIX}{encoded}"


def multibase_decode(value: str) -> bytes:
    """Decode a base58btc multibase string.

    Raises:
        DecodeError: If the `z` prefix is missing or the payload is not base58.
    """
    if not isinstance(value, str) or not value.startswith(BASE58BTC_PREFIX):
        raise DecodeError("invalid multibase encoding, expected prefix 'z'")
    try:
        return base58.b58decode(value[1:])
    except ValueError as exc:
        raise DecodeError(f"invalid base58 encoding: {exc}") from exc


def is_valid_secp256k1_key(public_key: bytes) -> bool:
    """Whether bytes look like a compressed or uncompressed Secp256k1 key."""
    if len(public_key) == SECP256K1_COMPRESSED_LENGTH:
        return public_key[0] in (0x02, 0x03)
    if len(public_key) == SECP256K1_UNCOMPRESSED_LENGTH:
        return public_key[0] == 0x04
    return False


def detect_key_type(public_key: bytes) -> KeyType:
    """Detect the curve of a raw public key from its length and prefix.

    Raises:
        UnsupportedKeyError: If the length/prefix matches no supported curve.
    """
    if len(public_key) == ED25519_KEY_LENGTH:
        return KeyType.ED25519
    if is_valid_secp256k1_key(public_key):
        return KeyType.SECP256K1
    raise UnsupportedKeyError(
        f"unable to detect curve, unsupported key length or format: {len(public_key)}"
    )


def compress_secp256k1_public_key(public_key: bytes) -> bytes:
    """Return the 33-byte compressed form of a Secp256k1 key.

    The point must lie on the curve, whether it arrives compressed or not.
    """
    try:
        return coincurve.PublicKey(bytes(public_key)).format(compressed=True)
    except (ValueError, TypeError) as exc:
        raise UnsupportedKeyError(f"invalid Secp256k1 public key: {exc}") from exc


def decompress_secp256k1_public_key(public_key: bytes) -> bytes:
    """Return the 65-byte uncompressed form of a Secp256k1 key."""
    try:
        return coincurve.PublicKey(bytes(public_key)).format(compressed=False)
    except (ValueError, TypeError) as exc:
        raise UnsupportedKeyError(f"invalid Secp256k1 public key: {exc}") from exc


def normalize_public_key(public_key: bytes) -> Tuple[KeyType, bytes]:
    """Detect the key type and bring the key into its canonical raw form."""
    key_type = detect_key_type(public_key)
    if key_type is KeyType.SECP256K1:
        return key_type, compress_secp256k1_public_key(public_key)
    return key_type, bytes(public_key)


def public_key_to_multibase(public_key: bytes) -> str:
    """Multicodec-prefix a raw public key and encode it as multibase."""
    key_type, raw = normalize_public_key(public_key)
    return multibase_encode(add_multicodec_prefix(_PUBLIC_CODECS[key_type], raw))


def multibase_to_public_key(value: str) -> Tuple[KeyType, bytes]:
    """Decode a multibase, multicodec-prefixed public key."""
    decoded = multibase_decode(value)
    for key_type, codec in _PUBLIC_CODECS.items():
        if decoded[:2] == MULTICODECS[codec]:
            raw = remove_multicodec_prefix(codec, decoded)
            detected, normalized = normalize_public_key(raw)
            if detected is not key_type:
                raise UnsupportedKeyError(f"{codec} prefix does not match a {detected.value} key")
            return key_type, normalized
    raise UnsupportedKeyError("unsupported multicodec prefix, cannot determine key type")


def public_key_multibase_for_format(public_key_format: PublicKeyFormat, public_key: bytes) -> str:
    """Multibase rendering of a key for a verification key format."""
    key_type, _ = normalize_public_key(public_key)
    if public_key_format is PublicKeyFormat.JSON_WEB_KEY_2020:
        raise ValidationError("JsonWebKey2020 keys do not support multibase encoding")
    if PublicKeyFormat.default_for(key_type) is not public_key_format:
        raise UnsupportedKeyError(
            f"{key_type.value} key cannot be rendered as {public_key_format.value}"
        )
    return public_key_to_multibase(public_key)


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(value: Any) -> bytes:
    if not isinstance(value, str) or not value:
        raise DecodeError("JWK coordinate must be a non-empty string")
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"invalid base64url in JWK: {exc}") from exc


def jwk_to_public_key(jwk: Dict[str, Any]) -> bytes:
    """Reconstruct raw public key bytes from a JWK.

    EC curves return the uncompressed point (0x04 || x || y), OKP curves the
    raw x coordinate.

    Raises:
        DecodeError: If the JWK is malformed or uses an unsupported curve.
    """
    if not isinstance(jwk, dict) or "kty" not in jwk:
        raise DecodeError("invalid JWK")

    crv = jwk.get("crv")
    if crv in ("secp256k1", "P-256"):
        if jwk.get("kty") != "EC" or not jwk.get("x") or not jwk.get("y"):
            raise DecodeError(f"invalid {crv} JWK")
        return b"\x04" + _b64url_decode(jwk["x"]) + _b64url_decode(jwk["y"])
    if crv in ("Ed25519", "X25519"):
        if jwk.get("kty") != "OKP" or not jwk.get("x"):
            raise DecodeError("invalid Ed25519/X25519 JWK")
        return _b64url_decode(jwk["x"])
    raise DecodeError(f"unsupported curve: {crv}")


def public_key_to_jwk(public_key: bytes) -> Dict[str, str]:
    """Render a raw Ed25519 or Secp256k1 public key as a signing JWK."""
    key_type, raw = normalize_public_key(public_key)
    if key_type is KeyType.ED25519:
        return {
            "alg": "EdDSA",
            "crv": "Ed25519",
            "kty": "OKP",
            "use": "sig",
            "x": _b64url_encode(raw),
        }

    uncompressed = decompress_secp256k1_public_key(raw)
    return {
        "alg": "ES256K",
        "crv": "secp256k1",
        "kty": "EC",
        "use": "sig",
        "x": _b64url_encode(uncompressed[1:33]),
        "y": _b64url_encode(uncompressed[33:]),
    }
