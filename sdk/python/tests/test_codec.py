"""Tests for multibase, multicodec and JWK key encodings."""

import base64

import coincurve
import pytest

from hedera_did import (
    CodecMismatchError,
    DecodeError,
    KeyType,
    PublicKeyFormat,
    RootKey,
    UnsupportedKeyError,
    ValidationError,
    detect_key_type,
    jwk_to_public_key,
    multibase_decode,
    multibase_encode,
    public_key_to_jwk,
)
from hedera_did.codec import (
    add_multicodec_prefix,
    compress_secp256k1_public_key,
    decompress_secp256k1_public_key,
    multibase_to_public_key,
    public_key_multibase_for_format,
    public_key_to_multibase,
    remove_multicodec_prefix,
)


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


class TestMultibase:
    def test_encode_has_z_prefix(self) -> None:
        """Multibase strings carry the base58btc prefix."""
        assert multibase_encode(b"\x00\x01\x02").startswith("z")

    def test_decode_reverses_encode(self) -> None:
        """Decoding returns the original bytes."""
        data = bytes(range(40))

        assert multibase_decode(multibase_encode(data)) == data

    @pytest.mark.parametrize(
        "data",
        [b"", b"\x00", b"\x00\x00\x01", bytes(range(256))],
        ids=["empty", "single-zero", "leading-zeros", "all-byte-values"],
    )
    def test_decode_reverses_encode_edge_bytes(self, data: bytes) -> None:
        """Empty input and leading zero bytes survive the base58 round trip."""
        assert multibase_decode(multibase_encode(data)) == data

    def test_decode_requires_prefix(self) -> None:
        """Values without the z prefix are rejected."""
        with pytest.raises(DecodeError, match="expected prefix 'z'"):
            multibase_decode("6MkhaXgBZDvotDkL5257faiztiGiC2QtKLGpbnnEGta2doK")

    def test_decode_rejects_invalid_base58(self) -> None:
        """Characters outside the base58 alphabet are rejected."""
        with pytest.raises(DecodeError):
            multibase_decode("z0OIl")


class TestMulticodec:
    def test_prefix_and_strip(self) -> None:
        """Prefixes are added and removed for the named codec."""
        prefixed = add_multicodec_prefix("ed25519-pub", b"\x01" * 32)

        assert prefixed[:2] == b"\xed\x01"
        assert remove_multicodec_prefix("ed25519-pub", prefixed) == b"\x01" * 32

    def test_mismatched_codec(self) -> None:
        """Stripping with the wrong codec fails."""
        prefixed = add_multicodec_prefix("secp256k1-pub", b"\x02" * 33)

        with pytest.raises(CodecMismatchError):
            remove_multicodec_prefix("ed25519-pub", prefixed)

    def test_unknown_codec(self) -> None:
        """Unknown codec names are rejected."""
        with pytest.raises(ValidationError, match="multicodec not recognized"):
            add_multicodec_prefix("rsa-pub", b"\x00")


class TestDetectKeyType:
    def test_ed25519(self) -> None:
        assert detect_key_type(b"\x01" * 32) is KeyType.ED25519

    @pytest.mark.parametrize("prefix", [0x02, 0x03])
    def test_compressed_secp256k1(self, prefix: int) -> None:
        assert detect_key_type(bytes([prefix]) + b"\x01" * 32) is KeyType.SECP256K1

    def test_uncompressed_secp256k1(self) -> None:
        assert detect_key_type(b"\x04" + b"\x01" * 64) is KeyType.SECP256K1

    def test_short_key_rejected(self) -> None:
        """A 31-byte key is never coerced into a supported length."""
        with pytest.raises(UnsupportedKeyError, match="unsupported key length or format: 31"):
            detect_key_type(b"\x01" * 31)

    def test_bad_secp256k1_prefix(self) -> None:
        """33 bytes with an unknown leading byte is not a key."""
        with pytest.raises(UnsupportedKeyError):
            detect_key_type(b"\x05" + b"\x01" * 32)


class TestSecp256k1Compression:
    def test_compress_matches_library(self) -> None:
        """Compression picks the prefix from the parity of y."""
        public_key = coincurve.PrivateKey(bytes(range(1, 33))).public_key

        compressed = compress_secp256k1_public_key(public_key.format(compressed=False))

        assert compressed == public_key.format(compressed=True)

    def test_decompress(self) -> None:
        public_key = coincurve.PrivateKey(bytes(range(1, 33))).public_key

        assert decompress_secp256k1_public_key(public_key.format()) == public_key.format(compressed=False)

    def test_compress_rejects_garbage(self) -> None:
        with pytest.raises(UnsupportedKeyError):
            compress_secp256k1_public_key(b"\x01" * 10)

    def test_compress_rejects_point_off_curve(self) -> None:
        """65 well-formed bytes that are not a curve point are not a key."""
        with pytest.raises(UnsupportedKeyError):
            compress_secp256k1_public_key(b"\x04" + b"\x01" * 64)

    def test_compressed_input_is_validated(self) -> None:
        public_key = coincurve.PrivateKey(bytes(range(1, 33))).public_key.format()

        assert compress_secp256k1_public_key(public_key) == public_key
        with pytest.raises(UnsupportedKeyError):
            compress_secp256k1_public_key(b"\x02" + b"\xff" * 32)

    def test_off_curve_multibase_rejected(self) -> None:
        encoded = multibase_encode(add_multicodec_prefix("secp256k1-pub", b"\x02" + b"\xff" * 32))

        with pytest.raises(UnsupportedKeyError):
            multibase_to_public_key(encoded)


class TestPublicKeyMultibase:
    def test_ed25519_prefix(self) -> None:
        """Ed25519 keys encode with the familiar z6Mk prefix."""
        key = RootKey.generate()

        encoded = public_key_to_multibase(key.public_key)

        assert encoded.startswith("z6Mk")
        assert multibase_to_public_key(encoded) == (KeyType.ED25519, key.public_key)

    def test_secp256k1_prefix(self) -> None:
        """Secp256k1 keys encode compressed with the zQ3s prefix."""
        key = RootKey.generate(KeyType.SECP256K1)

        encoded = public_key_to_multibase(key.public_key)

        assert encoded.startswith("zQ3s")
        assert multibase_to_public_key(encoded) == (KeyType.SECP256K1, key.public_key)

    def test_unknown_multicodec(self) -> None:
        encoded = multibase_encode(b"\x12\x20" + b"\x01" * 32)

        with pytest.raises(UnsupportedKeyError, match="unsupported multicodec prefix"):
            multibase_to_public_key(encoded)

    def test_format_mismatch(self) -> None:
        """An Ed25519 key cannot be rendered as a Secp256k1 verification key."""
        key = RootKey.generate()

        with pytest.raises(UnsupportedKeyError):
            public_key_multibase_for_format(
                PublicKeyFormat.ECDSA_SECP256K1_VERIFICATION_KEY_2020, key.public_key
            )

    def test_json_web_key_has_no_multibase(self) -> None:
        key = RootKey.generate()

        with pytest.raises(ValidationError, match="JsonWebKey2020"):
            public_key_multibase_for_format(PublicKeyFormat.JSON_WEB_KEY_2020, key.public_key)


class TestJwk:
    def test_ed25519_shape(self) -> None:
        key = RootKey.generate()

        jwk = public_key_to_jwk(key.public_key)

        assert jwk == {
            "alg": "EdDSA",
            "crv": "Ed25519",
            "kty": "OKP",
            "use": "sig",
            "x": _b64url(key.public_key),
        }
        assert jwk_to_public_key(jwk) == key.public_key

    def test_secp256k1_shape(self) -> None:
        key = RootKey.generate(KeyType.SECP256K1)
        uncompressed = decompress_secp256k1_public_key(key.public_key)

        jwk = public_key_to_jwk(key.public_key)

        assert jwk["kty"] == "EC"
        assert jwk["crv"] == "secp256k1"
        assert jwk["alg"] == "ES256K"
        assert jwk_to_public_key(jwk) == uncompressed

    def test_p256_point(self) -> None:
        """EC curves return the uncompressed point."""
        jwk = {"kty": "EC", "crv": "P-256", "x": _b64url(b"\x01" * 32), "y": _b64url(b"\x02" * 32)}

        assert jwk_to_public_key(jwk) == b"\x04" + b"\x01" * 32 + b"\x02" * 32

    def test_x25519_raw(self) -> None:
        jwk = {"kty": "OKP", "crv": "X25519", "x": _b64url(b"\x07" * 32)}

        assert jwk_to_public_key(jwk) == b"\x07" * 32

    def test_unsupported_curve(self) -> None:
        with pytest.raises(DecodeError, match="unsupported curve: P-384"):
            jwk_to_public_key({"kty": "EC", "crv": "P-384", "x": "AA", "y": "AA"})

    def test_missing_coordinate(self) -> None:
        with pytest.raises(DecodeError):
            jwk_to_public_key({"kty": "EC", "crv": "secp256k1", "x": _b64url(b"\x01" * 32)})

    def test_not_a_jwk(self) -> None:
        with pytest.raises(DecodeError, match="invalid JWK"):
            jwk_to_public_key({"crv": "Ed25519"})
