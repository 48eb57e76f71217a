"""Tests for DID owner keys."""

import pytest

from hedera_did import KeyType, RootKey, ValidationError, verify_bytes


class TestRootKey:
    def test_generate_ed25519(self) -> None:
        """Generated key has a 32-byte public key."""
        key = RootKey.generate()

        assert key.key_type is KeyType.ED25519
        assert len(key.public_key) == 32

    def test_generate_secp256k1(self) -> None:
        """Secp256k1 public keys are kept compressed."""
        key = RootKey.generate(KeyType.SECP256K1)

        assert key.key_type is KeyType.SECP256K1
        assert len(key.public_key) == 33
        assert key.public_key[0] in (0x02, 0x03)

    @pytest.mark.parametrize("key_type", list(KeyType))
    def test_from_seed_deterministic(self, key_type: KeyType) -> None:
        """Same seed produces same key."""
        seed = bytes(range(32))

        key_one = RootKey.from_seed(seed, key_type)
        key_two = RootKey.from_seed(seed, key_type)

        assert key_one.public_key == key_two.public_key
        assert key_one.to_bytes() == seed

    def test_from_seed_wrong_length(self) -> None:
        """Seed must be exactly 32 bytes."""
        with pytest.raises(ValidationError, match="32 bytes"):
            RootKey.from_seed(b"too short")

    def test_secp256k1_seed_out_of_range(self) -> None:
        """A zero secret is not a Secp256k1 key."""
        with pytest.raises(ValidationError):
            RootKey.from_seed(bytes(32), KeyType.SECP256K1)

    @pytest.mark.parametrize("key_type", list(KeyType))
    def test_sign_verify(self, key_type: KeyType) -> None:
        """Signatures verify against the key's public key."""
        key = RootKey.generate(key_type)
        message = b"hello world"

        signature = key.sign(message)

        assert verify_bytes(message, signature, key.public_key)
        assert not verify_bytes(b"tampered", signature, key.public_key)

    def test_ed25519_signature_length(self) -> None:
        assert len(RootKey.generate().sign(b"x")) == 64

    def test_did(self) -> None:
        """The key owns a DID carrying its public key."""
        key = RootKey.generate()

        did = key.did("testnet", "0.0.7")

        assert did.public_key == key.public_key
        assert str(did.topic_id) == "0.0.7"

    def test_repr_hides_secret(self) -> None:
        """Debug output does not leak the secret key."""
        key = RootKey.from_seed(bytes(range(32)))

        assert key.to_bytes().hex() not in repr(key)
        assert "RootKey" in repr(key)
