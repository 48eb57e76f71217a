"""Owner key management for did:hedera documents.

Security:
- Ed25519 keys use PyNaCl (libsodium bindings)
- Secp256k1 keys use coincurve (libsecp256k1 bindings), signatures are DER
- Debug representations only show public info, not secrets
"""

from typing import Self

import coincurve
from nacl.signing import SigningKey

from hedera_did.codec import KeyType, compress_secp256k1_public_key
from hedera_did.did import Did, TopicId
from hedera_did.errors import UnsupportedKeyError, ValidationError


class RootKey:
    """A DID owner key.

    The root key signs every message appended to the DID topic.
    Store securely and use sparingly.
    """

    __slots__ = ("_key_type", "_signing_key", "_public_key")

    def __init__(self, signing_key: SigningKey | coincurve.PrivateKey) -> None:
        if isinstance(signing_key, SigningKey):
            self._key_type = KeyType.ED25519
            self._public_key = bytes(signing_key.verify_key)
        elif isinstance(signing_key, coincurve.PrivateKey):
            self._key_type = KeyType.SECP256K1
            self._public_key = compress_secp256k1_public_key(
                signing_key.public_key.format(compressed=True)
            )
        else:
            raise UnsupportedKeyError(f"unsupported signing key: {type(signing_key).__name__}")
        self._signing_key = signing_key

    @classmethod
    def generate(cls, key_type: KeyType = KeyType.ED25519) -> Self:
        """Generate a new random root key."""
        if key_type is KeyType.SECP256K1:
            return cls(coincurve.PrivateKey())
        return cls(SigningKey.generate())

    @classmethod
    def from_seed(cls, seed: bytes, key_type: KeyType = KeyType.ED25519) -> Self:
        """Create from a 32-byte seed (the raw private key).

        Raises:
            ValidationError: If seed is not 32 bytes.
        """
        if len(seed) != 32:
            raise ValidationError(f"seed must be 32 bytes, got {len(seed)}")
        if key_type is KeyType.SECP256K1:
            try:
                return cls(coincurve.PrivateKey(seed))
            except ValueError as exc:
                raise ValidationError(f"invalid Secp256k1 secret: {exc}") from exc
        return cls(SigningKey(seed))

    @property
    def key_type(self) -> KeyType:
        return self._key_type

    @property
    def public_key(self) -> bytes:
        """Raw public key (compressed for Secp256k1)."""
        return self._public_key

    def did(self, network: str, topic_id: TopicId | str) -> Did:
        """Build the DID this key owns on a topic."""
        return Did.build(network, self._public_key, topic_id)

    def sign(self, message: bytes) -> bytes:
        """Sign a message.

        Returns a 64-byte signature for Ed25519, a DER signature for Secp256k1.
        """
        if self._key_type is KeyType.ED25519:
            return bytes(self._signing_key.sign(message).signature)
        return self._signing_key.sign(message)

    def to_bytes(self) -> bytes:
        """Export the secret key bytes.

        Warning: Handle with care.
        """
        if self._key_type is KeyType.ED25519:
            return bytes(self._signing_key)
        return self._signing_key.secret

    def __repr__(self) -> str:
        return f"RootKey(type={self._key_type.value}, public_key={self._public_key.hex()[:16]}...)"
