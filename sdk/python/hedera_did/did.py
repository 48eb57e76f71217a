"""Decentralized Identifier (DID) handling for the did:hedera method.

Format: did:hedera:<network>:z<base58btc(multicodec_prefix + public_key)>_<topic_id>

- network is one of mainnet, testnet, previewnet
- the key segment is the multibase-encoded document owner key
- topic_id is the HCS topic holding the DID's message log (shard.realm.num)
"""

import re
from dataclasses import dataclass
from typing import Tuple

from hedera_did.codec import (
    KeyType,
    multibase_to_public_key,
    public_key_to_multibase,
)
from hedera_did.errors import DecodeError, InvalidDIDError, ValidationError

DID_PREFIX = "did"
DID_METHOD = "hedera"
DID_METHOD_SEPARATOR = ":"
DID_TOPIC_SEPARATOR = "_"

NETWORK_MAINNET = "mainnet"
NETWORK_TESTNET = "testnet"
NETWORK_PREVIEWNET = "previewnet"
NETWORKS = (NETWORK_MAINNET, NETWORK_TESTNET, NETWORK_PREVIEWNET)

# Shortest key segment: "z" + base58 of a 34-byte Ed25519 multicodec key
MIN_ID_STRING_LENGTH = 44

_TOPIC_ID_PATTERN = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:-[a-z]{5})?$")


@dataclass(frozen=True, slots=True)
class TopicId:
    """An HCS topic handle (shard.realm.num)."""

    shard: int
    realm: int
    num: int

    @classmethod
    def parse(cls, value: str) -> "TopicId":
        """Parse `shard.realm.num`, optionally followed by a `-checksum`.

        Raises:
            ValidationError: If the value is not a topic ID.
        """
        match = _TOPIC_ID_PATTERN.match(value or "")
        if match is None:
            raise ValidationError(f"invalid topic ID: {value!r}")
        shard, realm, num = (int(part) for part in match.groups())
        return cls(shard=shard, realm=realm, num=num)

    def __str__(self) -> str:
        return f"{self.shard}.{self.realm}.{self.num}"


@dataclass(frozen=True, slots=True)
class Did:
    """A parsed did:hedera identifier.

    Attributes:
        network: Hedera network name.
        id_string: Multibase-encoded owner public key.
        topic_id: Topic holding the DID message log.
    """

    network: str
    id_string: str
    topic_id: TopicId

    @classmethod
    def build(cls, network: str, public_key: bytes, topic_id: TopicId | str) -> "Did":
        """Create a DID for an owner public key and topic."""
        if network not in NETWORKS:
            raise InvalidDIDError(f"invalid Hedera network: {network}")
        if isinstance(topic_id, str):
            topic_id = TopicId.parse(topic_id)
        return cls(
            network=network,
            id_string=public_key_to_multibase(public_key),
            topic_id=topic_id,
        )

    @classmethod
    def parse(cls, did_string: str) -> "Did":
        """Parse a did:hedera string.

        Args:
            did_string: A did:hedera formatted string.

        Returns:
            A Did instance.

        Raises:
            InvalidDIDError: If the format is invalid.
        """
        if not isinstance(did_string, str):
            raise InvalidDIDError("DID must be a string")

        did_part, _, topic_part = did_string.partition(DID_TOPIC_SEPARATOR)
        if not topic_part:
            raise InvalidDIDError("topic ID is missing")

        try:
            topic_id = TopicId.parse(topic_part)
        except ValidationError as exc:
            raise InvalidDIDError(f"topic ID is malformed: {topic_part}") from exc

        parts = did_part.split(DID_METHOD_SEPARATOR)
        if parts[0] != DID_PREFIX:
            raise InvalidDIDError("invalid prefix")

        method = parts[1] if len(parts) > 1 else None
        if method != DID_METHOD:
            raise InvalidDIDError(f"invalid method name: {method}")

        network = parts[2] if len(parts) > 2 else None
        if network not in NETWORKS:
            raise InvalidDIDError(f"invalid Hedera network: {network}")

        id_string = parts[3] if len(parts) > 3 else ""
        if len(id_string) < MIN_ID_STRING_LENGTH or len(parts) > 4:
            raise InvalidDIDError("ID holds incorrect format")

        return cls(network=network, id_string=id_string, topic_id=topic_id)

    @property
    def method(self) -> str:
        return DID_METHOD

    @property
    def owner_key(self) -> Tuple[KeyType, bytes]:
        """Decode the owner key segment.

        Raises:
            InvalidDIDError: If the segment is not a supported multibase key.
        """
        try:
            return multibase_to_public_key(self.id_string)
        except (DecodeError, ValidationError) as exc:
            raise InvalidDIDError(f"owner key segment cannot be decoded: {exc}") from exc

    @property
    def public_key(self) -> bytes:
        """Owner public key embedded in the identifier."""
        return self.owner_key[1]

    @property
    def key_type(self) -> KeyType:
        """Curve of the owner key embedded in the identifier."""
        return self.owner_key[0]

    def __str__(self) -> str:
        return (
            f"{DID_PREFIX}:{DID_METHOD}:{self.network}:{self.id_string}"
            f"{DID_TOPIC_SEPARATOR}{self.topic_id}"
        )

    def __repr__(self) -> str:
        return f"Did({self})"


def detect_key_type_from_identifier(identifier: str) -> KeyType:
    """Curve of the owner key embedded in a did:hedera string."""
    return Did.parse(identifier).key_type
