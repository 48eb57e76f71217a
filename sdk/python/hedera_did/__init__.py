"""Hedera DID method - Python SDK.

Resolves did:hedera documents from their HCS topic message log.

Example:
    >>> from hedera_did import resolve_did
    >>> document = resolve_did("did:hedera:testnet:z6Mk..._0.0.12345")
    >>> document.to_dict()
"""

from hedera_did.codec import (
    KeyType,
    PublicKeyFormat,
    detect_key_type,
    jwk_to_public_key,
    multibase_decode,
    multibase_encode,
    public_key_to_jwk,
)
from hedera_did.config import ResolverConfig
from hedera_did.did import Did, TopicId
from hedera_did.document import DidDocument, DocumentEntry
from hedera_did.errors import (
    CodecMismatchError,
    ConflictError,
    DecodeError,
    HederaDidError,
    InvalidDIDError,
    InvalidSignatureError,
    ResolutionCancelled,
    SerializationError,
    TransportError,
    UnsupportedKeyError,
    ValidationError,
)
from hedera_did.event_codec import DidMethodOperation, decode, encode
from hedera_did.events import (
    DeleteEvent,
    DocumentEvent,
    EmptyEvent,
    EventAction,
    EventTargetName,
    OwnerEvent,
    RelationshipType,
    ServiceEvent,
    ServiceType,
    VerificationMethodEvent,
    VerificationRelationshipEvent,
)
from hedera_did.keys import RootKey
from hedera_did.listener import TopicListener
from hedera_did.message import DidMessage, MessageEnvelope
from hedera_did.mirror import MirrorNodeClient
from hedera_did.resolver import EventMessageResolver, resolve_did
from hedera_did.signing import canonicalize, verify_bytes

__version__ = "0.1.0"

__all__ = [
    # Core
    "Did",
    "TopicId",
    "RootKey",
    "ResolverConfig",
    # Keys and encodings
    "KeyType",
    "PublicKeyFormat",
    "detect_key_type",
    "jwk_to_public_key",
    "multibase_decode",
    "multibase_encode",
    "public_key_to_jwk",
    "canonicalize",
    "verify_bytes",
    # Events
    "DeleteEvent",
    "DocumentEvent",
    "EmptyEvent",
    "EventAction",
    "EventTargetName",
    "OwnerEvent",
    "RelationshipType",
    "ServiceEvent",
    "ServiceType",
    "VerificationMethodEvent",
    "VerificationRelationshipEvent",
    "DidMethodOperation",
    "decode",
    "encode",
    # Messages and resolution
    "DidMessage",
    "MessageEnvelope",
    "MirrorNodeClient",
    "TopicListener",
    "EventMessageResolver",
    "resolve_did",
    # Document
    "DidDocument",
    "DocumentEntry",
    # Errors
    "HederaDidError",
    "CodecMismatchError",
    "ConflictError",
    "DecodeError",
    "InvalidDIDError",
    "InvalidSignatureError",
    "ResolutionCancelled",
    "SerializationError",
    "TransportError",
    "UnsupportedKeyError",
    "ValidationError",
]
