"""
DID Document assembly for did:hedera.

The document is rebuilt from scratch on every resolution by folding the
topic's messages in arrival order:
- the owner (root key) is created once and can only be handed over by a
  message signed with the current owner key
- services, verification methods and verification relationships are
  created, updated and revoked by id; revoked entries are kept, flagged
- a delete message is a tombstone, nothing after it is folded
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Generic, Iterable, List, Optional, Self, Tuple, TypeVar

from hedera_did.codec import PublicKeyFormat
from hedera_did.did import Did
from hedera_did.errors import ConflictError, HederaDidError
from hedera_did.events import (
    DeleteEvent,
    DocumentEvent,
    EmptyEvent,
    EventAction,
    OwnerEvent,
    RelationshipType,
    ServiceEvent,
    VerificationMethodEvent,
    VerificationRelationshipEvent,
)
from hedera_did.message import MessageEnvelope, format_timestamp

logger = logging.getLogger(__name__)

DID_DOCUMENT_CONTEXT = "https://www.w3.org/ns/did/v1"

VERIFICATION_METHOD_CONTEXTS = {
    PublicKeyFormat.JSON_WEB_KEY_2020: "https://w3id.org/security/suites/jws-2020/v1",
    PublicKeyFormat.ED25519_VERIFICATION_KEY_2020: "https://w3id.org/security/suites/ed25519-2020/v1",
    PublicKeyFormat.ECDSA_SECP256K1_VERIFICATION_KEY_2020: "https://w3id.org/security/suites/secp256k1-2020/v1",
}

E = TypeVar("E", ServiceEvent, VerificationMethodEvent, VerificationRelationshipEvent)


@dataclass
class DocumentEntry(Generic[E]):
    """Current state of one keyed target in the document."""

    event: E
    revoked: bool = False

    @property
    def id(self) -> str:
        return self.event.id

    def definition(self) -> Dict[str, Any]:
        definition = self.event.definition()
        if self.revoked:
            definition["revoked"] = True
        return definition


class DidDocument:
    """
    A DID document assembled from topic messages.

    Example:
        >>> document = DidDocument(did).process_messages(envelopes)
        >>> document.has_owner(), document.is_deleted()
        >>> document.to_dict()

    Args:
        did: The DID string being resolved.
        verify_signatures: Require every message to be signed by the owner key.
        strict: Raise ConflictError instead of recording conflicts.
    """

    def __init__(self, did: str, verify_signatures: bool = True, strict: bool = False) -> None:
        self.did = did
        self._parsed_did = Did.parse(did)
        self.verify_signatures = verify_signatures
        self.strict = strict

        self.owner: Optional[OwnerEvent] = None
        self.document_reference: Optional[DocumentEvent] = None
        self.created: Optional[datetime] = None
        self.updated: Optional[datetime] = None
        self.conflicts: List[ConflictError] = []

        self._deleted = False
        self._services: Dict[str, DocumentEntry[ServiceEvent]] = {}
        self._verification_methods: Dict[str, DocumentEntry[VerificationMethodEvent]] = {}
        self._verification_relationships: Dict[
            Tuple[str, RelationshipType], DocumentEntry[VerificationRelationshipEvent]
        ] = {}
        self._folded_signatures: set[str] = set()

    def has_owner(self) -> bool:
        return self.owner is not None

    def is_deleted(self) -> bool:
        return self._deleted

    def services(self, include_revoked: bool = True) -> List[DocumentEntry[ServiceEvent]]:
        return [e for e in self._services.values() if include_revoked or not e.revoked]

    def verification_methods(
        self, include_revoked: bool = True
    ) -> List[DocumentEntry[VerificationMethodEvent]]:
        return [e for e in self._verification_methods.values() if include_revoked or not e.revoked]

    def verification_relationships(
        self, include_revoked: bool = True
    ) -> List[DocumentEntry[VerificationRelationshipEvent]]:
        return [
            e for e in self._verification_relationships.values() if include_revoked or not e.revoked
        ]

    def process_messages(self, envelopes: Iterable[MessageEnvelope]) -> Self:
        """Fold envelopes, in order, into the document."""
        for envelope in envelopes:
            self.apply(envelope)
        return self

    def apply(self, envelope: MessageEnvelope) -> None:
        """Fold a single envelope into the document."""
        if self._deleted:
            logger.debug("DID %s is deleted, ignoring further messages", self.did)
            return

        if envelope.signature and envelope.signature in self._folded_signatures:
            return

        message = envelope.open()
        if message is None or not message.is_valid(self._parsed_did.topic_id):
            logger.debug("Dropping invalid message for %s", self.did)
            return
        if message.did != self.did:
            logger.debug("Dropping message for other DID %s", message.did)
            return

        event = message.event
        if isinstance(event, EmptyEvent):
            logger.debug("Dropping undecodable event: %s", event.reason)
            return

        if not self._is_authorized(envelope, event):
            return

        if envelope.signature:
            self._folded_signatures.add(envelope.signature)

        match event:
            case DeleteEvent():
                self._deleted = True
            case OwnerEvent(action=EventAction.CREATE):
                if self.owner is not None:
                    self._conflict("DID is already registered")
                    return
                self.owner = event
            case OwnerEvent(action=EventAction.UPDATE):
                if event.did != self.did:
                    self._conflict(f"owner update {event.id} is for another DID")
                    return
                self.owner = event
            case DocumentEvent():
                self.document_reference = event
            case ServiceEvent():
                self._apply_keyed(self._services, event.id, event)
            case VerificationMethodEvent():
                self._apply_keyed(self._verification_methods, event.id, event)
            case VerificationRelationshipEvent():
                self._apply_keyed(self._verification_relationships, event.key, event)

        if message.timestamp is not None:
            if self.created is None:
                self.created = message.timestamp
            self.updated = message.timestamp

    def _is_authorized(self, envelope: MessageEnvelope, event) -> bool:
        """Check the message is signed by the owner key known at this point."""
        is_owner_create = isinstance(event, OwnerEvent) and event.action is EventAction.CREATE

        if self.owner is None and not is_owner_create:
            logger.debug("Ignoring %s before the DID owner exists", type(event).__name__)
            return False

        if not self.verify_signatures:
            return True

        if is_owner_create and self.owner is None:
            if event.public_key != self._identifier_public_key():
                self._conflict("owner key does not match the key in the DID")
                return False
            signing_key = event.public_key
        else:
            signing_key = self.owner.public_key

        if not envelope.verify(signing_key):
            if isinstance(event, OwnerEvent) and event.action is EventAction.UPDATE:
                self._conflict("owner update is not signed by the current owner key")
            else:
                self._conflict(f"{type(event).__name__} is not signed by the owner key")
            return False
        return True

    def _identifier_public_key(self) -> Optional[bytes]:
        try:
            return self._parsed_did.public_key
        except HederaDidError:
            return None

    def _apply_keyed(self, collection: Dict[Any, DocumentEntry], key: Any, event) -> None:
        entry = collection.get(key)
        if event.action is EventAction.CREATE:
            if entry is not None:
                logger.warning("Ignoring duplicate %s create for %s", event.target_name.value, key)
                return
            collection[key] = DocumentEntry(event)
        elif event.action is EventAction.UPDATE:
            if entry is None or entry.revoked:
                logger.warning("Ignoring %s update for unknown or revoked %s", event.target_name.value, key)
                return
            entry.event = event
        elif event.action is EventAction.REVOKE:
            if entry is None:
                logger.warning("Ignoring %s revoke for unknown %s", event.target_name.value, key)
                return
            entry.revoked = True

    def _conflict(self, reason: str) -> None:
        error = ConflictError(f"{reason} ({self.did})")
        if self.strict:
            raise error
        logger.warning("%s", error)
        self.conflicts.append(error)

    def to_dict(self, include_revoked: bool = False) -> Dict[str, Any]:
        """
        Render as a W3C DID document.

        Args:
            include_revoked: Keep revoked entries, flagged with "revoked": true

        Returns:
            DID Document as a dictionary
        """
        doc: Dict[str, Any] = {"@context": [DID_DOCUMENT_CONTEXT], "id": self.did}

        if self._deleted or self.owner is None:
            doc["verificationMethod"] = []
            doc["assertionMethod"] = []
            doc["authentication"] = []
            return doc

        if self.owner.controller != self.did:
            doc["controller"] = self.owner.controller

        relationships = self.verification_relationships(include_revoked)
        formats = {self.owner.public_key_format}
        formats.update(e.event.public_key_format for e in self.verification_methods(include_revoked))
        formats.update(e.event.public_key_format for e in relationships)

        methods: Dict[str, Dict[str, Any]] = {self.owner.id: self.owner.definition()}
        for entry in self.verification_methods(include_revoked):
            methods.setdefault(entry.id, entry.definition())
        for entry in relationships:
            definition = entry.definition()
            definition.pop("relationshipType")
            methods.setdefault(entry.id, definition)

        doc["@context"] = [DID_DOCUMENT_CONTEXT] + [
            VERIFICATION_METHOD_CONTEXTS[f] for f in PublicKeyFormat if f in formats
        ]
        doc["verificationMethod"] = list(methods.values())

        for relationship_type in RelationshipType:
            ids = [e.id for e in relationships if e.event.relationship_type is relationship_type]
            if relationship_type in (RelationshipType.ASSERTION_METHOD, RelationshipType.AUTHENTICATION):
                doc[relationship_type.value] = [self.owner.id] + ids
            elif ids:
                doc[relationship_type.value] = ids

        services = self.services(include_revoked)
        if services:
            doc["service"] = [entry.definition() for entry in services]

        return doc

    def metadata(self) -> Dict[str, Any]:
        """Document metadata derived from the folded messages."""
        return {
            "created": format_timestamp(self.created) if self.created else None,
            "updated": format_timestamp(self.updated) if self.updated else None,
            "deactivated": self._deleted,
        }

    def __repr__(self) -> str:
        if self._deleted:
            state = "deleted"
        elif self.owner is None:
            state = "not registered"
        else:
            state = "registered"
        return f"DidDocument({self.did}, {state})"
