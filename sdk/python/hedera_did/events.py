"""DID events carried by topic messages.

Each target (owner, service, verification method, verification
relationship, document) has one event type. The `action` field says
whether the event creates, updates or revokes the target; revoke events
carry only the identifying fields.

Canonical JSON shapes:
    {"DIDOwner": {"id", "type", "controller", "publicKeyMultibase" | "publicKeyJwk"}}
    {"VerificationMethod": {... same as owner ...}}
    {"VerificationRelationship": {... same as owner ..., "relationshipType"}}
    {"Service": {"id", "type", "serviceEndpoint"}}
    {"DIDDocument": {"id", "type", "cid", "url"?}}
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Union

from hedera_did.codec import (
    KeyType,
    PublicKeyFormat,
    jwk_to_public_key,
    multibase_to_public_key,
    normalize_public_key,
    public_key_multibase_for_format,
    public_key_to_jwk,
)
from hedera_did.did import Did
from hedera_did.errors import HederaDidError, UnsupportedKeyError, ValidationError

OWNER_KEY_SUFFIX = "did-root-key"

_OWNER_ID_PATTERN = re.compile(r"^(.+)#did-root-key$")
_KEY_ID_PATTERN = re.compile(r"^(.+)#key-\d+$")
_SERVICE_ID_PATTERN = re.compile(r"^(.+)#service-\d+$")

JWK_CURVES = ("Ed25519", "secp256k1")


class EventTargetName(str, Enum):
    """Top-level key naming the target of an event payload."""

    NONE = "None"
    DID_DOCUMENT = "DIDDocument"
    DID_OWNER = "DIDOwner"
    VERIFICATION_METHOD = "VerificationMethod"
    VERIFICATION_RELATIONSHIP = "VerificationRelationship"
    SERVICE = "Service"
    DOCUMENT = "Document"


class EventAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    REVOKE = "revoke"


class RelationshipType(str, Enum):
    AUTHENTICATION = "authentication"
    ASSERTION_METHOD = "assertionMethod"
    KEY_AGREEMENT = "keyAgreement"
    CAPABILITY_INVOCATION = "capabilityInvocation"
    CAPABILITY_DELEGATION = "capabilityDelegation"


class ServiceType(str, Enum):
    LINKED_DOMAINS = "LinkedDomains"
    DIDCOMM_MESSAGING = "DIDCommMessaging"


def _did_of(event_id: str, pattern: re.Pattern) -> Optional[str]:
    match = pattern.match(event_id)
    if match is None:
        return None
    try:
        Did.parse(match.group(1))
    except HederaDidError:
        return None
    return match.group(1)


def _enum_value(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ValidationError(f"unsupported {label}: {value}") from exc


def _require(tree: Any, label: str) -> Dict[str, Any]:
    if not isinstance(tree, dict):
        raise ValidationError(f"{label} event body must be an object")
    return tree


def _check_action(action: EventAction, allowed: tuple, label: str) -> EventAction:
    action = _enum_value(EventAction, action, "event action")
    if action not in allowed:
        raise ValidationError(f"{label} does not support action {action.value}")
    return action


def _normalize_key(event, label: str) -> None:
    """Validate and normalize the key fields of a key-bearing event."""
    if not event.controller or event.public_key is None:
        raise ValidationError(f"{label} args are missing")

    if not isinstance(event.public_key, (bytes, bytearray)):
        raise ValidationError(f"{label} public key must be bytes")
    key_type, public_key = normalize_public_key(event.public_key)

    public_key_format = event.public_key_format
    if public_key_format is None:
        public_key_format = PublicKeyFormat.default_for(key_type)
    public_key_format = _enum_value(PublicKeyFormat, public_key_format, "public key format")
    if (
        public_key_format is not PublicKeyFormat.JSON_WEB_KEY_2020
        and PublicKeyFormat.default_for(key_type) is not public_key_format
    ):
        raise UnsupportedKeyError(
            f"{key_type.value} key cannot use format {public_key_format.value}"
        )

    object.__setattr__(event, "public_key", public_key)
    object.__setattr__(event, "public_key_format", public_key_format)


def _key_definition(event) -> Dict[str, Any]:
    definition = {
        "id": event.id,
        "type": event.public_key_format.value,
        "controller": event.controller,
    }
    if event.public_key_format is PublicKeyFormat.JSON_WEB_KEY_2020:
        definition["publicKeyJwk"] = public_key_to_jwk(event.public_key)
    else:
        definition["publicKeyMultibase"] = public_key_multibase_for_format(
            event.public_key_format, event.public_key
        )
    return definition


def parse_public_key(tree: Dict[str, Any]) -> tuple[bytes, PublicKeyFormat]:
    """Read the key material of a key-bearing event definition."""
    public_key_format = _enum_value(
        PublicKeyFormat,
        tree.get("type") or PublicKeyFormat.ED25519_VERIFICATION_KEY_2020.value,
        "public key format",
    )

    if tree.get("publicKeyMultibase"):
        key_type, public_key = multibase_to_public_key(tree["publicKeyMultibase"])
        if (
            public_key_format is not PublicKeyFormat.JSON_WEB_KEY_2020
            and PublicKeyFormat.default_for(key_type) is not public_key_format
        ):
            raise UnsupportedKeyError(
                f"multibase key is {key_type.value}, type says {public_key_format.value}"
            )
        return public_key, public_key_format

    if tree.get("publicKeyJwk"):
        jwk = tree["publicKeyJwk"]
        crv = jwk.get("crv") if isinstance(jwk, dict) else None
        if crv not in JWK_CURVES:
            raise UnsupportedKeyError(f"unsupported JWK curve: {crv}")
        return jwk_to_public_key(jwk), public_key_format

    raise ValidationError("missing publicKeyMultibase or publicKeyJwk")


@dataclass(frozen=True)
class OwnerEvent:
    """Creates the DID root key or hands ownership to a new key."""

    target_name: ClassVar[EventTargetName] = EventTargetName.DID_OWNER

    id: str
    controller: str
    public_key: bytes
    public_key_format: Optional[PublicKeyFormat] = None
    action: EventAction = EventAction.CREATE

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "action",
            _check_action(self.action, (EventAction.CREATE, EventAction.UPDATE), "DIDOwner"),
        )
        if not self.id:
            raise ValidationError("DID Owner args are missing")
        if _did_of(self.id, _OWNER_ID_PATTERN) is None:
            raise ValidationError("Event ID is invalid. Expected format: {did}#did-root-key")
        _normalize_key(self, "DID Owner")

    @property
    def key_type(self) -> KeyType:
        return normalize_public_key(self.public_key)[0]

    @property
    def did(self) -> str:
        return self.id.rsplit("#", 1)[0]

    def definition(self) -> Dict[str, Any]:
        return _key_definition(self)

    def to_json_tree(self) -> Dict[str, Any]:
        return {self.target_name.value: self.definition()}

    @classmethod
    def from_json_tree(cls, tree: Any, action: EventAction = EventAction.CREATE) -> OwnerEvent:
        tree = _require(tree, "DIDOwner")
        public_key, public_key_format = parse_public_key(tree)
        return cls(
            id=tree.get("id"),
            controller=tree.get("controller"),
            public_key=public_key,
            public_key_format=public_key_format,
            action=action,
        )


@dataclass(frozen=True)
class VerificationMethodEvent:
    """Adds, changes or revokes a verification method."""

    target_name: ClassVar[EventTargetName] = EventTargetName.VERIFICATION_METHOD

    id: str
    controller: Optional[str] = None
    public_key: Optional[bytes] = None
    public_key_format: Optional[PublicKeyFormat] = None
    action: EventAction = EventAction.CREATE

    def __post_init__(self) -> None:
        object.__setattr__(self, "action", _check_action(self.action, tuple(EventAction), "VerificationMethod"))
        if not self.id:
            raise ValidationError("Verification Method args are missing")
        if _did_of(self.id, _KEY_ID_PATTERN) is None:
            raise ValidationError("Event ID is invalid. Expected format: {did}#key-{integer}")
        if self.action is not EventAction.REVOKE:
            _normalize_key(self, "Verification Method")

    @property
    def key_type(self) -> Optional[KeyType]:
        if self.public_key is None:
            return None
        return normalize_public_key(self.public_key)[0]

    def definition(self) -> Dict[str, Any]:
        if self.action is EventAction.REVOKE:
            return {"id": self.id}
        return _key_definition(self)

    def to_json_tree(self) -> Dict[str, Any]:
        return {self.target_name.value: self.definition()}

    @classmethod
    def from_json_tree(cls, tree: Any, action: EventAction = EventAction.CREATE) -> VerificationMethodEvent:
        tree = _require(tree, "VerificationMethod")
        if EventAction(action) is EventAction.REVOKE:
            return cls(id=tree.get("id"), action=action)
        public_key, public_key_format = parse_public_key(tree)
        return cls(
            id=tree.get("id"),
            controller=tree.get("controller"),
            public_key=public_key,
            public_key_format=public_key_format,
            action=action,
        )


@dataclass(frozen=True)
class VerificationRelationshipEvent:
    """Adds, changes or revokes a key's use for one relationship."""

    target_name: ClassVar[EventTargetName] = EventTargetName.VERIFICATION_RELATIONSHIP

    id: str
    relationship_type: RelationshipType
    controller: Optional[str] = None
    public_key: Optional[bytes] = None
    public_key_format: Optional[PublicKeyFormat] = None
    action: EventAction = EventAction.CREATE

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "action", _check_action(self.action, tuple(EventAction), "VerificationRelationship")
        )
        if not self.id or not self.relationship_type:
            raise ValidationError("Verification Relationship args are missing")
        object.__setattr__(
            self,
            "relationship_type",
            _enum_value(RelationshipType, self.relationship_type, "relationship type"),
        )
        if _did_of(self.id, _KEY_ID_PATTERN) is None:
            raise ValidationError("Event ID is invalid. Expected format: {did}#key-{integer}")
        if self.action is not EventAction.REVOKE:
            _normalize_key(self, "Verification Relationship")

    @property
    def key(self) -> tuple[str, RelationshipType]:
        return self.id, self.relationship_type

    @property
    def key_type(self) -> Optional[KeyType]:
        if self.public_key is None:
            return None
        return normalize_public_key(self.public_key)[0]

    def definition(self) -> Dict[str, Any]:
        if self.action is EventAction.REVOKE:
            return {"id": self.id, "relationshipType": self.relationship_type.value}
        definition = _key_definition(self)
        definition["relationshipType"] = self.relationship_type.value
        return definition

    def to_json_tree(self) -> Dict[str, Any]:
        return {self.target_name.value: self.definition()}

    @classmethod
    def from_json_tree(
        cls, tree: Any, action: EventAction = EventAction.CREATE
    ) -> VerificationRelationshipEvent:
        tree = _require(tree, "VerificationRelationship")
        if EventAction(action) is EventAction.REVOKE:
            return cls(id=tree.get("id"), relationship_type=tree.get("relationshipType"), action=action)
        public_key, public_key_format = parse_public_key(tree)
        return cls(
            id=tree.get("id"),
            relationship_type=tree.get("relationshipType"),
            controller=tree.get("controller"),
            public_key=public_key,
            public_key_format=public_key_format,
            action=action,
        )


@dataclass(frozen=True)
class ServiceEvent:
    """Adds, changes or revokes a service endpoint."""

    target_name: ClassVar[EventTargetName] = EventTargetName.SERVICE

    id: str
    type: Optional[ServiceType] = None
    service_endpoint: Optional[str] = None
    action: EventAction = EventAction.CREATE

    def __post_init__(self) -> None:
        object.__setattr__(self, "action", _check_action(self.action, tuple(EventAction), "Service"))
        if not self.id:
            raise ValidationError("Service args are missing")
        if _did_of(self.id, _SERVICE_ID_PATTERN) is None:
            raise ValidationError("Event ID is invalid. Expected format: {did}#service-{integer}")
        if self.action is EventAction.REVOKE:
            return
        if not self.type or not self.service_endpoint:
            raise ValidationError("Service args are missing")
        object.__setattr__(self, "type", _enum_value(ServiceType, self.type, "service type"))

    def definition(self) -> Dict[str, Any]:
        if self.action is EventAction.REVOKE:
            return {"id": self.id}
        return {
            "id": self.id,
            "type": self.type.value,
            "serviceEndpoint": self.service_endpoint,
        }

    def to_json_tree(self) -> Dict[str, Any]:
        return {self.target_name.value: self.definition()}

    @classmethod
    def from_json_tree(cls, tree: Any, action: EventAction = EventAction.CREATE) -> ServiceEvent:
        tree = _require(tree, "Service")
        if EventAction(action) is EventAction.REVOKE:
            return cls(id=tree.get("id"), action=action)
        return cls(
            id=tree.get("id"),
            type=tree.get("type"),
            service_endpoint=tree.get("serviceEndpoint"),
            action=action,
        )


@dataclass(frozen=True)
class DocumentEvent:
    """Points the DID at a document stored outside the topic."""

    target_name: ClassVar[EventTargetName] = EventTargetName.DID_DOCUMENT
    document_type: ClassVar[str] = "DIDDocument"

    id: str
    cid: str
    url: Optional[str] = None
    action: EventAction = EventAction.CREATE

    def __post_init__(self) -> None:
        object.__setattr__(self, "action", _check_action(self.action, (EventAction.CREATE,), "DIDDocument"))
        if not self.id or not self.cid:
            raise ValidationError("DID Document args are missing")
        try:
            Did.parse(self.id)
        except HederaDidError as exc:
            raise ValidationError(f"DID Document id is not a DID: {self.id}") from exc

    def definition(self) -> Dict[str, Any]:
        definition = {"id": self.id, "type": self.document_type, "cid": self.cid}
        if self.url:
            definition["url"] = self.url
        return definition

    def to_json_tree(self) -> Dict[str, Any]:
        return {self.target_name.value: self.definition()}

    @classmethod
    def from_json_tree(cls, tree: Any, action: EventAction = EventAction.CREATE) -> DocumentEvent:
        tree = _require(tree, "DIDDocument")
        return cls(id=tree.get("id"), cid=tree.get("cid"), url=tree.get("url"), action=action)


@dataclass(frozen=True)
class DeleteEvent:
    """Tombstone for the whole DID document."""

    target_name: ClassVar[EventTargetName] = EventTargetName.DOCUMENT

    def to_json_tree(self) -> None:
        return None


@dataclass(frozen=True)
class EmptyEvent:
    """Inert stand-in for a payload that could not be decoded."""

    target_name: ClassVar[EventTargetName] = EventTargetName.NONE

    reason: str = ""

    def to_json_tree(self) -> Dict[str, Any]:
        return {}


Event = Union[
    OwnerEvent,
    VerificationMethodEvent,
    VerificationRelationshipEvent,
    ServiceEvent,
    DocumentEvent,
    DeleteEvent,
    EmptyEvent,
]
