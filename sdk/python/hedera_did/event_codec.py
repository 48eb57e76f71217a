"""Encoding of DID events and dispatch of decoded payloads.

`decode` never raises: any payload that cannot be turned into a valid
event becomes an `EmptyEvent`, so one corrupt log entry cannot abort the
resolution of the whole log.
"""

import json
import logging
from enum import Enum
from typing import Any, Optional

from hedera_did.errors import HederaDidError
from hedera_did.events import (
    DeleteEvent,
    DocumentEvent,
    EmptyEvent,
    Event,
    EventAction,
    EventTargetName,
    OwnerEvent,
    ServiceEvent,
    VerificationMethodEvent,
    VerificationRelationshipEvent,
)
from hedera_did.signing import b64decode, b64encode, canonicalize

logger = logging.getLogger(__name__)


class DidMethodOperation(str, Enum):
    """Operation a topic message performs on the DID document."""

    CREATE_DID_DOCUMENT = "create-did-document"
    CREATE = "create"
    UPDATE = "update"
    REVOKE = "revoke"
    DELETE = "delete"


# Order in which payload keys are checked for a target name
_TARGET_LOOKUP_ORDER = (
    EventTargetName.DID_OWNER,
    EventTargetName.DID_DOCUMENT,
    EventTargetName.SERVICE,
    EventTargetName.VERIFICATION_METHOD,
    EventTargetName.VERIFICATION_RELATIONSHIP,
)

_ACTIONS = {
    DidMethodOperation.CREATE_DID_DOCUMENT: EventAction.CREATE,
    DidMethodOperation.CREATE: EventAction.CREATE,
    DidMethodOperation.UPDATE: EventAction.UPDATE,
    DidMethodOperation.REVOKE: EventAction.REVOKE,
}


def event_class_for(operation: DidMethodOperation, target: EventTargetName) -> Optional[type]:
    """Event type accepted for an (operation, target) pair, None if the pair is invalid."""
    match operation, target:
        case DidMethodOperation.CREATE_DID_DOCUMENT, EventTargetName.DID_DOCUMENT:
            return DocumentEvent
        case (DidMethodOperation.CREATE | DidMethodOperation.UPDATE), EventTargetName.DID_OWNER:
            return OwnerEvent
        case (
            DidMethodOperation.CREATE | DidMethodOperation.UPDATE | DidMethodOperation.REVOKE
        ), EventTargetName.SERVICE:
            return ServiceEvent
        case (
            DidMethodOperation.CREATE | DidMethodOperation.UPDATE | DidMethodOperation.REVOKE
        ), EventTargetName.VERIFICATION_METHOD:
            return VerificationMethodEvent
        case (
            DidMethodOperation.CREATE | DidMethodOperation.UPDATE | DidMethodOperation.REVOKE
        ), EventTargetName.VERIFICATION_RELATIONSHIP:
            return VerificationRelationshipEvent
        case _:
            return None


def operation_for(event: Event) -> DidMethodOperation:
    """Operation under which an event is submitted."""
    if isinstance(event, DeleteEvent):
        return DidMethodOperation.DELETE
    if isinstance(event, DocumentEvent):
        return DidMethodOperation.CREATE_DID_DOCUMENT
    action = getattr(event, "action", None)
    if action is None:
        raise HederaDidError(f"event {type(event).__name__} has no operation")
    return DidMethodOperation(action.value)


def encode(event: Event) -> str:
    """Base64 of the event's canonical JSON shape (empty for deletes)."""
    if isinstance(event, DeleteEvent):
        return ""
    return b64encode(canonicalize(event.to_json_tree()))


def _from_tree(operation: DidMethodOperation, tree: Any) -> Event:
    if not isinstance(tree, dict):
        return EmptyEvent("event payload is not an object")

    for target in _TARGET_LOOKUP_ORDER:
        if not tree.get(target.value):
            continue
        event_class = event_class_for(operation, target)
        if event_class is None:
            continue
        return event_class.from_json_tree(tree[target.value], _ACTIONS[operation])

    return EmptyEvent(f"no {operation.value} target in payload")


def decode(operation: DidMethodOperation | str, payload: str | dict | None) -> Event:
    """Decode a base64 or already-parsed JSON event payload.

    Delete operations always yield a `DeleteEvent`. Failures yield an
    `EmptyEvent` carrying the reason.
    """
    try:
        operation = DidMethodOperation(operation)
    except ValueError:
        logger.debug("Unsupported operation %r, using empty event", operation)
        return EmptyEvent(f"unsupported operation: {operation}")

    if operation is DidMethodOperation.DELETE:
        return DeleteEvent()

    try:
        if isinstance(payload, dict):
            tree = payload
        else:
            tree = json.loads(b64decode(payload).decode("utf-8"))
        event = _from_tree(operation, tree)
    except (HederaDidError, ValueError, TypeError, AttributeError) as exc:
        logger.debug("Event decode failed for %s: %s", operation.value, exc)
        return EmptyEvent(str(exc))

    if isinstance(event, EmptyEvent):
        logger.debug("Event decode fell back to empty event: %s", event.reason)
    return event
