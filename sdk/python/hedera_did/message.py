"""DID topic messages and their signed envelopes.

Wire form of an envelope (UTF-8 JSON):

    {
        "mode": "plain",
        "message": {"timestamp": ..., "operation": ..., "did": ..., "event": <base64 event>},
        "signature": <base64 signature over the canonical message bytes>
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from hedera_did.did import Did, TopicId
from hedera_did.errors import DecodeError, HederaDidError, ValidationError
from hedera_did.event_codec import DidMethodOperation, decode, encode
from hedera_did.events import Event
from hedera_did.signing import Signer, b64encode, canonicalize, verify_b64

logger = logging.getLogger(__name__)


def _now() -> datetime:
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2024-01-01T00:00:00.000Z."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError) as exc:
        raise DecodeError(f"invalid timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class DidMessage:
    """An operation on a DID document, as submitted to the DID topic."""

    operation: DidMethodOperation
    did: str
    event: Event
    timestamp: Optional[datetime] = field(default_factory=_now)

    def __post_init__(self) -> None:
        try:
            self.operation = DidMethodOperation(self.operation)
        except ValueError as exc:
            raise ValidationError(f"unsupported operation: {self.operation}") from exc

    def is_valid(self, topic_id: TopicId | None = None) -> bool:
        """Check completeness and, when given, that the DID belongs to `topic_id`."""
        if not self.did or self.event is None or self.operation is None:
            return False

        try:
            did = Did.parse(self.did)
        except HederaDidError:
            return False

        if topic_id is not None and str(did.topic_id) != str(topic_id):
            return False
        return True

    def to_json_tree(self) -> Dict[str, Any]:
        return {
            "timestamp": format_timestamp(self.timestamp) if self.timestamp else None,
            "operation": DidMethodOperation(self.operation).value,
            "did": self.did,
            "event": encode(self.event),
        }

    @classmethod
    def from_json_tree(cls, tree: Any) -> DidMessage:
        """Build a message; `event` may be base64 or an already decoded object.

        Raises:
            DecodeError: If the tree is not a message.
        """
        if not isinstance(tree, dict) or not tree.get("operation"):
            raise DecodeError("message has no operation")

        event_payload = tree.get("event")
        if event_payload is not None and not isinstance(event_payload, (str, dict)):
            raise DecodeError("invalid event format in message")

        timestamp = tree.get("timestamp")
        return cls(
            operation=tree["operation"],
            did=tree.get("did"),
            event=decode(tree["operation"], event_payload),
            timestamp=parse_timestamp(timestamp) if timestamp else None,
        )

    def to_json(self) -> str:
        return json.dumps(self.to_json_tree())

    @classmethod
    def from_json(cls, data: str | bytes) -> DidMessage:
        try:
            tree = json.loads(data)
        except ValueError as exc:
            raise DecodeError(f"message is not JSON: {exc}") from exc
        return cls.from_json_tree(tree)


class MessageEnvelope:
    """A DID message coupled with its detached signature.

    Envelopes read from the topic keep the message tree exactly as
    received; that tree is what the signature covers. The message itself
    is decoded on first `open()`.
    """

    MODE = "plain"

    def __init__(
        self,
        message: Optional[DidMessage] = None,
        signature: Optional[str] = None,
        message_tree: Optional[Dict[str, Any]] = None,
    ) -> None:
        if message is None and message_tree is None:
            raise ValidationError("envelope needs a message or a message tree")
        self._message = message
        self._message_tree = message_tree
        self._signature = signature
        self._opened = message is not None

    @property
    def signature(self) -> Optional[str]:
        """Base64 signature, also used as the envelope's identity for dedup."""
        return self._signature

    @signature.setter
    def signature(self, value: Optional[str]) -> None:
        self._signature = value

    @property
    def message_tree(self) -> Dict[str, Any]:
        if self._message_tree is None:
            return self._message.to_json_tree()
        return self._message_tree

    def open(self) -> Optional[DidMessage]:
        """Decode the message once; None when it cannot be decoded."""
        if not self._opened:
            self._opened = True
            try:
                self._message = DidMessage.from_json_tree(self._message_tree)
            except (HederaDidError, ValueError, TypeError) as exc:
                logger.debug("Opening envelope failed: %s", exc)
                self._message = None
        return self._message

    def message_bytes(self) -> bytes:
        """Canonical bytes covered by the signature."""
        return canonicalize(self.message_tree)

    def sign(self, signer: Signer) -> bytes:
        """Sign the message and return the serialized envelope to submit.

        Args:
            signer: Callable producing a signature over the given bytes.
        """
        if self._message is None:
            raise ValidationError("only envelopes built from a message can be signed")
        self._message_tree = self._message.to_json_tree()
        self._signature = b64encode(signer(self.message_bytes()))
        return self.to_json().encode("utf-8")

    def verify(self, public_key: bytes) -> bool:
        """Whether the signature verifies against `public_key`."""
        if not self._signature:
            return False
        return verify_b64(self.message_bytes(), self._signature, public_key)

    def to_json_tree(self) -> Dict[str, Any]:
        return {
            "mode": self.MODE,
            "message": self.message_tree,
            "signature": self._signature,
        }

    def to_json(self) -> str:
        return canonicalize(self.to_json_tree()).decode("utf-8")

    @classmethod
    def from_json_tree(cls, tree: Any) -> MessageEnvelope:
        if not isinstance(tree, dict) or not isinstance(tree.get("message"), dict):
            raise DecodeError("envelope has no message")
        return cls(message_tree=tree["message"], signature=tree.get("signature"))

    @classmethod
    def from_json(cls, data: str | bytes) -> MessageEnvelope:
        try:
            tree = json.loads(data)
        except ValueError as exc:
            raise DecodeError(f"envelope is not JSON: {exc}") from exc
        return cls.from_json_tree(tree)

    def __repr__(self) -> str:
        signed = "signed" if self._signature else "unsigned"
        return f"MessageEnvelope({signed})"
