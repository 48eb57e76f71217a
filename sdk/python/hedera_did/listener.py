"""Listener for DID messages on a topic, read through the mirror node.

Each raw mirror entry is filtered, unwrapped, validated and then either
handed to the receiver or reported as invalid. Malformed entries never
interrupt the listener; transport failures go to the error handler, or
are raised when there is none and errors are not ignored.
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Self, Tuple

from hedera_did.did import TopicId
from hedera_did.errors import DecodeError, HederaDidError, TransportError
from hedera_did.message import DidMessage, MessageEnvelope
from hedera_did.mirror import MirrorMessage, MirrorNodeClient
from hedera_did.signing import b64decode

logger = logging.getLogger(__name__)

Filter = Callable[[Dict[str, Any]], bool]
Receiver = Callable[[MessageEnvelope], None]
ErrorHandler = Callable[[Exception], None]
InvalidMessageHandler = Callable[[Dict[str, Any], str], None]


class TopicListener:
    """Fetches, unwraps and validates DID messages of one topic.

    By default invalid messages are only reported and transport errors
    are raised.
    """

    def __init__(self, topic_id: TopicId, client: MirrorNodeClient) -> None:
        self.topic_id = topic_id
        self.client = client
        self.ignore_errors = False
        self.last_consensus_timestamp: Optional[str] = None
        self._filters: List[Filter] = []
        self._error_handler: Optional[ErrorHandler] = None
        self._invalid_message_handler: Optional[InvalidMessageHandler] = None

    def add_filter(self, message_filter: Filter) -> Self:
        """Skip mirror entries for which `message_filter` returns False."""
        self._filters.append(message_filter)
        return self

    def on_error(self, handler: ErrorHandler) -> Self:
        self._error_handler = handler
        return self

    def on_invalid_message_received(self, handler: InvalidMessageHandler) -> Self:
        self._invalid_message_handler = handler
        return self

    def set_ignore_errors(self, ignore_errors: bool) -> Self:
        self.ignore_errors = ignore_errors
        return self

    def subscribe(
        self,
        receiver: Receiver,
        is_cancelled: Optional[Callable[[], bool]] = None,
    ) -> Self:
        """Run one poll cycle, passing every valid envelope to `receiver`.

        Only messages newer than the previous cycle are requested. Once
        `is_cancelled` returns True no further entries or pages are read.
        """
        try:
            for entry in self.client.iter_topic_messages(
                self.topic_id, after=self.last_consensus_timestamp, should_stop=is_cancelled
            ):
                if is_cancelled is not None and is_cancelled():
                    break
                self._track_position(entry)
                self._handle_response(entry, receiver)
        except TransportError as exc:
            self._handle_error(exc)
        return self

    def _track_position(self, entry: Dict[str, Any]) -> None:
        timestamp = entry.get("consensus_timestamp") if isinstance(entry, dict) else None
        if isinstance(timestamp, str) and timestamp:
            self.last_consensus_timestamp = timestamp

    def _handle_response(self, entry: Dict[str, Any], receiver: Receiver) -> None:
        for message_filter in self._filters:
            if not message_filter(entry):
                self._report_invalid_message(entry, "Message was rejected by external filter")
                return

        envelope, reason = self._extract_message(entry)
        if envelope is None:
            self._report_invalid_message(
                entry, f"Extracting envelope from the response failed: {reason}"
            )
            return

        if self._is_message_valid(envelope, entry):
            receiver(envelope)

    def _extract_message(self, entry: Dict[str, Any]) -> Tuple[Optional[MessageEnvelope], str]:
        """Unwrap the base64 envelope and its base64 event."""
        try:
            mirror_message = MirrorMessage.model_validate(entry)
            tree = json.loads(b64decode(mirror_message.message).decode("utf-8"))
            if not isinstance(tree, dict) or not isinstance(tree.get("message"), dict):
                raise DecodeError("envelope has no message")

            signature = tree.get("signature")
            if signature is not None and not isinstance(signature, str):
                raise DecodeError("signature must be a string")

            message_tree = tree["message"]
            decoded = dict(message_tree)
            if decoded.get("event"):
                try:
                    decoded["event"] = json.loads(b64decode(decoded["event"]).decode("utf-8"))
                except (HederaDidError, ValueError, TypeError) as exc:
                    raise DecodeError(f"failed to decode and parse event field: {exc}") from exc

            message = DidMessage.from_json_tree(decoded)
        except (HederaDidError, ValueError, TypeError) as exc:
            logger.warning("Error extracting message from topic %s: %s", self.topic_id, exc)
            return None, str(exc)

        envelope = MessageEnvelope(
            message=message,
            signature=signature,
            message_tree=message_tree,
        )
        return envelope, ""

    def _is_message_valid(self, envelope: MessageEnvelope, entry: Dict[str, Any]) -> bool:
        message = envelope.open()
        if message is None:
            self._report_invalid_message(entry, "Empty message received when opening envelope")
            return False

        if not envelope.signature:
            self._report_invalid_message(entry, "Message has no signature")
            return False

        if not message.is_valid(self.topic_id):
            self._report_invalid_message(entry, "Message content validation failed.")
            return False

        return True

    def _handle_error(self, err: Exception) -> None:
        if self._error_handler is not None:
            self._error_handler(err)
        elif not self.ignore_errors:
            raise err
        else:
            logger.error("Ignoring error on topic %s: %s", self.topic_id, err)

    def _report_invalid_message(self, entry: Dict[str, Any], reason: str) -> None:
        logger.warning("Invalid message on topic %s: %s", self.topic_id, reason)
        if self._invalid_message_handler is not None:
            self._invalid_message_handler(entry, reason)
