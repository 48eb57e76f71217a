"""Resolution of DID messages from a topic.

The mirror node has no end-of-stream signal, so resolution finishes once
no new message has arrived for `timeout_ms`. While waiting, the topic is
polled again for messages newer than the last one seen.
"""

import logging
import threading
import time
from typing import Callable, List, Optional, Self, Set

import requests

from hedera_did.config import DEFAULT_TIMEOUT_MS, ResolverConfig
from hedera_did.did import Did, TopicId
from hedera_did.document import DidDocument
from hedera_did.errors import ResolutionCancelled, TransportError, ValidationError
from hedera_did.listener import TopicListener
from hedera_did.message import DidMessage, MessageEnvelope
from hedera_did.mirror import MirrorNodeClient

logger = logging.getLogger(__name__)

ResultsHandler = Callable[[List[MessageEnvelope]], None]
ErrorHandler = Callable[[Exception], None]


class EventMessageResolver:
    """Collects the distinct DID messages of one topic.

    Example:
        >>> resolver = EventMessageResolver(topic_id, client)
        >>> resolver.when_finished(handle_envelopes).execute()
    """

    DEFAULT_TIMEOUT_MS = DEFAULT_TIMEOUT_MS

    def __init__(
        self,
        topic_id: TopicId,
        client: MirrorNodeClient,
        config: Optional[ResolverConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], object]] = None,
    ) -> None:
        self.topic_id = topic_id
        self.config = config if config is not None else ResolverConfig()
        self.listener = TopicListener(topic_id, client)
        self._timeout_ms = self.config.timeout_ms
        self._clock = clock
        self._cancelled = threading.Event()
        # waiting on the cancel event lets cancel() interrupt the idle wait
        self._sleep = sleep if sleep is not None else self._cancelled.wait
        self._messages: List[MessageEnvelope] = []
        self._existing_signatures: Set[str] = set()
        self._last_message_arrival_time = clock()
        self._results_handler: Optional[ResultsHandler] = None
        self._error_handler: Optional[ErrorHandler] = None
        self._deadline: Optional[float] = None
        self._finished = False

    def when_finished(self, handler: ResultsHandler) -> Self:
        """Handler receiving the collected envelopes once resolution is done."""
        self._results_handler = handler
        return self

    def on_error(self, handler: ErrorHandler) -> Self:
        """Handler for transport errors; without one they are raised from execute()."""
        self._error_handler = handler
        return self

    def set_timeout(self, timeout_ms: int) -> Self:
        """Idle time in milliseconds to wait for new messages."""
        if timeout_ms < 0:
            raise ValidationError(f"timeout must not be negative, got {timeout_ms}")
        self._timeout_ms = timeout_ms
        return self

    def cancel(self) -> None:
        """Abandon the resolution; execute() raises ResolutionCancelled."""
        self._cancelled.set()

    @property
    def messages(self) -> List[MessageEnvelope]:
        return list(self._messages)

    def matches_search_criteria(self, message: DidMessage) -> bool:
        """Per-message acceptance hook; accepts everything by default."""
        return True

    def execute(self) -> None:
        """Run the resolution until the topic has been idle for the timeout.

        Raises:
            ValidationError: If no results handler is defined.
            TransportError: On mirror node failures when no error handler is set.
            ResolutionCancelled: If cancel() was called.
        """
        if self._results_handler is None:
            raise ValidationError("Resolver not executed: results handler 'when_finished' not defined")

        self._messages = []
        self._existing_signatures = set()
        self._finished = False
        self.listener.last_consensus_timestamp = None
        self._deadline = None
        if self.config.hard_deadline_ms is not None:
            self._deadline = self._clock() + self.config.hard_deadline_ms / 1000
        logger.info("Resolving DID messages from topic %s", self.topic_id)

        try:
            self._poll()
            self._last_message_arrival_time = self._clock()
            self._wait_or_finish()
        except TransportError as exc:
            if self._error_handler is None:
                raise
            self._error_handler(exc)

    def _poll(self) -> None:
        self._check_cancelled()
        self.listener.subscribe(self._handle_message, is_cancelled=self._should_stop_polling)
        self._check_cancelled()

    def _should_stop_polling(self) -> bool:
        return self._cancelled.is_set() or self._past_deadline()

    def _past_deadline(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    def _handle_message(self, envelope: MessageEnvelope) -> None:
        self._last_message_arrival_time = self._clock()

        message = envelope.open()
        if message is None or not self.matches_search_criteria(message):
            logger.debug("Skipping message not matching search criteria")
            return

        signature = envelope.signature
        if signature in self._existing_signatures:
            logger.debug("Skipping duplicate message %s...", signature[:16])
            return

        self._existing_signatures.add(signature)
        self._messages.append(envelope)

    def _wait_or_finish(self) -> None:
        timeout = self._timeout_ms / 1000
        poll_interval = self.config.poll_interval_ms / 1000
        deadline = self._deadline

        while True:
            now = self._clock()
            if deadline is not None and now >= deadline:
                logger.warning(
                    "Hard deadline reached for topic %s, finishing with %s messages",
                    self.topic_id,
                    len(self._messages),
                )
                break

            elapsed = now - self._last_message_arrival_time
            if elapsed >= timeout:
                break

            wait = min(timeout - elapsed, poll_interval)
            if deadline is not None:
                wait = min(wait, deadline - now)
            self._sleep(wait)
            self._poll()

        self._finish()

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        logger.info("Resolved %s DID messages from topic %s", len(self._messages), self.topic_id)
        self._results_handler(list(self._messages))

    def _check_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise ResolutionCancelled(f"resolution of topic {self.topic_id} was cancelled")


def resolve_did(
    identifier: str,
    config: Optional[ResolverConfig] = None,
    session: Optional[requests.Session] = None,
    verify_signatures: bool = True,
    strict: bool = False,
    clock: Callable[[], float] = time.monotonic,
    sleep: Optional[Callable[[float], object]] = None,
) -> DidDocument:
    """Resolve a did:hedera identifier into its current document.

    Raises:
        InvalidDIDError: If the identifier is malformed.
        TransportError: If the mirror node cannot be read.
        ConflictError: In strict mode, if the log holds conflicting messages.
    """
    did = Did.parse(identifier)
    config = config if config is not None else ResolverConfig()
    client = MirrorNodeClient(
        config.mirror_url_for(did.network),
        session=session,
        timeout=config.http_timeout,
        retries=config.retries,
        page_limit=config.page_limit,
    )

    results: List[MessageEnvelope] = []
    resolver = EventMessageResolver(did.topic_id, client, config, clock=clock, sleep=sleep)
    resolver.when_finished(results.extend).execute()

    document = DidDocument(str(did), verify_signatures=verify_signatures, strict=strict)
    return document.process_messages(results)
