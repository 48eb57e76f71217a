"""Mirror node REST client for topic messages.

GET {base_url}/api/v1/topics/{topic_id}/messages
    -> {"messages": [{"message": <base64>, "consensus_timestamp": ..., ...}],
        "links": {"next": <relative url or null>}}
"""

import logging
import time
from typing import Any, Callable, Dict, Iterator, List, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaError

from hedera_did.did import TopicId
from hedera_did.errors import TransportError

logger = logging.getLogger(__name__)


class MirrorMessage(BaseModel):
    """One topic message as served by the mirror node."""

    model_config = ConfigDict(extra="allow")

    message: str
    consensus_timestamp: Optional[str] = None
    sequence_number: Optional[int] = None
    topic_id: Optional[str] = None
    running_hash: Optional[str] = None
    payer_account_id: Optional[str] = None


class MirrorLinks(BaseModel):
    next: Optional[str] = None


class MirrorMessagesPage(BaseModel):
    """A page of topic messages; entries stay raw until each is validated."""

    messages: List[Dict[str, Any]] = Field(default_factory=list)
    links: MirrorLinks = Field(default_factory=MirrorLinks)


class MirrorNodeClient:
    """Reads topic messages from a mirror node.

    Connection failures and timeouts are retried with linear back-off.
    Other request failures and non-2xx responses raise `TransportError`.
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 15.0,
        retries: int = 3,
        page_limit: int = 100,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.retries = retries
        self.page_limit = page_limit
        self._sleep = sleep

    def topic_messages_url(self, topic_id: TopicId) -> str:
        return f"{self.base_url}/api/v1/topics/{topic_id}/messages"

    def get_page(self, url: str, params: Optional[Dict[str, Any]] = None) -> MirrorMessagesPage:
        """Fetch and parse one page of topic messages."""
        last_exc: Optional[Exception] = None
        for attempt in range(self.retries):
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
                break
            except (requests.ConnectionError, requests.Timeout) as exc:
                last_exc = exc
                logger.warning("GET %s failed (attempt %s): %s", url, attempt + 1, exc)
                if attempt + 1 < self.retries:
                    self._sleep(1 + attempt)
            except requests.RequestException as exc:
                logger.error("GET %s failed: %s", url, exc)
                raise TransportError(f"failed to fetch messages: {exc}") from exc
        else:
            logger.error("GET %s failed after %s attempts: %s", url, self.retries, last_exc)
            raise TransportError(f"failed to fetch messages: {last_exc}") from last_exc

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"failed to fetch messages: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )

        try:
            return MirrorMessagesPage.model_validate(response.json())
        except (ValueError, SchemaError) as exc:
            raise TransportError(f"unexpected mirror node response: {exc}") from exc

    def iter_topic_messages(
        self,
        topic_id: TopicId,
        after: Optional[str] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> Iterator[Dict[str, Any]]:
        """Yield raw message entries in consensus order, following pagination.

        Args:
            topic_id: The DID topic.
            after: Only return messages with a later consensus timestamp.
            should_stop: Checked before each page request; True ends the iteration.
        """
        params: Optional[Dict[str, Any]] = {"limit": self.page_limit, "order": "asc"}
        if after:
            params["timestamp"] = f"gt:{after}"

        url: Optional[str] = self.topic_messages_url(topic_id)
        while url:
            if should_stop is not None and should_stop():
                logger.debug("Stopped paging topic %s at %s", topic_id, url)
                return
            page = self.get_page(url, params)
            yield from page.messages
            url = self._next_url(page.links.next)
            # the next link already carries the query
            params = None

    def _next_url(self, link: Optional[str]) -> Optional[str]:
        if not link:
            return None
        if link.startswith(("http://", "https://")):
            return link
        return f"{self.base_url}{link}"
