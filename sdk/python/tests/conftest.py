"""Shared fixtures: owner keys, signed envelopes and an in-memory mirror node."""

import base64
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

from hedera_did import DidMessage, KeyType, MessageEnvelope, OwnerEvent, RootKey
from hedera_did.event_codec import operation_for

TOPIC_ID = "0.0.1"

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock advanced only by its own sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []
        self.on_sleep: Optional[Callable[[], None]] = None

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep()


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, reason: str = "OK") -> None:
        self.status_code = status_code
        self.reason = reason
        self._payload = payload

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeMirror:
    """Stands in for a requests session talking to a mirror node topic.

    Entries become visible once the clock reaches their `visible_at` and
    honour the `timestamp=gt:` filter of incremental polls.
    Each request advances the clock by `latency` seconds.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.requests: List[Dict[str, Any]] = []
        self._entries: List[tuple] = []
        self._queued: List[Any] = []
        self.latency = 0.0

    def publish(self, data: bytes, visible_at: float = 0.0) -> Dict[str, Any]:
        """Publish raw envelope bytes as the next topic message."""
        sequence_number = len(self._entries) + 1
        entry = {
            "message": base64.b64encode(data).decode("ascii"),
            "consensus_timestamp": f"1700000000.{sequence_number:09d}",
            "sequence_number": sequence_number,
            "topic_id": TOPIC_ID,
        }
        self._entries.append((visible_at, entry))
        return entry

    def publish_json(self, tree: Any, visible_at: float = 0.0) -> Dict[str, Any]:
        return self.publish(json.dumps(tree).encode("utf-8"), visible_at)

    def publish_entry(self, entry: Dict[str, Any], visible_at: float = 0.0) -> None:
        """Publish a raw mirror entry as is."""
        self._entries.append((visible_at, entry))

    def raise_next(self, exc: Exception) -> None:
        """Raise `exc` from the next request."""
        self._queued.append(exc)

    def respond_next(self, status_code: int = 200, payload: Any = None, reason: str = "OK") -> None:
        """Answer the next request with a canned response."""
        self._queued.append(FakeResponse(status_code, payload, reason))

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> Any:
        self.requests.append({"url": url, "params": params, "timeout": timeout})
        self.clock.now += self.latency
        if self._queued:
            queued = self._queued.pop(0)
            if isinstance(queued, Exception):
                raise queued
            return queued

        after = None
        if params and "timestamp" in params:
            after = params["timestamp"].split(":", 1)[1]
        messages = [
            entry
            for visible_at, entry in self._entries
            if visible_at <= self.clock.now and (after is None or entry["consensus_timestamp"] > after)
        ]
        return FakeResponse(200, {"messages": messages, "links": {"next": None}})


@pytest.fixture
def owner_key() -> RootKey:
    return RootKey.from_seed(bytes(range(32)))


@pytest.fixture
def other_key() -> RootKey:
    return RootKey.from_seed(bytes(range(1, 33)))


@pytest.fixture
def secp_key() -> RootKey:
    return RootKey.from_seed(bytes(range(2, 34)), KeyType.SECP256K1)


@pytest.fixture
def did(owner_key: RootKey) -> str:
    return str(owner_key.did("testnet", TOPIC_ID))


@pytest.fixture
def owner_event(owner_key: RootKey, did: str) -> OwnerEvent:
    return OwnerEvent(id=f"{did}#did-root-key", controller=did, public_key=owner_key.public_key)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mirror(clock: FakeClock) -> FakeMirror:
    return FakeMirror(clock)


@pytest.fixture
def sign_event(did: str) -> Callable[..., MessageEnvelope]:
    """Sign an event into an envelope read back from its wire bytes."""
    counter = {"n": 0}

    def _sign(event, key: RootKey, message_did: Optional[str] = None, timestamp: Optional[datetime] = None):
        counter["n"] += 1
        message = DidMessage(
            operation=operation_for(event),
            did=message_did or did,
            event=event,
            timestamp=timestamp or BASE_TIME + timedelta(seconds=counter["n"]),
        )
        data = MessageEnvelope(message).sign(key.sign)
        return MessageEnvelope.from_json(data)

    return _sign


@pytest.fixture
def envelope_bytes(sign_event) -> Callable[..., bytes]:
    """Wire bytes of a signed event, as submitted to the topic."""

    def _bytes(event, key: RootKey, **kwargs) -> bytes:
        return sign_event(event, key, **kwargs).to_json().encode("utf-8")

    return _bytes
