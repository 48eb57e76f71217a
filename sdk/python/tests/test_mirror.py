"""Tests for the mirror node client and resolver configuration."""

import pytest
import requests

from hedera_did import MirrorNodeClient, ResolverConfig, TopicId, TransportError, ValidationError
from hedera_did.config import DEFAULT_MIRROR_NODE_URLS

BASE_URL = "https://testnet.mirrornode.hedera.com"
TOPIC = TopicId(0, 0, 1)


@pytest.fixture
def client(mirror, clock) -> MirrorNodeClient:
    return MirrorNodeClient(BASE_URL, session=mirror, timeout=5.0, retries=3, page_limit=25, sleep=clock.sleep)


class TestMirrorNodeClient:
    def test_first_request(self, client: MirrorNodeClient, mirror) -> None:
        """Messages are requested oldest first with the page limit."""
        list(client.iter_topic_messages(TOPIC))

        assert mirror.requests == [
            {
                "url": f"{BASE_URL}/api/v1/topics/0.0.1/messages",
                "params": {"limit": 25, "order": "asc"},
                "timeout": 5.0,
            }
        ]

    def test_incremental_request(self, client: MirrorNodeClient, mirror) -> None:
        list(client.iter_topic_messages(TOPIC, after="1700000000.000000002"))

        assert mirror.requests[0]["params"]["timestamp"] == "gt:1700000000.000000002"

    def test_follows_next_links(self, client: MirrorNodeClient, mirror) -> None:
        """Pagination follows links.next until it is empty."""
        next_link = "/api/v1/topics/0.0.1/messages?limit=25&timestamp=gt:1700000000.000000001"
        mirror.respond_next(payload={"messages": [{"message": "YQ=="}], "links": {"next": next_link}})
        mirror.respond_next(payload={"messages": [{"message": "Yg=="}], "links": {"next": None}})

        entries = list(client.iter_topic_messages(TOPIC))

        assert [entry["message"] for entry in entries] == ["YQ==", "Yg=="]
        assert mirror.requests[1]["url"] == f"{BASE_URL}{next_link}"
        assert mirror.requests[1]["params"] is None

    def test_absolute_next_link(self, client: MirrorNodeClient, mirror) -> None:
        next_link = "https://other.example.com/api/v1/topics/0.0.1/messages?page=2"
        mirror.respond_next(payload={"messages": [], "links": {"next": next_link}})

        list(client.iter_topic_messages(TOPIC))

        assert mirror.requests[1]["url"] == next_link

    def test_http_error(self, client: MirrorNodeClient, mirror) -> None:
        """Non-2xx responses raise with the status code."""
        mirror.respond_next(404, reason="Not Found")

        with pytest.raises(TransportError, match="404 Not Found") as exc_info:
            list(client.iter_topic_messages(TOPIC))

        assert exc_info.value.status_code == 404

    def test_retries_connection_errors(self, client: MirrorNodeClient, mirror, clock) -> None:
        mirror.raise_next(requests.ConnectionError("reset"))
        mirror.raise_next(requests.Timeout("slow"))

        assert list(client.iter_topic_messages(TOPIC)) == []
        assert len(mirror.requests) == 3
        assert clock.sleeps == [1, 2]

    def test_gives_up_after_retries(self, client: MirrorNodeClient, mirror) -> None:
        for _ in range(3):
            mirror.raise_next(requests.ConnectionError("down"))

        with pytest.raises(TransportError, match="down"):
            list(client.iter_topic_messages(TOPIC))

    def test_other_request_errors_not_retried(self, client: MirrorNodeClient, mirror) -> None:
        """Failures other than connection errors and timeouts surface at once."""
        mirror.raise_next(requests.TooManyRedirects("redirect loop"))

        with pytest.raises(TransportError, match="redirect loop"):
            list(client.iter_topic_messages(TOPIC))

        assert len(mirror.requests) == 1

    def test_invalid_url_wrapped(self, client: MirrorNodeClient, mirror) -> None:
        mirror.raise_next(requests.exceptions.InvalidURL("bad host"))

        with pytest.raises(TransportError, match="bad host"):
            list(client.iter_topic_messages(TOPIC))

    def test_should_stop_before_next_page(self, client: MirrorNodeClient, mirror) -> None:
        """No further page is requested once should_stop returns True."""
        next_link = "/api/v1/topics/0.0.1/messages?page=2"
        mirror.respond_next(payload={"messages": [{"message": "YQ=="}], "links": {"next": next_link}})
        stop = {"now": False}

        entries = []
        for entry in client.iter_topic_messages(TOPIC, should_stop=lambda: stop["now"]):
            entries.append(entry)
            stop["now"] = True

        assert [entry["message"] for entry in entries] == ["YQ=="]
        assert len(mirror.requests) == 1

    def test_body_not_json(self, client: MirrorNodeClient, mirror) -> None:
        mirror.respond_next(payload=ValueError("Expecting value"))

        with pytest.raises(TransportError, match="unexpected mirror node response"):
            list(client.iter_topic_messages(TOPIC))

    def test_body_wrong_shape(self, client: MirrorNodeClient, mirror) -> None:
        mirror.respond_next(payload={"messages": "none"})

        with pytest.raises(TransportError, match="unexpected mirror node response"):
            list(client.iter_topic_messages(TOPIC))


class TestResolverConfig:
    def test_defaults(self) -> None:
        config = ResolverConfig()

        assert config.timeout_ms == 30000
        assert config.poll_interval_ms == 1000
        assert config.hard_deadline_ms is None
        assert config.mirror_url_for("mainnet") == "https://mainnet-public.mirrornode.hedera.com"

    def test_default_mirrors_shared_and_read_only(self) -> None:
        first, second = ResolverConfig(), ResolverConfig()

        assert first.mirror_node_urls is DEFAULT_MIRROR_NODE_URLS
        assert second.mirror_node_urls["testnet"] == "https://testnet.mirrornode.hedera.com"
        with pytest.raises(TypeError):
            first.mirror_node_urls["testnet"] = "http://localhost:5551"

    def test_custom_mirror(self) -> None:
        config = ResolverConfig(mirror_node_urls={"testnet": "http://localhost:5551/"})

        assert config.mirror_url_for("testnet") == "http://localhost:5551"

    def test_unknown_network(self) -> None:
        with pytest.raises(ValidationError, match="no mirror node configured"):
            ResolverConfig(mirror_node_urls={}).mirror_url_for("testnet")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"timeout_ms": -1},
            {"poll_interval_ms": 0},
            {"hard_deadline_ms": 0},
            {"http_timeout": 0},
            {"retries": 0},
            {"page_limit": 101},
        ],
    )
    def test_invalid(self, kwargs) -> None:
        with pytest.raises(ValidationError):
            ResolverConfig(**kwargs)
