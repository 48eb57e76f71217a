"""Resolver configuration."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from hedera_did.did import NETWORK_MAINNET, NETWORK_PREVIEWNET, NETWORK_TESTNET
from hedera_did.errors import ValidationError

# Idle time after the last received message before resolution completes
DEFAULT_TIMEOUT_MS = 30000

DEFAULT_POLL_INTERVAL_MS = 1000

DEFAULT_MIRROR_NODE_URLS: Mapping[str, str] = MappingProxyType(
    {
        NETWORK_MAINNET: "https://mainnet-public.mirrornode.hedera.com",
        NETWORK_TESTNET: "https://testnet.mirrornode.hedera.com",
        NETWORK_PREVIEWNET: "https://previewnet.mirrornode.hedera.com",
    }
)


@dataclass(frozen=True)
class ResolverConfig:
    """Settings for one DID resolution.

    Attributes:
        timeout_ms: Idle time after the last message before finishing.
        poll_interval_ms: Delay between mirror node polls while waiting.
        hard_deadline_ms: Optional bound on the whole resolution.
        http_timeout: Per-request HTTP timeout in seconds.
        retries: Attempts per HTTP request on connection failures.
        page_limit: Messages requested per mirror node page.
        mirror_node_urls: Mirror node base URL per network.
    """

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    hard_deadline_ms: Optional[int] = None
    http_timeout: float = 15.0
    retries: int = 3
    page_limit: int = 100
    mirror_node_urls: Mapping[str, str] = field(default_factory=lambda: DEFAULT_MIRROR_NODE_URLS)

    def __post_init__(self) -> None:
        if self.timeout_ms < 0:
            raise ValidationError(f"timeout_ms must not be negative, got {self.timeout_ms}")
        if self.poll_interval_ms <= 0:
            raise ValidationError(f"poll_interval_ms must be positive, got {self.poll_interval_ms}")
        if self.hard_deadline_ms is not None and self.hard_deadline_ms <= 0:
            raise ValidationError(f"hard_deadline_ms must be positive, got {self.hard_deadline_ms}")
        if self.http_timeout <= 0:
            raise ValidationError(f"http_timeout must be positive, got {self.http_timeout}")
        if self.retries < 1:
            raise ValidationError(f"retries must be at least 1, got {self.retries}")
        if not 1 <= self.page_limit <= 100:
            raise ValidationError(f"page_limit must be between 1 and 100, got {self.page_limit}")

    def mirror_url_for(self, network: str) -> str:
        """Mirror node base URL for a network."""
        url = self.mirror_node_urls.get(network)
        if not url:
            raise ValidationError(f"no mirror node configured for network: {network}")
        return url.rstrip("/")
