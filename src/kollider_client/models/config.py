"""
Configuration models for Kollider client.

Immutable configuration structures following state-first design.
"""

from dataclasses import dataclass
from typing import Optional

from ..auth import KolliderCredentials
from ..constants import (
    DEFAULT_TIMEOUT,
    KOLLIDER_MAINNET,
    KOLLIDER_TESTNET,
    KOLLIDER_TESTNET_WEBSOCKET,
    KOLLIDER_WEBSOCKET,
    ONESHOT_TIMEOUT,
)
from ..utils import validate_url


@dataclass(frozen=True)
class ConnectionConfig:
    """Configuration for Kollider client connections."""
    base_url: str = KOLLIDER_MAINNET
    ws_url: str = KOLLIDER_WEBSOCKET
    timeout: float = DEFAULT_TIMEOUT
    request_timeout: float = ONESHOT_TIMEOUT
    credentials: Optional[KolliderCredentials] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not validate_url(self.base_url):
            raise ValueError("Base URL must be a valid HTTP/HTTPS URL")
        if not validate_url(self.ws_url, schemes=("ws://", "wss://")):
            raise ValueError("WebSocket URL must be a valid WS/WSS URL")
        if self.timeout <= 0 or self.request_timeout <= 0:
            raise ValueError("Timeouts must be positive")

    @classmethod
    def mainnet(cls, credentials: Optional[KolliderCredentials] = None) -> "ConnectionConfig":
        return cls(credentials=credentials)

    @classmethod
    def testnet(cls, credentials: Optional[KolliderCredentials] = None) -> "ConnectionConfig":
        return cls(
            base_url=KOLLIDER_TESTNET,
            ws_url=KOLLIDER_TESTNET_WEBSOCKET,
            credentials=credentials,
        )


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for request retry behavior."""
    max_retries: int = 3
    retry_delay: float = 1.0
    backoff_factor: float = 2.0
    retry_on_status: tuple[int, ...] = (500, 502, 503, 504)
