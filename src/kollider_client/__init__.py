"""
Kollider Client - Python client for the Kollider derivatives exchange API.

This package provides an asyncio REST client and an authenticated
WebSocket session with correlated request/response operations and
channel subscriptions.
"""

from .auth import KolliderCredentials, KolliderSigner, sign
from .client import KolliderClient, create_kollider_client
from .errors import (
    AuthenticationError,
    CancelFailedError,
    CredentialsError,
    DecodeError,
    KolliderConnectionError,
    KolliderError,
    NoResponseError,
    OrderRejectedError,
)
from .http_client import HttpClientError
from .models import (
    # Configuration
    ConnectionConfig,
    RetryConfig,
    # Orders
    OrderSide,
    MarginType,
    OrderType,
    SettlementType,
    OrderBody,
    OrderCreated,
    OpenOrder,
    # Account
    Balances,
    Position,
    AccountInfo,
    DepositBody,
    WithdrawalBody,
    # Market
    ChannelName,
    OrderBookLevel,
    IntervalSize,
)
from .monitoring import EventSink, SessionMonitor
from .ws import KolliderSession, SessionState, SubscriptionMultiplexer, WebSocketTransport

__all__ = [
    # Main Clients
    "KolliderClient",
    "create_kollider_client",
    "KolliderSession",
    "SessionState",
    "SubscriptionMultiplexer",
    "WebSocketTransport",
    # Authentication
    "KolliderCredentials",
    "KolliderSigner",
    "sign",
    # Errors
    "KolliderError",
    "KolliderConnectionError",
    "AuthenticationError",
    "CredentialsError",
    "DecodeError",
    "NoResponseError",
    "OrderRejectedError",
    "CancelFailedError",
    "HttpClientError",
    # Models
    "ConnectionConfig",
    "RetryConfig",
    "OrderSide",
    "MarginType",
    "OrderType",
    "SettlementType",
    "OrderBody",
    "OrderCreated",
    "OpenOrder",
    "Balances",
    "Position",
    "AccountInfo",
    "DepositBody",
    "WithdrawalBody",
    "ChannelName",
    "OrderBookLevel",
    "IntervalSize",
    # Monitoring
    "EventSink",
    "SessionMonitor",
]
