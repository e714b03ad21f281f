"""
Data models for Kollider client.

This package contains the data structures shared by the REST client and
the WebSocket session, following the state-first principle with immutable
data structures.
"""

from .config import ConnectionConfig, RetryConfig
from .orders import (
    OrderSide,
    MarginType,
    OrderType,
    SettlementType,
    OrderBody,
    OrderCreated,
    OpenOrder,
    OrderRejectReason,
    FillDetails,
    parse_enum,
)
from .account import (
    Position,
    Balances,
    AccountInfo,
    DepositBody,
    DepositResponse,
    WithdrawalBody,
    WithdrawalResponse,
)
from .market import (
    ChannelName,
    UpdateType,
    OrderBookLevel,
    IntervalSize,
    Product,
    Ticker,
    OrderBookSnapshot,
    HistoryItem,
    IndexHistory,
)

__all__ = [
    # Configuration
    "ConnectionConfig",
    "RetryConfig",
    # Orders
    "OrderSide",
    "MarginType",
    "OrderType",
    "SettlementType",
    "OrderBody",
    "OrderCreated",
    "OpenOrder",
    "OrderRejectReason",
    "FillDetails",
    "parse_enum",
    # Account
    "Position",
    "Balances",
    "AccountInfo",
    "DepositBody",
    "DepositResponse",
    "WithdrawalBody",
    "WithdrawalResponse",
    # Market
    "ChannelName",
    "UpdateType",
    "OrderBookLevel",
    "IntervalSize",
    "Product",
    "Ticker",
    "OrderBookSnapshot",
    "HistoryItem",
    "IndexHistory",
]
