"""
WebSocket session protocol layer for the Kollider exchange.
"""

from .inbound import InboundMessage, UnknownMessage, decode
from .matchers import (
    BalancesMatcher,
    CancelMatcher,
    Matched,
    OpenOrdersMatcher,
    OrderMatcher,
    PositionsMatcher,
    ResponseMatcher,
)
from .messages import OutboundMessage, encode
from .session import KolliderSession, SessionState
from .subscriptions import SubscriptionMultiplexer
from .transport import WebSocketTransport

__all__ = [
    "InboundMessage",
    "UnknownMessage",
    "decode",
    "OutboundMessage",
    "encode",
    "Matched",
    "ResponseMatcher",
    "BalancesMatcher",
    "PositionsMatcher",
    "OpenOrdersMatcher",
    "OrderMatcher",
    "CancelMatcher",
    "KolliderSession",
    "SessionState",
    "SubscriptionMultiplexer",
    "WebSocketTransport",
]
