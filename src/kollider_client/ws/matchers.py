"""
Response matchers for oneshot requests.

A matcher inspects every inbound message received while its request is
pending. ``try_match`` returns ``None`` for messages that are not the reply,
or a ``Matched`` carrying either the extracted value or a typed error.
"""

from dataclasses import dataclass
from typing import Any, Optional

from ..errors import CancelFailedError, OrderRejectedError
from ..models.orders import OrderCreated
from .inbound import (
    BalancesReply,
    Error,
    InboundMessage,
    Open,
    OpenOrdersReply,
    OrderNotFound,
    OrderRejection,
    PositionsReply,
    Received,
    Success,
)
from .messages import PlaceOrder


@dataclass(frozen=True)
class Matched:
    """Outcome of a matched reply: a value or an error to raise in the caller."""
    value: Any = None
    error: Optional[BaseException] = None

    def result(self) -> Any:
        if self.error is not None:
            raise self.error
        return self.value


class ResponseMatcher:
    """Decides whether an inbound message resolves a pending request."""

    def try_match(self, message: InboundMessage) -> Optional[Matched]:
        raise NotImplementedError


class BalancesMatcher(ResponseMatcher):
    def try_match(self, message: InboundMessage) -> Optional[Matched]:
        if isinstance(message, BalancesReply):
            return Matched(value=message.balances)
        return None


class PositionsMatcher(ResponseMatcher):
    def try_match(self, message: InboundMessage) -> Optional[Matched]:
        if isinstance(message, PositionsReply):
            return Matched(value=message.positions)
        return None


class OpenOrdersMatcher(ResponseMatcher):
    def try_match(self, message: InboundMessage) -> Optional[Matched]:
        if isinstance(message, OpenOrdersReply):
            return Matched(value=message.open_orders)
        return None


class OrderMatcher(ResponseMatcher):
    """
    Waits for the exchange to open or reject a placed order.

    Replies are correlated through the order's ``ext_order_id``. A
    ``received`` echo for the same order is remembered for its ``uid``;
    rejections without an ``ext_order_id`` are attributed to the pending order.
    """

    def __init__(self, order: PlaceOrder):
        self.order = order
        self._uid: Optional[int] = None

    def try_match(self, message: InboundMessage) -> Optional[Matched]:
        if isinstance(message, Received) and message.ext_order_id == self.order.ext_order_id:
            self._uid = message.uid
            return None

        if isinstance(message, Open) and message.ext_order_id == self.order.ext_order_id:
            return Matched(value=OrderCreated(
                timestamp=message.timestamp,
                order_id=message.order_id,
                ext_order_id=message.ext_order_id,
                uid=self._uid,
                symbol=message.symbol,
                quantity=message.quantity,
                order_type=message.order_type,
                price=message.price,
                leverage=message.leverage,
            ))

        if isinstance(message, OrderRejection) and message.ext_order_id in (None, self.order.ext_order_id):
            return Matched(error=OrderRejectedError(message.order_id, message.reason))

        return None


class CancelMatcher(ResponseMatcher):
    """Waits for the outcome of a cancel request; resolves with the success reason."""

    def __init__(self, order_id: int, symbol: str):
        self.order_id = order_id
        self.symbol = symbol

    def try_match(self, message: InboundMessage) -> Optional[Matched]:
        if isinstance(message, Success):
            return Matched(value=message.reason)
        if isinstance(message, Error):
            return Matched(error=CancelFailedError(self.order_id, self.symbol, message.reason))
        if isinstance(message, OrderNotFound) and message.order_id == self.order_id:
            return Matched(error=CancelFailedError(self.order_id, self.symbol, "Order not found"))
        return None
