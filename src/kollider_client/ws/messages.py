"""
Outbound WebSocket messages.

Every message serializes to a flat JSON object whose ``type`` field is a
literal unique to the message class. Field order on the wire follows the
dataclass declaration order, with ``type`` first.
"""

import json
import uuid
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar, Dict, Iterable, List, Optional

from ..models.market import ChannelName
from ..models.orders import (
    MarginType,
    OrderBody,
    OrderSide,
    OrderType,
    SettlementType,
)


def _wire_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_wire_value(item) for item in value]
    return value


@dataclass(frozen=True)
class OutboundMessage:
    """Base class for messages sent to the exchange."""
    TYPE: ClassVar[str] = ""

    def to_dict(self) -> Dict[str, Any]:
        """Flat wire representation with the discriminant first."""
        payload: Dict[str, Any] = {"type": self.TYPE}
        for item in fields(self):
            payload[item.name] = _wire_value(getattr(self, item.name))
        return payload


@dataclass(frozen=True)
class Subscribe(OutboundMessage):
    TYPE: ClassVar[str] = "subscribe"
    symbols: List[str] = field(default_factory=list)
    channels: List[ChannelName] = field(default_factory=list)


@dataclass(frozen=True)
class Unsubscribe(OutboundMessage):
    TYPE: ClassVar[str] = "unsubscribe"
    symbols: List[str] = field(default_factory=list)
    channels: List[ChannelName] = field(default_factory=list)


@dataclass(frozen=True)
class Authenticate(OutboundMessage):
    """Signature is BASE64(HMAC_SHA256(timestamp + "authentication", API_SECRET))."""
    TYPE: ClassVar[str] = "authenticate"
    token: str
    passphrase: str = field(repr=False)
    signature: str = field(repr=False)
    timestamp: str


@dataclass(frozen=True)
class PlaceOrder(OutboundMessage):
    TYPE: ClassVar[str] = "order"
    price: int
    quantity: int
    symbol: str
    leverage: int
    side: OrderSide
    margin_type: MarginType
    order_type: OrderType
    settlement_type: SettlementType
    ext_order_id: str

    @classmethod
    def new(
        cls,
        price: int,
        quantity: int,
        symbol: str,
        leverage: int,
        side: OrderSide,
        margin_type: MarginType = MarginType.ISOLATED,
        order_type: OrderType = OrderType.LIMIT,
        settlement_type: SettlementType = SettlementType.DELAYED,
        ext_order_id: Optional[str] = None,
    ) -> "PlaceOrder":
        return cls(
            price=price,
            quantity=quantity,
            symbol=symbol,
            leverage=leverage,
            side=side,
            margin_type=margin_type,
            order_type=order_type,
            settlement_type=settlement_type,
            ext_order_id=ext_order_id or new_ext_order_id(),
        )

    @classmethod
    def from_body(cls, body: OrderBody, ext_order_id: Optional[str] = None) -> "PlaceOrder":
        """
        Build an order message, generating a fresh ``ext_order_id`` unless given.

        The ext_order_id is the client-side correlation token echoed back in
        the exchange's order events.
        """
        return cls.new(
            price=body.price,
            quantity=body.quantity,
            symbol=body.symbol,
            leverage=body.leverage,
            side=body.side,
            margin_type=body.margin_type,
            order_type=body.order_type,
            settlement_type=body.settlement_type,
            ext_order_id=ext_order_id,
        )

    def to_body(self) -> OrderBody:
        """The order parameters without the correlation id."""
        return OrderBody(
            symbol=self.symbol,
            quantity=self.quantity,
            price=self.price,
            leverage=self.leverage,
            side=self.side,
            margin_type=self.margin_type,
            order_type=self.order_type,
            settlement_type=self.settlement_type,
        )


@dataclass(frozen=True)
class CancelOrder(OutboundMessage):
    TYPE: ClassVar[str] = "cancel_order"
    order_id: int
    symbol: str
    settlement_type: SettlementType = SettlementType.DELAYED


@dataclass(frozen=True)
class FetchOpenOrders(OutboundMessage):
    TYPE: ClassVar[str] = "fetch_open_orders"


@dataclass(frozen=True)
class FetchPositions(OutboundMessage):
    TYPE: ClassVar[str] = "fetch_positions"


@dataclass(frozen=True)
class FetchBalances(OutboundMessage):
    TYPE: ClassVar[str] = "fetch_balances"


@dataclass(frozen=True)
class GetTicker(OutboundMessage):
    TYPE: ClassVar[str] = "get_ticker"
    symbol: str


@dataclass(frozen=True)
class FetchTradableProducts(OutboundMessage):
    TYPE: ClassVar[str] = "fetch_tradable_products"


OUTBOUND_TYPES = {
    message_cls.TYPE: message_cls
    for message_cls in (
        Subscribe,
        Unsubscribe,
        Authenticate,
        PlaceOrder,
        CancelOrder,
        FetchOpenOrders,
        FetchPositions,
        FetchBalances,
        GetTicker,
        FetchTradableProducts,
    )
}


def new_ext_order_id() -> str:
    """Random client-side order id (lowercase hyphenated UUID4)."""
    return str(uuid.uuid4())


def encode(message: OutboundMessage) -> str:
    """Serialize an outbound message to compact JSON text."""
    return json.dumps(message.to_dict(), separators=(",", ":"))


def subscription_pairs(symbols: Iterable[str], channels: Iterable[ChannelName]) -> List[tuple]:
    """Cartesian product of symbols and channels as (symbol, channel) pairs."""
    return [(symbol, channel) for symbol in symbols for channel in channels]
