"""
Inbound WebSocket messages and the ordered-attempt decoder.

The exchange sends two shapes:

* the handshake reply, a bare ``{"type": "authenticate", "message": ...}``;
* domain messages wrapped as ``{"type": <tag>, "data": <payload>, "seq": <n>}``.

``decode`` tries the bare control shape first, then the tagged envelope by
its ``type``, and finally keeps a well-formed object with an unfamiliar
``type`` as ``UnknownMessage``. Anything else raises ``DecodeError``.
"""

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Union

from ..constants import AUTH_SUCCESS_MESSAGE
from ..errors import DecodeError
from ..models.account import Balances, Position
from ..models.market import Ticker, UpdateType
from ..models.orders import (
    MarginType,
    OpenOrder,
    OrderRejectReason,
    OrderSide,
    OrderType,
    SettlementType,
    parse_enum,
)
from ..utils import first_present, int_map, optional, price_levels, to_bool, to_float, to_int


# Listener keys used by the subscription multiplexer
CHANNEL_INDEX_VALUES = "index_values"
CHANNEL_ORDERBOOK = "orderbook_level2"
CHANNEL_TICKER = "ticker"
CHANNEL_MATCHES = "matches"
CHANNEL_FILLS = "fills"
CHANNEL_ACCOUNT = "account"


def _text(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError(f"Expected a string, got {type(value).__name__}")
    return value


def _object(value: Any) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"Expected an object, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class InboundMessage:
    """Base class for decoded server messages."""
    TYPE: ClassVar[str] = ""
    CHANNEL: ClassVar[str] = CHANNEL_ACCOUNT

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "InboundMessage":
        raise NotImplementedError


@dataclass(frozen=True)
class AuthenticateReply(InboundMessage):
    """Handshake outcome; ``message == "success"`` completes authentication."""
    TYPE: ClassVar[str] = "authenticate"
    message: str
    seq: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.message == AUTH_SUCCESS_MESSAGE

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "AuthenticateReply":
        return cls(message=_text(_object(data)["message"]), seq=seq)


@dataclass(frozen=True)
class IndexValues(InboundMessage):
    TYPE: ClassVar[str] = "index_values"
    CHANNEL: ClassVar[str] = CHANNEL_INDEX_VALUES
    denom: str
    symbol: str
    value: float
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "IndexValues":
        data = _object(data)
        return cls(
            denom=_text(data["denom"]),
            symbol=_text(data["symbol"]),
            value=to_float(data["value"]),
            seq=seq,
        )


@dataclass(frozen=True)
class OrderBookLevel2Delta(InboundMessage):
    """Level 2 book update; sides map integer price to aggregated quantity."""
    TYPE: ClassVar[str] = "level2state"
    CHANNEL: ClassVar[str] = CHANNEL_ORDERBOOK
    symbol: str
    seq_number: int
    update_type: UpdateType
    asks: Dict[int, int] = field(default_factory=dict)
    bids: Dict[int, int] = field(default_factory=dict)
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "OrderBookLevel2Delta":
        data = _object(data)
        return cls(
            symbol=_text(data["symbol"]),
            seq_number=to_int(data["seq_number"]),
            update_type=parse_enum(UpdateType, data["update_type"]),
            asks=price_levels(data.get("asks") or {}),
            bids=price_levels(data.get("bids") or {}),
            seq=seq,
        )


@dataclass(frozen=True)
class Success(InboundMessage):
    TYPE: ClassVar[str] = "success"
    reason: str
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "Success":
        return cls(reason=_text(data), seq=seq)


@dataclass(frozen=True)
class Error(InboundMessage):
    TYPE: ClassVar[str] = "error"
    reason: str
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "Error":
        return cls(reason=_text(data), seq=seq)


@dataclass(frozen=True)
class Received(InboundMessage):
    """Order echoed back as received by the matching engine."""
    TYPE: ClassVar[str] = "received"
    uid: int
    order_id: int
    price: int
    quantity: int
    symbol: str
    leverage: int
    order_type: OrderType
    ext_order_id: str
    timestamp: int
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "Received":
        data = _object(data)
        return cls(
            uid=to_int(data["uid"]),
            order_id=to_int(data["order_id"]),
            price=to_int(data["price"]),
            quantity=to_int(data["quantity"]),
            symbol=_text(data["symbol"]),
            leverage=to_int(data["leverage"]),
            order_type=parse_enum(OrderType, data["order_type"]),
            ext_order_id=_text(data["ext_order_id"]),
            timestamp=to_int(data["timestamp"]),
            seq=seq,
        )


@dataclass(frozen=True)
class Open(InboundMessage):
    """Order accepted and resting on the book."""
    TYPE: ClassVar[str] = "open"
    order_id: int
    price: int
    quantity: int
    symbol: str
    leverage: int
    side: OrderSide
    margin_type: MarginType
    order_type: OrderType
    settlement_type: SettlementType
    ext_order_id: str
    timestamp: int
    filled: int = 0
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "Open":
        data = _object(data)
        return cls(
            order_id=to_int(data["order_id"]),
            price=to_int(data["price"]),
            quantity=to_int(data["quantity"]),
            symbol=_text(data["symbol"]),
            leverage=to_int(data["leverage"]),
            side=parse_enum(OrderSide, data["side"]),
            margin_type=parse_enum(MarginType, data["margin_type"]),
            order_type=parse_enum(OrderType, data["order_type"]),
            settlement_type=parse_enum(SettlementType, data["settlement_type"]),
            ext_order_id=_text(data["ext_order_id"]),
            timestamp=to_int(data["timestamp"]),
            filled=to_int(data.get("filled", 0)),
            seq=seq,
        )


@dataclass(frozen=True)
class Done(InboundMessage):
    """Order reached a terminal state (filled, cancelled, ...)."""
    TYPE: ClassVar[str] = "done"
    order_id: int
    symbol: str
    reason: str
    timestamp: int
    order_type: Optional[OrderType] = None
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "Done":
        data = _object(data)
        # the exchange spells the key "orde_type"
        raw_type = first_present(data, "order_type", "orde_type")
        return cls(
            order_id=to_int(data["order_id"]),
            symbol=_text(data["symbol"]),
            reason=_text(data["reason"]),
            timestamp=to_int(data["timestamp"]),
            order_type=optional(lambda value: parse_enum(OrderType, value), raw_type),
            seq=seq,
        )


@dataclass(frozen=True)
class OrderNotFound(InboundMessage):
    TYPE: ClassVar[str] = "order_not_found"
    order_id: int
    symbol: str
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "OrderNotFound":
        data = _object(data)
        return cls(order_id=to_int(data["order_id"]), symbol=_text(data["symbol"]), seq=seq)


@dataclass(frozen=True)
class OrderRejection(InboundMessage):
    """New order refused by the exchange, with a structured reason."""
    TYPE: ClassVar[str] = "order_rejection"
    order_id: Optional[int]
    reason: OrderRejectReason
    symbol: Optional[str] = None
    ext_order_id: Optional[str] = None
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "OrderRejection":
        data = _object(data)
        return cls(
            order_id=optional(to_int, data.get("order_id")),
            reason=OrderRejectReason.parse(data["reason"]),
            symbol=optional(_text, data.get("symbol")),
            ext_order_id=optional(_text, data.get("ext_order_id")),
            seq=seq,
        )


@dataclass(frozen=True)
class Fill(InboundMessage):
    """Execution of one of the user's orders."""
    TYPE: ClassVar[str] = "fill"
    CHANNEL: ClassVar[str] = CHANNEL_FILLS
    order_id: int
    symbol: str
    price: float
    quantity: float
    side: OrderSide
    leverage: Optional[float] = None
    ext_order_id: Optional[str] = None
    is_maker: Optional[bool] = None
    timestamp: Optional[int] = None
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "Fill":
        data = _object(data)
        return cls(
            order_id=to_int(data["order_id"]),
            symbol=_text(data["symbol"]),
            price=to_float(data["price"]),
            quantity=to_float(data["quantity"]),
            side=parse_enum(OrderSide, data["side"]),
            leverage=optional(to_float, data.get("leverage")),
            ext_order_id=optional(_text, data.get("ext_order_id")),
            is_maker=optional(to_bool, data.get("is_maker")),
            timestamp=optional(to_int, data.get("timestamp")),
            seq=seq,
        )


@dataclass(frozen=True)
class Trade(InboundMessage):
    """Trade on the matches channel or a settled trade of the user."""
    TYPE: ClassVar[str] = "trade"
    CHANNEL: ClassVar[str] = CHANNEL_MATCHES
    order_id: int
    symbol: str
    price: float
    quantity: float
    side: OrderSide
    leverage: Optional[float] = None
    rpnl: Optional[float] = None
    fees: Optional[float] = None
    ext_order_id: Optional[str] = None
    is_maker: Optional[bool] = None
    margin_type: Optional[MarginType] = None
    settlement_type: Optional[SettlementType] = None
    timestamp: Optional[int] = None
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "Trade":
        data = _object(data)
        return cls(
            order_id=to_int(data["order_id"]),
            symbol=_text(data["symbol"]),
            price=to_float(data["price"]),
            quantity=to_float(data["quantity"]),
            side=parse_enum(OrderSide, data["side"]),
            leverage=optional(to_float, data.get("leverage")),
            rpnl=optional(to_float, data.get("rpnl")),
            fees=optional(to_float, data.get("fees")),
            ext_order_id=optional(_text, data.get("ext_order_id")),
            is_maker=optional(to_bool, data.get("is_maker")),
            margin_type=optional(lambda value: parse_enum(MarginType, value), data.get("margin_type")),
            settlement_type=optional(
                lambda value: parse_enum(SettlementType, value), data.get("settlement_type")
            ),
            timestamp=optional(to_int, data.get("timestamp")),
            seq=seq,
        )


@dataclass(frozen=True)
class TickerUpdate(InboundMessage):
    TYPE: ClassVar[str] = "ticker"
    CHANNEL: ClassVar[str] = CHANNEL_TICKER
    ticker: Ticker
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "TickerUpdate":
        return cls(ticker=Ticker.from_dict(_object(data)), seq=seq)


@dataclass(frozen=True)
class BalancesReply(InboundMessage):
    TYPE: ClassVar[str] = "balances"
    balances: Balances
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "BalancesReply":
        return cls(balances=Balances.from_dict(_object(data)), seq=seq)


@dataclass(frozen=True)
class PositionsReply(InboundMessage):
    TYPE: ClassVar[str] = "positions"
    positions: Dict[str, Position] = field(default_factory=dict)
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "PositionsReply":
        positions = _object(_object(data)["positions"])
        return cls(
            positions={symbol: Position.from_dict(_object(item)) for symbol, item in positions.items()},
            seq=seq,
        )


@dataclass(frozen=True)
class OpenOrdersReply(InboundMessage):
    TYPE: ClassVar[str] = "open_orders"
    open_orders: Dict[str, List[OpenOrder]] = field(default_factory=dict)
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "OpenOrdersReply":
        open_orders = _object(_object(data)["open_orders"])
        return cls(
            open_orders={
                symbol: [OpenOrder.from_dict(_object(order)) for order in orders]
                for symbol, orders in open_orders.items()
            },
            seq=seq,
        )


@dataclass(frozen=True)
class AdvancedOrders(InboundMessage):
    """Advanced (conditional) orders; payload kept as received."""
    TYPE: ClassVar[str] = "user_advanced_orders"
    orders: Dict[str, Any] = field(default_factory=dict)
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "AdvancedOrders":
        data = _object(data)
        return cls(orders=_object(data.get("orders") or {}), seq=seq)


@dataclass(frozen=True)
class WithdrawalLimitInfo(InboundMessage):
    TYPE: ClassVar[str] = "withdrawal_limit_info"
    daily_withdrawal_limits: Dict[str, int] = field(default_factory=dict)
    daily_withdrawal_volumes: Dict[str, int] = field(default_factory=dict)
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "WithdrawalLimitInfo":
        data = _object(data)
        return cls(
            daily_withdrawal_limits=int_map(data["daily_withdrawal_limits"]),
            daily_withdrawal_volumes=int_map(data["daily_withdrawal_volumes"]),
            seq=seq,
        )


@dataclass(frozen=True)
class SettlementRequest(InboundMessage):
    """Request to settle funds, e.g. through an LNURL withdrawal."""
    TYPE: ClassVar[str] = "settlement_request"
    amount: Optional[int] = None
    lnurl: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "SettlementRequest":
        data = _object(data)
        return cls(
            amount=optional(to_int, data.get("amount")),
            lnurl=optional(_text, data.get("lnurl")),
            extra={key: value for key, value in data.items() if key not in ("amount", "lnurl")},
            seq=seq,
        )


@dataclass(frozen=True)
class ChangeLeverageInfo(InboundMessage):
    TYPE: ClassVar[str] = "change_leverage_info"
    symbol: str
    leverage: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "ChangeLeverageInfo":
        data = _object(data)
        return cls(
            symbol=_text(data["symbol"]),
            leverage=optional(to_float, data.get("leverage")),
            extra={key: value for key, value in data.items() if key not in ("symbol", "leverage")},
            seq=seq,
        )


@dataclass(frozen=True)
class ChangeLeverageSuccess(InboundMessage):
    TYPE: ClassVar[str] = "change_leverage_success"
    symbol: str
    seq: Optional[int] = None

    @classmethod
    def from_data(cls, data: Any, seq: Optional[int] = None) -> "ChangeLeverageSuccess":
        return cls(symbol=_text(_object(data)["symbol"]), seq=seq)


@dataclass(frozen=True)
class UnknownMessage(InboundMessage):
    """Well-formed frame with a ``type`` this client does not know."""
    type_name: str
    raw: Dict[str, Any] = field(default_factory=dict)
    seq: Optional[int] = None


INBOUND_TYPES = {
    message_cls.TYPE: message_cls
    for message_cls in (
        AuthenticateReply,
        IndexValues,
        OrderBookLevel2Delta,
        Success,
        Error,
        Received,
        Open,
        Done,
        OrderNotFound,
        OrderRejection,
        Fill,
        Trade,
        TickerUpdate,
        BalancesReply,
        PositionsReply,
        OpenOrdersReply,
        AdvancedOrders,
        WithdrawalLimitInfo,
        SettlementRequest,
        ChangeLeverageInfo,
        ChangeLeverageSuccess,
    )
}


def decode(text: Union[str, bytes]) -> InboundMessage:
    """
    Decode one text frame.

    Raises:
        DecodeError: the frame is not JSON, not an object, has no ``type``,
            or carries a known ``type`` whose payload does not fit.
    """
    try:
        raw = json.loads(text)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Malformed JSON frame: {e}", text) from e

    if not isinstance(raw, dict):
        raise DecodeError("Frame is not a JSON object", text)

    kind = raw.get("type")
    if not isinstance(kind, str):
        raise DecodeError("Frame has no type discriminant", text)

    try:
        seq = optional(to_int, raw.get("seq"))

        # Bare handshake reply, no data envelope
        if kind == AuthenticateReply.TYPE and "message" in raw:
            return AuthenticateReply(message=_text(raw["message"]), seq=seq)

        message_cls = INBOUND_TYPES.get(kind)
        if message_cls is None:
            return UnknownMessage(type_name=kind, raw=raw, seq=seq)

        if "data" not in raw:
            raise DecodeError(f"Frame '{kind}' has no data payload", text)
        return message_cls.from_data(raw["data"], seq)
    except DecodeError:
        raise
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise DecodeError(f"Invalid '{kind}' payload: {e!r}", text) from e
