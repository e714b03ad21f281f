"""
Order-related models for Kollider client.

Immutable data structures for order management.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..utils import optional, to_bool, to_float, to_int


class OrderSide(Enum):
    """Order side enumeration."""
    ASK = "Ask"
    BID = "Bid"


class MarginType(Enum):
    """Margin type enumeration."""
    ISOLATED = "Isolated"


class OrderType(Enum):
    """Order type enumeration."""
    LIMIT = "Limit"


class SettlementType(Enum):
    """Settlement type enumeration."""
    INSTANT = "Instant"
    DELAYED = "Delayed"


def parse_enum(enum_cls, value: Any):
    """Look up an enum member by wire value or (case-insensitively) by name."""
    if isinstance(value, enum_cls):
        return value
    for member in enum_cls:
        if member.value == value:
            return member
    if isinstance(value, str):
        for member in enum_cls:
            if member.value.lower() == value.lower() or member.name.lower() == value.lower():
                return member
    valid = ", ".join(member.value for member in enum_cls)
    raise ValueError(f"Unknown {enum_cls.__name__} '{value}', valid are: {valid}")


@dataclass(frozen=True)
class OrderBody:
    """Order request data structure, shared by REST and WebSocket placement."""
    symbol: str
    quantity: int
    price: int
    leverage: int
    side: OrderSide
    margin_type: MarginType = MarginType.ISOLATED
    order_type: OrderType = OrderType.LIMIT
    settlement_type: SettlementType = SettlementType.DELAYED

    def to_dict(self) -> Dict[str, Any]:
        """Serialize as the body of POST /orders."""
        return {
            "symbol": self.symbol,
            "quantity": self.quantity,
            "leverage": self.leverage,
            "side": self.side.value,
            "margin_type": self.margin_type.value,
            "order_type": self.order_type.value,
            "settlement_type": self.settlement_type.value,
            "price": self.price,
        }


@dataclass(frozen=True)
class OrderCreated:
    """
    Order accepted by the exchange, combining request inputs and assigned ids.

    ``uid`` is the account id from the ``received`` echo for the order. When
    the order opens without such an echo it is None; it is never filled
    with ``order_id``, which identifies the order and not the account.
    """
    timestamp: int
    order_id: int
    ext_order_id: str
    uid: Optional[int]
    symbol: str
    quantity: int
    order_type: OrderType
    price: int
    leverage: int


@dataclass(frozen=True)
class OpenOrder:
    """Resting order as reported by open order listings and level 3 books."""
    ext_order_id: str
    filled: float
    leverage: int
    margin_type: MarginType
    order_id: int
    order_type: OrderType
    price: int
    quantity: int
    settlement_type: SettlementType
    side: OrderSide
    symbol: str
    timestamp: int
    uid: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OpenOrder":
        """Create OpenOrder from dictionary."""
        return cls(
            ext_order_id=data["ext_order_id"],
            filled=to_float(data["filled"]),
            leverage=to_int(data["leverage"]),
            margin_type=parse_enum(MarginType, data["margin_type"]),
            order_id=to_int(data["order_id"]),
            order_type=parse_enum(OrderType, data["order_type"]),
            price=to_int(data["price"]),
            quantity=to_int(data["quantity"]),
            settlement_type=parse_enum(SettlementType, data["settlement_type"]),
            side=parse_enum(OrderSide, data["side"]),
            symbol=data["symbol"],
            timestamp=to_int(data["timestamp"]),
            uid=to_int(data["uid"]),
        )


@dataclass(frozen=True)
class OrderRejectReason:
    """
    Structured reason attached to an order rejection.

    The exchange sends either a bare string ("InsufficientBalance") or an
    object with a single key ({"InvalidPrice": "..."}); ``kind`` holds the
    string or key and ``detail`` the nested value, if any.
    """
    kind: str
    detail: Any = None

    @classmethod
    def parse(cls, value: Any) -> "OrderRejectReason":
        """Create OrderRejectReason from its wire representation."""
        if isinstance(value, str):
            return cls(kind=value)
        if isinstance(value, dict) and len(value) == 1:
            kind, detail = next(iter(value.items()))
            return cls(kind=str(kind), detail=detail)
        if isinstance(value, dict) and "reason" in value:
            return cls(kind=str(value["reason"]), detail=value)
        raise ValueError(f"Unsupported rejection reason: {value!r}")

    def __str__(self) -> str:
        if self.detail is None:
            return self.kind
        return f"{self.kind}: {self.detail}"


@dataclass(frozen=True)
class FillDetails:
    """Historic fill of a user order (GET /user/fills)."""
    order_id: int
    symbol: str
    price: float
    quantity: float
    side: OrderSide
    is_maker: Optional[bool] = None
    ext_order_id: Optional[str] = None
    leverage: Optional[float] = None
    timestamp: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FillDetails":
        """Create FillDetails from dictionary."""
        return cls(
            order_id=to_int(data["order_id"]),
            symbol=data["symbol"],
            price=to_float(data["price"]),
            quantity=to_float(data["quantity"]),
            side=parse_enum(OrderSide, data["side"]),
            is_maker=optional(to_bool, data.get("is_maker")),
            ext_order_id=data.get("ext_order_id"),
            leverage=optional(to_float, data.get("leverage")),
            timestamp=optional(to_int, data.get("timestamp")),
        )
