"""
Market-related models for Kollider client.

Immutable data structures for products, tickers, order books and index
price history.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..utils import optional, price_levels, to_bool, to_float, to_int
from .orders import OpenOrder, OrderSide, parse_enum


class ChannelName(Enum):
    """Subscribable WebSocket channels."""
    INDEX_VALUES = "index_values"
    ORDERBOOK_LEVEL1 = "orderbook_level1"
    ORDERBOOK_LEVEL2 = "orderbook_level2"
    ORDERBOOK_LEVEL3 = "orderbook_level3"
    TICKER = "ticker"
    MATCHES = "matches"

    @classmethod
    def parse(cls, name: str) -> "ChannelName":
        """Parse a channel name case-insensitively."""
        lowered = name.lower() if isinstance(name, str) else name
        for member in cls:
            if member.value == lowered:
                return member
        valid = ", ".join(member.value for member in cls)
        raise ValueError(f"Given ChannelName '{name}' is unknown, valid are: {valid}")


class UpdateType(Enum):
    """Order book update kind."""
    DELTA = "delta"
    SNAPSHOT = "snapshot"


class OrderBookLevel(Enum):
    """Order book depth."""
    LEVEL2 = "Level2"
    LEVEL3 = "Level3"

    @classmethod
    def from_int(cls, level: int) -> "OrderBookLevel":
        if level == 2:
            return cls.LEVEL2
        if level == 3:
            return cls.LEVEL3
        raise ValueError("Order book level is either 2 or 3")

    def to_int(self) -> int:
        return 2 if self is OrderBookLevel.LEVEL2 else 3


class IntervalSize(Enum):
    """Time interval between points of index price history."""
    FIVE_MIN = "5m"
    FIFTEEN_MIN = "15m"
    ONE_HOUR = "1h"
    ONE_DAY = "1d"

    @classmethod
    def parse(cls, value: str) -> "IntervalSize":
        for member in cls:
            if member.value == value:
                return member
        raise ValueError(f"Given interval '{value}' is unknown, valid are: 5m, 15m, 1h, 1d")


@dataclass(frozen=True)
class Product:
    """Tradable product (GET /market/products)."""
    symbol: str
    contract_size: float
    max_leverage: float
    base_margin: float
    maintenance_margin: float
    is_inverse_priced: bool
    price_dp: float
    underlying_symbol: str
    last_price: float
    tick_size: float
    risk_limit: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        """Create Product from dictionary."""
        return cls(
            symbol=data["symbol"],
            contract_size=to_float(data["contract_size"]),
            max_leverage=to_float(data["max_leverage"]),
            base_margin=to_float(data["base_margin"]),
            maintenance_margin=to_float(data["maintenance_margin"]),
            is_inverse_priced=to_bool(data["is_inverse_priced"]),
            price_dp=to_float(data["price_dp"]),
            underlying_symbol=data["underlying_symbol"],
            last_price=to_float(data["last_price"]),
            tick_size=to_float(data["tick_size"]),
            risk_limit=to_float(data["risk_limit"]),
        )


@dataclass(frozen=True)
class Ticker:
    """Best bid/ask and last trade for a symbol."""
    symbol: str
    best_ask: float
    best_bid: float
    last_price: float
    last_quantity: int
    last_side: Optional[OrderSide]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ticker":
        """Create Ticker from dictionary."""
        return cls(
            symbol=data["symbol"],
            best_ask=to_float(data["best_ask"]),
            best_bid=to_float(data["best_bid"]),
            last_price=to_float(data["last_price"]),
            last_quantity=to_int(data["last_quantity"]),
            last_side=optional(lambda value: parse_enum(OrderSide, value), data.get("last_side")),
        )


@dataclass(frozen=True)
class OrderBookSnapshot:
    """
    Order book returned by GET /market/orderbook.

    Level 2 sides map price to aggregated quantity; level 3 sides are lists
    of ``(price, [OpenOrder, ...])`` pairs.
    """
    symbol: str
    level: OrderBookLevel
    seq_number: int
    asks: Any
    bids: Any

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderBookSnapshot":
        """Create OrderBookSnapshot, choosing the book shape by its level."""
        level = parse_enum(OrderBookLevel, data["level"])
        book = data["book"]
        if level is OrderBookLevel.LEVEL2:
            asks = price_levels(book["asks"])
            bids = price_levels(book["bids"])
        else:
            asks = _level3_side(book["asks"])
            bids = _level3_side(book["bids"])
        return cls(
            symbol=data["symbol"],
            level=level,
            seq_number=to_int(data["seq_number"]),
            asks=asks,
            bids=bids,
        )


def _level3_side(entries: List[Any]) -> List[Tuple[int, List[OpenOrder]]]:
    return [
        (to_int(price), [OpenOrder.from_dict(order) for order in orders])
        for price, orders in entries
    ]


@dataclass(frozen=True)
class HistoryItem:
    """One point of index price history."""
    time: int
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None


@dataclass(frozen=True)
class IndexHistory:
    """Response body of GET /market/historic_index_prices."""
    symbol: str
    data: List[HistoryItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexHistory":
        return cls(
            symbol=data["symbol"],
            data=[
                HistoryItem(
                    time=to_int(item["time"]),
                    min=optional(to_float, item.get("min")),
                    max=optional(to_float, item.get("max")),
                    mean=optional(to_float, item.get("mean")),
                )
                for item in data.get("data") or []
            ],
        )
