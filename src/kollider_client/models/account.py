"""
Account-related models for Kollider client.

Immutable data structures for account, balance, position and wallet
information.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..utils import float_map, optional, to_bool, to_float, to_int
from .orders import OrderSide, parse_enum


@dataclass(frozen=True)
class Position:
    """Open position held by the user for one symbol."""
    symbol: str
    side: Optional[OrderSide]
    quantity: float
    entry_price: float
    entry_value: float
    entry_time: Optional[int]
    bankruptcy_price: float
    liq_price: float
    mark_value: float
    leverage: float
    real_leverage: float
    funding: float
    rpnl: float
    upnl: float
    adl_score: float
    is_liquidating: bool
    position_id: str
    timestamp: int
    uid: int
    open_order_ids: List[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        """Create Position from dictionary."""
        return cls(
            symbol=data["symbol"],
            side=optional(lambda value: parse_enum(OrderSide, value), data.get("side")),
            quantity=to_float(data["quantity"]),
            entry_price=to_float(data["entry_price"]),
            entry_value=to_float(data["entry_value"]),
            entry_time=optional(to_int, data.get("entry_time")),
            bankruptcy_price=to_float(data["bankruptcy_price"]),
            liq_price=to_float(data["liq_price"]),
            mark_value=to_float(data["mark_value"]),
            leverage=to_float(data["leverage"]),
            real_leverage=to_float(data["real_leverage"]),
            funding=to_float(data["funding"]),
            rpnl=to_float(data["rpnl"]),
            upnl=to_float(data["upnl"]),
            adl_score=to_float(data["adl_score"]),
            is_liquidating=to_bool(data["is_liquidating"]),
            position_id=str(data["position_id"]),
            timestamp=to_int(data["timestamp"]),
            uid=to_int(data["uid"]),
            open_order_ids=[to_int(order_id) for order_id in data.get("open_order_ids") or []],
        )


@dataclass(frozen=True)
class Balances:
    """
    Account balances with per-symbol margins unwrapped to floats.

    ``cash`` is a plain amount on older API versions and a per-currency
    mapping (e.g. ``{"SAT": 1000.0}``) on newer ones.
    """
    cash: Union[float, Dict[str, float]]
    cross_margin: float
    isolated_margin: Dict[str, float]
    order_margin: Dict[str, float]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Balances":
        """Create Balances from dictionary."""
        cash = data["cash"]
        return cls(
            cash=float_map(cash) if isinstance(cash, dict) else to_float(cash),
            cross_margin=to_float(data["cross_margin"]),
            isolated_margin=float_map(data.get("isolated_margin") or {}),
            order_margin=float_map(data.get("order_margin") or {}),
        )


@dataclass(frozen=True)
class AccountInfo:
    """Account information (GET /user/account)."""
    username: str
    email: str
    user_type: str
    lnauth_enabled: bool
    validated_email: bool
    created_at_secs: int
    created_at_nanos: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountInfo":
        """Create AccountInfo from dictionary."""
        created = data.get("created_at") or {}
        return cls(
            username=data["username"],
            email=data["email"],
            user_type=data["user_type"],
            lnauth_enabled=to_bool(data["lnauth_enabled"]),
            validated_email=to_bool(data["validated_email"]),
            created_at_secs=to_int(created.get("secs_since_epoch", 0)),
            created_at_nanos=to_int(created.get("nanos_since_epoch", 0)),
        )


@dataclass(frozen=True)
class DepositBody:
    """Request body for POST /wallet/deposit."""
    network: str  # "Ln" or "BTC"
    amount: Optional[int] = None

    @classmethod
    def lightning(cls, amount: int) -> "DepositBody":
        """Deposit via Lightning invoice of ``amount`` sats."""
        return cls(network="Ln", amount=amount)

    @classmethod
    def bitcoin(cls) -> "DepositBody":
        """Deposit on-chain."""
        return cls(network="BTC")

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"type": self.network}
        if self.amount is not None:
            body["amount"] = self.amount
        return body


@dataclass(frozen=True)
class DepositResponse:
    """Response of POST /wallet/deposit: an invoice or a receiving address."""
    payment_request: Optional[str] = None
    receive_address: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DepositResponse":
        if "payment_request" not in data and "receive_address" not in data:
            raise ValueError(f"Unexpected deposit response: {data!r}")
        return cls(
            payment_request=data.get("payment_request"),
            receive_address=data.get("receive_address"),
        )


@dataclass(frozen=True)
class WithdrawalBody:
    """Request body for POST /wallet/withdrawal."""
    network: str  # "Ln" or "BTC"
    amount: int
    payment_request: Optional[str] = None
    receive_address: Optional[str] = None

    @classmethod
    def lightning(cls, payment_request: str, amount: int) -> "WithdrawalBody":
        return cls(network="Ln", amount=amount, payment_request=payment_request)

    @classmethod
    def bitcoin(cls, receive_address: str, amount: int) -> "WithdrawalBody":
        return cls(network="BTC", amount=amount, receive_address=receive_address)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"type": self.network}
        if self.network == "Ln":
            body["payment_request"] = self.payment_request
        else:
            body["receive_address"] = self.receive_address
        body["amount"] = self.amount
        return body


@dataclass(frozen=True)
class WithdrawalResponse:
    """Outcome of POST /wallet/withdrawal."""
    success: bool
    uid: int
    amount: int
    receipt: Optional[str] = None
    network: Optional[str] = None
    status: Optional[str] = None
    txid: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WithdrawalResponse":
        """Create WithdrawalResponse from an externally tagged response."""
        if "WithdrawalSuccess" in data:
            inner = data["WithdrawalSuccess"]
            return cls(
                success=True,
                uid=to_int(inner["uid"]),
                amount=to_int(inner["amount"]),
                receipt=inner.get("receipt"),
                network=inner.get("network"),
                status=inner.get("status"),
                txid=inner.get("txid"),
            )
        if "WithdrawalRejection" in data:
            inner = data["WithdrawalRejection"]
            return cls(
                success=False,
                uid=to_int(inner["uid"]),
                amount=to_int(inner["amount"]),
                reason=inner.get("reason"),
            )
        raise ValueError(f"Unexpected withdrawal response: {data!r}")
