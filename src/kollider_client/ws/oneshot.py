"""
Oneshot helpers: open a session, authenticate, perform one call, close.
"""

from typing import Dict, List, Optional

from ..auth import KolliderCredentials
from ..constants import DEFAULT_WS_URL, ONESHOT_TIMEOUT
from ..models.account import Balances, Position
from ..models.orders import OpenOrder, OrderBody, OrderCreated, SettlementType
from ..monitoring import EventSink
from .session import KolliderSession


def _session(
    credentials: KolliderCredentials,
    url: str,
    sink: Optional[EventSink],
    timeout: float,
) -> KolliderSession:
    return KolliderSession(credentials, url=url, sink=sink, request_timeout=timeout)


async def fetch_balances(
    credentials: KolliderCredentials,
    url: str = DEFAULT_WS_URL,
    sink: Optional[EventSink] = None,
    timeout: float = ONESHOT_TIMEOUT,
) -> Balances:
    async with _session(credentials, url, sink, timeout) as session:
        return await session.fetch_balances()


async def fetch_positions(
    credentials: KolliderCredentials,
    url: str = DEFAULT_WS_URL,
    sink: Optional[EventSink] = None,
    timeout: float = ONESHOT_TIMEOUT,
) -> Dict[str, Position]:
    async with _session(credentials, url, sink, timeout) as session:
        return await session.fetch_positions()


async def fetch_open_orders(
    credentials: KolliderCredentials,
    url: str = DEFAULT_WS_URL,
    sink: Optional[EventSink] = None,
    timeout: float = ONESHOT_TIMEOUT,
) -> Dict[str, List[OpenOrder]]:
    async with _session(credentials, url, sink, timeout) as session:
        return await session.fetch_open_orders()


async def open_order(
    credentials: KolliderCredentials,
    body: OrderBody,
    url: str = DEFAULT_WS_URL,
    sink: Optional[EventSink] = None,
    timeout: float = ONESHOT_TIMEOUT,
) -> OrderCreated:
    """Place an order over a fresh session; a random ext_order_id is generated."""
    async with _session(credentials, url, sink, timeout) as session:
        return await session.place_order(body)


async def cancel_order(
    credentials: KolliderCredentials,
    order_id: int,
    symbol: str,
    settlement_type: SettlementType = SettlementType.DELAYED,
    url: str = DEFAULT_WS_URL,
    sink: Optional[EventSink] = None,
    timeout: float = ONESHOT_TIMEOUT,
) -> str:
    async with _session(credentials, url, sink, timeout) as session:
        return await session.cancel_order(order_id, symbol, settlement_type)
