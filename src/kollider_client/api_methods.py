"""
API method implementations for Kollider client.

Contains the REST endpoint implementations organized by functional area.
Each method executes one request and converts the response into models.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from aiohttp import ClientSession

from .http_client import HttpClient
from .models.account import (
    AccountInfo,
    DepositBody,
    DepositResponse,
    WithdrawalBody,
    WithdrawalResponse,
)
from .models.market import IndexHistory, IntervalSize, OrderBookLevel, OrderBookSnapshot, Product, Ticker
from .models.orders import FillDetails, OpenOrder, OrderBody
from .utils import sanitize_dict, to_unix_seconds, validate_symbol

logger = logging.getLogger(__name__)

Moment = Union[datetime, int, float]


def _require_symbol(symbol: str) -> str:
    if not validate_symbol(symbol):
        raise ValueError(f"Invalid symbol: {symbol!r}")
    return symbol


def _time_range(symbol: str, start: Moment, end: Moment, limit: int) -> Dict[str, Any]:
    if limit <= 0:
        raise ValueError("Limit must be positive")
    return {
        "symbol": _require_symbol(symbol),
        "start": to_unix_seconds(start),
        "end": to_unix_seconds(end),
        "limit": limit,
    }


class APIMethods:
    """Container for all API method implementations."""

    def __init__(self, http_client: HttpClient):
        self._http_client = http_client

    # Market data

    async def get_products(self, session: ClientSession) -> Dict[str, Product]:
        """GET /market/products: tradable products keyed by symbol."""
        response = await self._http_client.request(session, "GET", "/market/products")
        return {symbol: Product.from_dict(item) for symbol, item in (response or {}).items()}

    async def get_orderbook(
        self,
        session: ClientSession,
        symbol: str,
        level: OrderBookLevel = OrderBookLevel.LEVEL2,
    ) -> OrderBookSnapshot:
        response = await self._http_client.request(
            session,
            "GET",
            "/market/orderbook",
            params={"level": level.value, "symbol": _require_symbol(symbol)},
        )
        return OrderBookSnapshot.from_dict(response)

    async def get_ticker(self, session: ClientSession, symbol: str) -> Ticker:
        response = await self._http_client.request(
            session, "GET", "/market/ticker", params={"symbol": _require_symbol(symbol)}
        )
        return Ticker.from_dict(response)

    async def get_index_history(
        self,
        session: ClientSession,
        symbol: str,
        start: Moment,
        end: Moment,
        interval: IntervalSize = IntervalSize.ONE_HOUR,
        limit: int = 10,
    ) -> IndexHistory:
        """GET /market/historic_index_prices for an index symbol such as ".BTCUSD"."""
        params = _time_range(symbol, start, end, limit)
        params["interval_size"] = interval.value
        response = await self._http_client.request(
            session, "GET", "/market/historic_index_prices", params=params
        )
        return IndexHistory.from_dict(response)

    # Account and wallet

    async def get_account(self, session: ClientSession) -> AccountInfo:
        response = await self._http_client.request(session, "GET", "/user/account", auth=True)
        return AccountInfo.from_dict(response)

    async def deposit(self, session: ClientSession, body: DepositBody) -> DepositResponse:
        response = await self._http_client.request(
            session, "POST", "/wallet/deposit", data=body.to_dict(), auth=True
        )
        return DepositResponse.from_dict(response)

    async def withdraw(self, session: ClientSession, body: WithdrawalBody) -> WithdrawalResponse:
        response = await self._http_client.request(
            session, "POST", "/wallet/withdrawal", data=sanitize_dict(body.to_dict()), auth=True
        )
        return WithdrawalResponse.from_dict(response)

    # Trading

    async def create_order(self, session: ClientSession, body: OrderBody) -> Any:
        """POST /orders; the exchange confirms through the WebSocket stream."""
        _require_symbol(body.symbol)
        return await self._http_client.request(
            session, "POST", "/orders", data=body.to_dict(), auth=True
        )

    async def order_prediction(self, session: ClientSession, body: OrderBody) -> Any:
        _require_symbol(body.symbol)
        return await self._http_client.request(
            session, "POST", "/orders/prediction", data=body.to_dict(), auth=True
        )

    async def get_orders(
        self,
        session: ClientSession,
        symbol: str,
        start: Moment,
        end: Moment,
        limit: int = 10,
    ) -> List[OpenOrder]:
        response = await self._http_client.request(
            session, "GET", "/orders", params=_time_range(symbol, start, end, limit), auth=True
        )
        return [OpenOrder.from_dict(item) for item in response or []]

    async def get_open_orders(self, session: ClientSession) -> Dict[str, List[OpenOrder]]:
        response = await self._http_client.request(session, "GET", "/orders/open", auth=True)
        return {
            symbol: [OpenOrder.from_dict(item) for item in orders]
            for symbol, orders in (response or {}).items()
        }

    async def get_fills(
        self,
        session: ClientSession,
        symbol: str,
        start: Moment,
        end: Moment,
        limit: int = 10,
    ) -> List[FillDetails]:
        response = await self._http_client.request(
            session, "GET", "/user/fills", params=_time_range(symbol, start, end, limit), auth=True
        )
        return [FillDetails.from_dict(item) for item in response or []]

    async def get_positions(self, session: ClientSession) -> Any:
        """GET /positions; returned as received."""
        return await self._http_client.request(session, "GET", "/positions", auth=True)

    async def cancel_order(
        self,
        session: ClientSession,
        symbol: str,
        order_id: int,
    ) -> Optional[Any]:
        logger.info(f"Cancelling order {order_id} on {symbol}")
        return await self._http_client.request(
            session,
            "DELETE",
            "/orders",
            params={"symbol": _require_symbol(symbol), "order_id": order_id},
            auth=True,
        )
