"""
Kollider Client - Main orchestration module.

The KolliderClient class coordinates the REST side of the library and hands
out WebSocket sessions sharing its configuration and monitor:
- Data models are immutable structures in models/
- HTTP operations are handled by http_client.py
- Session management is handled by session_manager.py
- API methods are implemented in api_methods.py
- The WebSocket protocol layer lives in ws/
"""

import asyncio
import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv

from .api_methods import APIMethods
from .auth import KolliderCredentials
from .constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
    ERROR_STATUS_CODE,
    SUCCESS_STATUS_CODE,
)
from .errors import KolliderConnectionError
from .http_client import HttpClient
from .models import (
    AccountInfo,
    ConnectionConfig,
    DepositBody,
    DepositResponse,
    FillDetails,
    IndexHistory,
    IntervalSize,
    OpenOrder,
    OrderBody,
    OrderBookLevel,
    OrderBookSnapshot,
    Product,
    RetryConfig,
    Ticker,
    WithdrawalBody,
    WithdrawalResponse,
)
from .monitoring import SessionMonitor
from .session_manager import SessionManager
from .ws.session import KolliderSession

load_dotenv()
logger = logging.getLogger(__name__)

Moment = Union[datetime, int, float]


class KolliderClient:
    """
    Main Kollider client orchestrator.

    Public market endpoints work without credentials; account, wallet and
    trading endpoints require them.
    """

    def __init__(
        self,
        config: Optional[ConnectionConfig] = None,
        retry_config: Optional[RetryConfig] = None,
        monitor: Optional[SessionMonitor] = None,
    ):
        self._config = config or ConnectionConfig()
        self._session_manager = SessionManager(self._config)
        self._http_client = HttpClient(self._config, retry_config)
        self._api_methods = APIMethods(self._http_client)
        self._monitor = monitor or SessionMonitor()
        self._closed = False

    @classmethod
    def from_env(cls, testnet: bool = False) -> "KolliderClient":
        """Create client from KOLLIDER_* environment variables (a .env file is honoured)."""
        credentials = None
        if os.getenv("KOLLIDER_API_KEY"):
            credentials = KolliderCredentials.from_env()
        if testnet:
            config = ConnectionConfig.testnet(credentials)
        else:
            config = ConnectionConfig.mainnet(credentials)
        return cls(config)

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def monitor(self) -> SessionMonitor:
        return self._monitor

    # Market methods
    async def get_products(self) -> Dict[str, Product]:
        """Get tradable products keyed by symbol."""
        return await self._execute_with_monitoring(
            self._api_methods.get_products, "GET", "/market/products"
        )

    async def get_orderbook(
        self,
        symbol: str,
        level: OrderBookLevel = OrderBookLevel.LEVEL2,
    ) -> OrderBookSnapshot:
        return await self._execute_with_monitoring(
            self._api_methods.get_orderbook, "GET", "/market/orderbook", symbol, level
        )

    async def get_ticker(self, symbol: str) -> Ticker:
        return await self._execute_with_monitoring(
            self._api_methods.get_ticker, "GET", "/market/ticker", symbol
        )

    async def get_index_history(
        self,
        symbol: str,
        start: Moment,
        end: Moment,
        interval: IntervalSize = IntervalSize.ONE_HOUR,
        limit: int = 10,
    ) -> IndexHistory:
        return await self._execute_with_monitoring(
            self._api_methods.get_index_history,
            "GET",
            "/market/historic_index_prices",
            symbol,
            start,
            end,
            interval,
            limit,
        )

    # Account methods
    async def get_account(self) -> AccountInfo:
        return await self._execute_with_monitoring(
            self._api_methods.get_account, "GET", "/user/account"
        )

    async def deposit(self, body: DepositBody) -> DepositResponse:
        """Request a Lightning invoice or an on-chain address to deposit to."""
        return await self._execute_with_monitoring(
            self._api_methods.deposit, "POST", "/wallet/deposit", body
        )

    async def withdraw(self, body: WithdrawalBody) -> WithdrawalResponse:
        return await self._execute_with_monitoring(
            self._api_methods.withdraw, "POST", "/wallet/withdrawal", body
        )

    # Order methods
    async def create_order(self, body: OrderBody) -> Any:
        return await self._execute_with_monitoring(
            self._api_methods.create_order, "POST", "/orders", body
        )

    async def order_prediction(self, body: OrderBody) -> Any:
        return await self._execute_with_monitoring(
            self._api_methods.order_prediction, "POST", "/orders/prediction", body
        )

    async def get_orders(
        self,
        symbol: str,
        start: Moment,
        end: Moment,
        limit: int = 10,
    ) -> List[OpenOrder]:
        return await self._execute_with_monitoring(
            self._api_methods.get_orders, "GET", "/orders", symbol, start, end, limit
        )

    async def get_open_orders(self) -> Dict[str, List[OpenOrder]]:
        return await self._execute_with_monitoring(
            self._api_methods.get_open_orders, "GET", "/orders/open"
        )

    async def get_fills(
        self,
        symbol: str,
        start: Moment,
        end: Moment,
        limit: int = 10,
    ) -> List[FillDetails]:
        return await self._execute_with_monitoring(
            self._api_methods.get_fills, "GET", "/user/fills", symbol, start, end, limit
        )

    async def get_positions(self) -> Any:
        return await self._execute_with_monitoring(
            self._api_methods.get_positions, "GET", "/positions"
        )

    async def cancel_order(self, symbol: str, order_id: int) -> Any:
        return await self._execute_with_monitoring(
            self._api_methods.cancel_order, "DELETE", "/orders", symbol, order_id
        )

    # WebSocket
    def websocket(self, authenticated: bool = True) -> KolliderSession:
        """
        Create a WebSocket session for this client's endpoint.

        The session is not connected yet; use it as an async context manager.
        """
        credentials = self._config.credentials if authenticated else None
        return KolliderSession(
            credentials,
            url=self._config.ws_url,
            sink=self._monitor,
            request_timeout=self._config.request_timeout,
        )

    async def close(self) -> None:
        """Close client and cleanup resources."""
        if not self._closed:
            await self._session_manager.close_session()
            self._closed = True
            logger.info("Kollider client closed")

    async def _execute_with_monitoring(
        self, api_method, method: str, endpoint: str, *args, **kwargs
    ):
        """Execute API method with performance monitoring."""
        if self._closed:
            raise KolliderConnectionError("Client is closed")

        loop = asyncio.get_running_loop()
        start_time = loop.time()
        session = await self._session_manager.create_session()

        try:
            result = await api_method(session, *args, **kwargs)
        except Exception as e:
            duration_ms = (loop.time() - start_time) * 1000
            status_code = getattr(e, "status_code", None) or ERROR_STATUS_CODE
            self._monitor.record_request(endpoint, method, status_code, duration_ms)
            raise

        duration_ms = (loop.time() - start_time) * 1000
        self._monitor.record_request(endpoint, method, SUCCESS_STATUS_CODE, duration_ms)
        return result

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def create_kollider_client(
    api_key: Optional[str] = None,
    api_secret: Optional[str] = None,
    passphrase: Optional[str] = None,
    testnet: bool = False,
    timeout: float = DEFAULT_TIMEOUT,
    max_retries: int = DEFAULT_MAX_RETRIES,
    retry_delay: float = DEFAULT_RETRY_DELAY,
) -> KolliderClient:
    """
    Factory function to create Kollider client with common configuration.

    Args:
        api_key: API key, omit for a public-only client
        api_secret: Base64 API secret as issued by the exchange
        passphrase: API passphrase
        testnet: Use the test environment
        timeout: Request timeout in seconds
        max_retries: Maximum number of retry attempts
        retry_delay: Initial delay between retries in seconds

    Returns:
        Configured KolliderClient instance
    """
    credentials = None
    if api_key:
        credentials = KolliderCredentials.from_base64(api_key, api_secret or "", passphrase or "")

    preset = ConnectionConfig.testnet(credentials) if testnet else ConnectionConfig.mainnet(credentials)
    config = ConnectionConfig(
        base_url=preset.base_url,
        ws_url=preset.ws_url,
        timeout=timeout,
        credentials=credentials,
    )
    retry_config = RetryConfig(max_retries=max_retries, retry_delay=retry_delay)
    return KolliderClient(config, retry_config)
