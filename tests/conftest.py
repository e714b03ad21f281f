# -*- coding: utf-8 -*-
"""
Shared fixtures and utilities for testing the Kollider client.
"""

import asyncio
import base64
import json
from collections import defaultdict
from typing import Any, Dict, List, Optional, Union

import pytest

from kollider_client.auth import KolliderCredentials
from kollider_client.errors import KolliderConnectionError
from kollider_client.models import ConnectionConfig, RetryConfig
from kollider_client.monitoring import SessionMonitor
from kollider_client.ws.inbound import InboundMessage, decode
from kollider_client.ws.messages import OutboundMessage
from kollider_client.ws.session import KolliderSession

SECRET = b"kollider-test-secret"
AUTH_SUCCESS = '{"type":"authenticate","message":"success"}'

Frame = Union[str, Dict[str, Any], InboundMessage, None]


class FakeTransport:
    """
    In-memory transport for driving a session.

    ``replies`` maps an outbound message type to frames fed back as soon as
    a message of that type is sent. ``None`` as a frame ends the stream.
    """

    def __init__(self):
        self.sent: List[OutboundMessage] = []
        self.replies: Dict[str, List[Frame]] = defaultdict(list)
        self.connect_error: Optional[Exception] = None
        self.connected = False
        self.closed = False
        self._inbound: asyncio.Queue = asyncio.Queue()
        self._ended = False

    @property
    def sent_types(self) -> List[str]:
        return [message.TYPE for message in self.sent]

    def reply_to(self, message_type: str, *frames: Frame) -> None:
        self.replies[message_type].extend(frames)

    def feed(self, *frames: Frame) -> None:
        for frame in frames:
            if frame is None:
                self._ended = True
                self._inbound.put_nowait(None)
            elif isinstance(frame, InboundMessage):
                self._inbound.put_nowait(frame)
            elif isinstance(frame, dict):
                self._inbound.put_nowait(decode(json.dumps(frame)))
            else:
                self._inbound.put_nowait(decode(frame))

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    def send(self, message: OutboundMessage) -> None:
        if self.closed:
            raise KolliderConnectionError("WebSocket transport is closed")
        self.sent.append(message)
        self.feed(*self.replies.pop(message.TYPE, []))

    async def receive(self) -> Optional[InboundMessage]:
        item = await self._inbound.get()
        if item is None:
            self._inbound.put_nowait(None)
        return item

    async def close(self) -> None:
        self.closed = True
        if not self._ended:
            self.feed(None)


def _open_frame(order_id: int = 9640692, ext_order_id: str = "X", **overrides) -> Dict[str, Any]:
    data = {
        "order_id": order_id,
        "price": 485155,
        "quantity": 1,
        "symbol": "BTCUSD.PERP",
        "leverage": 1,
        "side": "Bid",
        "margin_type": "Isolated",
        "order_type": "Limit",
        "settlement_type": "Delayed",
        "ext_order_id": ext_order_id,
        "timestamp": 1639663512,
        "filled": 0,
    }
    data.update(overrides)
    return {"type": "open", "data": data, "seq": 12}


def _received_frame(order_id: int = 9640692, ext_order_id: str = "X", uid: int = 7051) -> Dict[str, Any]:
    return {
        "type": "received",
        "data": {
            "uid": uid,
            "order_id": order_id,
            "price": 485155,
            "quantity": 1,
            "symbol": "BTCUSD.PERP",
            "leverage": 1,
            "order_type": "Limit",
            "ext_order_id": ext_order_id,
            "timestamp": 1639663511,
        },
        "seq": 11,
    }


@pytest.fixture
def credentials() -> KolliderCredentials:
    """Test credentials with a known secret."""
    return KolliderCredentials(api_key="test_key", api_secret=SECRET, passphrase="test_passphrase")


@pytest.fixture
def encoded_secret() -> str:
    return base64.b64encode(SECRET).decode("ascii")


@pytest.fixture
def connection_config(credentials) -> ConnectionConfig:
    return ConnectionConfig(
        base_url="https://test.api.kollider.xyz/v1",
        ws_url="wss://test.api.kollider.xyz/v1/ws/",
        timeout=5.0,
        credentials=credentials,
    )


@pytest.fixture
def public_config() -> ConnectionConfig:
    return ConnectionConfig(base_url="https://test.api.kollider.xyz/v1")


@pytest.fixture
def retry_config() -> RetryConfig:
    """Fast retries for tests."""
    return RetryConfig(max_retries=2, retry_delay=0.0, backoff_factor=1.0)


@pytest.fixture
def monitor() -> SessionMonitor:
    return SessionMonitor()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def make_session(credentials, transport, monitor):
    """Factory for sessions over the fake transport."""

    def factory(authenticated: bool = True, request_timeout: float = 1.0) -> KolliderSession:
        session = KolliderSession(
            credentials if authenticated else None,
            transport=transport,
            sink=monitor,
            request_timeout=request_timeout,
        )
        return session

    return factory


@pytest.fixture
def balances_frame() -> Dict[str, Any]:
    return {
        "type": "balances",
        "data": {
            "cash": "1000.5",
            "cross_margin": "0",
            "isolated_margin": {"BTCUSD.PERP": "12.25"},
            "order_margin": {"BTCUSD.PERP": "3"},
        },
        "seq": 3,
    }


@pytest.fixture
def position_data() -> Dict[str, Any]:
    return {
        "symbol": "BTCUSD.PERP",
        "side": "Bid",
        "quantity": "10",
        "entry_price": "47000.5",
        "entry_value": "21276",
        "entry_time": 1639663512,
        "bankruptcy_price": "46500",
        "liq_price": "46700.5",
        "mark_value": "21300",
        "leverage": "10.00",
        "real_leverage": "9.5",
        "funding": "0",
        "rpnl": "0",
        "upnl": "24",
        "adl_score": "0.1",
        "is_liquidating": False,
        "position_id": "p-1",
        "timestamp": 1639663512,
        "uid": 7051,
        "open_order_ids": [9951519],
    }


@pytest.fixture
def open_orders_frame() -> Dict[str, Any]:
    return {
        "data": {
            "open_orders": {
                "BTCUSD.PERP": [
                    {
                        "advanced_order_type": None,
                        "ext_order_id": "029893fe-dcd7-4c78-848c-ddf37468df94",
                        "filled": 0,
                        "leverage": 100,
                        "margin_type": "Isolated",
                        "order_id": 9951519,
                        "order_type": "Limit",
                        "price": 474500,
                        "quantity": 1,
                        "settlement_type": "Instant",
                        "side": "Ask",
                        "symbol": "BTCUSD.PERP",
                        "timestamp": 0,
                        "trigger_price_type": None,
                        "uid": 7051,
                    }
                ]
            }
        },
        "seq": 647,
        "type": "open_orders",
    }


@pytest.fixture
def index_values_frame() -> Dict[str, Any]:
    return {
        "type": "index_values",
        "data": {"denom": "USD", "symbol": ".BTCUSD", "value": "47012.5"},
        "seq": 1,
    }


@pytest.fixture
def open_frame():
    """Builder for ``open`` frames of an order."""
    return _open_frame


@pytest.fixture
def received_frame():
    return _received_frame


@pytest.fixture
def auth_success() -> str:
    return AUTH_SUCCESS
