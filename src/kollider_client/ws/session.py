"""
Authenticated WebSocket session with correlated oneshot requests.

State machine::

    CONNECTING -> AWAITING_AUTH -> READY <-> AWAITING_REPLY
    any state -> CLOSED (stream end, failed handshake, close())

After the transport connects, the session sends the signed authenticate
message and discards everything until the exchange confirms it. Messages
submitted before that are held and flushed right after the confirmation;
oneshot requests made meanwhile wait for it and are sent next.

At most one oneshot request is in flight per session. Its matcher sees
every inbound message from the moment it is registered; messages it does
not claim, and everything received while idle, go to the subscription
multiplexer.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..auth import KolliderCredentials, KolliderSigner
from ..constants import DEFAULT_WS_URL, ONESHOT_TIMEOUT
from ..errors import AuthenticationError, KolliderConnectionError, NoResponseError
from ..models.account import Balances, Position
from ..models.orders import OpenOrder, OrderBody, OrderCreated, SettlementType
from ..monitoring import EventSink, SessionMonitor
from .inbound import AuthenticateReply, InboundMessage
from .matchers import (
    BalancesMatcher,
    CancelMatcher,
    OpenOrdersMatcher,
    OrderMatcher,
    PositionsMatcher,
    ResponseMatcher,
)
from .messages import (
    CancelOrder,
    FetchBalances,
    FetchOpenOrders,
    FetchPositions,
    FetchTradableProducts,
    GetTicker,
    OutboundMessage,
    PlaceOrder,
)
from .subscriptions import ChannelLike, Listener, SubscriptionMultiplexer
from .transport import WebSocketTransport


class SessionState(Enum):
    CONNECTING = "connecting"
    AWAITING_AUTH = "awaiting_auth"
    READY = "ready"
    AWAITING_REPLY = "awaiting_reply"
    CLOSED = "closed"


@dataclass
class PendingRequest:
    """One in-flight oneshot call; the future is resolved exactly once."""
    message: OutboundMessage
    matcher: ResponseMatcher
    future: asyncio.Future


class KolliderSession:
    """
    WebSocket session to the Kollider exchange.

    Usage::

        async with KolliderSession(credentials) as session:
            balances = await session.fetch_balances()

    A session without credentials only serves public subscriptions and is
    ready as soon as the transport connects.
    """

    def __init__(
        self,
        credentials: Optional[KolliderCredentials] = None,
        url: str = DEFAULT_WS_URL,
        transport: Optional[Any] = None,
        sink: Optional[EventSink] = None,
        request_timeout: float = ONESHOT_TIMEOUT,
    ):
        """
        Initialize the session.

        Args:
            credentials: API credentials, None for a public session
            url: WebSocket endpoint
            transport: Transport with connect/send/receive/close, defaults to
                a ``WebSocketTransport`` for ``url``
            sink: Event sink, defaults to a logging ``SessionMonitor``
            request_timeout: Deadline of the handshake and of every oneshot call
        """
        if request_timeout <= 0:
            raise ValueError("Request timeout must be positive")

        self.sink = sink or SessionMonitor()
        self._transport = transport or WebSocketTransport(url, sink=self.sink)
        self._signer = KolliderSigner(credentials) if credentials is not None else None
        self.request_timeout = request_timeout

        self.state = SessionState.CONNECTING
        self.multiplexer = SubscriptionMultiplexer(self.send, sink=self.sink)

        self._held: List[OutboundMessage] = []
        self._pending: Optional[PendingRequest] = None
        self._request_lock = asyncio.Lock()
        self._ready = asyncio.Event()
        self._ready_error: Optional[Exception] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._connect_started = False

    @property
    def authenticated(self) -> bool:
        return self._signer is not None and self.state in (SessionState.READY, SessionState.AWAITING_REPLY)

    @property
    def is_ready(self) -> bool:
        return self.state in (SessionState.READY, SessionState.AWAITING_REPLY)

    async def __aenter__(self) -> "KolliderSession":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def connect(self) -> "KolliderSession":
        """
        Connect the transport and complete the authentication handshake.

        Raises:
            KolliderConnectionError: the connection cannot be established
            AuthenticationError: the exchange rejected the credentials, closed
                the stream or did not answer within ``request_timeout``
        """
        if self._connect_started:
            raise KolliderConnectionError("Session can only be connected once")
        self._connect_started = True

        try:
            await self._transport.connect()
        except KolliderConnectionError as e:
            self.state = SessionState.CLOSED
            self._release_waiters(KolliderConnectionError(str(e)))
            raise

        if self._signer is not None:
            self.state = SessionState.AWAITING_AUTH
            self._transport.send(self._signer.auth_message())
            self.sink.emit("auth_sent")
            try:
                await asyncio.wait_for(self._await_auth(), timeout=self.request_timeout)
            except asyncio.TimeoutError:
                await self._abort()
                reason = "No authentication reply from the server"
                self.sink.emit("auth_failed", reason="timeout")
                self._release_waiters(AuthenticationError(reason))
                raise AuthenticationError(reason) from None
            except AuthenticationError as e:
                await self._abort()
                self.sink.emit("auth_failed", reason=str(e))
                self._release_waiters(AuthenticationError(str(e)))
                raise
            self.sink.emit("authenticated")

        self.state = SessionState.READY
        self._flush_held()
        self._receive_task = asyncio.create_task(self._receive_loop())
        self._release_waiters()
        return self

    def _release_waiters(self, error: Optional[Exception] = None) -> None:
        """Wake requests waiting for the handshake, failing them with error if given."""
        if self._ready.is_set():
            return
        self._ready_error = error
        self._ready.set()

    async def _await_auth(self) -> None:
        while True:
            message = await self._transport.receive()
            if message is None:
                raise AuthenticationError("Connection closed during authentication")
            if isinstance(message, AuthenticateReply):
                if message.success:
                    return
                raise AuthenticationError(f"Authentication rejected: {message.message}")
            self.sink.emit("message_discarded", type=message.TYPE, state=self.state.value)

    def _flush_held(self) -> None:
        held, self._held = self._held, []
        for message in held:
            self._transport.send(message)

    def send(self, message: OutboundMessage) -> None:
        """
        Send a message without waiting for any reply.

        Before the handshake completes messages are held in submission order.

        Raises:
            KolliderConnectionError: the session is closed
        """
        if self.state is SessionState.CLOSED:
            raise KolliderConnectionError("Session is closed")
        if self.state in (SessionState.CONNECTING, SessionState.AWAITING_AUTH):
            self._held.append(message)
            self.sink.emit("message_held", type=message.TYPE)
            return
        self._transport.send(message)

    async def request(
        self,
        message: OutboundMessage,
        matcher: ResponseMatcher,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Send a message and wait for the reply the matcher accepts.

        A call made before the handshake completes waits for it, within the
        same deadline, and is sent right after the held messages.

        Raises:
            KolliderConnectionError: the session is closed or cannot connect
            AuthenticationError: the handshake the call waited for failed
            NoResponseError: no reply before the deadline or the stream ended
            OrderRejectedError, CancelFailedError: typed rejections from matchers
        """
        if timeout is None:
            timeout = self.request_timeout
        if timeout <= 0:
            raise ValueError("Request timeout must be positive")

        await self._wait_ready(message, timeout)
        async with self._request_lock:
            if self.state is SessionState.CLOSED:
                raise KolliderConnectionError("Session is closed")
            pending = PendingRequest(
                message=message,
                matcher=matcher,
                future=asyncio.get_running_loop().create_future(),
            )
            self._pending = pending
            self.state = SessionState.AWAITING_REPLY
            try:
                self._transport.send(message)
                self.sink.emit("request_sent", type=message.TYPE)
                return await asyncio.wait_for(pending.future, timeout)
            except KolliderConnectionError as e:
                raise NoResponseError(f"Connection lost before the request was sent: {e}") from e
            except asyncio.TimeoutError:
                self.sink.emit("request_timeout", type=message.TYPE)
                raise NoResponseError() from None
            finally:
                self._pending = None
                if self.state is SessionState.AWAITING_REPLY:
                    self.state = SessionState.READY

    async def _wait_ready(self, message: OutboundMessage, timeout: float) -> None:
        if self.state is SessionState.CLOSED:
            raise KolliderConnectionError("Session is closed")
        if self._ready.is_set():
            return

        self.sink.emit("request_held", type=message.TYPE, state=self.state.value)
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError:
            self.sink.emit("request_timeout", type=message.TYPE)
            raise NoResponseError("Session did not become ready before the deadline") from None

        error = self._ready_error
        if error is not None:
            raise type(error)(str(error))

    async def _receive_loop(self) -> None:
        try:
            while True:
                message = await self._transport.receive()
                if message is None:
                    break
                self._dispatch(message)
        finally:
            self._on_stream_end()

    def _dispatch(self, message: InboundMessage) -> None:
        pending = self._pending
        if pending is not None and not pending.future.done():
            try:
                matched = pending.matcher.try_match(message)
            except Exception as e:
                # a broken matcher fails its own call, not the session
                pending.future.set_exception(e)
                self.sink.emit("request_failed", type=pending.message.TYPE, error=repr(e))
                return
            if matched is not None:
                if matched.error is not None:
                    pending.future.set_exception(matched.error)
                    self.sink.emit("request_failed", type=pending.message.TYPE, error=str(matched.error))
                else:
                    pending.future.set_result(matched.value)
                    self.sink.emit("request_matched", type=pending.message.TYPE, reply=message.TYPE)
                return

        self.multiplexer.dispatch(message)

    def _on_stream_end(self) -> None:
        self.state = SessionState.CLOSED
        pending = self._pending
        if pending is not None and not pending.future.done():
            pending.future.set_exception(NoResponseError())

    async def _abort(self) -> None:
        self.state = SessionState.CLOSED
        self._held.clear()
        await self._transport.close()

    async def close(self) -> None:
        """Close the transport; a call still pending fails with NoResponseError."""
        if self.state is SessionState.CLOSED and self._receive_task is None:
            return
        self.state = SessionState.CLOSED
        self._release_waiters(NoResponseError("Session closed before the handshake completed"))
        self._held.clear()
        await self._transport.close()
        if self._receive_task is not None:
            await self._receive_task
            self._receive_task = None
        self._on_stream_end()
        self.sink.emit("session_closed")

    async def wait_closed(self) -> None:
        """Wait until the remote ends the stream or the session is closed."""
        if self._receive_task is not None:
            await asyncio.shield(self._receive_task)

    # Subscriptions

    def subscribe(self, symbols: List[str], channels: List[ChannelLike]) -> None:
        self.multiplexer.subscribe(symbols, channels)

    def unsubscribe(self, symbols: List[str], channels: List[ChannelLike]) -> None:
        self.multiplexer.unsubscribe(symbols, channels)

    def add_listener(self, key: ChannelLike, callback: Listener) -> None:
        self.multiplexer.add_listener(key, callback)

    def remove_listener(self, key: ChannelLike, callback: Listener) -> bool:
        return self.multiplexer.remove_listener(key, callback)

    # Oneshot operations

    async def fetch_balances(self) -> Balances:
        """Request account balances with margins unwrapped to floats."""
        return await self.request(FetchBalances(), BalancesMatcher())

    async def fetch_positions(self) -> Dict[str, Position]:
        return await self.request(FetchPositions(), PositionsMatcher())

    async def fetch_open_orders(self) -> Dict[str, List[OpenOrder]]:
        return await self.request(FetchOpenOrders(), OpenOrdersMatcher())

    async def place_order(
        self,
        order: Union[OrderBody, PlaceOrder],
        ext_order_id: Optional[str] = None,
    ) -> OrderCreated:
        """
        Place a limit order and wait until the exchange opens it.

        Raises:
            OrderRejectedError: the exchange rejected the order
        """
        if isinstance(order, OrderBody):
            order = PlaceOrder.from_body(order, ext_order_id)
        return await self.request(order, OrderMatcher(order))

    async def cancel_order(
        self,
        order_id: int,
        symbol: str,
        settlement_type: SettlementType = SettlementType.DELAYED,
    ) -> str:
        """
        Cancel an order and return the exchange's success reason.

        Raises:
            CancelFailedError: the exchange refused the cancellation
        """
        message = CancelOrder(order_id=order_id, symbol=symbol, settlement_type=settlement_type)
        return await self.request(message, CancelMatcher(order_id, symbol))

    def get_ticker(self, symbol: str) -> None:
        """Ask for a ticker; the reply reaches ``ticker`` listeners."""
        self.send(GetTicker(symbol=symbol))

    def fetch_tradable_products(self) -> None:
        self.send(FetchTradableProducts())
