# -*- coding: utf-8 -*-
"""
Tests for the authenticated WebSocket session and its oneshot calls.
"""

import asyncio

import pytest

from kollider_client.errors import (
    AuthenticationError,
    CancelFailedError,
    KolliderConnectionError,
    NoResponseError,
    OrderRejectedError,
)
from kollider_client.models import ChannelName, OrderBody, OrderSide
from kollider_client.ws.inbound import IndexValues, Open, Received
from kollider_client.ws.matchers import BalancesMatcher
from kollider_client.ws.messages import FetchBalances, GetTicker, PlaceOrder, Subscribe
from kollider_client.ws.session import KolliderSession, SessionState


async def wait_for_state(session, state, attempts=100):
    for _ in range(attempts):
        if session.state is state:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"session never reached {state}")


@pytest.fixture
def order_body():
    return OrderBody(symbol="BTCUSD.PERP", quantity=1, price=485155, leverage=1, side=OrderSide.BID)


class TestHandshake:
    """Authentication gate before any other traffic."""

    @pytest.mark.asyncio
    async def test_connect_authenticates(self, make_session, transport, monitor, auth_success):
        transport.reply_to("authenticate", auth_success)
        session = make_session()

        await session.connect()

        assert session.state is SessionState.READY
        assert session.authenticated
        assert transport.sent_types == ["authenticate"]
        assert monitor.count("authenticated") == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_messages_before_connect_are_held(self, make_session, transport, auth_success):
        transport.reply_to("authenticate", auth_success)
        session = make_session()

        session.subscribe([".BTCUSD"], ["index_values"])
        assert transport.sent == []

        await session.connect()

        assert transport.sent_types == ["authenticate", "subscribe"]
        assert transport.sent[1] == Subscribe(symbols=[".BTCUSD"], channels=[ChannelName.INDEX_VALUES])
        await session.close()

    @pytest.mark.asyncio
    async def test_messages_during_handshake_are_held(self, make_session, transport, monitor, auth_success,
                                                      index_values_frame):
        session = make_session()
        connecting = asyncio.create_task(session.connect())
        await wait_for_state(session, SessionState.AWAITING_AUTH)

        session.send(GetTicker(symbol="BTCUSD.PERP"))
        session.send(FetchBalances())
        transport.feed(index_values_frame)
        await asyncio.sleep(0)
        assert transport.sent_types == ["authenticate"]

        transport.feed(auth_success)
        await connecting

        assert transport.sent_types == ["authenticate", "get_ticker", "fetch_balances"]
        assert monitor.count("message_held") == 2
        assert monitor.count("message_discarded") == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_request_during_handshake_waits(self, make_session, transport, monitor, auth_success,
                                                  balances_frame):
        session = make_session()
        connecting = asyncio.create_task(session.connect())
        await wait_for_state(session, SessionState.AWAITING_AUTH)

        session.send(GetTicker(symbol="BTCUSD.PERP"))
        balances_call = asyncio.create_task(session.fetch_balances())
        await asyncio.sleep(0)
        assert transport.sent_types == ["authenticate"]

        transport.reply_to("fetch_balances", balances_frame)
        transport.feed(auth_success)
        await connecting
        balances = await balances_call

        assert balances.cash == 1000.5
        assert transport.sent_types == ["authenticate", "get_ticker", "fetch_balances"]
        assert monitor.count("request_held") == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_request_before_connect_waits(self, make_session, transport, auth_success, position_data):
        transport.reply_to("authenticate", auth_success)
        transport.reply_to("fetch_positions", {
            "type": "positions",
            "data": {"positions": {"BTCUSD.PERP": position_data}},
        })
        session = make_session()

        positions_call = asyncio.create_task(session.fetch_positions())
        await asyncio.sleep(0)
        assert transport.sent == []

        async with session:
            positions = await positions_call

        assert "BTCUSD.PERP" in positions

    @pytest.mark.asyncio
    async def test_waiting_request_fails_with_handshake(self, make_session, transport):
        session = make_session()
        connecting = asyncio.create_task(session.connect())
        await wait_for_state(session, SessionState.AWAITING_AUTH)
        balances_call = asyncio.create_task(session.fetch_balances())
        await asyncio.sleep(0)

        transport.feed('{"type":"authenticate","message":"invalid signature"}')

        with pytest.raises(AuthenticationError):
            await connecting
        with pytest.raises(AuthenticationError, match="invalid signature"):
            await balances_call
        assert transport.sent_types == ["authenticate"]

    @pytest.mark.asyncio
    async def test_waiting_request_fails_on_close(self, make_session, transport):
        session = make_session()
        balances_call = asyncio.create_task(session.fetch_balances())
        await asyncio.sleep(0)

        await session.close()

        with pytest.raises(NoResponseError):
            await balances_call
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_waiting_request_times_out(self, make_session, transport, monitor):
        session = make_session(request_timeout=0.05)

        with pytest.raises(NoResponseError):
            await session.fetch_balances()
        assert monitor.count("request_timeout") == 1

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, make_session, transport, monitor):
        transport.reply_to("authenticate", '{"type":"authenticate","message":"invalid signature"}')
        session = make_session()

        with pytest.raises(AuthenticationError, match="invalid signature"):
            await session.connect()

        assert session.state is SessionState.CLOSED
        assert transport.closed
        assert monitor.count("auth_failed") == 1

    @pytest.mark.asyncio
    async def test_stream_ends_during_handshake(self, make_session, transport):
        transport.reply_to("authenticate", None)
        session = make_session()

        with pytest.raises(AuthenticationError):
            await session.connect()
        assert session.state is SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_handshake_timeout(self, make_session, transport):
        session = make_session(request_timeout=0.05)

        with pytest.raises(AuthenticationError, match="No authentication reply"):
            await session.connect()
        assert session.state is SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_connection_failure(self, make_session, transport):
        transport.connect_error = KolliderConnectionError("refused")
        session = make_session()

        with pytest.raises(KolliderConnectionError):
            await session.connect()
        assert session.state is SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_public_session_needs_no_handshake(self, make_session, transport):
        session = make_session(authenticated=False)
        await session.connect()

        assert session.state is SessionState.READY
        assert not session.authenticated
        assert transport.sent == []
        await session.close()

    def test_request_timeout_must_be_positive(self, credentials):
        with pytest.raises(ValueError):
            KolliderSession(credentials, request_timeout=0)


class TestOneshotCalls:
    """Correlated request/reply over the shared stream."""

    @pytest.mark.asyncio
    async def test_unrelated_push_is_ignored(self, make_session, transport, auth_success,
                                             index_values_frame, balances_frame):
        pushes = []
        transport.reply_to("authenticate", auth_success)
        transport.reply_to("fetch_balances", index_values_frame, balances_frame)
        session = make_session()
        session.add_listener("index_values", pushes.append)

        async with session:
            balances = await session.fetch_balances()

        assert balances.cash == 1000.5
        assert balances.isolated_margin == {"BTCUSD.PERP": 12.25}
        assert len(pushes) == 1
        assert isinstance(pushes[0], IndexValues)

    @pytest.mark.asyncio
    async def test_fetch_positions(self, make_session, transport, auth_success, position_data):
        transport.reply_to("authenticate", auth_success)
        transport.reply_to("fetch_positions", {
            "type": "positions",
            "data": {"positions": {"BTCUSD.PERP": position_data}},
            "seq": 5,
        })

        async with make_session() as session:
            positions = await session.fetch_positions()

        assert list(positions) == ["BTCUSD.PERP"]
        assert positions["BTCUSD.PERP"].liq_price == 46700.5

    @pytest.mark.asyncio
    async def test_fetch_open_orders(self, make_session, transport, auth_success, open_orders_frame):
        transport.reply_to("authenticate", auth_success)
        transport.reply_to("fetch_open_orders", open_orders_frame)

        async with make_session() as session:
            open_orders = await session.fetch_open_orders()

        assert open_orders["BTCUSD.PERP"][0].order_id == 9951519

    @pytest.mark.asyncio
    async def test_timeout_leaves_session_usable(self, make_session, transport, monitor, auth_success,
                                                 balances_frame):
        transport.reply_to("authenticate", auth_success)
        session = make_session(request_timeout=0.05)

        async with session:
            loop = asyncio.get_running_loop()
            started = loop.time()
            with pytest.raises(NoResponseError):
                await session.fetch_positions()
            elapsed = loop.time() - started

            assert elapsed >= 0.04
            assert elapsed < 1.0
            assert session.state is SessionState.READY
            assert monitor.count("request_timeout") == 1

            transport.reply_to("fetch_balances", balances_frame)
            balances = await session.fetch_balances()
            assert balances.cross_margin == 0.0

    @pytest.mark.asyncio
    async def test_stream_end_fails_pending_call(self, make_session, transport, auth_success):
        transport.reply_to("authenticate", auth_success)
        transport.reply_to("fetch_open_orders", None)
        session = make_session()

        async with session:
            with pytest.raises(NoResponseError):
                await session.fetch_open_orders()
            await session.wait_closed()

            assert session.state is SessionState.CLOSED
            with pytest.raises(KolliderConnectionError):
                await session.fetch_balances()
            with pytest.raises(KolliderConnectionError):
                session.send(FetchBalances())

    @pytest.mark.asyncio
    async def test_non_positive_call_timeout(self, make_session, transport, auth_success):
        transport.reply_to("authenticate", auth_success)
        session = make_session()

        async with session:
            with pytest.raises(ValueError):
                await session.request(FetchBalances(), BalancesMatcher(), timeout=0)
            assert transport.sent_types == ["authenticate"]

    @pytest.mark.asyncio
    async def test_call_timeout_overrides_default(self, make_session, transport, auth_success):
        transport.reply_to("authenticate", auth_success)
        session = make_session(request_timeout=30.0)

        async with session:
            with pytest.raises(NoResponseError):
                await session.request(FetchBalances(), BalancesMatcher(), timeout=0.05)

    @pytest.mark.asyncio
    async def test_send_failure_reaches_call_as_no_response(self, make_session, transport, auth_success):
        transport.reply_to("authenticate", auth_success)
        session = make_session()

        async with session:
            # remote side gone, receive loop not yet aware
            transport.closed = True
            with pytest.raises(NoResponseError):
                await session.fetch_positions()
            assert session.state is SessionState.READY

    @pytest.mark.asyncio
    async def test_calls_are_serialized(self, make_session, transport, auth_success, balances_frame,
                                        position_data):
        transport.reply_to("authenticate", auth_success)
        session = make_session()

        async with session:
            first = asyncio.create_task(session.fetch_balances())
            second = asyncio.create_task(session.fetch_positions())
            await asyncio.sleep(0.01)
            assert transport.sent_types == ["authenticate", "fetch_balances"]

            transport.reply_to("fetch_positions", {
                "type": "positions",
                "data": {"positions": {"BTCUSD.PERP": position_data}},
            })
            transport.feed(balances_frame)

            balances, positions = await asyncio.gather(first, second)

        assert balances.cash == 1000.5
        assert "BTCUSD.PERP" in positions
        assert transport.sent_types == ["authenticate", "fetch_balances", "fetch_positions"]

    @pytest.mark.asyncio
    async def test_broken_matcher_fails_only_its_call(self, make_session, transport, auth_success,
                                                      index_values_frame, balances_frame):
        class BrokenMatcher:
            def try_match(self, message):
                raise RuntimeError("broken")

        transport.reply_to("authenticate", auth_success)
        session = make_session()

        async with session:
            transport.reply_to("fetch_balances", index_values_frame)
            with pytest.raises(RuntimeError, match="broken"):
                await session.request(FetchBalances(), BrokenMatcher())

            transport.reply_to("fetch_balances", balances_frame)
            balances = await session.fetch_balances()
            assert balances.cash == 1000.5


class TestOrders:
    """Order placement and cancellation."""

    @pytest.mark.asyncio
    async def test_order_lifecycle(self, make_session, transport, auth_success, order_body,
                                   open_frame, received_frame):
        account_pushes = []
        transport.reply_to("authenticate", auth_success)
        transport.reply_to(
            "order",
            open_frame(order_id=1, ext_order_id="other"),
            received_frame(order_id=9640692, ext_order_id="X", uid=7051),
            open_frame(order_id=9640692, ext_order_id="X"),
        )
        session = make_session()
        session.add_listener("account", account_pushes.append)

        async with session:
            created = await session.place_order(order_body, ext_order_id="X")

        assert created.order_id == 9640692
        assert created.ext_order_id == "X"
        assert created.uid == 7051
        assert created.price == 485155
        assert created.symbol == "BTCUSD.PERP"
        assert [type(message) for message in account_pushes] == [Open, Received]
        assert account_pushes[0].ext_order_id == "other"

        sent = transport.sent[1]
        assert isinstance(sent, PlaceOrder)
        assert sent.ext_order_id == "X"
        assert sent.side is OrderSide.BID

    @pytest.mark.asyncio
    async def test_order_without_received_echo(self, make_session, transport, auth_success, order_body,
                                               open_frame):
        transport.reply_to("authenticate", auth_success)
        session = make_session()

        async with session:
            order = PlaceOrder.from_body(order_body, "Y")
            transport.reply_to("order", open_frame(order_id=5, ext_order_id="Y"))
            created = await session.place_order(order)

        assert created.order_id == 5
        assert created.uid is None

    @pytest.mark.asyncio
    async def test_order_rejected(self, make_session, transport, auth_success, order_body):
        transport.reply_to("authenticate", auth_success)
        transport.reply_to("order", {
            "type": "order_rejection",
            "data": {"order_id": 123, "reason": "InsufficientBalance", "ext_order_id": "X"},
        })
        session = make_session()

        async with session:
            with pytest.raises(OrderRejectedError) as exc_info:
                await session.place_order(order_body, ext_order_id="X")
            assert session.state is SessionState.READY

        assert exc_info.value.order_id == 123
        assert exc_info.value.reason.kind == "InsufficientBalance"

    @pytest.mark.asyncio
    async def test_cancel_rejected(self, make_session, transport, auth_success):
        transport.reply_to("authenticate", auth_success)
        transport.reply_to("cancel_order", '{"type":"error","data":"Order not found"}')
        session = make_session()

        async with session:
            with pytest.raises(CancelFailedError) as exc_info:
                await session.cancel_order(7, "BTCUSD.PERP")

        assert exc_info.value.order_id == 7
        assert exc_info.value.symbol == "BTCUSD.PERP"
        assert exc_info.value.reason == "Order not found"

    @pytest.mark.asyncio
    async def test_cancel_success(self, make_session, transport, auth_success):
        transport.reply_to("authenticate", auth_success)
        transport.reply_to("cancel_order", '{"type":"success","data":"Order cancelled","seq":3}')

        async with make_session() as session:
            reason = await session.cancel_order(7, "BTCUSD.PERP")

        assert reason == "Order cancelled"

    @pytest.mark.asyncio
    async def test_fire_and_forget_requests(self, make_session, transport, auth_success):
        transport.reply_to("authenticate", auth_success)

        async with make_session() as session:
            session.get_ticker("BTCUSD.PERP")
            session.fetch_tradable_products()

        assert transport.sent_types == ["authenticate", "get_ticker", "fetch_tradable_products"]


class TestClose:
    """Shutdown behaviour."""

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, make_session, transport, monitor, auth_success):
        transport.reply_to("authenticate", auth_success)
        session = make_session()
        await session.connect()

        await session.close()
        await session.close()

        assert session.state is SessionState.CLOSED
        assert transport.closed
        assert monitor.count("session_closed") == 1

    @pytest.mark.asyncio
    async def test_connect_only_once(self, make_session, transport, auth_success):
        transport.reply_to("authenticate", auth_success)
        session = make_session()
        await session.connect()

        with pytest.raises(KolliderConnectionError):
            await session.connect()
        await session.close()
