# -*- coding: utf-8 -*-
"""
Tests for the open-request-close helpers.
"""

from unittest.mock import patch

import pytest

from kollider_client.errors import CancelFailedError
from kollider_client.models import OrderBody, OrderSide
from kollider_client.ws import oneshot
from kollider_client.ws.session import KolliderSession


@pytest.fixture
def patched_session(transport, monitor, auth_success):
    """Route oneshot sessions through the fake transport."""
    transport.reply_to("authenticate", auth_success)

    def factory(credentials, url, sink, request_timeout):
        return KolliderSession(credentials, url=url, transport=transport, sink=monitor,
                               request_timeout=request_timeout)

    with patch("kollider_client.ws.oneshot.KolliderSession", side_effect=factory) as mock_session:
        yield mock_session


class TestOneshotHelpers:
    """Each helper authenticates, performs one call and closes."""

    @pytest.mark.asyncio
    async def test_fetch_balances(self, patched_session, transport, credentials, balances_frame):
        transport.reply_to("fetch_balances", balances_frame)

        balances = await oneshot.fetch_balances(credentials, timeout=1.0)

        assert balances.cash == 1000.5
        assert transport.sent_types == ["authenticate", "fetch_balances"]
        assert transport.closed
        assert patched_session.call_args.kwargs["request_timeout"] == 1.0

    @pytest.mark.asyncio
    async def test_fetch_open_orders(self, patched_session, transport, credentials, open_orders_frame):
        transport.reply_to("fetch_open_orders", open_orders_frame)

        open_orders = await oneshot.fetch_open_orders(credentials)

        assert open_orders["BTCUSD.PERP"][0].uid == 7051
        assert transport.closed

    @pytest.mark.asyncio
    async def test_open_order(self, patched_session, transport, credentials, open_frame):
        body = OrderBody(symbol="BTCUSD.PERP", quantity=1, price=485155, leverage=1, side=OrderSide.BID)

        original_send = transport.send

        def send_and_open(message):
            original_send(message)
            if message.TYPE == "order":
                transport.feed(open_frame(order_id=9640692, ext_order_id=message.ext_order_id))

        transport.send = send_and_open

        created = await oneshot.open_order(credentials, body)

        assert created.order_id == 9640692
        assert created.ext_order_id == transport.sent[1].ext_order_id

    @pytest.mark.asyncio
    async def test_cancel_order_failure_closes_session(self, patched_session, transport, credentials):
        transport.reply_to("cancel_order", '{"type":"error","data":"Order not found"}')

        with pytest.raises(CancelFailedError):
            await oneshot.cancel_order(credentials, 7, "BTCUSD.PERP")

        assert transport.closed
