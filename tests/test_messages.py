# -*- coding: utf-8 -*-
"""
Tests for outbound WebSocket messages and their wire encoding.
"""

import json
import uuid

import pytest

from kollider_client.auth import serialize_body
from kollider_client.models import ChannelName, OrderBody, OrderSide, SettlementType
from kollider_client.ws.messages import (
    OUTBOUND_TYPES,
    Authenticate,
    CancelOrder,
    FetchBalances,
    FetchOpenOrders,
    FetchPositions,
    FetchTradableProducts,
    GetTicker,
    PlaceOrder,
    Subscribe,
    Unsubscribe,
    encode,
    new_ext_order_id,
    subscription_pairs,
)


class TestEncodeGolden:
    """Exact wire text for every outbound variant."""

    def test_cancel_order(self):
        message = CancelOrder(order_id=42, symbol="BTCUSD.PERP", settlement_type=SettlementType.DELAYED)
        assert encode(message) == (
            '{"type":"cancel_order","order_id":42,"symbol":"BTCUSD.PERP","settlement_type":"Delayed"}'
        )

    def test_cancel_order_defaults_to_delayed(self):
        assert CancelOrder(order_id=7, symbol="BTCUSD.PERP").settlement_type is SettlementType.DELAYED

    def test_place_order(self):
        message = PlaceOrder.new(
            price=485155,
            quantity=1,
            symbol="BTCUSD.PERP",
            leverage=1,
            side=OrderSide.BID,
            ext_order_id="X",
        )
        assert encode(message) == (
            '{"type":"order","price":485155,"quantity":1,"symbol":"BTCUSD.PERP","leverage":1,'
            '"side":"Bid","margin_type":"Isolated","order_type":"Limit",'
            '"settlement_type":"Delayed","ext_order_id":"X"}'
        )

    def test_subscribe(self):
        message = Subscribe(symbols=[".BTCUSD"], channels=[ChannelName.INDEX_VALUES])
        assert encode(message) == '{"type":"subscribe","symbols":[".BTCUSD"],"channels":["index_values"]}'

    def test_unsubscribe(self):
        message = Unsubscribe(
            symbols=["BTCUSD.PERP"],
            channels=[ChannelName.ORDERBOOK_LEVEL2, ChannelName.TICKER],
        )
        assert encode(message) == (
            '{"type":"unsubscribe","symbols":["BTCUSD.PERP"],"channels":["orderbook_level2","ticker"]}'
        )

    def test_authenticate(self):
        message = Authenticate(token="key", passphrase="pass", signature="c2ln", timestamp="1639663512")
        assert encode(message) == (
            '{"type":"authenticate","token":"key","passphrase":"pass",'
            '"signature":"c2ln","timestamp":"1639663512"}'
        )

    @pytest.mark.parametrize("message_cls,literal", [
        (FetchOpenOrders, "fetch_open_orders"),
        (FetchPositions, "fetch_positions"),
        (FetchBalances, "fetch_balances"),
        (FetchTradableProducts, "fetch_tradable_products"),
    ])
    def test_fieldless_requests(self, message_cls, literal):
        assert encode(message_cls()) == f'{{"type":"{literal}"}}'

    def test_get_ticker(self):
        assert encode(GetTicker(symbol="BTCUSD.PERP")) == '{"type":"get_ticker","symbol":"BTCUSD.PERP"}'


class TestOutboundModel:
    """Discriminants, correlation ids and credential hygiene."""

    def test_discriminants_are_unique(self):
        assert len(OUTBOUND_TYPES) == 10
        assert set(OUTBOUND_TYPES) == {
            "subscribe", "unsubscribe", "authenticate", "order", "cancel_order",
            "fetch_open_orders", "fetch_positions", "fetch_balances",
            "get_ticker", "fetch_tradable_products",
        }

    def test_type_comes_first(self):
        payload = json.loads(encode(GetTicker(symbol="BTCUSD.PERP")))
        assert list(payload)[0] == "type"

    def test_new_ext_order_id_is_uuid4(self):
        value = new_ext_order_id()
        assert str(uuid.UUID(value)) == value
        assert uuid.UUID(value).version == 4
        assert value != new_ext_order_id()

    def test_from_body_generates_ext_order_id(self):
        body = OrderBody(symbol="BTCUSD.PERP", quantity=1, price=485155, leverage=1, side=OrderSide.ASK)
        first = PlaceOrder.from_body(body)
        second = PlaceOrder.from_body(body)
        assert first.ext_order_id != second.ext_order_id
        assert first.to_body() == body

    def test_from_body_keeps_given_ext_order_id(self):
        body = OrderBody(symbol="BTCUSD.PERP", quantity=1, price=485155, leverage=1, side=OrderSide.ASK)
        assert PlaceOrder.from_body(body, "X").ext_order_id == "X"

    def test_authenticate_repr_hides_secrets(self):
        message = Authenticate(token="key", passphrase="pass", signature="c2ln", timestamp="1")
        text = repr(message)
        assert "key" in text
        assert "pass" not in text
        assert "c2ln" not in text

    def test_subscription_pairs(self):
        pairs = subscription_pairs(["A", "B"], [ChannelName.TICKER])
        assert set(pairs) == {("A", ChannelName.TICKER), ("B", ChannelName.TICKER)}


class TestOrderBody:
    """REST order body serialization."""

    def test_compact_body(self):
        body = OrderBody(symbol="BTCUSD.PERP", quantity=10, price=100, leverage=100, side=OrderSide.BID)
        assert serialize_body(body.to_dict()) == (
            '{"symbol":"BTCUSD.PERP","quantity":10,"leverage":100,"side":"Bid",'
            '"margin_type":"Isolated","order_type":"Limit","settlement_type":"Delayed","price":100}'
        )
