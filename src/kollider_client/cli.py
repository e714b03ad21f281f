"""
Kollider command line interface.

Usage:
    kollider products
    kollider --testnet orderbook --level 2 --symbol BTCUSD.PERP
    kollider balances
    kollider order create --price 485155 --quantity 1 --side Bid
    kollider websocket public --symbols .BTCUSD --channels index_values
    kollider websocket private --symbols BTCUSD.PERP --channels ticker fetch_balances

Credentials are taken from --api_key/--api_secret/--password or from the
KOLLIDER_API_KEY, KOLLIDER_API_SECRET and KOLLIDER_API_PASSWORD variables
(a .env file is honoured). Defaults can be set in config.yml.
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .auth import KolliderCredentials
from .client import KolliderClient
from .constants import DEFAULT_SYMBOL
from .errors import KolliderError
from .http_client import HttpClientError
from .models import (
    ChannelName,
    ConnectionConfig,
    DepositBody,
    IntervalSize,
    MarginType,
    OrderBody,
    OrderBookLevel,
    OrderSide,
    OrderType,
    SettlementType,
    WithdrawalBody,
    parse_enum,
)
from .ws import oneshot
from .ws.messages import (
    CancelOrder,
    FetchBalances,
    FetchOpenOrders,
    FetchPositions,
    FetchTradableProducts,
    GetTicker,
    OutboundMessage,
    PlaceOrder,
)
from .ws.session import KolliderSession

logger = logging.getLogger(__name__)

AUTHENTICATED_COMMANDS = {"account", "balances", "positions", "deposit", "withdrawal", "order"}


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from config.yml"""
    config_path = Path(path) if path else Path.cwd() / "config.yml"
    if config_path.exists():
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    return {}


def _datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected an ISO 8601 time, got '{value}'") from None


def _enum_type(enum_cls):
    def convert(value: str):
        try:
            return parse_enum(enum_cls, value)
        except ValueError as e:
            raise argparse.ArgumentTypeError(str(e)) from None
    convert.__name__ = enum_cls.__name__
    return convert


def _channel(value: str) -> ChannelName:
    try:
        return ChannelName.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def _interval(value: str) -> IntervalSize:
    try:
        return IntervalSize.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def _add_order_arguments(parser: argparse.ArgumentParser, symbol: str, leverage: int = 100) -> None:
    parser.add_argument("--symbol", default=symbol)
    parser.add_argument("--quantity", type=int, required=True)
    parser.add_argument("--price", type=int, required=True)
    parser.add_argument("--leverage", type=int, default=leverage)
    parser.add_argument("--side", type=_enum_type(OrderSide), required=True)
    parser.add_argument("--margin_type", type=_enum_type(MarginType), default=MarginType.ISOLATED)
    parser.add_argument("--order_type", type=_enum_type(OrderType), default=OrderType.LIMIT)
    parser.add_argument("--settlement_type", type=_enum_type(SettlementType), default=SettlementType.DELAYED)


def _add_range_arguments(parser: argparse.ArgumentParser, symbol: str) -> None:
    parser.add_argument("--symbol", default=symbol)
    parser.add_argument("--start", type=_datetime, help="ISO time, defaults to one day ago")
    parser.add_argument("--end", type=_datetime, help="ISO time, defaults to now")
    parser.add_argument("--limit", type=int, default=100)


def build_parser(config: Optional[Dict[str, Any]] = None) -> argparse.ArgumentParser:
    """Build the argument parser; config.yml values become defaults."""
    config = config or {}
    logging_config = config.get("logging", {})
    symbol = config.get("default_symbol", DEFAULT_SYMBOL)

    parser = argparse.ArgumentParser(prog="kollider", description="Kollider exchange API client")
    parser.add_argument("--testnet", action="store_true", default=bool(config.get("testnet", False)))
    parser.add_argument("--log_level", default=logging_config.get("level", "WARNING"))
    parser.add_argument("--api_key", default=os.getenv("KOLLIDER_API_KEY"))
    parser.add_argument("--api_secret", default=os.getenv("KOLLIDER_API_SECRET"))
    parser.add_argument("--password", default=os.getenv("KOLLIDER_API_PASSWORD"))

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("products", help="Print available products")

    orderbook = commands.add_parser("orderbook", help="Get info from public orderbook")
    orderbook.add_argument("--level", type=int, choices=(2, 3), default=2)
    orderbook.add_argument("--symbol", default=symbol)

    ticker = commands.add_parser("ticker", help="Get info about given ticker symbol")
    ticker.add_argument("--symbol", default=symbol)

    history = commands.add_parser("history", help="Get historical index prices")
    _add_range_arguments(history, symbol)
    history.add_argument("--interval", type=_interval, default=IntervalSize.FIVE_MIN)

    commands.add_parser("account", help="Get information about the account")
    commands.add_parser("balances", help="Fetch balances via a oneshot WebSocket request")
    commands.add_parser("positions", help="Fetch positions via a oneshot WebSocket request")

    deposit = commands.add_parser("deposit", help="Deposit to the account")
    deposit_networks = deposit.add_subparsers(dest="network", required=True)
    deposit_networks.add_parser("btc", help="Deposit on-chain")
    deposit_ln = deposit_networks.add_parser("ln", help="Deposit with a Lightning invoice")
    deposit_ln.add_argument("--amount", type=int, required=True, help="Amount in sats")

    withdrawal = commands.add_parser("withdrawal", help="Withdraw from the account")
    withdrawal_networks = withdrawal.add_subparsers(dest="network", required=True)
    withdrawal_btc = withdrawal_networks.add_parser("btc", help="Withdraw on-chain")
    withdrawal_btc.add_argument("--address", required=True)
    withdrawal_btc.add_argument("--amount", type=int, required=True)
    withdrawal_ln = withdrawal_networks.add_parser("ln", help="Withdraw by paying a Lightning invoice")
    withdrawal_ln.add_argument("--invoice", required=True)
    withdrawal_ln.add_argument("--amount", type=int, required=True)

    order = commands.add_parser("order", help="Manage orders")
    order_commands = order.add_subparsers(dest="order_command", required=True)
    _add_order_arguments(order_commands.add_parser("create", help="Create an order"), symbol)
    _add_order_arguments(order_commands.add_parser("prediction", help="Predict an order's margin"), symbol)
    _add_range_arguments(order_commands.add_parser("list", help="List historic orders"), symbol)
    order_commands.add_parser("opened", help="List open orders")
    _add_range_arguments(order_commands.add_parser("fills", help="List fills"), symbol)
    order_commands.add_parser("positions", help="List positions")
    cancel = order_commands.add_parser("cancel", help="Cancel an order")
    cancel.add_argument("order_id", type=int)
    cancel.add_argument("--symbol", default=symbol)

    websocket = commands.add_parser("websocket", help="Stream WebSocket messages until interrupted")
    ws_modes = websocket.add_subparsers(dest="ws_mode", required=True)

    public = ws_modes.add_parser("public", help="Without authentication")
    public.add_argument("--symbols", nargs="+", default=[".BTCUSD"])
    public.add_argument("--channels", nargs="+", type=_channel, default=[ChannelName.INDEX_VALUES])

    private = ws_modes.add_parser("private", help="With authentication, optionally sending one action")
    private.add_argument("--symbols", nargs="+", default=[])
    private.add_argument("--channels", nargs="+", type=_channel, default=[])
    actions = private.add_subparsers(dest="action")
    _add_order_arguments(actions.add_parser("order"), symbol)
    ws_cancel = actions.add_parser("cancel_order")
    ws_cancel.add_argument("order_id", type=int)
    ws_cancel.add_argument("--symbol", default=symbol)
    ws_cancel.add_argument("--settlement_type", type=_enum_type(SettlementType), default=SettlementType.DELAYED)
    actions.add_parser("fetch_open_orders")
    actions.add_parser("fetch_positions")
    actions.add_parser("fetch_balances")
    ws_ticker = actions.add_parser("get_ticker")
    ws_ticker.add_argument("--symbol", default=symbol)
    actions.add_parser("tradable_products")

    return parser


def credentials_from_args(args: argparse.Namespace) -> KolliderCredentials:
    """Build credentials from the parsed arguments."""
    if not (args.api_key and args.api_secret and args.password):
        raise KolliderError(
            "API credentials are required: pass --api_key, --api_secret and --password "
            "or set KOLLIDER_API_KEY, KOLLIDER_API_SECRET and KOLLIDER_API_PASSWORD"
        )
    return KolliderCredentials.from_base64(args.api_key, args.api_secret, args.password)


def order_body_from_args(args: argparse.Namespace) -> OrderBody:
    return OrderBody(
        symbol=args.symbol,
        quantity=args.quantity,
        price=args.price,
        leverage=args.leverage,
        side=args.side,
        margin_type=args.margin_type,
        order_type=args.order_type,
        settlement_type=args.settlement_type,
    )


def action_message(args: argparse.Namespace) -> Optional[OutboundMessage]:
    """Outbound message for the optional action of ``websocket private``."""
    action = getattr(args, "action", None)
    if action is None:
        return None
    if action == "order":
        return PlaceOrder.from_body(order_body_from_args(args))
    if action == "cancel_order":
        return CancelOrder(order_id=args.order_id, symbol=args.symbol, settlement_type=args.settlement_type)
    if action == "get_ticker":
        return GetTicker(symbol=args.symbol)
    return {
        "fetch_open_orders": FetchOpenOrders,
        "fetch_positions": FetchPositions,
        "fetch_balances": FetchBalances,
        "tradable_products": FetchTradableProducts,
    }[action]()


def _time_window(args: argparse.Namespace):
    end = args.end or datetime.now()
    start = args.start or end - timedelta(days=1)
    return start, end


def _print(label: str, response: Any) -> None:
    print(f"Response {label}: {response}")


async def run_rest(args: argparse.Namespace, client: KolliderClient) -> None:
    """Execute a REST command and print its response."""
    command = args.command

    if command == "products":
        _print("/market/products", await client.get_products())
    elif command == "orderbook":
        level = OrderBookLevel.from_int(args.level)
        _print("/market/orderbook", await client.get_orderbook(args.symbol, level))
    elif command == "ticker":
        _print("/market/ticker", await client.get_ticker(args.symbol))
    elif command == "history":
        start, end = _time_window(args)
        _print(
            "/market/historic_index_prices",
            await client.get_index_history(args.symbol, start, end, args.interval, args.limit),
        )
    elif command == "account":
        _print("/user/account", await client.get_account())
    elif command == "deposit":
        body = DepositBody.bitcoin() if args.network == "btc" else DepositBody.lightning(args.amount)
        _print("/wallet/deposit", await client.deposit(body))
    elif command == "withdrawal":
        if args.network == "btc":
            body = WithdrawalBody.bitcoin(args.address, args.amount)
        else:
            body = WithdrawalBody.lightning(args.invoice, args.amount)
        _print("/wallet/withdrawal", await client.withdraw(body))
    elif command == "order":
        await _run_order(args, client)
    else:
        raise KolliderError(f"Unknown command: {command}")


async def _run_order(args: argparse.Namespace, client: KolliderClient) -> None:
    sub = args.order_command
    if sub == "create":
        _print("/orders", await client.create_order(order_body_from_args(args)))
    elif sub == "prediction":
        _print("/orders/prediction", await client.order_prediction(order_body_from_args(args)))
    elif sub == "list":
        start, end = _time_window(args)
        _print("/orders", await client.get_orders(args.symbol, start, end, args.limit))
    elif sub == "opened":
        _print("/orders/open", await client.get_open_orders())
    elif sub == "fills":
        start, end = _time_window(args)
        _print("/user/fills", await client.get_fills(args.symbol, start, end, args.limit))
    elif sub == "positions":
        _print("/positions", await client.get_positions())
    elif sub == "cancel":
        _print("/orders", await client.cancel_order(args.symbol, args.order_id))


async def run_websocket(args: argparse.Namespace, config: ConnectionConfig) -> None:
    """Subscribe, optionally send one action, and print every message until interrupted."""
    credentials = config.credentials if args.ws_mode == "private" else None
    session = KolliderSession(credentials, url=config.ws_url, request_timeout=config.request_timeout)
    session.add_listener("*", lambda message: print(f"Received message: {message}"))

    loop = asyncio.get_running_loop()

    def shutdown_handler():
        print("\nShutting down...")
        asyncio.ensure_future(session.close())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown_handler)

    try:
        async with session:
            if args.channels:
                session.subscribe(args.symbols, args.channels)
            message = action_message(args)
            if message is not None:
                session.send(message)
            await session.wait_closed()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


async def run(args: argparse.Namespace) -> None:
    credentials = None
    needs_auth = args.command in AUTHENTICATED_COMMANDS or getattr(args, "ws_mode", None) == "private"
    if needs_auth:
        credentials = credentials_from_args(args)

    preset = ConnectionConfig.testnet if args.testnet else ConnectionConfig.mainnet
    config = preset(credentials)

    if args.command == "balances":
        _print("WS fetch_balances", await oneshot.fetch_balances(credentials, url=config.ws_url))
    elif args.command == "positions":
        _print("WS fetch_positions", await oneshot.fetch_positions(credentials, url=config.ws_url))
    elif args.command == "websocket":
        await run_websocket(args, config)
    else:
        async with KolliderClient(config) as client:
            await run_rest(args, client)


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    config = load_config()
    parser = build_parser(config)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        asyncio.run(run(args))
    except HttpClientError as e:
        logger.error(f"Request failed: {e}")
        return 1
    except KolliderError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
