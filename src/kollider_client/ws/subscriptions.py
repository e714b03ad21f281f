"""
Subscription multiplexer.

Tracks which (symbol, channel) pairs were subscribed and broadcasts push
messages that no pending request claimed to the listeners registered for
the message's channel. A failing listener never affects other listeners or
the receive loop.
"""

import asyncio
import inspect
from collections import defaultdict
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple, Union

from ..models.market import ChannelName
from ..monitoring import EventSink
from .inbound import InboundMessage
from .messages import OutboundMessage, Subscribe, Unsubscribe, subscription_pairs

ALL_MESSAGES = "*"

Listener = Callable[[InboundMessage], Any]
ChannelLike = Union[ChannelName, str]


def _channel(value: ChannelLike) -> ChannelName:
    if isinstance(value, ChannelName):
        return value
    return ChannelName.parse(value)


def _listener_key(key: ChannelLike) -> str:
    if isinstance(key, ChannelName):
        return key.value
    return key


class SubscriptionMultiplexer:
    """Sends subscribe/unsubscribe messages and fans out push messages."""

    def __init__(self, send: Callable[[OutboundMessage], None], sink: Optional[EventSink] = None):
        """
        Args:
            send: Non-blocking outbound send handle shared with the session
            sink: Event sink for subscription changes and listener failures
        """
        self._send = send
        self._sink = sink or EventSink()
        self._subscriptions: Set[Tuple[str, ChannelName]] = set()
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._tasks: Set[asyncio.Task] = set()

    @property
    def subscriptions(self) -> FrozenSet[Tuple[str, ChannelName]]:
        return frozenset(self._subscriptions)

    def subscribe(self, symbols: Iterable[str], channels: Iterable[ChannelLike]) -> None:
        """Send one subscribe message; the exchange does not acknowledge it."""
        symbols = list(symbols)
        channels = [_channel(channel) for channel in channels]
        self._send(Subscribe(symbols=symbols, channels=channels))
        self._subscriptions.update(subscription_pairs(symbols, channels))
        self._sink.emit("subscribed", symbols=symbols, channels=[channel.value for channel in channels])

    def unsubscribe(self, symbols: Iterable[str], channels: Iterable[ChannelLike]) -> None:
        symbols = list(symbols)
        channels = [_channel(channel) for channel in channels]
        self._send(Unsubscribe(symbols=symbols, channels=channels))
        self._subscriptions.difference_update(subscription_pairs(symbols, channels))
        self._sink.emit("unsubscribed", symbols=symbols, channels=[channel.value for channel in channels])

    def add_listener(self, key: ChannelLike, callback: Listener) -> None:
        """
        Register a callback for a listener key.

        Keys are channel names (``index_values``, ``orderbook_level2``,
        ``ticker``, ``matches``), ``fills``, ``account`` for order lifecycle
        and account pushes, or ``*`` for every message. Callbacks may be
        plain functions or coroutine functions.
        """
        self._listeners[_listener_key(key)].append(callback)

    def remove_listener(self, key: ChannelLike, callback: Listener) -> bool:
        listeners = self._listeners.get(_listener_key(key), [])
        if callback in listeners:
            listeners.remove(callback)
            return True
        return False

    def dispatch(self, message: InboundMessage) -> int:
        """Deliver a message to its channel listeners and the catch-all ones."""
        listeners = list(self._listeners.get(message.CHANNEL, []))
        listeners.extend(self._listeners.get(ALL_MESSAGES, []))

        for callback in listeners:
            try:
                result = callback(message)
            except Exception as e:
                self._report(callback, message, e)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(lambda done, cb=callback: self._on_task_done(done, cb, message))
        return len(listeners)

    async def wait_idle(self) -> None:
        """Wait until every running coroutine listener has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_task_done(self, task: asyncio.Task, callback: Listener, message: InboundMessage) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._report(callback, message, error)

    def _report(self, callback: Listener, message: InboundMessage, error: BaseException) -> None:
        name = getattr(callback, "__qualname__", repr(callback))
        self._sink.emit("listener_error", listener=name, type=message.TYPE, error=repr(error))
