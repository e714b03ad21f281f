"""
WebSocket transport over aiohttp.

Owns the single duplex connection. Outbound messages are queued and written
in submission order by a writer task; a reader task decodes text frames and
queues typed inbound messages. Frames that fail to decode or carry an
unknown type are reported to the event sink and skipped. ``receive`` returns
``None`` once the remote closes or the connection fails.
"""

import asyncio
from typing import Optional

import aiohttp

from ..constants import DEFAULT_WS_URL, WS_CONNECT_TIMEOUT, WS_HEARTBEAT
from ..errors import DecodeError, KolliderConnectionError
from ..monitoring import EventSink
from .inbound import InboundMessage, UnknownMessage, decode
from .messages import OutboundMessage, encode

_END = object()


class WebSocketTransport:
    """Typed duplex channel over one aiohttp WebSocket connection."""

    def __init__(
        self,
        url: str = DEFAULT_WS_URL,
        sink: Optional[EventSink] = None,
        heartbeat: float = WS_HEARTBEAT,
        connect_timeout: float = WS_CONNECT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the transport.

        Args:
            url: WebSocket endpoint
            sink: Event sink for traffic and failures
            heartbeat: Interval of aiohttp ping frames, pongs are handled internally
            connect_timeout: Upper bound for establishing the connection
            session: Existing aiohttp session, one is created and owned otherwise
        """
        self.url = url
        self.heartbeat = heartbeat
        self.connect_timeout = connect_timeout
        self._sink = sink or EventSink()
        self._session = session
        self._owns_session = session is None

        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._inbound: asyncio.Queue = asyncio.Queue()
        self._outbound: asyncio.Queue = asyncio.Queue()
        self._reader_task: Optional[asyncio.Task] = None
        self._writer_task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._closed

    async def connect(self) -> None:
        """
        Establish the connection and start the reader and writer tasks.

        Raises:
            KolliderConnectionError: DNS, TLS, refused connection or timeout
        """
        if self._ws is not None or self._closed:
            raise KolliderConnectionError("Transport can only be connected once")

        if self._session is None:
            self._session = aiohttp.ClientSession()

        try:
            ws = await asyncio.wait_for(
                self._session.ws_connect(self.url, heartbeat=self.heartbeat),
                timeout=self.connect_timeout,
            )
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            self._closed = True
            await self._close_session()
            self._sink.emit("connect_failed", url=self.url, error=str(e) or type(e).__name__)
            raise KolliderConnectionError(f"Failed to connect to {self.url}: {e}") from e

        self._ws = ws
        self._reader_task = asyncio.create_task(self._read_loop())
        self._writer_task = asyncio.create_task(self._write_loop())
        self._sink.emit("connected", url=self.url)

    def send(self, message: OutboundMessage) -> None:
        """
        Queue a message for sending. Never blocks; order is preserved.

        Raises:
            KolliderConnectionError: the transport is closed
        """
        if self._closed:
            raise KolliderConnectionError("WebSocket transport is closed")
        self._outbound.put_nowait(message)

    async def receive(self) -> Optional[InboundMessage]:
        """Next decoded message, or None once the stream has ended."""
        item = await self._inbound.get()
        if item is _END:
            # keep the end marker for any later receiver
            self._inbound.put_nowait(_END)
            return None
        return item

    def __aiter__(self):
        return self

    async def __anext__(self) -> InboundMessage:
        message = await self.receive()
        if message is None:
            raise StopAsyncIteration
        return message

    async def close(self) -> None:
        """Flush queued messages, close the socket and wait for the tasks to end."""
        if self._ws is None:
            self._closed = True
            await self._close_session()
            return

        self._closed = True
        if self._writer_task is not None:
            self._outbound.put_nowait(_END)
            await self._writer_task
        if not self._ws.closed:
            await self._ws.close()
        if self._reader_task is not None:
            await self._reader_task
        await self._close_session()

    async def _close_session(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _read_loop(self) -> None:
        ws = self._ws
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._handle_frame(msg.data)
                elif msg.type == aiohttp.WSMsgType.BINARY:
                    self._handle_frame(msg.data.decode("utf-8", errors="replace"))
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self._sink.emit("transport_error", error=str(ws.exception()))
                    break
                elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                    break
        except (aiohttp.ClientError, OSError, RuntimeError) as e:
            self._sink.emit("transport_error", error=str(e) or type(e).__name__)
        finally:
            self._closed = True
            self._sink.emit("stream_closed", url=self.url)
            self._inbound.put_nowait(_END)
            if self._writer_task is not None and not self._writer_task.done():
                self._outbound.put_nowait(_END)

    def _handle_frame(self, data: str) -> None:
        try:
            message = decode(data)
        except DecodeError as e:
            self._sink.emit("frame_decode_failed", error=str(e), raw=data)
            return

        if isinstance(message, UnknownMessage):
            self._sink.emit("frame_unrecognized", type=message.type_name, raw=data)
            return

        self._sink.emit("frame_received", type=message.TYPE, seq=message.seq)
        self._inbound.put_nowait(message)

    async def _write_loop(self) -> None:
        while True:
            message = await self._outbound.get()
            if message is _END:
                break
            try:
                await self._ws.send_str(encode(message))
            except (aiohttp.ClientError, OSError, RuntimeError) as e:
                self._sink.emit("transport_error", error=str(e) or type(e).__name__)
                await self._ws.close()
                break
            # payloads may carry credentials, only the type is reported
            self._sink.emit("frame_sent", type=message.TYPE)
