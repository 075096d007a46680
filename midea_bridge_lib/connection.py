"""TCP connection to the serial bridge: receive buffer, dispatch, reconnect and send queue."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import socket
from collections.abc import Callable
from enum import Enum

from .const import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_PORT,
    DEFAULT_RECONNECT_INTERVAL,
    DEFAULT_WRITE_TIMEOUT,
    READ_CHUNK_SIZE,
)
from .exceptions import TransportError
from .protocol import DecodedFrame, FrameCodec, format_buffer

_LOGGER = logging.getLogger(__name__)


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class SendQueue:
    """Single-consumer write queue so wire order matches call order."""

    def __init__(self, write_timeout: float = DEFAULT_WRITE_TIMEOUT):
        self.write_timeout = write_timeout
        self._queue: asyncio.Queue | None = None
        self._worker: asyncio.Task | None = None
        self._writer: asyncio.StreamWriter | None = None

    @property
    def running(self) -> bool:
        return self._queue is not None

    def start(self, writer: asyncio.StreamWriter) -> None:
        self._writer = writer
        self._queue = asyncio.Queue()
        self._worker = asyncio.create_task(self._run())

    async def put(self, data: bytes, context: str = "frame") -> None:
        """Queue ``data`` and wait until it has been written and drained."""
        if self._queue is None:
            raise TransportError("Not connected to serial bridge")
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((data, context, future))
        await future

    def stop(self, error: Exception) -> None:
        """Stop the worker and fail every write still waiting in the queue."""
        queue, self._queue = self._queue, None
        worker, self._worker = self._worker, None
        self._writer = None
        if worker is not None and not worker.done():
            worker.cancel()
        if queue is None:
            return
        while not queue.empty():
            _, _, future = queue.get_nowait()
            if not future.done():
                future.set_exception(error)

    async def _run(self) -> None:
        queue, writer = self._queue, self._writer
        while True:
            data, context, future = await queue.get()
            if future.done():
                continue
            try:
                writer.write(data)
                await asyncio.wait_for(writer.drain(), self.write_timeout)
            except asyncio.CancelledError:
                if not future.done():
                    future.set_exception(TransportError("Send queue stopped"))
                raise
            except (OSError, asyncio.TimeoutError) as err:
                _LOGGER.debug("Failed to send %s to bridge: %s", context, err)
                if not future.done():
                    future.set_exception(TransportError(f"Failed to send {context}: {err!r}"))
            else:
                if not future.done():
                    future.set_result(None)


class BridgeConnection:
    """Owns the socket, the receive buffer and the reconnect timer.

    Decoded frames are handed to ``on_frame(frame, raw)``. When the link
    drops, ``on_connection_lost(exc, cause)`` runs before the single
    reconnect timer is armed.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        codec: FrameCodec | None = None,
        reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
        on_frame: Callable[[DecodedFrame, bytes], None] | None = None,
        on_connected: Callable[[], None] | None = None,
        on_connection_lost: Callable[[Exception, Exception | None], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ):
        self.host = host
        self.port = port
        self.codec = codec or FrameCodec()
        self.reconnect_interval = reconnect_interval
        self.connect_timeout = connect_timeout
        self.state = ConnectionState.DISCONNECTED
        self.on_frame = on_frame
        self.on_connected = on_connected
        self.on_connection_lost = on_connection_lost
        self.on_error = on_error

        self._buffer = bytearray()
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._read_task: asyncio.Task | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._connect_attempt: asyncio.Future | None = None
        self._closing = False
        self._send_queue = SendQueue(write_timeout)

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def reconnect_scheduled(self) -> bool:
        return self._reconnect_handle is not None

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    async def connect(self) -> None:
        """Open the socket. On failure a reconnect is armed and TransportError raised.

        A call made while another attempt is in flight waits for that attempt.
        """
        if self.state is ConnectionState.CONNECTING and self._connect_attempt is not None:
            await asyncio.shield(self._connect_attempt)
            return
        if self.state is not ConnectionState.DISCONNECTED:
            return
        attempt = self._connect_attempt = asyncio.get_running_loop().create_future()
        error = TransportError("Connection attempt cancelled")
        try:
            await self._open()
            if not self.connected:
                error = TransportError("Disconnected from serial bridge")
        except TransportError as err:
            error = err
            raise
        finally:
            if self._connect_attempt is attempt:
                self._connect_attempt = None
            if self.connected:
                attempt.set_result(None)
            else:
                attempt.set_exception(error)
                # Waiters re-raise it; nobody else reads it
                attempt.exception()

    async def _open(self) -> None:
        self._closing = False
        self._cancel_reconnect()
        self.state = ConnectionState.CONNECTING
        _LOGGER.debug("Connecting to serial bridge %s:%s", self.host, self.port)

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError) as err:
            self.state = ConnectionState.DISCONNECTED
            _LOGGER.error("Failed to connect to serial bridge %s:%s: %r", self.host, self.port, err)
            self._schedule_reconnect()
            error = TransportError(f"Failed to connect to {self.host}:{self.port}: {err!r}")
            if self.on_error:
                self.on_error(error)
            raise error from err

        if self._closing:
            writer.close()
            self.state = ConnectionState.DISCONNECTED
            return

        sock = writer.get_extra_info("socket")
        if sock is not None:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        self._reader, self._writer = reader, writer
        self._buffer.clear()
        self.state = ConnectionState.CONNECTED
        self._send_queue.start(writer)
        self._read_task = asyncio.create_task(self._read_loop())
        _LOGGER.info("Connected to %s:%s", self.host, self.port)
        if self.on_connected:
            self.on_connected()

    async def disconnect(self) -> None:
        """Close the socket and stop reconnecting until the next connect()."""
        self._closing = True
        self._cancel_reconnect()
        reconnect_task, self._reconnect_task = self._reconnect_task, None
        if reconnect_task is not None and reconnect_task is not asyncio.current_task():
            reconnect_task.cancel()

        read_task = self._read_task
        writer = self._writer
        self._teardown(TransportError("Disconnected from serial bridge"))
        self.state = ConnectionState.DISCONNECTED

        if read_task is not None and not read_task.done():
            read_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await read_task
        if writer is not None:
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    async def send(self, data: bytes, context: str = "frame") -> None:
        """Write through the send queue; raises TransportError when not connected."""
        if not self.connected:
            raise TransportError("Not connected to serial bridge")
        _LOGGER.debug("Sending %s to bridge (%d bytes): %s", context, len(data), format_buffer(data))
        await self._send_queue.put(data, context)

    def feed(self, data: bytes) -> None:
        """Append received bytes and dispatch every complete frame."""
        _LOGGER.debug("Received data chunk (%d bytes) from bridge: %s", len(data), format_buffer(data))
        self._buffer += data
        while True:
            frame = self.codec.decode(self._buffer)
            if frame is None or frame.frame_length <= 0 or len(self._buffer) < frame.frame_length:
                return
            raw = bytes(self._buffer[: frame.frame_length])
            del self._buffer[: frame.frame_length]
            if self.on_frame is None:
                continue
            try:
                self.on_frame(frame, raw)
            except Exception:
                _LOGGER.exception("Failed to handle frame %r", frame)

    async def _read_loop(self) -> None:
        cause = None
        try:
            while True:
                chunk = await self._reader.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                self.feed(chunk)
        except asyncio.CancelledError:
            raise
        except OSError as err:
            cause = err
            _LOGGER.error("Serial bridge error: %r", err)
        self._read_task = None
        self._connection_lost(cause)

    def _connection_lost(self, cause: Exception | None) -> None:
        if self.state is ConnectionState.DISCONNECTED:
            return
        _LOGGER.warning("Serial bridge connection closed")
        if cause is not None:
            error = TransportError(f"Serial bridge error: {cause!r}")
        else:
            error = TransportError("Serial bridge connection closed")
        self._teardown(error)
        self.state = ConnectionState.DISCONNECTED
        if self.on_connection_lost:
            self.on_connection_lost(error, cause)
        self._schedule_reconnect()

    def _teardown(self, error: Exception) -> None:
        self._send_queue.stop(error)
        writer, self._writer = self._writer, None
        self._reader = None
        self._read_task = None
        self._buffer.clear()
        if writer is not None:
            writer.close()

    def _schedule_reconnect(self) -> None:
        if self._closing or self._reconnect_handle is not None:
            return
        _LOGGER.debug("Reconnecting to %s:%s in %ss", self.host, self.port, self.reconnect_interval)
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self.reconnect_interval, self._reconnect)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _reconnect(self) -> None:
        self._reconnect_handle = None
        self._reconnect_task = asyncio.ensure_future(self._attempt_reconnect())

    async def _attempt_reconnect(self) -> None:
        try:
            await self.connect()
        except TransportError:
            # connect() has already armed the next attempt
            return
        finally:
            if self._reconnect_task is asyncio.current_task():
                self._reconnect_task = None
