"""High-level serial bridge client: connection, correlation, status cache and events."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

from .config import BridgeConfig
from .connection import BridgeConnection
from .const import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_PORT,
    DEFAULT_RECONNECT_INTERVAL,
    DEFAULT_TIMEOUT,
    ENUM_DATAPOINTS,
    STATUS_POLL_MIN_INTERVAL,
    VARIANT_BRIDGE,
)
from .correlator import RequestCorrelator
from .events import (
    EVENT_CONNECTED,
    EVENT_DISCONNECTED,
    EVENT_ERROR,
    EVENT_FRAME,
    EVENT_FRAME_ERROR,
    EVENT_STATUS,
    EVENT_STATUS_DATA,
    EVENT_UNCONFIRMED,
    EventEmitter,
)
from .exceptions import (
    FrameError,
    MideaBridgeError,
    NotWritableError,
    TransportError,
    UnknownDatapointError,
)
from .protocol import (
    REQUESTS,
    STATUS_POLL,
    CommandDefinition,
    DatapointRequest,
    DecodedFrame,
    FrameCodec,
    format_buffer,
)
from .status import ProtocolVariant, StatusReport, get_variant, parse_status_frame
from .status_cache import ANY, StatusCache
from .values import ValueRepresentation, normalize_enum_name, normalize_write_value, to_wire_code

_LOGGER = logging.getLogger(__name__)

QUERY_COMMANDS = {definition.query.command: datapoint_id for datapoint_id, definition in REQUESTS.items()}


class MideaSerialBridge(EventEmitter):
    """Midea air conditioner behind a TCP serial bridge.

    Values come from the versioned status cache, which is fed by unsolicited
    ``0xAC`` status frames. ``query`` and ``set`` send a command and wait for
    the next snapshot that carries the datapoint.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        variant: str | ProtocolVariant = VARIANT_BRIDGE,
        representation: ValueRepresentation | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ):
        super().__init__()
        self.variant = get_variant(variant)
        self.timeout = timeout
        self.representation = representation or ValueRepresentation()
        self.codec = FrameCodec(self.variant.push_checksum)
        self.connection = BridgeConnection(
            host,
            port,
            codec=self.codec,
            reconnect_interval=reconnect_interval,
            connect_timeout=connect_timeout,
            on_frame=self._handle_frame,
            on_connected=self._handle_connected,
            on_connection_lost=self._handle_connection_lost,
            on_error=self._handle_connect_error,
        )
        self.correlator = RequestCorrelator(self.connection.send)
        self.status = StatusCache()
        self._last_status_poll: float | None = None

    @classmethod
    def from_config(cls, config: BridgeConfig) -> MideaSerialBridge:
        return cls(
            config.host,
            config.port,
            reconnect_interval=config.reconnect_interval,
            timeout=config.timeout,
            variant=config.variant,
            representation=config.representation,
        )

    @property
    def host(self) -> str:
        return self.connection.host

    @property
    def port(self) -> int:
        return self.connection.port

    @property
    def connected(self) -> bool:
        return self.connection.connected

    @property
    def status_version(self) -> int:
        return self.status.version

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, *exc_info):
        await self.disconnect()

    async def connect(self) -> None:
        await self.connection.connect()

    async def disconnect(self) -> None:
        was_connected = self.connection.connected
        self._fail_outstanding(TransportError("Disconnected from serial bridge"))
        await self.connection.disconnect()
        if was_connected:
            _LOGGER.info("Disconnected from %s:%s", self.host, self.port)
            self.emit(EVENT_DISCONNECTED)

    def status_values(self) -> dict:
        """Latest cached values, in the configured representation."""
        return self.representation.present_all(self.status.snapshot())

    async def request_status(self, timeout: float | None = None, baseline_version: int | None = None) -> dict:
        """Poll for a status frame and wait until the cache moves past the baseline."""
        timeout = self.timeout if timeout is None else timeout
        baseline = self.status.version if baseline_version is None else baseline_version
        wait = self.status.wait_for(ANY, timeout, min_version=baseline)
        try:
            await self._send_status_poll()
        except TransportError as err:
            wait.cancel(err)
            raise
        await wait
        return self.status_values()

    async def get_status(self, timeout: float | None = None) -> dict:
        """Fresh status when the unit answers in time, otherwise the last known values."""
        try:
            return await self.request_status(timeout)
        except MideaBridgeError as err:
            if not len(self.status):
                raise
            _LOGGER.debug("Status poll failed (%s), returning cached values", err)
            return self.status_values()

    async def query(self, datapoint_id: str, timeout: float | None = None, require_fresh: bool = True):
        """Ask the unit for one datapoint and wait for it to be reported."""
        definition = self._definition(datapoint_id)
        timeout = self.timeout if timeout is None else timeout

        if not require_fresh:
            cached = self.status.get(datapoint_id)
            if cached is not None:
                return self.representation.present(datapoint_id, cached.value)

        wait = self.status.wait_for(datapoint_id, timeout, min_version=self.status.version)
        encoded = self.codec.encode(definition.query)
        try:
            await self.connection.send(encoded.buffer, f"query {datapoint_id}")
        except TransportError as err:
            wait.cancel(err)
            raise

        try:
            value = await wait
        except MideaBridgeError as err:
            cached = self.status.get(datapoint_id)
            if cached is None:
                raise
            _LOGGER.debug("Query for %s failed (%s), returning cached value", datapoint_id, err)
            value = cached.value
        return self.representation.present(datapoint_id, value)

    async def set(self, datapoint_id: str, value, timeout: float | None = None, refresh: bool = False):
        """Write a datapoint and wait for the unit to report it.

        Invalid values raise ValueError before anything is sent. When no
        confirming status arrives, the last cached value (or else the
        requested value) is returned and an ``unconfirmed`` event is emitted.
        """
        definition = self._definition(datapoint_id)
        if not definition.writable:
            raise NotWritableError(f"{datapoint_id} is read-only")
        timeout = self.timeout if timeout is None else timeout

        canonical = normalize_write_value(datapoint_id, value)
        wire_value = to_wire_code(datapoint_id, canonical) if datapoint_id in ENUM_DATAPOINTS else canonical
        encoded = self.codec.encode(definition.set, {"value": wire_value})

        wait = self.status.wait_for(datapoint_id, timeout, min_version=self.status.version)
        _LOGGER.debug("Setting %s to %r", datapoint_id, canonical)
        try:
            await self.connection.send(encoded.buffer, f"set {datapoint_id}")
            if refresh:
                await self._send_status_poll()
        except TransportError as err:
            wait.cancel(err)
            raise

        try:
            confirmed = await wait
        except MideaBridgeError as err:
            cached = self.status.get(datapoint_id)
            if cached is not None:
                _LOGGER.debug("Set %s unconfirmed (%s), returning cached value", datapoint_id, err)
                result = self.representation.present(datapoint_id, cached.value)
            else:
                _LOGGER.debug("Set %s unconfirmed (%s), returning requested value", datapoint_id, err)
                result = self.representation.present(datapoint_id, canonical)
            self.emit(EVENT_UNCONFIRMED, datapoint_id, result, err)
            return result
        return self.representation.present(datapoint_id, confirmed)

    async def send_command(self, command: Mapping, timeout: float | None = None):
        """Run a command object.

        ``{"command": 0x41, "payload": [...]}`` is sent as a raw frame and the
        response payload returned. Any other mapping is treated as
        ``{datapoint: value}`` pairs applied in order with ``set``; all of
        them share one ``timeout``, so the whole command is bounded by it.
        """
        if not isinstance(command, Mapping) or not command:
            raise ValueError("Command must be an object with key/value pairs")
        timeout = self.timeout if timeout is None else timeout

        raw_command = command.get("command")
        if isinstance(raw_command, int) and not isinstance(raw_command, bool):
            if not 0 <= raw_command <= 0xFF:
                raise ValueError(f"Command byte out of range: {raw_command}")
            payload = _coerce_payload(command.get("payload"))
            encoded = self.codec.encode(CommandDefinition(raw_command, payload))
            return await self.correlator.send_request(
                encoded.buffer,
                encoded.sequence,
                timeout,
                {"operation": "command", "command": raw_command},
            )

        for datapoint_id, value in command.items():
            definition = self._definition(datapoint_id)
            if not definition.writable:
                raise NotWritableError(f"{datapoint_id} is read-only")
            normalize_write_value(datapoint_id, value)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        results = {}
        for datapoint_id, value in command.items():
            remaining = max(deadline - loop.time(), 0)
            results[datapoint_id] = await self.set(datapoint_id, value, timeout=remaining)
        return results

    def _definition(self, datapoint_id: str) -> DatapointRequest:
        try:
            return REQUESTS[datapoint_id]
        except KeyError:
            raise UnknownDatapointError(f"Unknown datapoint {datapoint_id!r}") from None

    async def _send_status_poll(self) -> bool:
        """Send the status poll unless one went out in the last 200 ms."""
        now = asyncio.get_running_loop().time()
        if self._last_status_poll is not None and now - self._last_status_poll < STATUS_POLL_MIN_INTERVAL:
            _LOGGER.debug("Status poll rate limited")
            return False
        self._last_status_poll = now
        encoded = self.codec.encode(STATUS_POLL)
        await self.connection.send(encoded.buffer, "status poll")
        return True

    def _fail_outstanding(self, error: Exception) -> None:
        self.correlator.reject_all(error)
        self.status.reject_all(error)

    def _handle_connected(self) -> None:
        self.emit(EVENT_CONNECTED)

    def _handle_connect_error(self, error: Exception) -> None:
        self.emit(EVENT_ERROR, error)

    def _handle_connection_lost(self, error: Exception, cause: Exception | None) -> None:
        self._fail_outstanding(error)
        if cause is not None:
            self.emit(EVENT_ERROR, cause)
        self.emit(EVENT_DISCONNECTED)

    def _handle_frame(self, frame: DecodedFrame, raw: bytes) -> None:
        if frame.error:
            err = FrameError(frame.error, raw)
            _LOGGER.warning("Dropping invalid %s frame: %s (%s)", frame.type, err, format_buffer(raw))
            self.emit(EVENT_FRAME_ERROR, err)
            return

        if frame.is_push:
            self._handle_push(frame, raw)
            return

        _LOGGER.debug(
            "Decoded frame sequence %s (%s, command 0x%02X) with payload: %s",
            frame.sequence,
            frame.type,
            frame.command,
            format_buffer(frame.payload),
        )
        if self.correlator.resolve(frame):
            return
        self._record_query_response(frame)
        self.emit(EVENT_FRAME, frame, raw)

    def _handle_push(self, frame: DecodedFrame, raw: bytes) -> None:
        _LOGGER.debug(
            "Received status frame (command 0x%02X, %d bytes): %s",
            frame.command,
            len(frame.payload),
            format_buffer(frame.payload),
        )
        report: StatusReport | None = parse_status_frame(frame.command, frame.payload, self.variant)
        if report is not None and report.values:
            self.status.record(report.values)
            self.emit(EVENT_STATUS_DATA, report, raw)
        self.emit(EVENT_STATUS, frame, raw)

    def _record_query_response(self, frame: DecodedFrame) -> None:
        """Store the value carried by a per-datapoint query response."""
        datapoint_id = QUERY_COMMANDS.get(frame.command)
        if datapoint_id is None or not frame.payload:
            return
        value = REQUESTS[datapoint_id].parse(frame.payload)
        if datapoint_id in ENUM_DATAPOINTS:
            try:
                value = normalize_enum_name(datapoint_id, value)
            except ValueError:
                _LOGGER.debug("Ignoring %s response with unknown code %s", datapoint_id, value)
                return
        self.status.record({datapoint_id: value})


def _coerce_payload(payload) -> bytes:
    if payload is None:
        return b""
    if isinstance(payload, str):
        try:
            return bytes.fromhex(payload)
        except ValueError:
            raise ValueError(f"Invalid hex payload {payload!r}") from None
    try:
        return bytes(payload)
    except (TypeError, ValueError):
        raise ValueError(f"Payload must be a list of bytes, got {payload!r}") from None
