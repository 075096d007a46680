"""Serial bridge frame building and parsing. Pure functions, no socket dependency.

Two frame families share the byte stream::

    command/response:  AA 55 <seq> <cmd> <len> <payload...> <sum>
    unsolicited push:  AA <len> <cmd> <payload...> <chk>

The command family checksum is the plain byte sum of everything before it.
The push family checksum is the two's complement of the sum of the bytes
between the start byte and the checksum.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from .const import (
    CMD_STATUS_POLL,
    COMMAND_FRAME_OVERHEAD,
    COMMAND_HEADER_LENGTH,
    ECO_MODE,
    ERROR_RESPONSE_COMMAND,
    FAN_SPEED,
    FRAME_COMMAND_MARKER,
    FRAME_START,
    HEX_DUMP_LIMIT,
    INDOOR_TEMPERATURE,
    MIN_PUSH_DECLARED_LENGTH,
    MODE,
    OUTDOOR_TEMPERATURE,
    POWER,
    RESPONSE_FLAG,
    SLEEP_MODE,
    SWING_MODE,
    TARGET_TEMPERATURE,
    TURBO_MODE,
)

FRAME_REQUEST = "request"
FRAME_RESPONSE = "response"
FRAME_STATUS = "status"
FRAME_ERROR = "error"

PayloadSource = Union[bytes, Sequence[int], Callable[[Mapping[str, Any]], Any], None]


def checksum(data: bytes) -> int:
    """Plain 8-bit sum used by command/response frames."""
    return sum(data) & 0xFF


def twos_complement_checksum(data: bytes) -> int:
    """Two's complement 8-bit sum used by push frames."""
    return (0x100 - sum(data)) & 0xFF


def round_half_up(value: float) -> int:
    """Round like the bridge firmware does (24.5 -> 25, not banker's rounding)."""
    return int(math.floor(float(value) + 0.5))


def format_buffer(buffer: bytes | None, max_length: int = HEX_DUMP_LIMIT) -> str:
    """Hex dump for debug logging, truncated after ``max_length`` bytes."""
    if not buffer:
        return "<empty>"
    spaced = bytes(buffer[:max_length]).hex(" ")
    if len(buffer) > max_length:
        return f"{spaced} …({len(buffer)} bytes total)"
    return spaced


@dataclass(frozen=True)
class CommandDefinition:
    """A command byte plus the recipe for its payload."""

    command: int
    payload: PayloadSource = None


@dataclass(frozen=True)
class EncodedFrame:
    buffer: bytes
    sequence: int


@dataclass
class DecodedFrame:
    """A frame cut from the receive buffer.

    ``frame_length`` is how many bytes the frame occupied in the buffer, even
    when ``error`` is set, so the caller can always drop exactly that much.
    """

    frame_length: int
    command: int | None = None
    payload: bytes = b""
    type: str = FRAME_REQUEST
    sequence: int | None = None
    error: str | None = None

    @property
    def is_push(self) -> bool:
        return self.type == FRAME_STATUS

    def __repr__(self) -> str:
        command = f"0x{self.command:02X}" if self.command is not None else "None"
        return (
            f"DecodedFrame(type={self.type}, sequence={self.sequence}, "
            f"command={command}, payload={format_buffer(self.payload)}"
            + (f", error={self.error!r})" if self.error else ")")
        )


class SequenceCounter:
    """Cycles 1..255; 0 is reserved."""

    def __init__(self, start: int = 0):
        self._value = start & 0xFF

    @property
    def value(self) -> int:
        return self._value

    def next(self) -> int:
        self._value = (self._value + 1) & 0xFF
        if self._value == 0:
            self._value = 1
        return self._value


def build_payload(definition: CommandDefinition | None, params: Mapping[str, Any] | None = None) -> bytes:
    """Resolve a definition's payload (static, list or builder) into bytes."""
    if definition is None:
        return b""
    source = definition.payload
    if callable(source):
        source = source(dict(params or {}))
    if source is None:
        return b""
    payload = bytes(int(b) & 0xFF for b in source)
    if len(payload) > 0xFF:
        raise ValueError(f"Payload too long for one frame ({len(payload)} bytes)")
    return payload


def encode_frame(
    definition: CommandDefinition,
    params: Mapping[str, Any] | None = None,
    sequence: int = 1,
) -> EncodedFrame:
    """Build a command frame: [AA 55][seq][cmd][len][payload][sum]."""
    if not 1 <= sequence <= 0xFF:
        raise ValueError(f"Sequence must be 1-255, got {sequence}")
    payload = build_payload(definition, params)
    frame = bytearray([FRAME_START, FRAME_COMMAND_MARKER, sequence, definition.command & 0xFF, len(payload)])
    frame += payload
    frame.append(checksum(frame))
    return EncodedFrame(buffer=bytes(frame), sequence=sequence)


def encode_push_frame(command: int, data: bytes = b"", push_checksum=twos_complement_checksum) -> bytes:
    """Build an unsolicited frame: [AA][len][cmd][data][chk]. Used by test doubles and tooling."""
    body = bytes([len(data) + MIN_PUSH_DECLARED_LENGTH, command & 0xFF]) + bytes(data)
    return bytes([FRAME_START]) + body + bytes([push_checksum(body)])


def decode_frame(buffer: bytes, push_checksum=twos_complement_checksum) -> DecodedFrame | None:
    """Cut the first frame off ``buffer``.

    Returns None while there are not enough bytes to know the frame length
    or to hold the whole frame. Otherwise returns a DecodedFrame; corrupt
    frames come back with ``error`` set and the determined ``frame_length``.
    """
    if not buffer:
        return None

    if buffer[0] != FRAME_START:
        return DecodedFrame(frame_length=1, type=FRAME_ERROR, error="Invalid frame header")

    if len(buffer) < 2:
        return None

    if buffer[1] != FRAME_COMMAND_MARKER:
        declared_length = buffer[1]
        if declared_length < MIN_PUSH_DECLARED_LENGTH:
            return DecodedFrame(frame_length=1, type=FRAME_STATUS, error="Invalid push frame length")
        frame_length = declared_length + 1
        if len(buffer) < frame_length:
            return None
        frame = bytes(buffer[:frame_length])
        if frame[-1] != push_checksum(frame[1:-1]):
            return DecodedFrame(frame_length=frame_length, type=FRAME_STATUS, error="Checksum mismatch")
        return DecodedFrame(
            frame_length=frame_length,
            command=frame[2],
            payload=frame[2:-1],
            type=FRAME_STATUS,
        )

    if len(buffer) < COMMAND_HEADER_LENGTH:
        return None

    sequence = buffer[2]
    command = buffer[3]
    payload_length = buffer[4]
    frame_length = payload_length + COMMAND_FRAME_OVERHEAD
    if len(buffer) < frame_length:
        return None

    frame = bytes(buffer[:frame_length])
    if frame[-1] != checksum(frame[:-1]):
        return DecodedFrame(frame_length=frame_length, sequence=sequence, error="Checksum mismatch")

    if command == ERROR_RESPONSE_COMMAND:
        frame_type = FRAME_ERROR
    elif command & RESPONSE_FLAG:
        frame_type = FRAME_RESPONSE
    else:
        frame_type = FRAME_REQUEST

    return DecodedFrame(
        frame_length=frame_length,
        command=command,
        payload=frame[COMMAND_HEADER_LENGTH:-1],
        type=frame_type,
        sequence=sequence,
    )


class FrameCodec:
    """Per-connection codec: owns the sequence counter and the push checksum scheme."""

    def __init__(self, push_checksum=twos_complement_checksum):
        self.push_checksum = push_checksum
        self.sequence = SequenceCounter()

    def encode(self, definition: CommandDefinition, params: Mapping[str, Any] | None = None) -> EncodedFrame:
        return encode_frame(definition, params, self.sequence.next())

    def decode(self, buffer: bytes) -> DecodedFrame | None:
        return decode_frame(buffer, self.push_checksum)


# --- Datapoint request catalog ---


def parse_boolean(payload: bytes) -> bool:
    return bool(payload) and payload[0] == 1


def parse_number(payload: bytes) -> int:
    if not payload:
        return 0
    return int.from_bytes(payload[:1], "big", signed=True)


def parse_temperature(payload: bytes) -> float | None:
    if not payload:
        return None
    return payload[0] / 2


def _bool_payload(params):
    return [0x01 if params.get("value") else 0x00]


def _code_payload(params):
    return [int(params.get("value") or 0) & 0x0F]


def _temperature_payload(params):
    return [round_half_up(params["value"])]


@dataclass(frozen=True)
class DatapointRequest:
    query: CommandDefinition
    parse: Callable[[bytes], Any]
    set: CommandDefinition | None = None

    @property
    def writable(self) -> bool:
        return self.set is not None


REQUESTS: dict[str, DatapointRequest] = {
    POWER: DatapointRequest(
        query=CommandDefinition(0x81, [0x01]),
        set=CommandDefinition(0x11, _bool_payload),
        parse=parse_boolean,
    ),
    MODE: DatapointRequest(
        query=CommandDefinition(0x82, [0x02]),
        set=CommandDefinition(0x12, _code_payload),
        parse=parse_number,
    ),
    TARGET_TEMPERATURE: DatapointRequest(
        query=CommandDefinition(0x83, [0x03]),
        set=CommandDefinition(0x13, _temperature_payload),
        parse=parse_number,
    ),
    INDOOR_TEMPERATURE: DatapointRequest(
        query=CommandDefinition(0x84, [0x04]),
        parse=parse_temperature,
    ),
    OUTDOOR_TEMPERATURE: DatapointRequest(
        query=CommandDefinition(0x85, [0x05]),
        parse=parse_temperature,
    ),
    FAN_SPEED: DatapointRequest(
        query=CommandDefinition(0x86, [0x06]),
        set=CommandDefinition(0x16, _code_payload),
        parse=parse_number,
    ),
    SWING_MODE: DatapointRequest(
        query=CommandDefinition(0x87, [0x07]),
        set=CommandDefinition(0x17, _code_payload),
        parse=parse_number,
    ),
    ECO_MODE: DatapointRequest(
        query=CommandDefinition(0x88, [0x08]),
        set=CommandDefinition(0x18, _bool_payload),
        parse=parse_boolean,
    ),
    TURBO_MODE: DatapointRequest(
        query=CommandDefinition(0x89, [0x09]),
        set=CommandDefinition(0x19, _bool_payload),
        parse=parse_boolean,
    ),
    SLEEP_MODE: DatapointRequest(
        query=CommandDefinition(0x8A, [0x0A]),
        set=CommandDefinition(0x1A, _bool_payload),
        parse=parse_boolean,
    ),
}

STATUS_POLL = CommandDefinition(CMD_STATUS_POLL)
