"""Status frame decoding. Pure functions, no state.

Unsolicited ``0xAC`` frames carry a full state snapshot. Byte layouts differ
between bridge firmware revisions; each revision is described by a
ProtocolVariant. A variant also carries the push checksum scheme; every
known firmware uses the two's-complement sum, so it only matters for
custom variants.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass, field

from .const import (
    CMD_STATUS_PUSH,
    ECO_MODE,
    FAN_SPEED,
    INDOOR_TEMPERATURE,
    MIN_STATUS_PAYLOAD,
    MODE,
    OUTDOOR_TEMPERATURE,
    POWER,
    SLEEP_MODE,
    SWING_MODE,
    TARGET_TEMPERATURE,
    TEMPERATURE_ABSENT,
    TEMPERATURE_MAX,
    TEMPERATURE_MIN,
    TURBO_MODE,
    VARIANT_BRIDGE,
    VARIANT_NATIVE,
)
from .protocol import twos_complement_checksum
from .values import FAN_SPEED_VALUE_TO_NAME, MODE_VALUE_TO_NAME, number_to_name, swing_name

# Raw fan duty bands for firmware that reports a percentage
FAN_DUTY_BANDS = ((20, "silent"), (30, "low"), (60, "medium"), (80, "high"))
FAN_DUTY_ABOVE_BANDS = "auto"
# Codes above the duty range
FAN_DUTY_SPECIAL = {101: "fixed", 102: "auto"}


@dataclass
class StatusReport:
    """Decoded status snapshot."""

    command: int
    raw_payload: bytes
    values: dict = field(default_factory=dict)


def decode_temperature(byte: int | None, bias: int, precision: float = 0.5, tenths: int | None = None):
    """Decode a biased half-degree temperature byte.

    ``tenths`` replaces the fractional part when the firmware sends it
    separately. Returns None for the absent sentinel or an implausible value.
    """
    if byte is None or byte == TEMPERATURE_ABSENT:
        return None
    value = (byte - bias) / 2
    if tenths is not None and 0 < tenths <= 9:
        value = math.trunc(value) + math.copysign(tenths / 10, value if value else 1)
    if not TEMPERATURE_MIN <= value <= TEMPERATURE_MAX:
        return None
    steps = round(value / precision)
    return round(steps * precision, 1)


def fan_speed_from_duty(raw: int) -> str:
    """Map a raw fan duty value to a fan speed name."""
    if raw in FAN_DUTY_SPECIAL:
        return FAN_DUTY_SPECIAL[raw]
    for limit, name in FAN_DUTY_BANDS:
        if raw <= limit:
            return name
    return FAN_DUTY_ABOVE_BANDS


def _decode_mode(code: int) -> str | None:
    try:
        return number_to_name(MODE, code)
    except ValueError:
        return None


def _decode_bridge_layout(payload: bytes) -> dict:
    """Layout of the serial bridge firmware (integer setpoint, 0.5 °C sensors)."""
    values = {}

    flags = payload[5]
    values[POWER] = bool(flags & 0x01)
    mode = _decode_mode((flags >> 1) & 0x07)
    if mode is not None:
        values[MODE] = mode

    values[TARGET_TEMPERATURE] = 8 + (payload[6] & 0x1F)

    fan = FAN_SPEED_VALUE_TO_NAME.get(payload[7] & 0x0F)
    if fan is not None:
        values[FAN_SPEED] = fan

    swing = payload[8]
    values[SWING_MODE] = swing_name(bool(swing & 0x01), bool(swing & 0x02))

    indoor = decode_temperature(payload[10], bias=80)
    if indoor is not None:
        values[INDOOR_TEMPERATURE] = indoor

    for byte in payload[11:14]:
        outdoor = decode_temperature(byte, bias=80)
        if outdoor is not None:
            values[OUTDOOR_TEMPERATURE] = outdoor
            break

    features = payload[15]
    values[ECO_MODE] = bool(features & 0x02)
    values[TURBO_MODE] = bool(features & 0x04)
    values[SLEEP_MODE] = bool(features & 0x08)
    return values


def _decode_native_layout(payload: bytes) -> dict:
    """Layout of the indoor unit's own status reply (half-degree setpoint, 0.1 °C sensors)."""
    values = {}

    values[POWER] = bool(payload[1] & 0x01)

    mode = MODE_VALUE_TO_NAME.get((payload[2] >> 5) & 0x07)
    if mode is not None:
        values[MODE] = mode

    target = 16 + (payload[2] & 0x0F)
    if payload[2] & 0x10:
        target += 0.5
    values[TARGET_TEMPERATURE] = target

    values[FAN_SPEED] = fan_speed_from_duty(payload[3] & 0x7F)

    swing = payload[7]
    values[SWING_MODE] = swing_name(bool(swing & 0x0C), bool(swing & 0x03))

    values[ECO_MODE] = bool(payload[9] & 0x10)
    # Older units report turbo in byte 8, newer ones in byte 10
    values[TURBO_MODE] = bool(payload[8] & 0x20) or bool(payload[10] & 0x02)
    values[SLEEP_MODE] = bool(payload[10] & 0x01)

    decimals = payload[15]
    indoor_raw = payload[11] or None
    outdoor_raw = payload[12] or None
    indoor = decode_temperature(indoor_raw, bias=50, precision=0.1, tenths=decimals & 0x0F)
    if indoor is not None:
        values[INDOOR_TEMPERATURE] = indoor
    outdoor = decode_temperature(outdoor_raw, bias=50, precision=0.1, tenths=decimals >> 4)
    if outdoor is not None:
        values[OUTDOOR_TEMPERATURE] = outdoor
    return values


@dataclass(frozen=True)
class ProtocolVariant:
    """One firmware revision: status byte layout plus push checksum scheme."""

    name: str
    decode_status: Callable[[bytes], dict]
    push_checksum: Callable[[bytes], int] = twos_complement_checksum


VARIANTS: dict[str, ProtocolVariant] = {
    VARIANT_BRIDGE: ProtocolVariant(VARIANT_BRIDGE, _decode_bridge_layout),
    VARIANT_NATIVE: ProtocolVariant(VARIANT_NATIVE, _decode_native_layout),
}


def get_variant(variant: str | ProtocolVariant) -> ProtocolVariant:
    if isinstance(variant, ProtocolVariant):
        return variant
    try:
        return VARIANTS[variant]
    except KeyError:
        raise ValueError(f"Unknown protocol variant {variant!r}") from None


def parse_status_frame(command: int, payload: bytes, variant: str | ProtocolVariant = VARIANT_BRIDGE):
    """Decode a push payload (starting with its command tag) into a StatusReport.

    Returns None for other commands and for payloads shorter than the
    minimum status length.
    """
    if command != CMD_STATUS_PUSH:
        return None
    if not payload or len(payload) < MIN_STATUS_PAYLOAD:
        return None
    values = get_variant(variant).decode_status(bytes(payload))
    return StatusReport(command=command, raw_payload=bytes(payload), values=values)
