"""Midea air conditioner control over a TCP serial bridge."""

from .bridge import MideaSerialBridge
from .config import BridgeConfig, load_config
from .const import (
    ECO_MODE,
    FAN_SPEED,
    INDOOR_TEMPERATURE,
    MODE,
    OUTDOOR_TEMPERATURE,
    POWER,
    SLEEP_MODE,
    SWING_MODE,
    TARGET_TEMPERATURE,
    TURBO_MODE,
    VARIANT_BRIDGE,
    VARIANT_NATIVE,
)
from .exceptions import (
    BridgeTimeoutError,
    FrameError,
    MideaBridgeError,
    NotWritableError,
    ProtocolError,
    TransportError,
    UnknownDatapointError,
)
from .values import ValueRepresentation

__all__ = [
    "MideaSerialBridge",
    "BridgeConfig",
    "load_config",
    "ValueRepresentation",
    "MideaBridgeError",
    "TransportError",
    "FrameError",
    "BridgeTimeoutError",
    "ProtocolError",
    "UnknownDatapointError",
    "NotWritableError",
    "POWER",
    "MODE",
    "TARGET_TEMPERATURE",
    "INDOOR_TEMPERATURE",
    "OUTDOOR_TEMPERATURE",
    "FAN_SPEED",
    "SWING_MODE",
    "ECO_MODE",
    "TURBO_MODE",
    "SLEEP_MODE",
    "VARIANT_BRIDGE",
    "VARIANT_NATIVE",
]
