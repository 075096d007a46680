"""Bridge connection settings, validated with voluptuous."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path

import voluptuous as vol

from .const import (
    DEFAULT_POLLING_INTERVAL,
    DEFAULT_PORT,
    DEFAULT_RECONNECT_INTERVAL,
    DEFAULT_TIMEOUT,
    MIN_POLLING_INTERVAL,
    VARIANT_BRIDGE,
    VARIANT_NATIVE,
)
from .values import ValueRepresentation

CONF_HOST = "host"
CONF_PORT = "port"
CONF_RECONNECT_INTERVAL = "reconnect_interval"
CONF_TIMEOUT = "timeout"
CONF_VARIANT = "variant"
CONF_MODE_AS_NUMBER = "mode_as_number"
CONF_FAN_SPEED_AS_NUMBER = "fan_speed_as_number"
CONF_SWING_MODE_AS_NUMBER = "swing_mode_as_number"
CONF_POLLING_INTERVAL = "polling_interval"

VARIANTS = [VARIANT_BRIDGE, VARIANT_NATIVE]

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_HOST): vol.All(str, vol.Strip, vol.Length(min=1)),
        vol.Optional(CONF_PORT, default=DEFAULT_PORT): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=65535)
        ),
        vol.Optional(CONF_RECONNECT_INTERVAL, default=DEFAULT_RECONNECT_INTERVAL): vol.All(
            vol.Coerce(float), vol.Range(min=1)
        ),
        vol.Optional(CONF_TIMEOUT, default=DEFAULT_TIMEOUT): vol.All(
            vol.Coerce(float), vol.Range(min=0.1)
        ),
        vol.Optional(CONF_VARIANT, default=VARIANT_BRIDGE): vol.In(VARIANTS),
        vol.Optional(CONF_MODE_AS_NUMBER, default=False): vol.Boolean(),
        vol.Optional(CONF_FAN_SPEED_AS_NUMBER, default=False): vol.Boolean(),
        vol.Optional(CONF_SWING_MODE_AS_NUMBER, default=False): vol.Boolean(),
        vol.Optional(CONF_POLLING_INTERVAL, default=DEFAULT_POLLING_INTERVAL): vol.All(
            vol.Coerce(int), vol.Range(min=MIN_POLLING_INTERVAL)
        ),
    },
    extra=vol.REMOVE_EXTRA,
)


@dataclass(frozen=True)
class BridgeConfig:
    host: str
    port: int = DEFAULT_PORT
    reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL
    timeout: float = DEFAULT_TIMEOUT
    variant: str = VARIANT_BRIDGE
    mode_as_number: bool = False
    fan_speed_as_number: bool = False
    swing_mode_as_number: bool = False
    polling_interval: int = DEFAULT_POLLING_INTERVAL

    @classmethod
    def from_dict(cls, data: dict) -> BridgeConfig:
        """Validate ``data`` and fill in defaults; raises ValueError on bad input."""
        try:
            validated = CONFIG_SCHEMA(dict(data))
        except vol.Invalid as err:
            raise ValueError(f"Invalid bridge configuration: {err}") from err
        return cls(**validated)

    @property
    def representation(self) -> ValueRepresentation:
        return ValueRepresentation(
            mode=self.mode_as_number,
            fan_speed=self.fan_speed_as_number,
            swing_mode=self.swing_mode_as_number,
        )

    def as_dict(self) -> dict:
        return asdict(self)


def load_config(path: str | Path) -> BridgeConfig:
    """Read a JSON settings file."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as err:
        raise ValueError(f"Invalid JSON in {path}: {err}") from err
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return BridgeConfig.from_dict(data)
