"""Enum value mappings for mode, fan speed and swing mode.

Values travel through the library as canonical names ("cool", "medium",
"both"). Callers may instead want numeric codes; ValueRepresentation holds
that choice per category. The codes written into set-command payloads are a
third form, produced by ``to_wire_code``.
"""

from __future__ import annotations

from dataclasses import dataclass

from .const import (
    BOOLEAN_DATAPOINTS,
    ENUM_DATAPOINTS,
    FAN_SPEED,
    MODE,
    SWING_MODE,
    TARGET_TEMP_MAX,
    TARGET_TEMP_MIN,
    TARGET_TEMPERATURE,
)

MODE_VALUE_TO_NAME = {
    1: "auto",
    2: "cool",
    3: "dry",
    4: "heat",
    5: "fanonly",
    6: "customdry",
}

# Zero-based numbering used by older bridge firmware
LEGACY_MODE_NUMBERS = {
    0: "auto",
    1: "cool",
    2: "dry",
    3: "heat",
    4: "fanonly",
    5: "customdry",
}

MODE_NAME_TO_VALUE = {name: value for value, name in MODE_VALUE_TO_NAME.items()}

MODE_ALIASES = {
    "auto": "auto",
    "cool": "cool",
    "dry": "dry",
    "heat": "heat",
    "fan": "fanonly",
    "fanonly": "fanonly",
    "fan only": "fanonly",
    "fan_only": "fanonly",
    "customdry": "customdry",
    "custom dry": "customdry",
}

FAN_SPEED_NAME_TO_VALUE = {
    "auto": 102,
    "silent": 20,
    "low": 40,
    "medium": 60,
    "high": 80,
    "fixed": 101,
}

# Direct codes as carried in set payloads and the bridge status layout
FAN_SPEED_NAME_TO_CODE = {
    "auto": 0,
    "silent": 1,
    "low": 2,
    "medium": 3,
    "high": 4,
    "fixed": 5,
}

FAN_SPEED_VALUE_TO_NAME = {
    **{code: name for name, code in FAN_SPEED_NAME_TO_CODE.items()},
    **{value: name for name, value in FAN_SPEED_NAME_TO_VALUE.items()},
}

FAN_SPEED_ALIASES = {name: name for name in FAN_SPEED_NAME_TO_VALUE}

SWING_VALUE_TO_NAME = {
    0: "off",
    1: "vertical",
    2: "horizontal",
    3: "both",
}

SWING_NAME_TO_VALUE = {name: value for value, name in SWING_VALUE_TO_NAME.items()}

# (up/down, left/right)
SWING_ALIASES = {
    "off": (False, False),
    "none": (False, False),
    "vertical": (True, False),
    "horizontal": (False, True),
    "both": (True, True),
}

TRUE_STRINGS = ("true", "1", "on", "yes")
FALSE_STRINGS = ("false", "0", "off", "no")


def normalize_string(value) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def swing_name(updown: bool, leftright: bool) -> str:
    if updown and leftright:
        return "both"
    if updown:
        return "vertical"
    if leftright:
        return "horizontal"
    return "off"


def _parse_number(text: str) -> int | None:
    try:
        number = float(text)
    except ValueError:
        return None
    if not number.is_integer():
        return None
    return int(number)


def number_to_name(datapoint_id: str, number: int) -> str:
    """Map a numeric code to its canonical name; raises ValueError if unknown."""
    if datapoint_id == MODE:
        name = MODE_VALUE_TO_NAME.get(number) or LEGACY_MODE_NUMBERS.get(number)
    elif datapoint_id == FAN_SPEED:
        name = FAN_SPEED_VALUE_TO_NAME.get(number)
    elif datapoint_id == SWING_MODE:
        name = SWING_VALUE_TO_NAME.get(number)
    else:
        raise ValueError(f"{datapoint_id} is not an enum datapoint")
    if name is None:
        raise ValueError(f"Unknown {datapoint_id} value {number}")
    return name


def name_to_number(datapoint_id: str, name: str) -> int:
    """Map a canonical name to its numeric representation."""
    if datapoint_id == MODE:
        table = MODE_NAME_TO_VALUE
    elif datapoint_id == FAN_SPEED:
        table = FAN_SPEED_NAME_TO_VALUE
    elif datapoint_id == SWING_MODE:
        table = SWING_NAME_TO_VALUE
    else:
        raise ValueError(f"{datapoint_id} is not an enum datapoint")
    try:
        return table[name]
    except KeyError:
        raise ValueError(f"Unknown {datapoint_id} name {name!r}") from None


def to_wire_code(datapoint_id: str, name: str) -> int:
    """Code written into the set-command payload for a canonical name."""
    if datapoint_id == FAN_SPEED:
        try:
            return FAN_SPEED_NAME_TO_CODE[name]
        except KeyError:
            raise ValueError(f"Unknown fan_speed name {name!r}") from None
    return name_to_number(datapoint_id, name)


def normalize_enum_name(datapoint_id: str, value) -> str:
    """Fold symbolic or numeric input into a canonical name.

    Unrecognized input raises ValueError, except textual swing input which
    falls back to "off".
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid {datapoint_id} value {value!r}")

    if isinstance(value, (int, float)):
        if not float(value).is_integer():
            raise ValueError(f"Invalid {datapoint_id} value {value!r}")
        return number_to_name(datapoint_id, int(value))

    normalized = normalize_string(value)
    number = _parse_number(normalized) if normalized else None
    if number is not None:
        return number_to_name(datapoint_id, number)

    if datapoint_id == MODE:
        if normalized in MODE_ALIASES:
            return MODE_ALIASES[normalized]
    elif datapoint_id == FAN_SPEED:
        if normalized in FAN_SPEED_ALIASES:
            return FAN_SPEED_ALIASES[normalized]
    elif datapoint_id == SWING_MODE:
        if normalized in SWING_ALIASES:
            return swing_name(*SWING_ALIASES[normalized])
        return "off"
    else:
        raise ValueError(f"{datapoint_id} is not an enum datapoint")

    raise ValueError(f"Unknown {datapoint_id} value {value!r}")


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    normalized = normalize_string(value)
    if normalized in TRUE_STRINGS:
        return True
    if normalized in FALSE_STRINGS:
        return False
    raise ValueError(f"Invalid boolean value {value!r}")


def normalize_write_value(datapoint_id: str, value):
    """Validate a value headed for ``set`` and return its canonical form."""
    if datapoint_id in ENUM_DATAPOINTS:
        return normalize_enum_name(datapoint_id, value)
    if datapoint_id in BOOLEAN_DATAPOINTS:
        return parse_bool(value)
    if datapoint_id == TARGET_TEMPERATURE:
        if isinstance(value, bool) or value is None or value == "":
            raise ValueError(f"Invalid numeric value {value!r}")
        try:
            temperature = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid numeric value {value!r}") from None
        if not TARGET_TEMP_MIN <= temperature <= TARGET_TEMP_MAX:
            raise ValueError(
                f"Target temperature must be {TARGET_TEMP_MIN}-{TARGET_TEMP_MAX}°C, got {temperature:g}"
            )
        return temperature
    return value


@dataclass(frozen=True)
class ValueRepresentation:
    """Per-category switch between names and numeric codes."""

    mode: bool = False
    fan_speed: bool = False
    swing_mode: bool = False

    def uses_numbers(self, datapoint_id: str) -> bool:
        return bool(getattr(self, datapoint_id, False)) if datapoint_id in ENUM_DATAPOINTS else False

    def present(self, datapoint_id: str, value):
        """Express a canonical value the way the caller asked for it."""
        if value is None or not self.uses_numbers(datapoint_id):
            return value
        return name_to_number(datapoint_id, value)

    def present_all(self, values: dict) -> dict:
        return {key: self.present(key, value) for key, value in values.items()}
