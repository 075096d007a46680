"""Climate entity for a Midea air conditioner behind a serial bridge."""

import logging

from homeassistant.components.climate import (
    FAN_AUTO,
    FAN_HIGH,
    FAN_LOW,
    FAN_MEDIUM,
    PRESET_BOOST,
    PRESET_ECO,
    PRESET_NONE,
    PRESET_SLEEP,
    SWING_BOTH,
    SWING_HORIZONTAL,
    SWING_OFF,
    SWING_VERTICAL,
    ClimateEntity,
    ClimateEntityFeature,
    HVACMode,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import ATTR_TEMPERATURE, UnitOfTemperature
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from midea_bridge_lib.const import (
    ECO_MODE,
    FAN_SPEED,
    INDOOR_TEMPERATURE,
    MODE,
    POWER,
    SLEEP_MODE,
    SWING_MODE,
    TARGET_TEMP_MAX,
    TARGET_TEMP_MIN,
    TARGET_TEMPERATURE,
    TURBO_MODE,
)

from .const import DOMAIN, MANUFACTURER, MODEL
from .coordinator import MideaBridgeCoordinator

_LOGGER = logging.getLogger(__name__)

MODE_TO_HVAC = {
    "auto": HVACMode.AUTO,
    "cool": HVACMode.COOL,
    "dry": HVACMode.DRY,
    "customdry": HVACMode.DRY,
    "heat": HVACMode.HEAT,
    "fanonly": HVACMode.FAN_ONLY,
}

HVAC_TO_MODE = {
    HVACMode.AUTO: "auto",
    HVACMode.COOL: "cool",
    HVACMode.DRY: "dry",
    HVACMode.HEAT: "heat",
    HVACMode.FAN_ONLY: "fanonly",
}

FAN_MODES = [FAN_AUTO, "silent", FAN_LOW, FAN_MEDIUM, FAN_HIGH, "fixed"]
SWING_MODES = [SWING_OFF, SWING_VERTICAL, SWING_HORIZONTAL, SWING_BOTH]

# One preset at a time; each maps onto a feature flag
PRESET_TO_DATAPOINT = {
    PRESET_ECO: ECO_MODE,
    PRESET_BOOST: TURBO_MODE,
    PRESET_SLEEP: SLEEP_MODE,
}


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    """Set up climate entity from config entry."""
    coordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities([MideaClimate(coordinator)])


class MideaClimate(CoordinatorEntity, ClimateEntity):
    """Midea air conditioner climate entity."""

    _attr_has_entity_name = True
    _attr_name = None  # Use device name
    _attr_temperature_unit = UnitOfTemperature.CELSIUS
    _attr_target_temperature_step = 1.0
    _attr_supported_features = (
        ClimateEntityFeature.TARGET_TEMPERATURE
        | ClimateEntityFeature.FAN_MODE
        | ClimateEntityFeature.SWING_MODE
        | ClimateEntityFeature.PRESET_MODE
        | ClimateEntityFeature.TURN_ON
        | ClimateEntityFeature.TURN_OFF
    )
    _attr_hvac_modes = [HVACMode.OFF, *HVAC_TO_MODE]
    _attr_fan_modes = FAN_MODES
    _attr_swing_modes = SWING_MODES
    _attr_preset_modes = [PRESET_NONE, *PRESET_TO_DATAPOINT]
    _attr_min_temp = TARGET_TEMP_MIN
    _attr_max_temp = TARGET_TEMP_MAX

    def __init__(self, coordinator: MideaBridgeCoordinator) -> None:
        super().__init__(coordinator)
        self._attr_unique_id = f"{coordinator.device_id}_climate"

    @property
    def device_info(self):
        return {
            "identifiers": {(DOMAIN, self.coordinator.device_id)},
            "name": "Midea AC",
            "manufacturer": MANUFACTURER,
            "model": MODEL,
        }

    @property
    def _values(self) -> dict:
        return self.coordinator.data or {}

    @property
    def hvac_mode(self) -> HVACMode | None:
        if not self._values.get(POWER):
            return HVACMode.OFF
        return MODE_TO_HVAC.get(self._values.get(MODE))

    @property
    def current_temperature(self) -> float | None:
        return self._values.get(INDOOR_TEMPERATURE)

    @property
    def target_temperature(self) -> float | None:
        return self._values.get(TARGET_TEMPERATURE)

    @property
    def fan_mode(self) -> str | None:
        return self._values.get(FAN_SPEED)

    @property
    def swing_mode(self) -> str | None:
        return self._values.get(SWING_MODE)

    @property
    def preset_mode(self) -> str:
        for preset, datapoint in PRESET_TO_DATAPOINT.items():
            if self._values.get(datapoint):
                return preset
        return PRESET_NONE

    async def async_set_hvac_mode(self, hvac_mode: HVACMode) -> None:
        if hvac_mode == HVACMode.OFF:
            await self.coordinator.async_write({POWER: False})
            return
        await self.coordinator.async_write({POWER: True, MODE: HVAC_TO_MODE[hvac_mode]})

    async def async_turn_on(self) -> None:
        await self.coordinator.async_write({POWER: True})

    async def async_turn_off(self) -> None:
        await self.coordinator.async_write({POWER: False})

    async def async_set_temperature(self, **kwargs) -> None:
        temp = kwargs.get(ATTR_TEMPERATURE)
        if temp is not None:
            await self.coordinator.async_write({TARGET_TEMPERATURE: temp})

    async def async_set_fan_mode(self, fan_mode: str) -> None:
        await self.coordinator.async_write({FAN_SPEED: fan_mode})

    async def async_set_swing_mode(self, swing_mode: str) -> None:
        await self.coordinator.async_write({SWING_MODE: swing_mode})

    async def async_set_preset_mode(self, preset_mode: str) -> None:
        """Enable the chosen feature flag and clear the others."""
        values = {
            datapoint: preset == preset_mode
            for preset, datapoint in PRESET_TO_DATAPOINT.items()
            if preset == preset_mode or self._values.get(datapoint)
        }
        if values:
            await self.coordinator.async_write(values)
