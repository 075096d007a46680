"""Temperature sensors for a Midea air conditioner behind a serial bridge."""

from __future__ import annotations

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import UnitOfTemperature
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.typing import StateType
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from midea_bridge_lib.const import INDOOR_TEMPERATURE, OUTDOOR_TEMPERATURE

from .const import DOMAIN, MANUFACTURER, MODEL
from .coordinator import MideaBridgeCoordinator

TEMPERATURE_SENSORS: tuple[SensorEntityDescription, ...] = (
    SensorEntityDescription(
        key=INDOOR_TEMPERATURE,
        translation_key=INDOOR_TEMPERATURE,
        name="Indoor Temperature",
        device_class=SensorDeviceClass.TEMPERATURE,
        state_class=SensorStateClass.MEASUREMENT,
        native_unit_of_measurement=UnitOfTemperature.CELSIUS,
    ),
    SensorEntityDescription(
        key=OUTDOOR_TEMPERATURE,
        translation_key=OUTDOOR_TEMPERATURE,
        name="Outdoor Temperature",
        device_class=SensorDeviceClass.TEMPERATURE,
        state_class=SensorStateClass.MEASUREMENT,
        native_unit_of_measurement=UnitOfTemperature.CELSIUS,
    ),
)


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    """Set up sensor entities from config entry."""
    coordinator = hass.data[DOMAIN][entry.entry_id]
    async_add_entities(MideaTemperatureSensor(coordinator, desc) for desc in TEMPERATURE_SENSORS)


class MideaTemperatureSensor(CoordinatorEntity, SensorEntity):
    """Temperature reported in the unit's status frames."""

    _attr_has_entity_name = True

    def __init__(
        self,
        coordinator: MideaBridgeCoordinator,
        description: SensorEntityDescription,
    ) -> None:
        super().__init__(coordinator)
        self.entity_description = description
        self._attr_unique_id = f"{coordinator.device_id}_{description.key}"

    @property
    def device_info(self):
        return {
            "identifiers": {(DOMAIN, self.coordinator.device_id)},
            "name": "Midea AC",
            "manufacturer": MANUFACTURER,
            "model": MODEL,
        }

    @property
    def native_value(self) -> StateType:
        if self.coordinator.data is None:
            return None
        return self.coordinator.data.get(self.entity_description.key)
