"""DataUpdateCoordinator for a Midea serial bridge."""

import logging
from datetime import timedelta

from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from midea_bridge_lib import MideaBridgeError, MideaSerialBridge
from midea_bridge_lib.events import EVENT_DISCONNECTED, EVENT_STATUS_DATA

from .const import DOMAIN

_LOGGER = logging.getLogger(__name__)


class MideaBridgeCoordinator(DataUpdateCoordinator):
    """Polls the bridge for status and accepts pushed status frames in between."""

    def __init__(self, hass: HomeAssistant, bridge: MideaSerialBridge, scan_interval: int):
        super().__init__(
            hass,
            _LOGGER,
            name=DOMAIN,
            update_interval=timedelta(seconds=scan_interval),
        )
        self.bridge = bridge
        self._unsubscribers = [
            bridge.on(EVENT_STATUS_DATA, self._handle_status_push),
            bridge.on(EVENT_DISCONNECTED, self._handle_disconnect),
        ]

    @property
    def device_id(self) -> str:
        return f"{self.bridge.host}:{self.bridge.port}"

    async def _async_update_data(self) -> dict:
        try:
            return await self.bridge.get_status()
        except MideaBridgeError as err:
            raise UpdateFailed(f"Error reading from bridge: {err}") from err

    @callback
    def _handle_status_push(self, report, raw) -> None:
        self.async_set_updated_data(self.bridge.status_values())

    @callback
    def _handle_disconnect(self) -> None:
        _LOGGER.debug("Bridge %s disconnected, waiting for reconnect", self.device_id)

    async def async_write(self, values: dict) -> None:
        """Apply datapoint values and publish the resulting state."""
        try:
            results = await self.bridge.send_command(values)
        except MideaBridgeError as err:
            raise HomeAssistantError(f"Error writing {values} to bridge: {err}") from err
        # Unconfirmed writes come back as the requested value; show it until the next poll
        self.async_set_updated_data({**self.bridge.status_values(), **results})

    async def async_close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        await self.bridge.disconnect()
