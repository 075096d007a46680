"""Config flow for the Midea serial bridge integration."""

import logging

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.const import CONF_HOST, CONF_PORT

from midea_bridge_lib import BridgeConfig, MideaBridgeError, MideaSerialBridge
from midea_bridge_lib.config import CONF_VARIANT, VARIANTS
from midea_bridge_lib.const import DEFAULT_PORT, VARIANT_BRIDGE

from .const import (
    CONF_SCAN_INTERVAL,
    DEFAULT_SCAN_INTERVAL,
    DOMAIN,
    MAX_SCAN_INTERVAL,
    MIN_SCAN_INTERVAL,
)

_LOGGER = logging.getLogger(__name__)


class MideaSerialBridgeConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for a Midea serial bridge."""

    VERSION = 1

    async def async_step_user(self, user_input=None):
        """Handle the initial step: bridge address."""
        errors = {}

        if user_input is not None:
            try:
                config = BridgeConfig.from_dict(user_input)
            except ValueError:
                errors["base"] = "invalid_config"
            else:
                if not await self._async_can_read_status(config):
                    errors["base"] = "cannot_connect"

            if not errors:
                await self.async_set_unique_id(f"{config.host}:{config.port}")
                self._abort_if_unique_id_configured()

                return self.async_create_entry(
                    title=f"Midea AC ({config.host})",
                    data={
                        CONF_HOST: config.host,
                        CONF_PORT: config.port,
                        CONF_VARIANT: config.variant,
                        CONF_SCAN_INTERVAL: config.polling_interval,
                    },
                )

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_HOST): str,
                    vol.Optional(CONF_PORT, default=DEFAULT_PORT): int,
                    vol.Optional(CONF_VARIANT, default=VARIANT_BRIDGE): vol.In(VARIANTS),
                    vol.Optional(
                        CONF_SCAN_INTERVAL, default=DEFAULT_SCAN_INTERVAL
                    ): vol.All(int, vol.Range(min=MIN_SCAN_INTERVAL, max=MAX_SCAN_INTERVAL)),
                }
            ),
            errors=errors,
        )

    async def _async_can_read_status(self, config: BridgeConfig) -> bool:
        """Connect once and wait for one status frame."""
        bridge = MideaSerialBridge.from_config(config)
        try:
            await bridge.connect()
            status = await bridge.request_status()
        except MideaBridgeError:
            _LOGGER.exception("Failed to read status from %s:%s", config.host, config.port)
            return False
        finally:
            await bridge.disconnect()
        return bool(status)
