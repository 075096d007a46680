"""Constants for the Midea serial bridge integration."""

from midea_bridge_lib.config import CONF_POLLING_INTERVAL
from midea_bridge_lib.const import DEFAULT_POLLING_INTERVAL, MIN_POLLING_INTERVAL

DOMAIN = "midea_serialbridge"

CONF_SCAN_INTERVAL = CONF_POLLING_INTERVAL
DEFAULT_SCAN_INTERVAL = DEFAULT_POLLING_INTERVAL
MIN_SCAN_INTERVAL = MIN_POLLING_INTERVAL
MAX_SCAN_INTERVAL = 600

MANUFACTURER = "Midea"
MODEL = "Air conditioner (serial bridge)"
