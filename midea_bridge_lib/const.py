"""Constants for the Midea serial bridge protocol."""

# Frame layout
FRAME_START = 0xAA
FRAME_COMMAND_MARKER = 0x55
COMMAND_HEADER_LENGTH = 5  # AA 55 seq cmd len
COMMAND_FRAME_OVERHEAD = 6  # header + checksum
RESPONSE_FLAG = 0x80
ERROR_RESPONSE_COMMAND = 0xFF
MIN_PUSH_DECLARED_LENGTH = 3  # len byte + cmd + checksum

# Opcodes
CMD_STATUS_POLL = 0x41
CMD_STATUS_PUSH = 0xAC

# Datapoints
POWER = "power"
MODE = "mode"
TARGET_TEMPERATURE = "target_temperature"
INDOOR_TEMPERATURE = "indoor_temperature"
OUTDOOR_TEMPERATURE = "outdoor_temperature"
FAN_SPEED = "fan_speed"
SWING_MODE = "swing_mode"
ECO_MODE = "eco_mode"
TURBO_MODE = "turbo_mode"
SLEEP_MODE = "sleep_mode"

ENUM_DATAPOINTS = (MODE, FAN_SPEED, SWING_MODE)
BOOLEAN_DATAPOINTS = (POWER, ECO_MODE, TURBO_MODE, SLEEP_MODE)

# Status frames
MIN_STATUS_PAYLOAD = 16
TEMPERATURE_ABSENT = 0xFF
TEMPERATURE_MIN = -40
TEMPERATURE_MAX = 80

# Target temperature limits (°C)
TARGET_TEMP_MIN = 16
TARGET_TEMP_MAX = 31

# Protocol variants
VARIANT_BRIDGE = "bridge"
VARIANT_NATIVE = "native"

# Connection
DEFAULT_PORT = 23
DEFAULT_RECONNECT_INTERVAL = 10  # seconds
DEFAULT_TIMEOUT = 5.0  # seconds, per request / status wait
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_WRITE_TIMEOUT = 5.0
DEFAULT_POLLING_INTERVAL = 60
MIN_POLLING_INTERVAL = 5
STATUS_POLL_MIN_INTERVAL = 0.2  # seconds between status polls
READ_CHUNK_SIZE = 4096

# Logging
HEX_DUMP_LIMIT = 256
