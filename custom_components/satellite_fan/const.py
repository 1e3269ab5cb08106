DOMAIN = "satellite_fan"

DEFAULT_NAME = "Ceiling Fan"
VERSION = "0.1.0"

SERVICE_UUID = "539c6813-61a0-2137-4f79-bf1a11984790"
WRITE_CHAR_UUID = "539c6813-61a1-2137-4f79-bf1a11984790"
NOTIFY_CHAR_UUID = "539c6813-61a2-2137-4f79-bf1a11984790"

# Frame markers
GET_STATE_REQUEST = 0xA0
SET_STATE_REQUEST = 0xA1
STATE_RESPONSE = 0xB0

FRAME_LENGTH = 12  # one more when a manufacturer prefix is configured
FILL_BYTE = 0xFF

MAX_FAN_LEVEL = 3
MAX_LIGHT_LEVEL = 100
DEFAULT_FAN_LEVEL_MAXIMUM = 3

# Config keys
CONF_ADDRESS = "address"
CONF_PREFIX = "prefix"
CONF_SERVICE_UUID = "service_uuid"
CONF_WRITE_UUID = "write_uuid"
CONF_NOTIFY_UUID = "notify_uuid"
CONF_HAS_LIGHT = "has_light"

# Optional device information shown on the device page
CONF_MANUFACTURER = "manufacturer"
CONF_MODEL = "model"
CONF_SERIAL = "serial"
CONF_REVISION = "revision"
DEVICE_INFO_KEYS = (CONF_MANUFACTURER, CONF_MODEL, CONF_SERIAL, CONF_REVISION)

DEFAULT_PREFIX = 0
DEFAULT_HAS_LIGHT = True

# Timing (seconds)
SCAN_TIMEOUT = 12.5
SCAN_COOLDOWN = 2.5
POLL_INTERVAL = 12.5
CONNECT_TIMEOUT = 15.0
BLINK_COUNT = 3
BLINK_INTERVAL = 0.5
QUERY_TIMEOUT = 30.0
DISCOVERY_TIMEOUT = 8.0


def normalize_prefix(value) -> int:
    """Normalize the manufacturer prefix to a single byte, 0 meaning none."""
    try:
        ivalue = int(value)
    except (TypeError, ValueError):
        return DEFAULT_PREFIX
    if ivalue < 0 or ivalue > 0xFF:
        return DEFAULT_PREFIX
    return ivalue
