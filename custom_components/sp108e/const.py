"""Constants for the SP108E LED controller integration."""

DOMAIN = "sp108e"

MANUFACTURER = "SP108E"
MODEL = "SP108E Wi-Fi LED Controller"

# Device connection
DEFAULT_PORT = 8189

# Config entry keys
CONF_CHIP_TYPE = "chip_type"
CONF_COLOR_ORDER = "color_order"
CONF_SEGMENTS = "segments"
CONF_LEDS_PER_SEGMENT = "leds_per_segment"
CONF_DEFAULT_ANIMATION = "default_animation"
CONF_AVAILABLE_EFFECTS = "available_effects"

DEFAULT_NAME = "SP108E"
DEFAULT_CHIP_TYPE = "WS2811"
DEFAULT_COLOR_ORDER = "GRB"
DEFAULT_SEGMENTS = 1
DEFAULT_LEDS_PER_SEGMENT = 60

# Frame protocol
CMD_PREFIX = 0x38
CMD_SUFFIX = 0x83
NO_PARAMETER = b"\x00\x00\x00"
PARAMETER_LENGTH = 3
FRAME_LENGTH = 6
STATUS_RESPONSE_LENGTH = 17
TOGGLE_RESPONSE_LENGTH = 17

# Opcodes
CMD_GET_STATUS = 0x10
CMD_TOGGLE = 0xAA
CMD_SET_CHIP_TYPE = 0x1C
CMD_SET_COLOR_ORDER = 0x3C
CMD_SET_SEGMENTS = 0x2E
CMD_SET_LEDS_PER_SEGMENT = 0x2D
CMD_SET_ANIMATION_MODE = 0x2C
CMD_SET_DREAM_MODE = 0x2C
CMD_SET_BRIGHTNESS = 0x2A
CMD_SET_WHITE_BRIGHTNESS = 0x08
CMD_SET_SPEED = 0x03
CMD_SET_COLOR = 0x22

# Timing (seconds)
CONNECT_TIMEOUT = 5
READ_TIMEOUT = 5
WRITE_PACING_DELAY = 0.25
SEND_MAX_RETRIES = 3
SEND_BASE_DELAY = 0.2

# Polling interval (seconds)
POLL_INTERVAL = 1

# Mode byte: values below the ceiling are presets, the rest animations
PRESET_MODE_CEILING = 180
UNKNOWN_MODE = -1

ANIMATION_MODE_METEOR = 0xCD
ANIMATION_MODE_BREATHING = 0xCE
ANIMATION_MODE_STACK = 0xCF
ANIMATION_MODE_FLOW = 0xD0
ANIMATION_MODE_WAVE = 0xD1
ANIMATION_MODE_FLASH = 0xD2
ANIMATION_MODE_STATIC = 0xD3
ANIMATION_MODE_CATCHUP = 0xD4
ANIMATION_MODE_CUSTOM_EFFECT = 0xDB

ANIMATION_MODES: dict[int, str] = {
    ANIMATION_MODE_METEOR: "Meteor",
    ANIMATION_MODE_BREATHING: "Breathing",
    ANIMATION_MODE_STACK: "Stack",
    ANIMATION_MODE_FLOW: "Flow",
    ANIMATION_MODE_WAVE: "Wave",
    ANIMATION_MODE_FLASH: "Flash",
    ANIMATION_MODE_STATIC: "Static",
    ANIMATION_MODE_CATCHUP: "Catch up",
    ANIMATION_MODE_CUSTOM_EFFECT: "Custom effect",
}

DEFAULT_ANIMATION = ANIMATION_MODES[ANIMATION_MODE_WAVE]

PRESET_EFFECT_RAINBOW = 0
PRESET_EFFECT_COUNT = 180
# Number of presets exposed when no explicit effect list is configured
DEFAULT_PRESET_LIMIT = 50

PRESET_EFFECTS: dict[int, str] = {
    number: "Rainbow" if number == PRESET_EFFECT_RAINBOW else f"Dream {number}"
    for number in range(PRESET_EFFECT_COUNT)
}

# Index on the wire is the position in these tuples
CHIP_TYPES = (
    "SM16703",
    "TM1804",
    "UCS1903",
    "WS2811",
    "WS2801",
    "SK6812",
    "LPD6803",
    "LPD8806",
    "APA102",
    "APA105",
    "DMX512",
    "TM1914",
    "TM1913",
    "P9813",
    "INK1003",
    "P943S",
    "P9411",
    "P9413",
    "TX1812",
    "TX1813",
    "GS8206",
    "GS8208",
    "SK9822",
    "TM1814",
    "SK6812_RGBW",
    "P9414",
    "P9412",
)

RGBW_CHIP_TYPES = ("SK6812_RGBW", "TM1814")

COLOR_ORDERS = ("RGB", "RBG", "GRB", "GBR", "BRG", "BGR")
