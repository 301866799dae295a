"""Frame encoding and status decoding for the SP108E wire protocol.

Every command is a fixed 6-byte frame::

    0x38 | parameter (3 bytes) | opcode | 0x83

The status query answers with a 17-byte payload whose fields sit at fixed
offsets. Nothing in this module touches the network.
"""

from __future__ import annotations

import colorsys
from dataclasses import dataclass, field
from typing import NamedTuple

from .const import (
    ANIMATION_MODE_STATIC,
    CHIP_TYPES,
    CMD_PREFIX,
    CMD_SUFFIX,
    COLOR_ORDERS,
    NO_PARAMETER,
    PARAMETER_LENGTH,
    PRESET_MODE_CEILING,
    STATUS_RESPONSE_LENGTH,
    UNKNOWN_MODE,
)
from .exceptions import DecodeError, InvalidArgument


def _build_index(names: tuple[str, ...]) -> dict[str, int]:
    """Map each name to its wire index, refusing duplicate names."""
    index = {name: position for position, name in enumerate(names)}
    if len(index) != len(names):
        raise ValueError(f"Duplicate entries in lookup table: {names}")
    return index


CHIP_TYPE_INDEX = _build_index(CHIP_TYPES)
COLOR_ORDER_INDEX = _build_index(COLOR_ORDERS)


def chip_type_index(name: str) -> int:
    """Return the wire index of a chip type name."""
    try:
        return CHIP_TYPE_INDEX[name]
    except KeyError:
        raise InvalidArgument(f"Invalid chip type: {name}") from None


def color_order_index(name: str) -> int:
    """Return the wire index of a color order name."""
    try:
        return COLOR_ORDER_INDEX[name]
    except KeyError:
        raise InvalidArgument(f"Invalid color order: {name}") from None


def chip_type_name(index: int) -> str | None:
    """Return the chip type name for a wire index, if known."""
    return CHIP_TYPES[index] if 0 <= index < len(CHIP_TYPES) else None


def color_order_name(index: int) -> str | None:
    """Return the color order name for a wire index, if known."""
    return COLOR_ORDERS[index] if 0 <= index < len(COLOR_ORDERS) else None


def int_to_parameter(value: int | None) -> bytes:
    """Encode an integer as a single unsigned byte, clamped to 0-255."""
    value = int(value or 0)
    return bytes([max(0, min(255, value))])


def hex_to_parameter(hex_value: str) -> bytes:
    """Decode a hex string such as ``"ff6717"`` or ``"#FF6717"``."""
    hex_value = hex_value.strip().removeprefix("#")
    try:
        parameter = bytes.fromhex(hex_value)
    except ValueError:
        raise InvalidArgument(f"Invalid hex parameter: {hex_value!r}") from None
    if not 0 < len(parameter) <= PARAMETER_LENGTH:
        raise InvalidArgument(f"Invalid hex parameter: {hex_value!r}")
    return parameter


def encode_command(opcode: int, parameter: bytes = NO_PARAMETER) -> bytes:
    """Build the 6-byte frame for an opcode and its parameter."""
    if not 0 <= opcode <= 0xFF:
        raise InvalidArgument(f"Opcode out of range: {opcode}")
    if len(parameter) > PARAMETER_LENGTH:
        raise InvalidArgument(
            f"Parameter longer than {PARAMETER_LENGTH} bytes: {parameter.hex()}"
        )
    padded = parameter.ljust(PARAMETER_LENGTH, b"\x00")
    return bytes([CMD_PREFIX]) + padded + bytes([opcode, CMD_SUFFIX])


@dataclass(frozen=True, slots=True)
class Command:
    """A single request to the controller."""

    opcode: int
    parameter: bytes = NO_PARAMETER
    response_length: int = 0

    def __post_init__(self) -> None:
        """Normalize the parameter to its padded 3-byte form."""
        if self.response_length < 0:
            raise InvalidArgument(f"Negative response length: {self.response_length}")
        frame = encode_command(self.opcode, self.parameter)
        object.__setattr__(self, "parameter", frame[1:4])

    @property
    def frame(self) -> bytes:
        """Return the wire encoding of this command."""
        return encode_command(self.opcode, self.parameter)


class Hsv(NamedTuple):
    """Hue (0-360), saturation (0-100) and value (0-100)."""

    hue: int
    saturation: int
    value: int


def hex_to_hsv(hex_color: str) -> Hsv:
    """Convert an RGB hex color to rounded HSV."""
    red, green, blue = bytes.fromhex(hex_color)
    hue, saturation, value = colorsys.rgb_to_hsv(red / 255, green / 255, blue / 255)
    return Hsv(round(hue * 360), round(saturation * 100), round(value * 100))


def hsv_to_hex(hue: float, saturation: float, value: float) -> str:
    """Convert HSV (0-360, 0-100, 0-100) to a lower-case RGB hex string."""
    red, green, blue = colorsys.hsv_to_rgb(
        (hue % 360) / 360, saturation / 100, value / 100
    )
    return bytes(round(channel * 255) for channel in (red, green, blue)).hex()


def _percentage(raw: int) -> float:
    return raw / 255 * 100


@dataclass(frozen=True, slots=True)
class DeviceStatus:
    """Snapshot of the controller state decoded from one status response."""

    raw_response: str = field(compare=False)
    on: bool
    animation_mode: int
    preset_effect_mode: int
    animation_speed: int
    animation_speed_percentage: float
    brightness: int
    brightness_percentage: float
    color_order: int
    leds_per_segment: int
    number_of_segments: int
    color: str
    hsv: Hsv
    ic_type: int
    recorded_patterns: int
    white_brightness: int
    white_brightness_percentage: float

    @property
    def chip_type(self) -> str | None:
        """Return the configured chip type name."""
        return chip_type_name(self.ic_type)

    @property
    def color_order_name(self) -> str | None:
        """Return the configured color order name."""
        return color_order_name(self.color_order)

    @property
    def is_static(self) -> bool:
        """Return True when showing a single static color."""
        return self.animation_mode == ANIMATION_MODE_STATIC

    @property
    def is_animating(self) -> bool:
        """Return True when a built-in animation other than static runs."""
        return self.animation_mode not in (UNKNOWN_MODE, ANIMATION_MODE_STATIC)

    @property
    def is_preset(self) -> bool:
        """Return True when a preset (dream) effect runs."""
        return self.preset_effect_mode != UNKNOWN_MODE


def decode_status(payload: bytes | str) -> DeviceStatus:
    """Decode a 17-byte status response.

    A ``str`` payload is read as hex. Anything that is not exactly
    17 bytes of data raises :class:`DecodeError`.
    """
    if isinstance(payload, str):
        try:
            payload = bytes.fromhex(payload)
        except ValueError as err:
            raise DecodeError(f"Status payload is not hex: {err}") from err
    if len(payload) != STATUS_RESPONSE_LENGTH:
        raise DecodeError(
            f"Expected {STATUS_RESPONSE_LENGTH} status bytes, got {len(payload)}"
        )

    mode = payload[2]
    color = payload[10:13].hex()
    return DeviceStatus(
        raw_response=payload.hex(),
        on=payload[1] == 0x01,
        animation_mode=mode if mode >= PRESET_MODE_CEILING else UNKNOWN_MODE,
        preset_effect_mode=mode if mode < PRESET_MODE_CEILING else UNKNOWN_MODE,
        animation_speed=payload[3],
        animation_speed_percentage=_percentage(payload[3]),
        brightness=payload[4],
        brightness_percentage=_percentage(payload[4]),
        color_order=payload[5],
        leds_per_segment=int.from_bytes(payload[6:8], "big"),
        number_of_segments=int.from_bytes(payload[8:10], "big"),
        color=color,
        hsv=hex_to_hsv(color),
        ic_type=payload[13],
        recorded_patterns=payload[14],
        white_brightness=payload[15],
        white_brightness_percentage=_percentage(payload[15]),
    )
