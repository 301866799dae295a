"""Tests for config flow helpers."""

from __future__ import annotations

import socket

import pytest
import voluptuous as vol

from custom_components.sp108e.config_flow import (
    ANIMATION_NAMES,
    STEP_USER_DATA_SCHEMA,
    CannotConnect,
    validate_connection,
)
from custom_components.sp108e.const import (
    CONF_CHIP_TYPE,
    CONF_COLOR_ORDER,
    CONF_LEDS_PER_SEGMENT,
    CONF_SEGMENTS,
    DEFAULT_PORT,
)

from .conftest import FakeDevice


@pytest.mark.asyncio
async def test_validate_connection(device: FakeDevice) -> None:
    """A controller answering the status query validates."""
    await validate_connection(None, "127.0.0.1", device.port)  # type: ignore[arg-type]
    assert device.frames == [bytes.fromhex("380000001083")]


@pytest.mark.asyncio
async def test_validate_connection_unreachable() -> None:
    """An address nothing listens on raises CannotConnect."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    with pytest.raises(CannotConnect):
        await validate_connection(None, "127.0.0.1", port)  # type: ignore[arg-type]


def test_user_schema_defaults() -> None:
    """Only the host is required; the strip layout has defaults."""
    data = STEP_USER_DATA_SCHEMA({"host": "192.0.2.10"})

    assert data["port"] == DEFAULT_PORT
    assert data[CONF_CHIP_TYPE] == "WS2811"
    assert data[CONF_COLOR_ORDER] == "GRB"
    assert data[CONF_SEGMENTS] == 1
    assert data[CONF_LEDS_PER_SEGMENT] == 60
    assert "Static" not in ANIMATION_NAMES


@pytest.mark.parametrize(
    "changes",
    [{CONF_CHIP_TYPE: "WS9999"}, {CONF_COLOR_ORDER: "RGGB"}, {CONF_SEGMENTS: 0}],
)
def test_user_schema_rejects_bad_values(changes: dict) -> None:
    """Unknown names and empty layouts are refused by the form."""
    with pytest.raises(vol.Invalid):
        STEP_USER_DATA_SCHEMA({"host": "192.0.2.10", **changes})
