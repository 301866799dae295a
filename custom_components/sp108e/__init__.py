"""The SP108E LED controller integration."""

from __future__ import annotations

import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_HOST, CONF_PORT, Platform
from homeassistant.core import HomeAssistant

from .api import Sp108eApi
from .const import (
    CONF_CHIP_TYPE,
    CONF_COLOR_ORDER,
    CONF_LEDS_PER_SEGMENT,
    CONF_SEGMENTS,
    DEFAULT_CHIP_TYPE,
    DEFAULT_COLOR_ORDER,
    DEFAULT_LEDS_PER_SEGMENT,
    DEFAULT_PORT,
    DEFAULT_SEGMENTS,
    DOMAIN,
)
from .exceptions import Sp108eError

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[Platform] = [Platform.FAN, Platform.LIGHT, Platform.SELECT]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up an SP108E controller from a config entry."""
    host = entry.data[CONF_HOST]
    port = entry.data.get(CONF_PORT, DEFAULT_PORT)
    chip_type = entry.data.get(CONF_CHIP_TYPE, DEFAULT_CHIP_TYPE)

    api = Sp108eApi(host, port, chip_type)

    try:
        await api.async_apply_configuration(
            chip_type,
            entry.data.get(CONF_COLOR_ORDER, DEFAULT_COLOR_ORDER),
            entry.data.get(CONF_SEGMENTS, DEFAULT_SEGMENTS),
            entry.data.get(CONF_LEDS_PER_SEGMENT, DEFAULT_LEDS_PER_SEGMENT),
        )
    except Sp108eError as err:
        _LOGGER.error("Failed to set up SP108E at %s:%s: %s", host, port, err)
        await api.close()
        return False

    hass.data.setdefault(DOMAIN, {})
    hass.data[DOMAIN][entry.entry_id] = api

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    if unload_ok := await hass.config_entries.async_unload_platforms(entry, PLATFORMS):
        api: Sp108eApi = hass.data[DOMAIN].pop(entry.entry_id)
        await api.close()

    return unload_ok
