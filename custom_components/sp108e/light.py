"""Light platform for SP108E LED controller."""

from __future__ import annotations

from datetime import timedelta
import logging
from typing import Any

from homeassistant.components.light import (
    ATTR_BRIGHTNESS,
    ATTR_HS_COLOR,
    ColorMode,
    LightEntity,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_NAME
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .api import Sp108eApi
from .const import DEFAULT_NAME, DOMAIN, MANUFACTURER, MODEL, POLL_INTERVAL
from .exceptions import Sp108eError
from .protocol import hsv_to_hex

_LOGGER = logging.getLogger(__name__)

SCAN_INTERVAL = timedelta(seconds=POLL_INTERVAL)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up SP108E lights from a config entry."""
    api: Sp108eApi = hass.data[DOMAIN][entry.entry_id]
    name = entry.data.get(CONF_NAME, DEFAULT_NAME)

    entities: list[LightEntity] = [Sp108eColorLight(api, entry, name)]
    if api.is_rgbw:
        entities.append(Sp108eWhiteLight(api, entry, name))

    async_add_entities(entities)


class _Sp108eLight(LightEntity):
    """Shared polling and callback handling for SP108E lights."""

    _attr_has_entity_name = True
    _attr_should_poll = True

    def __init__(self, api: Sp108eApi, entry: ConfigEntry, name: str) -> None:
        """Initialize the light."""
        self._api = api
        self._attr_device_info = {
            "identifiers": {(DOMAIN, entry.entry_id)},
            "name": name,
            "manufacturer": MANUFACTURER,
            "model": MODEL,
        }

    async def async_added_to_hass(self) -> None:
        """Run when entity is added to hass."""
        self._api.register_state_callback(self._handle_state_update)

    async def async_will_remove_from_hass(self) -> None:
        """Run when entity is removed from hass."""
        self._api.unregister_state_callback(self._handle_state_update)

    @callback
    def _handle_state_update(self) -> None:
        """Handle state update from the API."""
        self.async_write_ha_state()

    @property
    def available(self) -> bool:
        """Return True if entity is available."""
        return self._api.available

    async def async_update(self) -> None:
        """Poll the controller for its current state."""
        await self._api.async_update_status()


class Sp108eColorLight(_Sp108eLight):
    """RGB channel of an SP108E strip."""

    _attr_color_mode = ColorMode.HS
    _attr_supported_color_modes = {ColorMode.HS}

    def __init__(self, api: Sp108eApi, entry: ConfigEntry, name: str) -> None:
        """Initialize the color light."""
        super().__init__(api, entry, name)
        self._attr_unique_id = f"{entry.entry_id}_color"
        self._attr_name = "Color"

    @property
    def is_on(self) -> bool | None:
        """Return true if the strip is on."""
        status = self._api.status
        return status.on if status else None

    @property
    def brightness(self) -> int | None:
        """Return the brightness of this light (0-255)."""
        status = self._api.status
        return status.brightness if status else None

    @property
    def hs_color(self) -> tuple[float, float] | None:
        """Return the hue and saturation."""
        status = self._api.status
        if status is None:
            return None
        return (float(status.hsv.hue), float(status.hsv.saturation))

    async def async_turn_on(self, **kwargs: Any) -> None:
        """Turn on the strip, then apply brightness and color."""
        try:
            status = self._api.status
            if status is None or not status.on:
                await self._api.turn_on()

            if ATTR_BRIGHTNESS in kwargs:
                await self._api.set_brightness(kwargs[ATTR_BRIGHTNESS])

            if ATTR_HS_COLOR in kwargs:
                hue, saturation = kwargs[ATTR_HS_COLOR]
                status = self._api.status
                # Keep the current value channel; black would hide the hue
                value = status.hsv.value if status and status.hsv.value else 100
                await self._api.set_color(hsv_to_hex(hue, saturation, value))
        except Sp108eError as err:
            raise HomeAssistantError(f"Failed to turn on {self.entity_id}: {err}") from err

    async def async_turn_off(self, **kwargs: Any) -> None:
        """Turn off the strip."""
        try:
            await self._api.turn_off()
        except Sp108eError as err:
            raise HomeAssistantError(f"Failed to turn off {self.entity_id}: {err}") from err


class Sp108eWhiteLight(_Sp108eLight):
    """White channel of an RGBW strip."""

    _attr_color_mode = ColorMode.BRIGHTNESS
    _attr_supported_color_modes = {ColorMode.BRIGHTNESS}

    def __init__(self, api: Sp108eApi, entry: ConfigEntry, name: str) -> None:
        """Initialize the white light."""
        super().__init__(api, entry, name)
        self._attr_unique_id = f"{entry.entry_id}_white"
        self._attr_name = "White"

    @property
    def is_on(self) -> bool | None:
        """Return true if the white channel is lit."""
        status = self._api.status
        if status is None:
            return None
        # The controller never goes below a white level of 1
        return status.on and status.white_brightness > 1

    @property
    def brightness(self) -> int | None:
        """Return the white brightness (0-255)."""
        status = self._api.status
        return status.white_brightness if status else None

    async def async_turn_on(self, **kwargs: Any) -> None:
        """Turn on the white channel."""
        brightness = kwargs.get(ATTR_BRIGHTNESS, 255)
        try:
            status = self._api.status
            if status is None or not status.on:
                await self._api.turn_on()
            await self._api.set_white_brightness(brightness)
        except Sp108eError as err:
            raise HomeAssistantError(f"Failed to turn on {self.entity_id}: {err}") from err

    async def async_turn_off(self, **kwargs: Any) -> None:
        """Dim the white channel to its minimum."""
        try:
            await self._api.set_white_brightness(0)
        except Sp108eError as err:
            raise HomeAssistantError(f"Failed to turn off {self.entity_id}: {err}") from err
