"""Fan platform exposing the SP108E animation speed."""

from __future__ import annotations

from datetime import timedelta
import logging
from typing import Any

from homeassistant.components.fan import FanEntity, FanEntityFeature
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_NAME
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .api import Sp108eApi
from .const import (
    ANIMATION_MODE_STATIC,
    ANIMATION_MODE_WAVE,
    ANIMATION_MODES,
    CONF_DEFAULT_ANIMATION,
    DEFAULT_ANIMATION,
    DEFAULT_NAME,
    DOMAIN,
    MANUFACTURER,
    MODEL,
    POLL_INTERVAL,
)
from .exceptions import Sp108eError

_LOGGER = logging.getLogger(__name__)

SCAN_INTERVAL = timedelta(seconds=POLL_INTERVAL)


def animation_mode_by_name(name: str | None) -> int:
    """Return the animation code for a name, never the static mode."""
    for mode, mode_name in ANIMATION_MODES.items():
        if mode_name == name and mode != ANIMATION_MODE_STATIC:
            return mode
    return ANIMATION_MODE_WAVE


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the SP108E animation speed fan from a config entry."""
    api: Sp108eApi = hass.data[DOMAIN][entry.entry_id]
    name = entry.data.get(CONF_NAME, DEFAULT_NAME)
    default_animation = animation_mode_by_name(
        entry.data.get(CONF_DEFAULT_ANIMATION, DEFAULT_ANIMATION)
    )

    async_add_entities([Sp108eAnimationSpeedFan(api, entry, name, default_animation)])


class Sp108eAnimationSpeedFan(FanEntity):
    """Animation speed of an SP108E strip, shown as a fan."""

    _attr_has_entity_name = True
    _attr_supported_features = (
        FanEntityFeature.SET_SPEED
        | FanEntityFeature.TURN_ON
        | FanEntityFeature.TURN_OFF
    )
    _attr_icon = "mdi:speedometer"
    _attr_should_poll = True

    def __init__(
        self,
        api: Sp108eApi,
        entry: ConfigEntry,
        name: str,
        default_animation: int = ANIMATION_MODE_WAVE,
    ) -> None:
        """Initialize the fan."""
        self._api = api
        self._default_animation = default_animation
        self._attr_unique_id = f"{entry.entry_id}_animation_speed"
        self._attr_name = "Animation speed"
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
    def is_on(self) -> bool | None:
        """Return true if an animation or preset is running."""
        status = self._api.status
        if status is None:
            return None
        return status.on and (status.is_animating or status.is_preset)

    @property
    def percentage(self) -> int | None:
        """Return the animation speed as a percentage."""
        status = self._api.status
        return round(status.animation_speed_percentage) if status else None

    async def async_set_percentage(self, percentage: int) -> None:
        """Set the animation speed."""
        try:
            await self._api.set_animation_speed_percentage(percentage)
        except Sp108eError as err:
            raise HomeAssistantError(f"Failed to set animation speed: {err}") from err

    async def async_turn_on(
        self,
        percentage: int | None = None,
        preset_mode: str | None = None,
        **kwargs: Any,
    ) -> None:
        """Start the default animation unless something already runs."""
        try:
            status = self._api.status
            if status is None or not status.on:
                await self._api.turn_on()
                status = self._api.status
            if status is None or not (status.is_animating or status.is_preset):
                _LOGGER.debug("Starting animation %s", self._default_animation)
                await self._api.set_animation_mode(self._default_animation)
            if percentage is not None:
                await self._api.set_animation_speed_percentage(percentage)
        except Sp108eError as err:
            raise HomeAssistantError(f"Failed to start animation: {err}") from err

    async def async_turn_off(self, **kwargs: Any) -> None:
        """Return the strip to its static color."""
        try:
            await self._api.set_animation_mode(ANIMATION_MODE_STATIC)
        except Sp108eError as err:
            raise HomeAssistantError(f"Failed to stop animation: {err}") from err

    @property
    def available(self) -> bool:
        """Return True if entity is available."""
        return self._api.available

    async def async_update(self) -> None:
        """Poll the controller for its current state."""
        await self._api.async_update_status()
