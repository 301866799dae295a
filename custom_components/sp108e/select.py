"""Select platform for SP108E animation and preset modes."""

from __future__ import annotations

from datetime import timedelta
import logging

from homeassistant.components.select import SelectEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_NAME
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .api import Sp108eApi
from .const import (
    ANIMATION_MODE_STATIC,
    ANIMATION_MODES,
    CONF_AVAILABLE_EFFECTS,
    DEFAULT_NAME,
    DEFAULT_PRESET_LIMIT,
    DOMAIN,
    MANUFACTURER,
    MODEL,
    POLL_INTERVAL,
    PRESET_EFFECT_COUNT,
    PRESET_EFFECT_RAINBOW,
    PRESET_EFFECTS,
)
from .exceptions import Sp108eError

_LOGGER = logging.getLogger(__name__)

SCAN_INTERVAL = timedelta(seconds=POLL_INTERVAL)


def parse_available_effects(value: str | list[int] | None) -> list[int]:
    """Turn ``"0, 1, 2, 5"`` into ``[0, 1, 2, 5]``.

    Tokens that are not integers or fall outside the preset range are
    dropped.
    """
    if not value:
        return []
    if isinstance(value, str):
        tokens = value.split(",")
    else:
        tokens = list(value)

    effects: list[int] = []
    for token in tokens:
        try:
            number = int(str(token).strip())
        except ValueError:
            continue
        if 0 <= number < PRESET_EFFECT_COUNT and number not in effects:
            effects.append(number)
    return effects


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up SP108E mode selects from a config entry."""
    api: Sp108eApi = hass.data[DOMAIN][entry.entry_id]
    name = entry.data.get(CONF_NAME, DEFAULT_NAME)

    effects = parse_available_effects(entry.data.get(CONF_AVAILABLE_EFFECTS))
    if not effects:
        effects = list(PRESET_EFFECTS)[:DEFAULT_PRESET_LIMIT]

    async_add_entities(
        [
            Sp108eAnimationModeSelect(api, entry, name),
            Sp108ePresetModeSelect(api, entry, name, effects),
        ]
    )


class _Sp108eModeSelect(SelectEntity):
    """Shared polling and callback handling for mode selects."""

    _attr_has_entity_name = True
    _attr_should_poll = True

    def __init__(self, api: Sp108eApi, entry: ConfigEntry, name: str) -> None:
        """Initialize the select."""
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
        """Poll the controller for its current mode."""
        await self._api.async_update_status()

    async def _async_power_on(self) -> None:
        """Make sure the strip is on before switching modes."""
        status = self._api.status
        if status is None or not status.on:
            await self._api.turn_on()


class Sp108eAnimationModeSelect(_Sp108eModeSelect):
    """Built-in animation of an SP108E strip."""

    _attr_icon = "mdi:animation-play"

    def __init__(self, api: Sp108eApi, entry: ConfigEntry, name: str) -> None:
        """Initialize the animation mode select."""
        super().__init__(api, entry, name)
        self._attr_unique_id = f"{entry.entry_id}_animation_mode"
        self._attr_name = "Animation mode"
        self._modes = {
            mode_name: mode
            for mode, mode_name in ANIMATION_MODES.items()
            if mode != ANIMATION_MODE_STATIC
        }
        self._attr_options = list(self._modes)

    @property
    def current_option(self) -> str | None:
        """Return the running animation, if any."""
        status = self._api.status
        if status is None or not status.on or not status.is_animating:
            return None
        return ANIMATION_MODES.get(status.animation_mode)

    async def async_select_option(self, option: str) -> None:
        """Start an animation."""
        mode = self._modes.get(option, ANIMATION_MODE_STATIC)
        try:
            await self._async_power_on()
            await self._api.set_animation_mode(mode)
        except Sp108eError as err:
            raise HomeAssistantError(f"Failed to set animation {option}: {err}") from err


class Sp108ePresetModeSelect(_Sp108eModeSelect):
    """Preset (dream) effect of an SP108E strip."""

    _attr_icon = "mdi:palette"

    def __init__(
        self,
        api: Sp108eApi,
        entry: ConfigEntry,
        name: str,
        effects: list[int],
    ) -> None:
        """Initialize the preset mode select."""
        super().__init__(api, entry, name)
        self._attr_unique_id = f"{entry.entry_id}_preset_mode"
        self._attr_name = "Preset mode"
        self._presets = {PRESET_EFFECTS[number]: number for number in effects}
        self._attr_options = list(self._presets)

    @property
    def current_option(self) -> str | None:
        """Return the running preset, if it is one of the options."""
        status = self._api.status
        if status is None or not status.on or not status.is_preset:
            return None
        option = PRESET_EFFECTS.get(status.preset_effect_mode)
        return option if option in self._presets else None

    async def async_select_option(self, option: str) -> None:
        """Start a preset effect."""
        preset = self._presets.get(option, PRESET_EFFECT_RAINBOW)
        try:
            await self._async_power_on()
            await self._api.set_preset_mode(preset)
        except Sp108eError as err:
            raise HomeAssistantError(f"Failed to set preset {option}: {err}") from err
