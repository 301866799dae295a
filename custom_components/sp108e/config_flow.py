"""Config flow for SP108E LED controller integration."""

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol

from homeassistant.config_entries import ConfigFlow, ConfigFlowResult
from homeassistant.const import CONF_HOST, CONF_NAME, CONF_PORT
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError

from .api import Sp108eApi
from .const import (
    ANIMATION_MODE_STATIC,
    ANIMATION_MODES,
    CHIP_TYPES,
    COLOR_ORDERS,
    CONF_AVAILABLE_EFFECTS,
    CONF_CHIP_TYPE,
    CONF_COLOR_ORDER,
    CONF_DEFAULT_ANIMATION,
    CONF_LEDS_PER_SEGMENT,
    CONF_SEGMENTS,
    DEFAULT_ANIMATION,
    DEFAULT_CHIP_TYPE,
    DEFAULT_COLOR_ORDER,
    DEFAULT_LEDS_PER_SEGMENT,
    DEFAULT_NAME,
    DEFAULT_PORT,
    DEFAULT_SEGMENTS,
    DOMAIN,
)
from .select import parse_available_effects

_LOGGER = logging.getLogger(__name__)

ANIMATION_NAMES = [
    name for mode, name in ANIMATION_MODES.items() if mode != ANIMATION_MODE_STATIC
]

_PORT = vol.All(vol.Coerce(int), vol.Range(min=1, max=65535))
_BYTE_COUNT = vol.All(vol.Coerce(int), vol.Range(min=1, max=255))

STEP_USER_DATA_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_HOST): str,
        vol.Optional(CONF_PORT, default=DEFAULT_PORT): _PORT,
        vol.Optional(CONF_NAME, default=DEFAULT_NAME): str,
        vol.Required(CONF_CHIP_TYPE, default=DEFAULT_CHIP_TYPE): vol.In(CHIP_TYPES),
        vol.Required(CONF_COLOR_ORDER, default=DEFAULT_COLOR_ORDER): vol.In(
            COLOR_ORDERS
        ),
        vol.Required(CONF_SEGMENTS, default=DEFAULT_SEGMENTS): _BYTE_COUNT,
        vol.Required(
            CONF_LEDS_PER_SEGMENT, default=DEFAULT_LEDS_PER_SEGMENT
        ): _BYTE_COUNT,
        vol.Optional(CONF_DEFAULT_ANIMATION, default=DEFAULT_ANIMATION): vol.In(
            ANIMATION_NAMES
        ),
        vol.Optional(CONF_AVAILABLE_EFFECTS, default=""): str,
    }
)


async def validate_connection(hass: HomeAssistant, host: str, port: int) -> None:
    """Validate that the controller answers a status query.

    Raises CannotConnect if the device isn't reachable.
    """
    api = Sp108eApi(host, port)
    if not await api.test_connection():
        raise CannotConnect


class Sp108eConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle a config flow for SP108E."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Handle manual entry of the controller address and strip layout."""
        errors: dict[str, str] = {}

        if user_input is not None:
            host = user_input[CONF_HOST].strip()
            port = user_input[CONF_PORT]
            name = user_input.get(CONF_NAME, "").strip() or DEFAULT_NAME
            effects = user_input.get(CONF_AVAILABLE_EFFECTS, "").strip()

            await self.async_set_unique_id(f"{host}:{port}")
            self._abort_if_unique_id_configured()

            try:
                if effects and not parse_available_effects(effects):
                    raise InvalidEffects
                await validate_connection(self.hass, host, port)
            except InvalidEffects:
                errors[CONF_AVAILABLE_EFFECTS] = "invalid_effects"
            except CannotConnect:
                errors["base"] = "cannot_connect"
            except Exception:
                _LOGGER.exception("Unexpected exception during setup")
                errors["base"] = "unknown"
            else:
                return self.async_create_entry(
                    title=name,
                    data={
                        **user_input,
                        CONF_HOST: host,
                        CONF_NAME: name,
                        CONF_AVAILABLE_EFFECTS: effects,
                    },
                )

        return self.async_show_form(
            step_id="user",
            data_schema=STEP_USER_DATA_SCHEMA,
            errors=errors,
        )

    async def async_step_reconfigure(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Handle reconfiguration of the controller address."""
        errors: dict[str, str] = {}
        entry = self._get_reconfigure_entry()
        current_host = entry.data.get(CONF_HOST, "")
        current_port = entry.data.get(CONF_PORT, DEFAULT_PORT)

        if user_input is not None:
            host = user_input[CONF_HOST].strip()
            port = user_input[CONF_PORT]

            try:
                await validate_connection(self.hass, host, port)
            except CannotConnect:
                errors["base"] = "cannot_connect"
            except Exception:
                _LOGGER.exception("Unexpected exception during reconfigure")
                errors["base"] = "unknown"
            else:
                return self.async_update_reload_and_abort(
                    entry,
                    unique_id=f"{host}:{port}",
                    data_updates={CONF_HOST: host, CONF_PORT: port},
                )

        return self.async_show_form(
            step_id="reconfigure",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_HOST, default=current_host): str,
                    vol.Required(CONF_PORT, default=current_port): _PORT,
                }
            ),
            errors=errors,
        )


class CannotConnect(HomeAssistantError):
    """Error to indicate we cannot connect."""


class InvalidEffects(HomeAssistantError):
    """Error to indicate the preset list has no usable numbers."""
