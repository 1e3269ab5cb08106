from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.components.diagnostics import async_redact_data

from .const import DOMAIN, CONF_ADDRESS

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

TO_REDACT = {CONF_ADDRESS}


async def async_get_config_entry_diagnostics(
    hass: "HomeAssistant", config_entry: "ConfigEntry"
) -> dict:
    """Return diagnostics for a config entry, with the fixture address redacted."""
    coord = hass.data[DOMAIN][config_entry.entry_id]
    return {
        "entry": {
            "entry_id": config_entry.entry_id,
            "data": async_redact_data(dict(config_entry.data), TO_REDACT),
            "options": dict(config_entry.options),
        },
        "coordinator": async_redact_data(coord.diagnostics_snapshot(), TO_REDACT),
    }
