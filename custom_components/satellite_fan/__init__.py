from __future__ import annotations
from typing import TYPE_CHECKING
from .const import DOMAIN

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant
    from homeassistant.config_entries import ConfigEntry

PLATFORMS: list[str] = ["fan", "light", "button"]

async def async_setup_entry(hass: "HomeAssistant", entry: "ConfigEntry"):
    from .coordinator import SatelliteFanCoordinator
    from .models import FanConfig
    from .session import FanSession
    from .transport import BleakFanTransport

    config = FanConfig.from_mapping({**entry.data, **(entry.options or {})})
    session = FanSession(BleakFanTransport(), config)
    coord = SatelliteFanCoordinator(hass, session)
    # Connecting runs in the background; entities stay unavailable until the first status
    await session.start()
    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = coord

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    # Reload entities when options change (e.g., light present)
    entry.async_on_unload(entry.add_update_listener(async_options_updated))
    return True

async def async_unload_entry(hass: "HomeAssistant", entry: "ConfigEntry"):
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    coord = hass.data[DOMAIN].pop(entry.entry_id, None)
    if coord is not None:
        await coord.async_shutdown()
    return unload_ok

async def async_options_updated(hass: "HomeAssistant", entry: "ConfigEntry"):
    await hass.config_entries.async_reload(entry.entry_id)
