"""Identify button: flashes the fixture's light so it can be found."""
from __future__ import annotations

from homeassistant.components.button import ButtonDeviceClass, ButtonEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DOMAIN, CONF_HAS_LIGHT, DEFAULT_HAS_LIGHT
from .entity import SatelliteFanBaseEntity


class SatelliteFanIdentifyButton(SatelliteFanBaseEntity, ButtonEntity):
    _attr_device_class = ButtonDeviceClass.IDENTIFY
    _attr_name = "Identify"

    def __init__(self, coordinator, entry):
        super().__init__(coordinator, entry, object_id_suffix="identify")

    async def async_press(self) -> None:
        await self._async_run(self.session.identify_blink())


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    coord = hass.data[DOMAIN][entry.entry_id]
    if entry.options.get(CONF_HAS_LIGHT, DEFAULT_HAS_LIGHT):
        async_add_entities([SatelliteFanIdentifyButton(coord, entry)])
