from __future__ import annotations
from homeassistant.components.light import ATTR_BRIGHTNESS, ColorMode, LightEntity
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.config_entries import ConfigEntry
from .const import DOMAIN, CONF_HAS_LIGHT, DEFAULT_HAS_LIGHT, MAX_LIGHT_LEVEL
from .entity import SatelliteFanBaseEntity


def _to_percent(brightness: int) -> int:
    return max(1, round(brightness * MAX_LIGHT_LEVEL / 255))


class SatelliteFanLight(SatelliteFanBaseEntity, LightEntity):
    _attr_name = "Light"
    _attr_supported_color_modes = {ColorMode.BRIGHTNESS}
    _attr_color_mode = ColorMode.BRIGHTNESS

    def __init__(self, coordinator, entry):
        super().__init__(coordinator, entry, object_id_suffix="light")

    @property
    def is_on(self):
        return self.session.state.light_on

    @property
    def brightness(self):
        level = self.session.state.light_brightness
        if level is None:
            return None
        return round(min(level, MAX_LIGHT_LEVEL) * 255 / MAX_LIGHT_LEVEL)

    async def async_turn_on(self, **kwargs):
        if ATTR_BRIGHTNESS in kwargs:
            percent = _to_percent(kwargs[ATTR_BRIGHTNESS])
            await self._async_run(self.session.set_light_brightness(percent))
            if self.session.state.light_on:
                return
        await self._async_run(self.session.set_light_on(True))

    async def async_turn_off(self, **kwargs):
        await self._async_run(self.session.set_light_on(False))


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback) -> None:
    coord = hass.data[DOMAIN][entry.entry_id]
    # The light platform only exists for fixtures that have one
    if entry.options.get(CONF_HAS_LIGHT, DEFAULT_HAS_LIGHT):
        async_add_entities([SatelliteFanLight(coord, entry)])
