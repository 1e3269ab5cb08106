from __future__ import annotations
from homeassistant.components.fan import FanEntity, FanEntityFeature
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.config_entries import ConfigEntry
from .const import DOMAIN
from .entity import SatelliteFanBaseEntity

_TURN_ON_FEATURE = getattr(FanEntityFeature, "TURN_ON", 0)
_TURN_OFF_FEATURE = getattr(FanEntityFeature, "TURN_OFF", 0)


class SatelliteFan(SatelliteFanBaseEntity, FanEntity):
    _attr_name = None
    _attr_supported_features = (
        FanEntityFeature.SET_SPEED | _TURN_ON_FEATURE | _TURN_OFF_FEATURE
    )

    def __init__(self, coordinator, entry):
        super().__init__(coordinator, entry, object_id_suffix="fan")

    @property
    def speed_count(self) -> int:
        return self.session.state.fan_level_maximum

    @property
    def is_on(self):
        return self.session.state.fan_on

    @property
    def percentage(self):
        st = self.session.state
        if st.fan_on is None:
            return None
        if not st.fan_on or st.fan_speed is None:
            return 0
        return round(st.fan_speed)

    async def async_set_percentage(self, percentage: int) -> None:
        p = percentage or 0
        if p <= 0:
            await self._async_run(self.session.set_fan_on(False))
            return
        await self._async_run(self.session.set_fan_speed(p))
        if not self.session.state.fan_on:
            await self._async_run(self.session.set_fan_on(True))

    async def async_turn_on(
        self, percentage: int | None = None, preset_mode: str | None = None, **kwargs
    ) -> None:
        if percentage is not None:
            await self.async_set_percentage(percentage)
        else:
            await self._async_run(self.session.set_fan_on(True))

    async def async_turn_off(self, **kwargs) -> None:
        await self._async_run(self.session.set_fan_on(False))


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    coord = hass.data[DOMAIN][entry.entry_id]
    async_add_entities([SatelliteFan(coord, entry)])
