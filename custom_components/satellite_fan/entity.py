from __future__ import annotations

import asyncio

from bleak.exc import BleakError
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.entity import DeviceInfo, Entity

from .const import (
    DOMAIN,
    DEFAULT_NAME,
    QUERY_TIMEOUT,
    VERSION,
    CONF_MANUFACTURER,
    CONF_MODEL,
    CONF_SERIAL,
    CONF_REVISION,
)


class SatelliteFanBaseEntity(Entity):
    """Shared entity behavior for the fan, light and identify platforms."""

    _attr_has_entity_name = True
    _attr_should_poll = False

    def __init__(self, coordinator, entry, *, object_id_suffix: str) -> None:
        self.coordinator = coordinator
        self.entry = entry
        self._attr_unique_id = f"{entry.entry_id}-{object_id_suffix}"
        opts = entry.options or {}
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, entry.entry_id)},
            name=entry.title or DEFAULT_NAME,
            manufacturer=opts.get(CONF_MANUFACTURER) or None,
            model=opts.get(CONF_MODEL) or None,
            serial_number=opts.get(CONF_SERIAL) or None,
            sw_version=opts.get(CONF_REVISION) or VERSION,
        )

    @property
    def session(self):
        return self.coordinator.session

    @property
    def available(self) -> bool:
        return self.session.response is not None

    async def async_added_to_hass(self) -> None:
        self.async_on_remove(
            self.coordinator.async_add_listener(self.async_write_ha_state)
        )

    async def async_update(self) -> None:
        await self.coordinator.async_request_refresh()

    async def _async_run(self, coro) -> None:
        """Await a session write, then re-render from the optimistic state."""
        try:
            await asyncio.wait_for(coro, QUERY_TIMEOUT)
        except asyncio.TimeoutError as e:
            raise HomeAssistantError(
                f"Fixture {self.coordinator.address} did not respond"
            ) from e
        except BleakError as e:
            raise HomeAssistantError(f"Write to {self.coordinator.address} failed: {e}") from e
        finally:
            self.coordinator.async_push_local_state()
