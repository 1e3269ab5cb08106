from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timezone
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed
from homeassistant.core import HomeAssistant, callback
from bleak.exc import BleakError
from .protocol import FanResponse
from .session import FanSession
from .const import DOMAIN, QUERY_TIMEOUT

_LOGGER = logging.getLogger(__name__)


class SatelliteFanCoordinator(DataUpdateCoordinator):
    """Coordinator fed by the session's status notifications.

    The session polls on its own schedule, so there is no update interval;
    a refresh asks the session for the next status and gives up after
    ``QUERY_TIMEOUT`` while the fixture is out of reach.
    """

    def __init__(self, hass: HomeAssistant, session: FanSession):
        super().__init__(
            hass,
            logger=_LOGGER,
            name=DOMAIN,
            update_interval=None,
        )
        self.session = session
        self.address = session.config.address
        self._last_state: FanResponse | None = None
        self._last_success_at: datetime | None = None
        self._last_attempt_at: datetime | None = None
        self._consecutive_failures = 0
        self._last_error: str | None = None
        self._remove_listener = session.add_listener(self._on_response)

    @callback
    def _on_response(self, response: FanResponse) -> None:
        self._last_state = response
        self._last_success_at = datetime.now(timezone.utc)
        self._consecutive_failures = 0
        self._last_error = None
        self.async_set_updated_data(response)

    @callback
    def async_push_local_state(self) -> None:
        """Let entities re-render after an optimistic local write."""
        self.async_update_listeners()

    async def _async_update_data(self):
        self._last_attempt_at = datetime.now(timezone.utc)
        try:
            state = await asyncio.wait_for(self.session.query(), QUERY_TIMEOUT)
        except asyncio.TimeoutError:
            self._consecutive_failures += 1
            self._last_error = "timeout"
            _LOGGER.debug("No status from %s within %ss", self.address, QUERY_TIMEOUT)
            if self._last_state is None:
                raise UpdateFailed(f"Fixture {self.address} is unavailable")
            return self._last_state
        except BleakError as e:
            self._consecutive_failures += 1
            self._last_error = str(e)
            _LOGGER.warning("Status query to %s failed: %s", self.address, e)
            if self._last_state is None:
                raise UpdateFailed(str(e)) from e
            return self._last_state
        self._last_state = state
        self._last_success_at = datetime.now(timezone.utc)
        self._consecutive_failures = 0
        self._last_error = None
        return state

    async def async_shutdown(self) -> None:
        self._remove_listener()
        await self.session.stop()
        await super().async_shutdown()

    def diagnostics_snapshot(self) -> dict:
        st = self.session.state
        return {
            "address": self.address,
            "phase": st.phase.value,
            "available": self.session.available,
            "fan_level_maximum": st.fan_level_maximum,
            "scratch": {
                "fan_on": st.fan_on,
                "fan_speed": st.fan_speed,
                "light_on": st.light_on,
                "light_brightness": st.light_brightness,
            },
            "query_in_flight": st.query_in_flight,
            "last_success_at": self._last_success_at.isoformat() if self._last_success_at else None,
            "last_attempt_at": self._last_attempt_at.isoformat() if self._last_attempt_at else None,
            "consecutive_failures": self._consecutive_failures,
            "last_error": self._last_error,
        }
