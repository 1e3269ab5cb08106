"""Request coordination for one fixture.

``FanSession`` is the only object callers talk to. It can be used before
the fixture is reachable: every operation simply waits until it can run.

Fan and light each pack two fields into one command (on/off and level),
so every write needs the current value of the field it is not changing.
Those values are kept as scratch values in ``SessionState``: seeded from
each status notification and overwritten locally the moment a caller sets
them. A write whose counterpart has never been observed waits for the
next notification instead of guessing. When the fixture rejects a write,
the value it replaced is put back.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Callable

from bleak.exc import BleakError

from .connection import FanConnection
from .const import (
    BLINK_COUNT,
    BLINK_INTERVAL,
    MAX_LIGHT_LEVEL,
    POLL_INTERVAL,
    SCAN_COOLDOWN,
    SCAN_TIMEOUT,
)
from .models import ConnectionPhase, FanConfig, FanHandles, SessionState
from .protocol import (
    Command,
    FanResponse,
    GetState,
    SetFanLevel,
    SetLight,
    decode,
    encode,
    speed_to_level,
)
from .transport import FanTransport

_LOGGER = logging.getLogger(__name__)


class FanSession:
    def __init__(
        self,
        transport: FanTransport,
        config: FanConfig,
        *,
        poll_interval: float = POLL_INTERVAL,
        blink_interval: float = BLINK_INTERVAL,
        scan_timeout: float = SCAN_TIMEOUT,
        scan_cooldown: float = SCAN_COOLDOWN,
    ):
        self.config = config
        self.state = SessionState()
        self.response: FanResponse | None = None
        self._transport = transport
        self._poll_interval = poll_interval
        self._blink_interval = blink_interval
        self._connection = FanConnection(
            transport,
            config,
            self.state,
            on_ready=self._on_ready,
            on_lost=self._on_lost,
            on_data=self._on_notification,
            scan_timeout=scan_timeout,
            scan_cooldown=scan_cooldown,
        )
        self._ready_waiters: list[asyncio.Future] = []
        self._query_waiters: list[asyncio.Future] = []
        self._scratch_waiters: list[asyncio.Future] = []
        self._listeners: list[Callable[[FanResponse], None]] = []
        self._poll_timer: asyncio.TimerHandle | None = None
        self._blinking = 0
        self._tasks: set[asyncio.Task] = set()

    @property
    def phase(self) -> ConnectionPhase:
        return self.state.phase

    @property
    def available(self) -> bool:
        return self.state.ready

    async def start(self) -> None:
        self._connection.start()

    async def stop(self) -> None:
        self._cancel_poll()
        for task in list(self._tasks):
            task.cancel()
        await self._connection.stop()

    def add_listener(self, listener: Callable[[FanResponse], None]) -> Callable[[], None]:
        """Call ``listener`` with every decoded status; returns a remover."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # Queries

    async def query(self) -> FanResponse:
        """Return the next status from the fixture.

        Concurrent callers share a single outstanding request.
        """
        waiter = self._arm(self._query_waiters)
        self._request_state()
        return await waiter

    def _request_state(self) -> None:
        # Not ready: the transition to ready sends the query
        if self.state.query_in_flight or not self.state.ready:
            return
        self.state.query_in_flight = True
        self._spawn(self._async_send_query(self.state.handles))

    async def _async_send_query(self, handles: FanHandles) -> None:
        try:
            await self._write(handles, GetState())
        except BleakError as e:
            if self.state.handles is not handles:
                # Lost the link mid-write; reconnecting issues a fresh query
                return
            _LOGGER.warning("State query to %s failed: %s", self.config.address, e)
            self.state.query_in_flight = False
            self._drain(self._query_waiters, exc=e)
            self._schedule_poll()

    # Fan

    async def set_fan_on(self, on: bool) -> None:
        st = self.state
        previous, seen = st.fan_on, self.response
        st.fan_on = bool(on)
        self._scratch_changed()
        await self._wait_for(lambda: st.fan_speed is not None)
        level = 0
        if on:
            level = max(1, speed_to_level(st.fan_speed, st.fan_level_maximum))
        async with self._restoring("fan_on", previous, seen):
            await self.send(SetFanLevel(level))

    async def set_fan_speed(self, percent: float) -> None:
        """Remember the speed; only transmitted while the fan is on."""
        st = self.state
        previous, seen = st.fan_speed, self.response
        st.fan_speed = max(0, min(100, percent))
        self._scratch_changed()
        await self._wait_for(lambda: st.fan_on is not None)
        if not st.fan_on:
            return
        async with self._restoring("fan_speed", previous, seen):
            await self.send(SetFanLevel(speed_to_level(percent, st.fan_level_maximum)))

    # Light

    async def set_light_on(self, on: bool) -> None:
        self._require_light()
        st = self.state
        previous, seen = st.light_on, self.response
        st.light_on = bool(on)
        self._scratch_changed()
        await self._wait_for(lambda: st.light_brightness is not None)
        async with self._restoring("light_on", previous, seen):
            await self.send(SetLight(bool(on), st.light_brightness))

    async def set_light_brightness(self, percent: int) -> None:
        self._require_light()
        st = self.state
        level = int(max(0, min(MAX_LIGHT_LEVEL, percent)))
        previous, seen = st.light_brightness, self.response
        st.light_brightness = level
        self._scratch_changed()
        await self._wait_for(lambda: st.light_on is not None)
        async with self._restoring("light_brightness", previous, seen):
            await self.send(SetLight(st.light_on, level))

    async def identify_blink(self) -> None:
        """Flash the light off and on, then put it back as it was.

        Periodic polling is held off until the sequence finishes.
        """
        if not self.config.has_light:
            _LOGGER.debug("Identify requested for %s without a light", self.config.address)
            return
        st = self.state
        self._blinking += 1
        self._cancel_poll()
        try:
            await self._wait_for(
                lambda: st.light_on is not None and st.light_brightness is not None
            )
            on, level = st.light_on, st.light_brightness
            flash = level or MAX_LIGHT_LEVEL
            for _ in range(BLINK_COUNT):
                await self.send(SetLight(False, flash))
                await asyncio.sleep(self._blink_interval)
                await self.send(SetLight(True, flash))
                await asyncio.sleep(self._blink_interval)
            await self.send(SetLight(on, level))
            st.light_on, st.light_brightness = on, level
        finally:
            self._blinking -= 1
            if not self._blinking:
                self._schedule_poll()

    @asynccontextmanager
    async def _restoring(self, field: str, previous, seen: FanResponse | None):
        """Put a scratch value back when the fixture rejects the write.

        Nothing is restored once a status has arrived since ``seen``.
        """
        value = getattr(self.state, field)
        try:
            yield
        except BleakError:
            if self.response is seen and getattr(self.state, field) == value:
                setattr(self.state, field, previous)
                self._scratch_changed()
            raise

    def _require_light(self) -> None:
        if not self.config.has_light:
            raise RuntimeError(f"Fixture {self.config.address} is configured without a light")

    # Transport events

    def _on_ready(self, handles: FanHandles) -> None:
        self._drain(self._ready_waiters, handles)
        self._request_state()

    def _on_lost(self) -> None:
        self.state.query_in_flight = False
        self._cancel_poll()

    def _on_notification(self, data: bytes) -> None:
        response = decode(data, self.config.prefix)
        if response is None:
            _LOGGER.debug("Dropping notification %s", bytes(data).hex())
            return
        _LOGGER.debug("Received %s", response)
        st = self.state
        st.query_in_flight = False
        if response.fan_level_maximum > 0:
            st.fan_level_maximum = response.fan_level_maximum
        st.fan_on = response.fan_on
        st.fan_speed = response.fan_speed_percent
        if self.config.has_light:
            st.light_on = response.light_on
            st.light_brightness = response.light_brightness
        self.response = response
        self._drain(self._query_waiters, response)
        self._scratch_changed()
        for listener in list(self._listeners):
            listener(response)
        self._schedule_poll()

    # Polling

    def _schedule_poll(self) -> None:
        self._cancel_poll()
        if self._blinking:
            return
        loop = asyncio.get_running_loop()
        self._poll_timer = loop.call_later(self._poll_interval, self._on_poll)

    def _cancel_poll(self) -> None:
        if self._poll_timer is not None:
            self._poll_timer.cancel()
            self._poll_timer = None

    def _on_poll(self) -> None:
        self._poll_timer = None
        _LOGGER.debug("Polling %s", self.config.address)
        self._request_state()

    # Writing

    async def send(self, command: Command) -> None:
        """Write ``command`` once connected.

        A write cut short by a disconnect is sent again after reconnecting;
        a write rejected while still connected is raised.
        """
        while True:
            handles = await self._wait_ready()
            try:
                await self._write(handles, command)
                return
            except BleakError:
                if self.state.handles is handles:
                    raise
                _LOGGER.debug("Write of %s interrupted by disconnect, retrying", command)

    async def _write(self, handles: FanHandles, command: Command) -> None:
        frame = encode(command, self.config.prefix)
        _LOGGER.debug("Sending %s as %s", command, frame.hex())
        await self._transport.write(handles.peripheral, handles.write, frame)

    async def _wait_ready(self) -> FanHandles:
        while not self.state.ready:
            await self._arm(self._ready_waiters)
        return self.state.handles

    async def _wait_for(self, predicate: Callable[[], bool]) -> None:
        while not predicate():
            await self._arm(self._scratch_waiters)

    def _scratch_changed(self) -> None:
        self._drain(self._scratch_waiters)

    # Waiters

    def _arm(self, waiters: list[asyncio.Future]) -> asyncio.Future:
        fut = asyncio.get_running_loop().create_future()
        waiters.append(fut)
        return fut

    @staticmethod
    def _drain(waiters: list[asyncio.Future], result=None, exc: BaseException | None = None) -> None:
        pending = waiters[:]
        waiters.clear()
        for fut in pending:
            if fut.done():
                continue
            if exc is not None:
                fut.set_exception(exc)
            else:
                fut.set_result(result)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
