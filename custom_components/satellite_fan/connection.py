"""Discovery, connection and reconnection for a single fixture.

The machine walks ``ADAPTER_OFF -> SCANNING -> CONNECTING -> DISCOVERING ->
READY``. Every failure regresses to ``SCANNING`` and retries after a fixed
cool-down, forever; callers never see connectivity errors, only latency.

A disconnect while connected clears the handles first, then reconnects
straight to the peripheral that was already found. Only when that
reconnect fails does a full scan run again.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from bleak.exc import BleakError

from .const import SCAN_COOLDOWN, SCAN_TIMEOUT
from .models import (
    ConnectionPhase,
    FanConfig,
    FanHandles,
    SessionState,
    normalize_address,
    normalize_uuid,
)
from .transport import FanTransport

_LOGGER = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (BleakError, asyncio.TimeoutError)


class FanConnection:
    def __init__(
        self,
        transport: FanTransport,
        config: FanConfig,
        state: SessionState,
        *,
        on_ready: Callable[[FanHandles], None],
        on_lost: Callable[[], None],
        on_data: Callable[[bytes], None],
        scan_timeout: float = SCAN_TIMEOUT,
        scan_cooldown: float = SCAN_COOLDOWN,
    ):
        self._transport = transport
        self._config = config
        self._state = state
        self._on_ready = on_ready
        self._on_lost = on_lost
        self._on_data = on_data
        self._scan_timeout = scan_timeout
        self._scan_cooldown = scan_cooldown
        self._loop: asyncio.AbstractEventLoop | None = None
        self._peripheral: Any = None
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self._started = False

    @property
    def phase(self) -> ConnectionPhase:
        return self._state.phase

    def start(self) -> None:
        """Begin watching the adapter; scanning starts once it is powered on."""
        self._loop = asyncio.get_running_loop()
        self._started = True
        self._transport.watch_adapter(self._on_adapter_state)

    async def stop(self) -> None:
        self._started = False
        self._cancel_pending()
        peripheral, self._peripheral = self._peripheral, None
        self._drop_handles()
        self._set_phase(ConnectionPhase.ADAPTER_OFF)
        await self._async_stop_scan()
        if peripheral is not None:
            self._transport.remove_listeners(peripheral)
            try:
                await self._transport.disconnect(peripheral)
            except _TRANSPORT_ERRORS as e:
                _LOGGER.debug("Disconnect from %s failed: %s", peripheral.address, e)

    # Adapter

    def _on_adapter_state(self, powered: bool) -> None:
        if not self._started:
            return
        if not powered:
            _LOGGER.debug("Bluetooth adapter is not powered on")
            was_scanning = self.phase is ConnectionPhase.SCANNING
            self._cancel_pending()
            self._drop_handles()
            if self._peripheral is not None:
                self._transport.remove_listeners(self._peripheral)
                self._peripheral = None
            self._set_phase(ConnectionPhase.ADAPTER_OFF)
            if was_scanning:
                self._spawn(self._async_stop_scan())
            return
        if self.phase is ConnectionPhase.ADAPTER_OFF:
            self._begin_scan()

    # Scanning

    def _begin_scan(self) -> None:
        self._cancel_timer()
        self._set_phase(ConnectionPhase.SCANNING)
        self._spawn(self._async_scan())

    async def _async_scan(self) -> None:
        try:
            await self._transport.start_scan(self._on_discover)
        except _TRANSPORT_ERRORS as e:
            _LOGGER.warning("Unable to start scanning: %s", e)
            self._schedule_rescan()
            return
        if self.phase is ConnectionPhase.SCANNING and self._peripheral is None:
            self._timer = self._loop.call_later(self._scan_timeout, self._on_scan_timeout)

    def _on_discover(self, peripheral: Any) -> None:
        if self.phase is not ConnectionPhase.SCANNING or self._peripheral is not None:
            return
        address = getattr(peripheral, "address", "")
        if normalize_address(address) != self._config.address:
            _LOGGER.debug("Ignoring peripheral %s", address)
            return
        _LOGGER.info("Found fixture %s", address)
        self._cancel_timer()
        self._peripheral = peripheral
        self._set_phase(ConnectionPhase.CONNECTING)
        self._spawn(self._async_connect(peripheral, stop_scan=True))

    def _on_scan_timeout(self) -> None:
        self._timer = None
        if self.phase is not ConnectionPhase.SCANNING:
            return
        _LOGGER.debug(
            "No fixture at %s within %.1fs, rescanning in %.1fs",
            self._config.address,
            self._scan_timeout,
            self._scan_cooldown,
        )
        self._spawn(self._async_stop_scan())
        self._schedule_rescan()

    def _schedule_rescan(self) -> None:
        if not self._started:
            return
        self._cancel_timer()
        self._set_phase(ConnectionPhase.SCANNING)
        self._timer = self._loop.call_later(self._scan_cooldown, self._restart_scan)

    def _restart_scan(self) -> None:
        self._timer = None
        if not self._started or self.phase is not ConnectionPhase.SCANNING:
            return
        self._begin_scan()

    async def _async_stop_scan(self) -> None:
        try:
            await self._transport.stop_scan()
        except _TRANSPORT_ERRORS as e:
            _LOGGER.debug("Stopping scan failed: %s", e)

    # Connecting and discovery

    async def _async_connect(self, peripheral: Any, stop_scan: bool = False) -> None:
        if stop_scan:
            await self._async_stop_scan()
        self._set_phase(ConnectionPhase.CONNECTING)
        try:
            await self._transport.connect(peripheral, self._on_disconnect)
        except _TRANSPORT_ERRORS as e:
            _LOGGER.warning("Failed to connect to %s: %s", peripheral.address, e)
            self._transport.remove_listeners(peripheral)
            self._peripheral = None
            self._schedule_rescan()
            return

        self._set_phase(ConnectionPhase.DISCOVERING)
        cfg = self._config
        try:
            chars = await self._transport.discover(
                peripheral, cfg.service_uuid, [cfg.write_uuid, cfg.notify_uuid]
            )
        except _TRANSPORT_ERRORS as e:
            _LOGGER.warning("Characteristic discovery on %s failed: %s", peripheral.address, e)
            await self._abandon(peripheral)
            return

        by_uuid = {normalize_uuid(c.uuid): c for c in chars}
        write = by_uuid.get(cfg.write_uuid)
        notify = by_uuid.get(cfg.notify_uuid)
        if len(chars) < 2 or write is None or notify is None:
            _LOGGER.warning(
                "Fixture %s exposes %d of the expected characteristics",
                peripheral.address,
                len(chars),
            )
            await self._abandon(peripheral)
            return

        try:
            await self._transport.subscribe(peripheral, notify, self._on_data)
        except _TRANSPORT_ERRORS as e:
            _LOGGER.warning("Subscribing to notifications on %s failed: %s", peripheral.address, e)

        if self.phase is not ConnectionPhase.DISCOVERING:
            return
        handles = FanHandles(peripheral, write, notify)
        self._state.handles = handles
        self._set_phase(ConnectionPhase.READY)
        _LOGGER.info("Fixture %s is ready", peripheral.address)
        self._on_ready(handles)

    async def _abandon(self, peripheral: Any) -> None:
        self._transport.remove_listeners(peripheral)
        self._peripheral = None
        try:
            await self._transport.disconnect(peripheral)
        except _TRANSPORT_ERRORS as e:
            _LOGGER.debug("Disconnect from %s failed: %s", peripheral.address, e)
        self._schedule_rescan()

    def _on_disconnect(self, peripheral: Any) -> None:
        if not self._started or self.phase in (
            ConnectionPhase.ADAPTER_OFF,
            ConnectionPhase.SCANNING,
        ):
            return
        _LOGGER.info("Fixture %s disconnected", getattr(peripheral, "address", peripheral))
        self._cancel_pending()
        self._drop_handles()
        self._transport.remove_listeners(peripheral)
        if self._peripheral is not None:
            self._set_phase(ConnectionPhase.CONNECTING)
            self._spawn(self._async_connect(self._peripheral))
        else:
            self._begin_scan()

    # Helpers

    def _drop_handles(self) -> None:
        was_ready = self._state.handles is not None or self.phase is ConnectionPhase.READY
        self._state.handles = None
        if was_ready:
            self._on_lost()

    def _set_phase(self, phase: ConnectionPhase) -> None:
        if self._state.phase is not phase:
            _LOGGER.debug("%s: %s -> %s", self._config.address, self._state.phase.value, phase.value)
            self._state.phase = phase

    def _spawn(self, coro) -> asyncio.Task:
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_pending(self) -> None:
        self._cancel_timer()
        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
