"""BLE primitives consumed by the connection state machine."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Protocol

from bleak import BleakClient, BleakScanner
from bleak.backends.characteristic import BleakGATTCharacteristic
from bleak.backends.device import BLEDevice
from bleak.exc import BleakError

from .const import CONNECT_TIMEOUT, DISCOVERY_TIMEOUT
from .models import normalize_uuid

_LOGGER = logging.getLogger(__name__)


class FanTransport(Protocol):
    """What the connection needs from a BLE central.

    Peripherals expose ``address``; characteristics expose ``uuid``.
    """

    def watch_adapter(self, listener: Callable[[bool], None]) -> None: ...

    async def start_scan(self, on_discover: Callable[[Any], None]) -> None: ...

    async def stop_scan(self) -> None: ...

    async def connect(
        self, peripheral: Any, on_disconnect: Callable[[Any], None]
    ) -> None: ...

    async def discover(
        self, peripheral: Any, service_uuid: str, characteristic_uuids: list[str]
    ) -> list[Any]: ...

    async def subscribe(
        self, peripheral: Any, characteristic: Any, on_data: Callable[[bytes], None]
    ) -> None: ...

    async def write(self, peripheral: Any, characteristic: Any, data: bytes) -> None: ...

    async def disconnect(self, peripheral: Any) -> None: ...

    def remove_listeners(self, peripheral: Any) -> None: ...


async def discover_candidates(timeout: float = DISCOVERY_TIMEOUT, name_hint: str | None = None):
    devices = await BleakScanner.discover(timeout=timeout)
    nh = (name_hint or "").lower()
    out = []
    for d in devices:
        if nh and not (d.name and nh in d.name.lower()):
            continue
        out.append((d.address, d.name))
    return out


class BleakFanTransport:
    """``FanTransport`` backed by bleak.

    bleak does not report radio power changes, so the adapter is announced
    as powered on once a listener is attached; a scan that fails to start
    is retried by the connection like any other scan miss.
    """

    def __init__(self, connect_timeout: float = CONNECT_TIMEOUT):
        self._connect_timeout = connect_timeout
        self._scanner: BleakScanner | None = None
        self._clients: dict[str, BleakClient] = {}
        self._disconnect_listeners: dict[str, Callable[[Any], None]] = {}

    def watch_adapter(self, listener: Callable[[bool], None]) -> None:
        asyncio.get_running_loop().call_soon(listener, True)

    async def start_scan(self, on_discover: Callable[[BLEDevice], None]) -> None:
        def _cb(device: BLEDevice, _adv) -> None:
            on_discover(device)

        self._scanner = BleakScanner(detection_callback=_cb)
        await self._scanner.start()

    async def stop_scan(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is not None:
            await scanner.stop()

    async def connect(self, peripheral: BLEDevice, on_disconnect: Callable[[Any], None]) -> None:
        key = peripheral.address
        self._disconnect_listeners[key] = on_disconnect

        def _on_disconnected(_client: BleakClient) -> None:
            listener = self._disconnect_listeners.get(key)
            if listener is not None:
                listener(peripheral)

        _LOGGER.debug("Opening BLE client for %s", key)
        client = BleakClient(
            peripheral,
            disconnected_callback=_on_disconnected,
            timeout=self._connect_timeout,
        )
        await client.connect()
        self._clients[key] = client

    async def discover(
        self, peripheral: BLEDevice, service_uuid: str, characteristic_uuids: list[str]
    ) -> list[BleakGATTCharacteristic]:
        client = self._client(peripheral)
        wanted = {normalize_uuid(u) for u in characteristic_uuids}
        found = []
        for service in client.services:
            if normalize_uuid(service.uuid) != normalize_uuid(service_uuid):
                continue
            for char in service.characteristics:
                if normalize_uuid(char.uuid) in wanted:
                    found.append(char)
        return found

    async def subscribe(
        self,
        peripheral: BLEDevice,
        characteristic: BleakGATTCharacteristic,
        on_data: Callable[[bytes], None],
    ) -> None:
        def _cb(_sender, data: bytearray) -> None:
            on_data(bytes(data))

        await self._client(peripheral).start_notify(characteristic, _cb)

    async def write(
        self, peripheral: BLEDevice, characteristic: BleakGATTCharacteristic, data: bytes
    ) -> None:
        await self._client(peripheral).write_gatt_char(characteristic, data, response=True)

    async def disconnect(self, peripheral: BLEDevice) -> None:
        client = self._clients.pop(peripheral.address, None)
        if client is not None:
            await client.disconnect()

    def remove_listeners(self, peripheral: BLEDevice) -> None:
        self._disconnect_listeners.pop(peripheral.address, None)

    def _client(self, peripheral: BLEDevice) -> BleakClient:
        client = self._clients.get(peripheral.address)
        if client is None or not client.is_connected:
            raise BleakError(f"{peripheral.address} is not connected")
        return client
