# custom_components/satellite_fan/fanctl.py
"""Satellite fan diagnostic CLI.

Talks to one fixture directly over BLE, without Home Assistant: scan for
nearby devices, print the current status, or send a single fan or light
command and print the status that follows it.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

import typer
from typing_extensions import Annotated

from rich import print
from rich.table import Table

from .const import (
    DISCOVERY_TIMEOUT,
    NOTIFY_CHAR_UUID,
    QUERY_TIMEOUT,
    SERVICE_UUID,
    WRITE_CHAR_UUID,
)
from .models import FanConfig
from .protocol import Command, FanResponse, SetFanLevel, SetLight
from .session import FanSession
from .transport import BleakFanTransport, discover_candidates

app = typer.Typer(help="Satellite BLE fan/light control")


class FanLevel(str, Enum):
    off = "off"
    low = "low"
    medium = "medium"
    high = "high"


_LEVELS = {FanLevel.off: 0, FanLevel.low: 1, FanLevel.medium: 2, FanLevel.high: 3}


class LightSwitch(str, Enum):
    on = "on"
    off = "off"


# Shared options
Target = Annotated[str, typer.Argument(help="Address of the fixture to target")]
Prefix = Annotated[int, typer.Option("--prefix", "-p", help="Manufacturer prefix byte (0 = none)")]
Service = Annotated[str, typer.Option("--service", "-s", help="Fan controller service UUID")]
Write = Annotated[str, typer.Option("--write", "-w", help="Write characteristic UUID")]
Notify = Annotated[str, typer.Option("--notify", "-n", help="Notify characteristic UUID")]
Timeout = Annotated[float, typer.Option("--timeout", "-t", help="Seconds to wait for the fixture")]
Verbose = Annotated[bool, typer.Option("--verbose", "-v", help="Log BLE activity")]


def _make_session(config: FanConfig) -> FanSession:
    return FanSession(BleakFanTransport(), config)


async def _exchange(config: FanConfig, command: Optional[Command], timeout: float) -> FanResponse:
    session = _make_session(config)
    await session.start()
    try:
        if command is not None:
            await asyncio.wait_for(session.send(command), timeout)
        return await asyncio.wait_for(session.query(), timeout)
    finally:
        await session.stop()


def _run(config: FanConfig, command: Optional[Command], timeout: float, verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    try:
        response = asyncio.run(_exchange(config, command, timeout))
    except asyncio.TimeoutError:
        print(f"[red]No response from {config.address} within {timeout:.0f}s[/red]")
        raise typer.Exit(code=1)
    _print_response(response)


def _print_response(response: FanResponse) -> None:
    table = Table("Field", "Value")
    table.add_row("fan level", f"{response.fan_level}/{response.fan_level_maximum}")
    table.add_row("fan speed", f"{response.fan_speed_percent:.1f}%")
    table.add_row("light", "on" if response.light_on else "off")
    table.add_row("brightness", str(response.light_brightness))
    print(table)


def _config(target: str, prefix: int, service: str, write: str, notify: str) -> FanConfig:
    try:
        return FanConfig(
            address=target,
            service_uuid=service,
            write_uuid=write,
            notify_uuid=notify,
            prefix=prefix,
        )
    except ValueError as e:
        raise typer.BadParameter(str(e))


@app.command(name="scan")
def scan(timeout: Annotated[float, typer.Option()] = DISCOVERY_TIMEOUT) -> None:
    """List nearby bluetooth devices."""
    print("Scanning for Bluetooth devices…")
    table = Table("Name", "Address")
    for address, name in asyncio.run(discover_candidates(timeout=timeout)):
        table.add_row(name or "(unknown)", address)
    print(table)


@app.command(name="current")
def current(
    target: Target,
    prefix: Prefix = 0,
    service: Service = SERVICE_UUID,
    write: Write = WRITE_CHAR_UUID,
    notify: Notify = NOTIFY_CHAR_UUID,
    timeout: Timeout = QUERY_TIMEOUT,
    verbose: Verbose = False,
) -> None:
    """Print the current state."""
    _run(_config(target, prefix, service, write, notify), None, timeout, verbose)


@app.command(name="fan")
def fan(
    target: Target,
    level: Annotated[FanLevel, typer.Option("--level", "-l", help="Fan speed")] = FanLevel.high,
    prefix: Prefix = 0,
    service: Service = SERVICE_UUID,
    write: Write = WRITE_CHAR_UUID,
    notify: Notify = NOTIFY_CHAR_UUID,
    timeout: Timeout = QUERY_TIMEOUT,
    verbose: Verbose = False,
) -> None:
    """Adjust the fan."""
    command = SetFanLevel(_LEVELS[level])
    _run(_config(target, prefix, service, write, notify), command, timeout, verbose)


@app.command(name="light")
def light(
    target: Target,
    state: Annotated[LightSwitch, typer.Argument(help="on or off")],
    level: Annotated[int, typer.Option("--level", "-l", min=0, max=100, help="Light brightness")] = 100,
    prefix: Prefix = 0,
    service: Service = SERVICE_UUID,
    write: Write = WRITE_CHAR_UUID,
    notify: Notify = NOTIFY_CHAR_UUID,
    timeout: Timeout = QUERY_TIMEOUT,
    verbose: Verbose = False,
) -> None:
    """Adjust the light."""
    command = SetLight(state is LightSwitch.on, level)
    _run(_config(target, prefix, service, write, notify), command, timeout, verbose)


if __name__ == "__main__":
    app()
