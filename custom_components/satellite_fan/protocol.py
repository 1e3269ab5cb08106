"""Command framing and notification decoding for the fan/light controller."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Union

from .const import (
    FILL_BYTE,
    FRAME_LENGTH,
    GET_STATE_REQUEST,
    MAX_FAN_LEVEL,
    MAX_LIGHT_LEVEL,
    SET_STATE_REQUEST,
    STATE_RESPONSE,
)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


def checksum(b: bytes | bytearray) -> int:
    return sum(b) & 0xFF


@dataclass(frozen=True)
class GetState:
    def write_into(self, body: bytearray) -> None:
        body[0] = GET_STATE_REQUEST


@dataclass(frozen=True)
class SetFanLevel:
    level: int

    def write_into(self, body: bytearray) -> None:
        body[0] = SET_STATE_REQUEST
        body[4] = _clamp(self.level, 0, MAX_FAN_LEVEL)
        body[5:10] = bytes([FILL_BYTE] * 5)


@dataclass(frozen=True)
class SetLight:
    on: bool
    level: int

    def write_into(self, body: bytearray) -> None:
        body[0] = SET_STATE_REQUEST
        body[4] = FILL_BYTE
        body[5] = MAX_LIGHT_LEVEL
        body[6] = (int(bool(self.on)) << 7) | _clamp(self.level, 0, MAX_LIGHT_LEVEL)
        body[7:10] = bytes([FILL_BYTE] * 3)


Command = Union[GetState, SetFanLevel, SetLight]


def encode(command: Command, prefix: int = 0) -> bytes:
    """Build the checksummed frame for ``command``.

    A non-zero ``prefix`` is written as a leading byte and counted in the
    checksum; the command body follows it.
    """
    offset = 1 if prefix else 0
    arr = bytearray(FRAME_LENGTH + offset)
    if prefix:
        arr[0] = prefix & 0xFF
    body = bytearray(FRAME_LENGTH - 1)
    command.write_into(body)
    arr[offset:offset + len(body)] = body
    arr[-1] = checksum(arr[:-1])
    return bytes(arr)


@dataclass(frozen=True)
class FanResponse:
    fan_level_maximum: int = 0
    fan_level: int = 0
    light_on: bool = False
    light_brightness: int = 0

    @property
    def fan_on(self) -> bool:
        return self.fan_level > 0

    @property
    def fan_speed_percent(self) -> float:
        if self.fan_level_maximum <= 0:
            return 0.0
        return self.fan_level / self.fan_level_maximum * 100


def decode(data: bytes | bytearray, prefix: int = 0) -> FanResponse | None:
    """Decode a status notification, or return None for anything else."""
    if prefix:
        data = data[1:]
    # Short or foreign frames are dropped by the caller
    if len(data) < FRAME_LENGTH or data[0] != STATE_RESPONSE:
        return None
    return FanResponse(
        fan_level_maximum=data[2] & 0b00011111,
        fan_level=data[4] & 0b00011111,
        light_on=bool(data[6] & 0b10000000),
        light_brightness=data[6] & 0b01111111,
    )


def speed_to_level(percent: float, maximum: int) -> int:
    """Map a 0..100 speed percentage onto the fan's discrete levels, rounding up."""
    p = max(0.0, min(100.0, float(percent)))
    # A percentage computed from a level maps back to that same level
    return math.ceil(round(p * maximum / 100, 9))
