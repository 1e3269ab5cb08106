from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from .const import (
    CONF_ADDRESS,
    CONF_HAS_LIGHT,
    CONF_NOTIFY_UUID,
    CONF_PREFIX,
    CONF_SERVICE_UUID,
    CONF_WRITE_UUID,
    DEFAULT_FAN_LEVEL_MAXIMUM,
    DEFAULT_HAS_LIGHT,
    NOTIFY_CHAR_UUID,
    SERVICE_UUID,
    WRITE_CHAR_UUID,
    normalize_prefix,
)


def normalize_address(address: str) -> str:
    return (address or "").strip().lower().replace(":", "").replace("-", "")


def normalize_uuid(uuid: str) -> str:
    return (uuid or "").strip().lower().replace(":", "").replace("-", "")


@dataclass(frozen=True)
class FanConfig:
    """Identity of one fixture, normalized so raw formatting never matters."""

    address: str
    service_uuid: str = SERVICE_UUID
    write_uuid: str = WRITE_CHAR_UUID
    notify_uuid: str = NOTIFY_CHAR_UUID
    prefix: int = 0
    has_light: bool = DEFAULT_HAS_LIGHT

    def __post_init__(self) -> None:
        if not normalize_address(self.address):
            raise ValueError("Missing mandatory config 'address'")
        object.__setattr__(self, "address", normalize_address(self.address))
        for name in ("service_uuid", "write_uuid", "notify_uuid"):
            object.__setattr__(self, name, normalize_uuid(getattr(self, name)))
        object.__setattr__(self, "prefix", normalize_prefix(self.prefix))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "FanConfig":
        return cls(
            address=data.get(CONF_ADDRESS) or "",
            service_uuid=data.get(CONF_SERVICE_UUID) or SERVICE_UUID,
            write_uuid=data.get(CONF_WRITE_UUID) or WRITE_CHAR_UUID,
            notify_uuid=data.get(CONF_NOTIFY_UUID) or NOTIFY_CHAR_UUID,
            prefix=data.get(CONF_PREFIX, 0),
            has_light=bool(data.get(CONF_HAS_LIGHT, DEFAULT_HAS_LIGHT)),
        )


class ConnectionPhase(Enum):
    ADAPTER_OFF = "adapter_off"
    SCANNING = "scanning"
    CONNECTING = "connecting"
    DISCOVERING = "discovering"
    READY = "ready"


@dataclass(frozen=True)
class FanHandles:
    peripheral: Any
    write: Any
    notify: Any


@dataclass
class SessionState:
    """Mutable per-fixture state owned by the session.

    The scratch values shadow device fields so a combined command can be
    built without another round trip; None means not yet observed.
    """

    phase: ConnectionPhase = ConnectionPhase.ADAPTER_OFF
    handles: FanHandles | None = None
    fan_level_maximum: int = DEFAULT_FAN_LEVEL_MAXIMUM
    fan_on: bool | None = None
    fan_speed: float | None = None
    light_on: bool | None = None
    light_brightness: int | None = None
    query_in_flight: bool = False

    @property
    def ready(self) -> bool:
        return self.phase is ConnectionPhase.READY and self.handles is not None
