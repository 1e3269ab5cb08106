from __future__ import annotations

from types import SimpleNamespace

import pytest
from bleak.exc import BleakError

from custom_components.satellite_fan.models import SessionState

pytest.importorskip("homeassistant.components.fan")
pytest.importorskip("homeassistant.components.light")
pytest.importorskip("homeassistant.components.button")
from homeassistant.components.fan import FanEntityFeature
from homeassistant.exceptions import HomeAssistantError

from custom_components.satellite_fan.button import SatelliteFanIdentifyButton
from custom_components.satellite_fan.const import VERSION
from custom_components.satellite_fan.fan import SatelliteFan
from custom_components.satellite_fan.light import SatelliteFanLight


class _DummySession:
    def __init__(self, **state):
        self.state = SessionState(**state)
        self.response = None
        self.calls = []
        self.error = None

    async def _record(self, *call):
        self.calls.append(call)
        if self.error is not None:
            raise self.error

    async def set_fan_on(self, on):
        await self._record("set_fan_on", on)
        self.state.fan_on = on

    async def set_fan_speed(self, percent):
        await self._record("set_fan_speed", percent)
        self.state.fan_speed = percent

    async def set_light_on(self, on):
        await self._record("set_light_on", on)
        self.state.light_on = on

    async def set_light_brightness(self, percent):
        await self._record("set_light_brightness", percent)
        self.state.light_brightness = percent

    async def identify_blink(self):
        await self._record("identify_blink")


class _DummyCoordinator:
    def __init__(self, session):
        self.session = session
        self.address = "aabbccddeeff"
        self.pushed = 0

    def async_push_local_state(self):
        self.pushed += 1


def _entry(options=None):
    return SimpleNamespace(entry_id="entry-1", title="Ceiling Fan", options=options or {})


@pytest.mark.asyncio
async def test_fan_set_percentage_turns_fan_on_when_off():
    coord = _DummyCoordinator(_DummySession(fan_on=False, fan_speed=0))
    ent = SatelliteFan(coord, _entry())

    await ent.async_set_percentage(100)

    assert coord.session.calls == [("set_fan_speed", 100), ("set_fan_on", True)]
    assert coord.pushed == 2


@pytest.mark.asyncio
async def test_fan_set_percentage_while_on_only_changes_speed():
    coord = _DummyCoordinator(_DummySession(fan_on=True, fan_speed=33))
    ent = SatelliteFan(coord, _entry())

    await ent.async_set_percentage(66)

    assert coord.session.calls == [("set_fan_speed", 66)]


@pytest.mark.asyncio
async def test_fan_set_percentage_zero_turns_off():
    coord = _DummyCoordinator(_DummySession(fan_on=True, fan_speed=100))
    ent = SatelliteFan(coord, _entry())

    await ent.async_set_percentage(0)

    assert coord.session.calls == [("set_fan_on", False)]


@pytest.mark.asyncio
async def test_fan_turn_on_accepts_ha_positional_preset_mode_arg():
    coord = _DummyCoordinator(_DummySession(fan_on=False, fan_speed=66))
    ent = SatelliteFan(coord, _entry())

    await ent.async_turn_on(None, None)

    assert coord.session.calls == [("set_fan_on", True)]
    assert coord.pushed == 1


@pytest.mark.asyncio
async def test_fan_turn_off_and_state_properties():
    coord = _DummyCoordinator(_DummySession(fan_on=True, fan_speed=66.67, fan_level_maximum=3))
    ent = SatelliteFan(coord, _entry())

    assert ent.is_on is True
    assert ent.percentage == 67
    assert ent.speed_count == 3

    await ent.async_turn_off()
    assert coord.session.calls == [("set_fan_on", False)]
    assert ent.percentage == 0


def test_fan_percentage_unknown_before_first_status():
    ent = SatelliteFan(_DummyCoordinator(_DummySession()), _entry())
    assert ent.percentage is None
    assert ent.is_on is None
    assert ent.available is False


def test_fan_supported_features_include_turn_on_off():
    ent = SatelliteFan(_DummyCoordinator(_DummySession()), _entry())

    expected = FanEntityFeature.SET_SPEED
    expected |= getattr(FanEntityFeature, "TURN_ON", 0)
    expected |= getattr(FanEntityFeature, "TURN_OFF", 0)

    assert ent.supported_features == expected


@pytest.mark.asyncio
async def test_fan_write_failure_raises_home_assistant_error():
    session = _DummySession(fan_on=True, fan_speed=100)
    session.error = BleakError("rejected")
    coord = _DummyCoordinator(session)
    ent = SatelliteFan(coord, _entry())

    with pytest.raises(HomeAssistantError):
        await ent.async_turn_off()
    assert coord.pushed == 1


@pytest.mark.asyncio
async def test_light_turn_on_with_brightness_sets_level_then_switches_on():
    coord = _DummyCoordinator(_DummySession(light_on=False, light_brightness=10))
    ent = SatelliteFanLight(coord, _entry())

    await ent.async_turn_on(brightness=128)

    assert coord.session.calls == [("set_light_brightness", 50), ("set_light_on", True)]
    assert ent.is_on is True
    assert ent.brightness == round(50 * 255 / 100)


@pytest.mark.asyncio
async def test_light_brightness_change_while_on_sends_single_write():
    coord = _DummyCoordinator(_DummySession(light_on=True, light_brightness=10))
    ent = SatelliteFanLight(coord, _entry())

    await ent.async_turn_on(brightness=255)

    assert coord.session.calls == [("set_light_brightness", 100)]


@pytest.mark.asyncio
async def test_light_turn_off():
    coord = _DummyCoordinator(_DummySession(light_on=True, light_brightness=80))
    ent = SatelliteFanLight(coord, _entry())

    await ent.async_turn_off()

    assert coord.session.calls == [("set_light_on", False)]
    assert coord.pushed == 1


@pytest.mark.asyncio
async def test_identify_button_runs_blink_sequence():
    coord = _DummyCoordinator(_DummySession())
    ent = SatelliteFanIdentifyButton(coord, _entry())

    await ent.async_press()

    assert coord.session.calls == [("identify_blink",)]


def test_device_info_reports_configured_details():
    ent = SatelliteFan(
        _DummyCoordinator(_DummySession()),
        _entry({"manufacturer": "Acme", "model": "CF-52", "serial": "0042", "revision": ""}),
    )

    info = ent.device_info
    assert info["manufacturer"] == "Acme"
    assert info["model"] == "CF-52"
    assert info["serial_number"] == "0042"
    assert info["sw_version"] == VERSION


def test_device_info_without_details_uses_integration_version():
    info = SatelliteFan(_DummyCoordinator(_DummySession()), _entry()).device_info
    assert info["manufacturer"] is None
    assert info["sw_version"] == VERSION
