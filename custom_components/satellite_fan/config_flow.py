from __future__ import annotations
import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import callback
from .const import (
    DOMAIN,
    DEFAULT_NAME,
    CONF_ADDRESS,
    CONF_PREFIX,
    CONF_SERVICE_UUID,
    CONF_WRITE_UUID,
    CONF_NOTIFY_UUID,
    CONF_HAS_LIGHT,
    DEVICE_INFO_KEYS,
    DEFAULT_PREFIX,
    DEFAULT_HAS_LIGHT,
    SERVICE_UUID,
    WRITE_CHAR_UUID,
    NOTIFY_CHAR_UUID,
    DISCOVERY_TIMEOUT,
    normalize_prefix,
)
from .models import normalize_address
from .transport import discover_candidates


def _ble_fields() -> dict:
    return {
        vol.Required(CONF_PREFIX, default=DEFAULT_PREFIX): vol.All(
            vol.Coerce(int), vol.Range(min=0, max=255)
        ),
        vol.Required(CONF_SERVICE_UUID, default=SERVICE_UUID): str,
        vol.Required(CONF_WRITE_UUID, default=WRITE_CHAR_UUID): str,
        vol.Required(CONF_NOTIFY_UUID, default=NOTIFY_CHAR_UUID): str,
        vol.Required(CONF_HAS_LIGHT, default=DEFAULT_HAS_LIGHT): bool,
    }


class SatelliteFanConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Config flow to set up a Satellite BLE fan fixture."""

    VERSION = 1

    async def async_step_user(self, user_input=None):
        errors = {}
        # If user submitted the form, validate
        if user_input is not None:
            address = (user_input.get(CONF_ADDRESS) or "").strip()
            if not address:
                errors["base"] = "address_required"
            else:
                await self.async_set_unique_id(normalize_address(address))
                self._abort_if_unique_id_configured()
                data = {
                    CONF_ADDRESS: address,
                    CONF_PREFIX: normalize_prefix(user_input.get(CONF_PREFIX, DEFAULT_PREFIX)),
                    CONF_SERVICE_UUID: user_input.get(CONF_SERVICE_UUID) or SERVICE_UUID,
                    CONF_WRITE_UUID: user_input.get(CONF_WRITE_UUID) or WRITE_CHAR_UUID,
                    CONF_NOTIFY_UUID: user_input.get(CONF_NOTIFY_UUID) or NOTIFY_CHAR_UUID,
                }
                options = {
                    CONF_HAS_LIGHT: user_input.get(CONF_HAS_LIGHT, DEFAULT_HAS_LIGHT),
                }
                return self.async_create_entry(
                    title=f"{DEFAULT_NAME} ({address})",
                    data=data,
                    options=options,
                )

        # Try to discover nearby devices (best-effort)
        devices = []
        discovery_error = None
        try:
            devices = await discover_candidates(timeout=DISCOVERY_TIMEOUT)
        except Exception:
            discovery_error = "bluetooth_unavailable"

        choices = [addr for addr, _ in devices]

        # If no devices found or discovery failed: show a free-text address field
        if not choices:
            schema = vol.Schema({vol.Required(CONF_ADDRESS, default=""): str, **_ble_fields()})
            if discovery_error:
                errors["base"] = discovery_error
            else:
                # Only set this if not already set due to validation
                errors.setdefault("base", "no_devices_found")
            return self.async_show_form(
                step_id="user", data_schema=schema, errors=errors
            )

        # Devices found: present a dropdown plus BLE settings
        schema = vol.Schema({vol.Required(CONF_ADDRESS): vol.In(choices), **_ble_fields()})
        return self.async_show_form(step_id="user", data_schema=schema, errors=errors)

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        return SatelliteFanOptionsFlowHandler(config_entry)


class SatelliteFanOptionsFlowHandler(config_entries.OptionsFlow):
    """Options flow for the light platform and the device information."""

    def __init__(self, config_entry):
        # Avoid assigning to deprecated attribute; store locally
        self._config_entry = config_entry

    async def async_step_init(self, user_input=None):
        if user_input is not None:
            return self.async_create_entry(title="", data=user_input)

        opts = self._config_entry.options
        schema = vol.Schema(
            {
                vol.Required(
                    CONF_HAS_LIGHT, default=opts.get(CONF_HAS_LIGHT, DEFAULT_HAS_LIGHT)
                ): bool,
                **{
                    vol.Optional(key, default=opts.get(key, "")): str
                    for key in DEVICE_INFO_KEYS
                },
            }
        )
        return self.async_show_form(step_id="init", data_schema=schema)
