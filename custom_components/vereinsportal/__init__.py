"""The Vereinsportal integration."""

from __future__ import annotations

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryAuthFailed, ConfigEntryNotReady
from vereinsportal_api import (
    ApiConnectionError,
    ApiResponseError,
    AuthenticationError,
    VereinsportalClient,
)

from .const import CONF_API_KEY, CONF_EMAIL, CONF_PASSWORD, CONF_PROJECT_ID
from .coordinator import VereinsportalCoordinator
from .models import VereinsportalRuntimeData

PLATFORMS: list[Platform] = [Platform.CALENDAR]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Vereinsportal from a config entry."""
    timezone = hass.config.time_zone
    client = VereinsportalClient(
        entry.data[CONF_PROJECT_ID], entry.data[CONF_API_KEY], timezone=timezone
    )

    try:
        await client.authenticate(entry.data[CONF_EMAIL], entry.data[CONF_PASSWORD])
        member = await client.async_get_member()
    except AuthenticationError as err:
        await client.async_close()
        raise ConfigEntryAuthFailed("Invalid credentials") from err
    except (ApiConnectionError, ApiResponseError) as err:
        await client.async_close()
        raise ConfigEntryNotReady("Cannot reach the club portal") from err

    coordinator = VereinsportalCoordinator(hass, client, entry, timezone)
    await coordinator.async_config_entry_first_refresh()

    entry.runtime_data = VereinsportalRuntimeData(
        client=client, member=member, coordinator=coordinator
    )

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a Vereinsportal config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        runtime_data: VereinsportalRuntimeData = entry.runtime_data
        await runtime_data.client.async_close()
    return unload_ok
