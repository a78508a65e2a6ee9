"""Config flow for the Vereinsportal integration."""

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant.config_entries import ConfigFlow, ConfigFlowResult
from vereinsportal_api import (
    ApiConnectionError,
    ApiResponseError,
    AuthenticationError,
    Member,
    VereinsportalClient,
)

from .const import CONF_API_KEY, CONF_EMAIL, CONF_PASSWORD, CONF_PROJECT_ID, DOMAIN

_LOGGER = logging.getLogger(__name__)

STEP_USER_DATA_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_PROJECT_ID): str,
        vol.Required(CONF_API_KEY): str,
        vol.Required(CONF_EMAIL): str,
        vol.Required(CONF_PASSWORD): str,
    }
)


async def _validate_login(data: dict[str, Any]) -> Member:
    """Sign in and load the member profile; raises the client's errors."""
    client = VereinsportalClient(data[CONF_PROJECT_ID], data[CONF_API_KEY])
    try:
        await client.authenticate(data[CONF_EMAIL], data[CONF_PASSWORD])
        return await client.async_get_member()
    finally:
        await client.async_close()


class VereinsportalConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Vereinsportal."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Handle the initial step."""
        errors: dict[str, str] = {}

        if user_input is not None:
            try:
                member = await _validate_login(user_input)
            except AuthenticationError:
                errors["base"] = "invalid_auth"
            except ApiConnectionError:
                errors["base"] = "cannot_connect"
            except ApiResponseError:
                errors["base"] = "no_profile"
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Unexpected error during Vereinsportal login")
                errors["base"] = "unknown"
            else:
                await self.async_set_unique_id(
                    f"{user_input[CONF_PROJECT_ID]}_{member.id}"
                )
                self._abort_if_unique_id_configured()
                return self.async_create_entry(
                    title=member.display_name or user_input[CONF_EMAIL],
                    data=dict(user_input),
                )

        return self.async_show_form(
            step_id="user",
            data_schema=STEP_USER_DATA_SCHEMA,
            errors=errors,
        )

    async def async_step_reauth(
        self, entry_data: dict[str, Any]
    ) -> ConfigFlowResult:
        """Handle re-authentication when the session expires."""
        return await self.async_step_reauth_confirm()

    async def async_step_reauth_confirm(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Confirm re-authentication with new credentials."""
        errors: dict[str, str] = {}
        reauth_entry = self._get_reauth_entry()

        if user_input is not None:
            data = {**reauth_entry.data, **user_input}
            try:
                await _validate_login(data)
            except AuthenticationError:
                errors["base"] = "invalid_auth"
            except ApiConnectionError:
                errors["base"] = "cannot_connect"
            except ApiResponseError:
                errors["base"] = "no_profile"
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Unexpected error during Vereinsportal reauth")
                errors["base"] = "unknown"
            else:
                return self.async_update_reload_and_abort(reauth_entry, data=data)

        return self.async_show_form(
            step_id="reauth_confirm",
            data_schema=vol.Schema(
                {
                    vol.Required(
                        CONF_EMAIL,
                        default=reauth_entry.data.get(CONF_EMAIL, ""),
                    ): str,
                    vol.Required(CONF_PASSWORD): str,
                }
            ),
            errors=errors,
        )
