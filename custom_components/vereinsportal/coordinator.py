"""DataUpdateCoordinator for the club's event collection."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.exceptions import ConfigEntryAuthFailed
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed
from vereinsportal_api import (
    ApiConnectionError,
    ApiResponseError,
    AuthenticationError,
    CollectionWatcher,
    Event,
    VereinsportalClient,
)
from vereinsportal_api.const import EVENTS_COLLECTION

from .const import CONF_EMAIL, CONF_PASSWORD, DEFAULT_UPDATE_INTERVAL_SECONDS, DOMAIN

_LOGGER = logging.getLogger(__name__)


class VereinsportalCoordinator(DataUpdateCoordinator[dict[str, Event]]):
    """Coordinator that keeps a local copy of the ``events`` collection.

    Stores a dict of event_id → Event. On each update, the collection is
    diffed against the previous poll; changed documents are re-mapped and
    removed ones dropped.
    """

    config_entry: ConfigEntry

    def __init__(
        self,
        hass: Any,
        client: VereinsportalClient,
        config_entry: ConfigEntry,
        timezone: str,
    ) -> None:
        super().__init__(
            hass,
            _LOGGER,
            config_entry=config_entry,
            name=DOMAIN,
            update_interval=timedelta(seconds=DEFAULT_UPDATE_INTERVAL_SECONDS),
        )
        self._client = client
        self._timezone = timezone
        self._watcher = CollectionWatcher(client, EVENTS_COLLECTION)
        self._events: dict[str, Event] = {}

    @property
    def client(self) -> VereinsportalClient:
        return self._client

    @property
    def timezone(self) -> str:
        return self._timezone

    async def _async_update_data(self) -> dict[str, Event]:
        """Poll the event collection and merge changes into the local store."""
        try:
            changes = await self._watcher.async_poll()
        except AuthenticationError:
            if not await self._try_reauth():
                raise ConfigEntryAuthFailed(
                    "Session expired and re-authentication failed"
                )
            changes = await self._watcher.async_poll()
        except ApiConnectionError as err:
            raise UpdateFailed(f"Connection error: {err}") from err
        except ApiResponseError as err:
            raise UpdateFailed(f"API error: {err}") from err

        for event_id in changes.removed:
            self._events.pop(event_id, None)
        for doc in (*changes.added, *changes.modified):
            try:
                self._events[doc.id] = Event.from_document(doc, timezone=self._timezone)
            except (KeyError, TypeError, ValueError):
                _LOGGER.warning("Skipping malformed event %s", doc.id, exc_info=True)
                self._events.pop(doc.id, None)

        return self._events

    async def _try_reauth(self) -> bool:
        """Attempt to sign in again with stored credentials.

        Returns True if re-auth succeeded, False otherwise.
        """
        try:
            email = self.config_entry.data[CONF_EMAIL]
            password = self.config_entry.data[CONF_PASSWORD]
            await self._client.authenticate(email, password)
        except (AuthenticationError, ApiConnectionError):
            return False
        else:
            return True
