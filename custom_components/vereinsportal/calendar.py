"""Calendar entity for the Vereinsportal integration."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from homeassistant.components.calendar import (
    CalendarEntity,
    CalendarEntityFeature,
    CalendarEvent,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity
from vereinsportal_api import (
    Event,
    EventMutation,
    EventValidationError,
    Member,
    Occurrence,
    Recurrence,
    event_mutation_from_form,
    occurrences_between,
    upcoming,
)

from .const import DEFAULT_EVENT_DURATION, DOMAIN, UPCOMING_HORIZON
from .coordinator import VereinsportalCoordinator
from .models import VereinsportalRuntimeData

_LOGGER = logging.getLogger(__name__)

# Stored fields a Home Assistant edit may overwrite.
_EDITABLE_FIELDS = ("title", "date", "end_time", "is_all_day", "location", "description")
_RECURRENCE_FIELDS = ("recurrence", "recurrence_end_date")

_RRULES: dict[Recurrence, str] = {
    Recurrence.WEEKLY: "FREQ=WEEKLY",
    Recurrence.BIWEEKLY: "FREQ=WEEKLY;INTERVAL=2",
    Recurrence.MONTHLY: "FREQ=MONTHLY",
}


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the club calendar entity from a config entry."""
    runtime_data: VereinsportalRuntimeData = entry.runtime_data
    async_add_entities(
        [VereinsportalCalendarEntity(runtime_data.coordinator, runtime_data.member)]
    )


class VereinsportalCalendarEntity(
    CoordinatorEntity[VereinsportalCoordinator], CalendarEntity
):
    """The club calendar as seen by one member.

    Administrators see every event; other members see events without target
    teams plus those aimed at one of their teams.
    """

    _attr_has_entity_name = True
    _attr_supported_features = (
        CalendarEntityFeature.CREATE_EVENT
        | CalendarEntityFeature.DELETE_EVENT
        | CalendarEntityFeature.UPDATE_EVENT
    )

    def __init__(self, coordinator: VereinsportalCoordinator, member: Member) -> None:
        super().__init__(coordinator)
        self._member = member
        self._attr_unique_id = f"{DOMAIN}_{member.id}"
        self._attr_name = "Vereinskalender"

    @property
    def _team_ids(self) -> frozenset[str] | None:
        return None if self._member.is_admin else self._member.team_ids

    @property
    def event(self) -> CalendarEvent | None:
        """Return the next upcoming or currently running occurrence."""
        now = datetime.now(tz=ZoneInfo(self.coordinator.timezone))
        events = (self.coordinator.data or {}).values()
        nxt = upcoming(
            events, now, limit=1, horizon=UPCOMING_HORIZON, team_ids=self._team_ids
        )
        if not nxt:
            return None
        return _map_occurrence(nxt[0])

    async def async_get_events(
        self,
        hass: HomeAssistant,
        start_date: datetime,
        end_date: datetime,
    ) -> list[CalendarEvent]:
        """Return occurrences starting within the requested time range."""
        events = (self.coordinator.data or {}).values()
        return [
            _map_occurrence(occ)
            for occ in occurrences_between(
                events, start_date, end_date, team_ids=self._team_ids
            )
        ]

    async def async_create_event(self, **kwargs: Any) -> None:
        """Create a new event in the club calendar."""
        _LOGGER.debug("async_create_event called with kwargs: %s", kwargs)
        tz = self.coordinator.timezone
        mutation = _to_mutation(_kwargs_to_form(kwargs, tz), tz)
        await self.coordinator.client.async_create_event(mutation)
        await self.coordinator.async_request_refresh()

    async def async_update_event(
        self,
        uid: str,
        event: dict[str, Any],
        recurrence_id: str | None = None,
        recurrence_range: str | None = None,
    ) -> None:
        """Update an event. Changes always apply to the whole series.

        Only the fields Home Assistant can edit are written; target teams,
        meeting point and RSVP deadline keep their stored values.
        """
        event_id = _event_id(uid)
        stored = (self.coordinator.data or {}).get(event_id)
        if stored is None:
            raise HomeAssistantError(f"Unknown event {uid}")
        mutation = _to_mutation(_update_form(stored, event), stored.timezone)
        await self.coordinator.client.async_update_event(
            event_id, mutation, fields=_update_fields(event)
        )
        await self.coordinator.async_request_refresh()

    async def async_delete_event(
        self,
        uid: str,
        recurrence_id: str | None = None,
        recurrence_range: str | None = None,
    ) -> None:
        """Delete an event. Deleting one occurrence deletes the whole series."""
        await self.coordinator.client.async_delete_event(_event_id(uid))
        await self.coordinator.async_request_refresh()


# --------------------------------------------------------------------------- #
#  Mapping helpers
# --------------------------------------------------------------------------- #


def _to_mutation(form: dict[str, Any], tz_name: str) -> EventMutation:
    try:
        return event_mutation_from_form(form, timezone=tz_name)
    except EventValidationError as err:
        raise HomeAssistantError(f"Invalid event: {err}") from err


def _event_id(uid: str) -> str:
    """Strip the occurrence date from an occurrence uid."""
    event_id, sep, _ = uid.rpartition("_")
    return event_id if sep else uid


def _meeting_point_line(meeting_point: str) -> str:
    return f"Treffpunkt: {meeting_point}"


def _description(occ: Occurrence) -> str | None:
    parts = []
    if occ.event.meeting_point:
        parts.append(_meeting_point_line(occ.event.meeting_point))
    if occ.event.description:
        parts.append(occ.event.description)
    return "\n\n".join(parts) or None


def _map_occurrence(occ: Occurrence) -> CalendarEvent:
    """Map an occurrence to a HA CalendarEvent."""
    rrule = _RRULES.get(occ.event.recurrence)
    if occ.event.is_all_day:
        start = occ.start.date()
        # HA expects an exclusive end date.
        end = (occ.end.date() if occ.end is not None else start) + timedelta(days=1)
        if end <= start:
            end = start + timedelta(days=1)
        return CalendarEvent(
            summary=occ.event.title,
            start=start,
            end=end,
            description=_description(occ),
            location=occ.event.location,
            uid=occ.uid,
            rrule=rrule,
        )

    end_dt = occ.end
    if end_dt is None or end_dt <= occ.start:
        end_dt = occ.start + DEFAULT_EVENT_DURATION
    return CalendarEvent(
        summary=occ.event.title,
        start=occ.start,
        end=end_dt,
        description=_description(occ),
        location=occ.event.location,
        uid=occ.uid,
        rrule=rrule,
    )


def _recurrence_from_rrule(rrule: str | None) -> tuple[str, date | None]:
    """Translate a HA RRULE into the portal's recurrence value and end date.

    Rules the portal cannot express are passed through verbatim so that the
    form validation rejects them.
    """
    if not rrule:
        return Recurrence.NONE.value, None
    parts = dict(
        part.split("=", 1)
        for part in rrule.removeprefix("RRULE:").split(";")
        if "=" in part
    )
    until = parts.pop("UNTIL", None)
    until_date = None
    if until:
        until_date = date(int(until[:4]), int(until[4:6]), int(until[6:8]))
    freq = parts.get("FREQ")
    interval = parts.get("INTERVAL", "1")
    if set(parts) <= {"FREQ", "INTERVAL"}:
        if freq == "WEEKLY" and interval == "1":
            return Recurrence.WEEKLY.value, until_date
        if freq == "WEEKLY" and interval == "2":
            return Recurrence.BIWEEKLY.value, until_date
        if freq == "MONTHLY" and interval == "1":
            return Recurrence.MONTHLY.value, until_date
    return rrule, until_date


def _kwargs_to_form(data: dict[str, Any], tz_name: str) -> dict[str, Any]:
    """Convert HA calendar service call data to event form input.

    HA passes ``dtstart``/``dtend`` as ``datetime`` for timed events and as
    ``date`` for all-day events (with an exclusive end date).
    """
    tz = ZoneInfo(tz_name)
    dtstart = data.get("dtstart") or data.get("start")
    dtend = data.get("dtend") or data.get("end")
    recurrence, until = _recurrence_from_rrule(data.get("rrule"))
    form: dict[str, Any] = {
        "title": data.get("summary", ""),
        "recurrence": recurrence,
        "recurrence_end_date": until,
        "location": data.get("location"),
        "description": data.get("description"),
    }

    if isinstance(dtstart, datetime):
        start = dtstart.astimezone(tz) if dtstart.tzinfo else dtstart.replace(tzinfo=tz)
        form.update(date=start.date(), start_time=start.strftime("%H:%M"))
        if isinstance(dtend, datetime):
            end = dtend.astimezone(tz) if dtend.tzinfo else dtend.replace(tzinfo=tz)
            form.update(end_date=end.date(), end_time=end.strftime("%H:%M"))
        return form

    if not isinstance(dtstart, date):
        raise HomeAssistantError("An event needs a start date")
    form.update(date=dtstart, is_all_day=True)
    if isinstance(dtend, date):
        # HA uses exclusive end dates; the portal stores the last day.
        form["end_date"] = max(dtend - timedelta(days=1), dtstart)
    return form


def _update_fields(data: dict[str, Any]) -> tuple[str, ...]:
    """Stored fields written by an edit; recurrence only if HA sent a rule."""
    if "rrule" in data:
        return _EDITABLE_FIELDS + _RECURRENCE_FIELDS
    return _EDITABLE_FIELDS


def _update_form(stored: Event, data: dict[str, Any]) -> dict[str, Any]:
    """Build form input for editing ``stored`` from HA service call data.

    HA edits an occurrence, but changes apply to the series. For a recurring
    event the series keeps its first date and only the times (and the number
    of days the event spans) change. The meeting point line added by
    ``_description`` is removed again.
    """
    form = _kwargs_to_form(data, stored.timezone)
    if "rrule" not in data:
        form["recurrence"] = stored.recurrence.value
        form["recurrence_end_date"] = stored.recurrence_end_date
    if stored.is_recurring and form["recurrence"] != Recurrence.NONE.value:
        shift = form["date"] - stored.start.date()
        form["date"] = stored.start.date()
        if form.get("end_date") is not None:
            form["end_date"] -= shift
    form["description"] = _strip_meeting_point(form.get("description"), stored)
    return form


def _strip_meeting_point(description: str | None, stored: Event) -> str | None:
    if not description or not stored.meeting_point:
        return description
    line = _meeting_point_line(stored.meeting_point)
    if description == line:
        return None
    return description.removeprefix(f"{line}\n\n")
