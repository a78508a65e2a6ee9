"""Validation of the administrator's event form.

This is the only place where user supplied event data enters the system, so
malformed values (e.g. an unknown recurrence) are rejected here instead of
being tolerated further down.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

import voluptuous as vol
from dateutil.parser import isoparse

from .const import DEFAULT_TIMEZONE
from .exceptions import EventValidationError
from .models import EventMutation, Recurrence

_CLOCK = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_CLOCK_MSG = "Invalid time (HH:MM)"


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as err:
        raise vol.Invalid("Invalid date") from err


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return isoparse(str(value))
    except ValueError as err:
        raise vol.Invalid("Invalid date and time") from err


def _clock(value: str) -> time:
    match = _CLOCK.match(value)
    if match is None:
        raise vol.Invalid(_CLOCK_MSG)
    return time(int(match.group(1)), int(match.group(2)))


_OPTIONAL_CLOCK = vol.Any(None, "", vol.All(str, vol.Match(_CLOCK)), msg=_CLOCK_MSG)
_OPTIONAL_DATE = vol.Any(None, _as_date, msg="Invalid date")
_OPTIONAL_TEXT = vol.Any(None, vol.All(str, vol.Strip))

EVENT_FORM_SCHEMA = vol.Schema(
    {
        vol.Required("title"): vol.All(
            str, vol.Strip, vol.Length(min=1, msg="Title is required")
        ),
        vol.Required("date"): _as_date,
        vol.Optional("start_time", default=""): _OPTIONAL_CLOCK,
        vol.Optional("end_time", default=""): _OPTIONAL_CLOCK,
        vol.Optional("end_date", default=None): _OPTIONAL_DATE,
        vol.Optional("is_all_day", default=False): vol.Boolean(),
        vol.Optional("recurrence", default=Recurrence.NONE.value): vol.In(
            [None] + [r.value for r in Recurrence], msg="Unknown recurrence"
        ),
        vol.Optional("recurrence_end_date", default=None): _OPTIONAL_DATE,
        vol.Optional("rsvp_deadline", default=None): vol.Any(
            None, _as_datetime, msg="Invalid date and time"
        ),
        vol.Optional("target_team_ids", default=list): [str],
        vol.Optional("location", default=None): _OPTIONAL_TEXT,
        vol.Optional("meeting_point", default=None): _OPTIONAL_TEXT,
        vol.Optional("description", default=None): _OPTIONAL_TEXT,
    }
)


def event_mutation_from_form(
    data: dict[str, Any], *, timezone: str = DEFAULT_TIMEZONE
) -> EventMutation:
    """Validate form input and build the mutation to store.

    Dates and times are interpreted as wall-clock values in ``timezone``.
    A timed event whose end time is not after its start time and that has no
    explicit end date ends on the following day.

    Raises:
        EventValidationError: With a field → message mapping.
    """
    try:
        values = EVENT_FORM_SCHEMA(data)
    except vol.MultipleInvalid as err:
        raise EventValidationError(
            {str(e.path[0]) if e.path else "base": e.msg for e in err.errors}
        ) from err

    tz = ZoneInfo(timezone)
    errors: dict[str, str] = {}
    all_day = values["is_all_day"]
    day: date = values["date"]

    if all_day:
        start = datetime.combine(day, time.min, tzinfo=tz)
        last_day = values["end_date"] or day
        end = datetime.combine(last_day, time.max.replace(microsecond=0), tzinfo=tz)
        if last_day < day:
            errors["end_date"] = "End must not be before start"
    else:
        if not values["start_time"]:
            errors["start_time"] = "Start time is required"
            start = datetime.combine(day, time.min, tzinfo=tz)
        else:
            start = datetime.combine(day, _clock(values["start_time"]), tzinfo=tz)
        end = None
        if values["end_time"]:
            end = datetime.combine(
                values["end_date"] or day, _clock(values["end_time"]), tzinfo=tz
            )
            if end <= start:
                if values["end_date"] is None:
                    end += timedelta(days=1)
                else:
                    errors["end_time"] = "End must be after start"
        elif values["end_date"] is not None:
            errors["end_time"] = "End time is required with an end date"

    recurrence = Recurrence(values["recurrence"] or Recurrence.NONE.value)
    recurrence_end = values["recurrence_end_date"]
    if recurrence is Recurrence.NONE:
        recurrence_end = None
    elif recurrence_end is not None and recurrence_end < day:
        errors["recurrence_end_date"] = "Must not be before the first date"

    rsvp_deadline = values["rsvp_deadline"]
    if rsvp_deadline is not None:
        if rsvp_deadline.tzinfo is None:
            rsvp_deadline = rsvp_deadline.replace(tzinfo=tz)
        else:
            rsvp_deadline = rsvp_deadline.astimezone(tz)
        if rsvp_deadline > start:
            errors["rsvp_deadline"] = "Must not be after the start"

    if errors:
        raise EventValidationError(errors)

    return EventMutation(
        title=values["title"],
        start=start,
        end=end,
        is_all_day=all_day,
        recurrence=recurrence,
        recurrence_end_date=recurrence_end,
        rsvp_deadline=rsvp_deadline,
        target_team_ids=frozenset(values["target_team_ids"]),
        location=values["location"] or None,
        meeting_point=values["meeting_point"] or None,
        description=values["description"] or None,
        timezone=timezone,
    )
