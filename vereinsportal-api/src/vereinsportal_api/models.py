"""Data models for Vereinsportal documents."""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse

from ._serialization import camelize, decamelize, decode_fields, parse_timestamp
from .const import DEFAULT_TIMEZONE

_LOGGER = logging.getLogger(__name__)

_CLOCK_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class Recurrence(str, enum.Enum):
    """Repetition cadence of an event.

    Stored as a plain string in the ``recurrence`` field. Unknown values are
    never let through to the expander, see ``_parse_recurrence``.
    """

    NONE = "none"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class ResponseStatus(str, enum.Enum):
    """A member's answer to one occurrence."""

    ATTENDING = "attending"
    DECLINED = "declined"
    UNCERTAIN = "uncertain"


@dataclass(frozen=True)
class Document:
    """A raw Firestore document with decoded, snake_case fields."""

    name: str
    fields: dict[str, Any]
    create_time: datetime | None = None
    update_time: datetime | None = None

    @property
    def id(self) -> str:
        """The last path segment of the document name."""
        return self.name.rsplit("/", 1)[-1]

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> Document:
        """Construct from a Firestore REST ``Document`` resource."""
        create_time = data.get("createTime")
        update_time = data.get("updateTime")
        return cls(
            name=data["name"],
            fields=decamelize(decode_fields(data.get("fields", {}))),
            create_time=parse_timestamp(create_time) if create_time else None,
            update_time=parse_timestamp(update_time) if update_time else None,
        )


@dataclass(frozen=True)
class Team:
    """A club team (Mannschaft)."""

    id: str
    name: str

    @classmethod
    def from_document(cls, doc: Document) -> Team:
        return cls(id=doc.id, name=doc.fields.get("name", ""))


@dataclass(frozen=True)
class Member:
    """A portal user as stored in the ``users`` collection."""

    id: str
    first_name: str
    last_name: str
    team_ids: frozenset[str] = field(default_factory=frozenset)
    is_admin: bool = False
    email: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @classmethod
    def from_document(cls, doc: Document) -> Member:
        """Construct from a ``users`` document (German field names)."""
        f = doc.fields
        return cls(
            id=doc.id,
            first_name=f.get("vorname", ""),
            last_name=f.get("nachname", ""),
            team_ids=frozenset(f.get("team_ids") or ()),
            is_admin=f.get("admin_rechte") is True,
            email=f.get("email"),
        )


@dataclass(frozen=True)
class Event:
    """A calendar event as created by a club administrator.

    ``start``, ``end`` and ``rsvp_deadline`` describe the *first* occurrence.
    Repetitions are derived by ``vereinsportal_api.recurrence.expand``.
    """

    id: str
    title: str
    start: datetime
    end: datetime | None = None
    is_all_day: bool = False
    recurrence: Recurrence = Recurrence.NONE
    recurrence_end_date: date | None = None
    rsvp_deadline: datetime | None = None
    target_team_ids: frozenset[str] = field(default_factory=frozenset)
    location: str | None = None
    meeting_point: str | None = None
    description: str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    update_time: datetime | None = None
    timezone: str = DEFAULT_TIMEZONE

    @classmethod
    def from_document(cls, doc: Document, *, timezone: str = DEFAULT_TIMEZONE) -> Event:
        """Construct from an ``events`` document.

        Args:
            doc: The decoded document.
            timezone: Wall-clock zone used for recurrence arithmetic when the
                document does not carry its own ``timezone`` field.
        """
        f = doc.fields
        tz_name = f.get("timezone") or timezone
        tz = ZoneInfo(tz_name)
        start = _as_local(f["date"], tz)
        return cls(
            id=doc.id,
            title=f.get("title", ""),
            start=start,
            end=_parse_end(f.get("end_time"), start),
            is_all_day=bool(f.get("is_all_day", False)),
            recurrence=_parse_recurrence(f.get("recurrence"), doc.id),
            recurrence_end_date=_parse_date(f.get("recurrence_end_date"), tz),
            rsvp_deadline=(
                _as_local(f["rsvp_deadline"], tz) if f.get("rsvp_deadline") else None
            ),
            target_team_ids=frozenset(f.get("target_team_ids") or ()),
            location=f.get("location") or None,
            meeting_point=f.get("meeting_point") or None,
            description=f.get("description") or None,
            created_by=f.get("created_by"),
            created_at=f.get("created_at"),
            update_time=doc.update_time,
            timezone=tz_name,
        )

    @property
    def is_recurring(self) -> bool:
        return self.recurrence is not Recurrence.NONE

    @property
    def duration(self) -> timedelta | None:
        """Wall-clock length of the first occurrence, if an end is set."""
        if self.end is None:
            return None
        return self.end - self.start

    def visible_to(self, team_ids: Iterable[str] | None) -> bool:
        """Whether a member of ``team_ids`` should see this event.

        Events without target teams are visible to everyone. ``None`` means
        the caller does not filter (e.g. an administrator).
        """
        if team_ids is None or not self.target_team_ids:
            return True
        return not self.target_team_ids.isdisjoint(team_ids)


@dataclass(frozen=True)
class Occurrence:
    """One concrete dated instance of a possibly repeating event."""

    event: Event
    start: datetime
    end: datetime | None = None
    rsvp_deadline: datetime | None = None

    @property
    def display_date(self) -> datetime:
        return self.start

    @property
    def day(self) -> date:
        """Calendar date of this occurrence; RSVPs are keyed by it."""
        return self.start.date()

    @property
    def key(self) -> tuple[str, date]:
        return (self.event.id, self.day)

    @property
    def uid(self) -> str:
        return f"{self.event.id}_{self.day.isoformat()}"

    def is_rsvp_open(self, now: datetime) -> bool:
        """Whether responses are still accepted at ``now``."""
        if self.rsvp_deadline is None:
            return True
        return now <= self.rsvp_deadline


@dataclass(frozen=True)
class EventResponse:
    """An RSVP of one member to one occurrence."""

    id: str
    event_id: str
    event_date: date
    user_id: str
    status: ResponseStatus
    responded_at: datetime | None = None

    @property
    def key(self) -> tuple[str, date]:
        return (self.event_id, self.event_date)

    @classmethod
    def from_document(cls, doc: Document) -> EventResponse:
        """Construct from an ``event_responses`` document.

        Raises:
            ValueError: If the stored status is not a known ``ResponseStatus``.
        """
        f = doc.fields
        return cls(
            id=doc.id,
            event_id=f["event_id"],
            event_date=_parse_date(f["event_date"], ZoneInfo(DEFAULT_TIMEZONE)),
            user_id=f["user_id"],
            status=ResponseStatus(f["status"]),
            responded_at=f.get("responded_at"),
        )


@dataclass(frozen=True)
class EventMutation:
    """Data for creating or updating an event.

    Use ``dataclasses.replace()`` to derive modified copies.
    """

    title: str
    start: datetime
    end: datetime | None = None
    is_all_day: bool = False
    recurrence: Recurrence = Recurrence.NONE
    recurrence_end_date: date | None = None
    rsvp_deadline: datetime | None = None
    target_team_ids: frozenset[str] = field(default_factory=frozenset)
    location: str | None = None
    meeting_point: str | None = None
    description: str | None = None
    timezone: str = DEFAULT_TIMEZONE

    def to_fields(self, only: Iterable[str] | None = None) -> dict[str, Any]:
        """Convert to the camelCase field dict stored in the ``events`` collection.

        Args:
            only: snake_case names of the stored fields to include (e.g.
                ``end_time``). All fields are included by default.

        Raises:
            ValueError: If ``only`` names a field events do not have.
        """
        tz = ZoneInfo(self.timezone)
        recurrence_end = None
        if self.recurrence_end_date is not None:
            recurrence_end = datetime.combine(self.recurrence_end_date, time.min, tzinfo=tz)
        fields = {
            "title": self.title,
            "date": self.start,
            "end_time": self.end,
            "is_all_day": self.is_all_day,
            "recurrence": self.recurrence.value,
            "recurrence_end_date": recurrence_end,
            "rsvp_deadline": self.rsvp_deadline,
            "target_team_ids": sorted(self.target_team_ids),
            "location": self.location or "",
            "meeting_point": self.meeting_point or "",
            "description": self.description or "",
            "timezone": self.timezone,
        }
        if only is not None:
            wanted = set(only)
            unknown = wanted - fields.keys()
            if unknown:
                raise ValueError(f"Unknown event fields: {sorted(unknown)}")
            fields = {key: val for key, val in fields.items() if key in wanted}
        return camelize(fields)


def _as_local(value: Any, tz: ZoneInfo) -> datetime:
    """Express a stored timestamp in ``tz``; older documents hold ISO strings.

    Raises:
        TypeError: If ``value`` is neither a timestamp nor a string.
        ValueError: If a string is not an ISO 8601 date and time.
    """
    if isinstance(value, str):
        value = isoparse(value)
    elif not isinstance(value, datetime):
        raise TypeError(f"Expected a timestamp, got {type(value).__name__}")
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def _parse_end(value: Any, start: datetime) -> datetime | None:
    """Parse ``endTime``, which older documents store as an ``HH:MM`` string."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_local(value, start.tzinfo)  # type: ignore[arg-type]
    match = _CLOCK_RE.match(str(value))
    if not match:
        _LOGGER.debug("Ignoring unparseable end time %r", value)
        return None
    end = start.replace(hour=int(match.group(1)), minute=int(match.group(2)))
    if end <= start:
        end += timedelta(days=1)
    return end


def _parse_date(value: Any, tz: ZoneInfo) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_local(value, tz).date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_recurrence(value: Any, event_id: str) -> Recurrence:
    """Parse a stored recurrence, treating unknown values as non-recurring."""
    if value is None or value == "":
        return Recurrence.NONE
    try:
        return Recurrence(value)
    except ValueError:
        _LOGGER.warning(
            "Event %s has unknown recurrence %r, showing it once", event_id, value
        )
        return Recurrence.NONE
