"""Window helpers and occurrence queries used by the calendar, home and schedule views."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable
from zoneinfo import ZoneInfo

from .models import Event, Occurrence
from .recurrence import expand

DEFAULT_UPCOMING_HORIZON = timedelta(days=90)


def _zone(tz: str | tzinfo) -> tzinfo:
    return ZoneInfo(tz) if isinstance(tz, str) else tz


def day_window(day: date, tz: str | tzinfo) -> tuple[datetime, datetime]:
    """First and last instant of ``day`` in ``tz``."""
    zone = _zone(tz)
    return (
        datetime.combine(day, time.min, tzinfo=zone),
        datetime.combine(day, time.max, tzinfo=zone),
    )


def week_window(day: date, tz: str | tzinfo) -> tuple[datetime, datetime]:
    """Monday 00:00 through Sunday 23:59:59.999999 of the week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    start, _ = day_window(monday, tz)
    _, end = day_window(monday + timedelta(days=6), tz)
    return start, end


def month_window(year: int, month: int, tz: str | tzinfo) -> tuple[datetime, datetime]:
    """First through last instant of a calendar month."""
    first = date(year, month, 1)
    if month == 12:
        last = date(year, 12, 31)
    else:
        last = date(year, month + 1, 1) - timedelta(days=1)
    start, _ = day_window(first, tz)
    _, end = day_window(last, tz)
    return start, end


def occurrences_between(
    events: Iterable[Event],
    start: datetime,
    end: datetime,
    *,
    team_ids: Iterable[str] | None = None,
) -> list[Occurrence]:
    """All occurrences of the visible ``events`` starting inside ``[start, end]``."""
    teams = None if team_ids is None else frozenset(team_ids)
    found: list[Occurrence] = []
    for event in events:
        if event.visible_to(teams):
            found.extend(expand(event, start, end))
    found.sort(key=lambda occ: (occ.start, occ.event.id))
    return found


def upcoming(
    events: Iterable[Event],
    now: datetime,
    *,
    limit: int = 5,
    horizon: timedelta = DEFAULT_UPCOMING_HORIZON,
    team_ids: Iterable[str] | None = None,
) -> list[Occurrence]:
    """The next ``limit`` occurrences that have not ended at ``now``.

    Occurrences already running at ``now`` are included; only those starting
    within ``horizon`` of ``now`` are considered.
    """
    teams = None if team_ids is None else frozenset(team_ids)
    found: list[Occurrence] = []
    for event in events:
        if not event.visible_to(teams):
            continue
        running_since = now - (event.duration or timedelta(0))
        for occ in expand(event, running_since, now + horizon):
            if (occ.end or occ.start) >= now:
                found.append(occ)
    found.sort(key=lambda occ: (occ.start, occ.event.id))
    return found[:limit]


def group_by_day(occurrences: Iterable[Occurrence]) -> dict[date, list[Occurrence]]:
    """Occurrences keyed by their local start date, for the month grid."""
    days: dict[date, list[Occurrence]] = defaultdict(list)
    for occ in occurrences:
        days[occ.day].append(occ)
    return dict(days)
