"""Expansion of (possibly recurring) events into dated occurrences.

Every calendar view asks the same question: which repetitions of an event
fall into a window? The answer is computed here and nowhere else.

Occurrence *k* of an event is always derived from the original start
(``start + k * step``), never by adding steps to the previous occurrence.
For monthly events this means Jan 31 → Feb 29 → Mar 31 → Apr 30: days that
do not exist in a shorter month are clamped to its last day, and the next
month returns to the original day. Fast-forwarding and stepping share this
formula, so they always agree.

All arithmetic is done in the event's wall-clock zone, so a training at
18:00 stays at 18:00 across daylight saving changes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterator

from dateutil.relativedelta import relativedelta

from .const import MAX_EXPANSION_ITERATIONS
from .models import Event, Occurrence, Recurrence

_LOGGER = logging.getLogger(__name__)

_WEEKS_PER_STEP: dict[Recurrence, int] = {
    Recurrence.WEEKLY: 1,
    Recurrence.BIWEEKLY: 2,
}


@dataclass(frozen=True)
class Expansion:
    """Result of expanding one event over a window.

    Attributes:
        occurrences: Occurrences in ascending order of start.
        truncated: True if the iteration cap was hit before the window (or
            the recurrence) was exhausted.
    """

    occurrences: tuple[Occurrence, ...] = ()
    truncated: bool = False

    def __iter__(self) -> Iterator[Occurrence]:
        return iter(self.occurrences)

    def __len__(self) -> int:
        return len(self.occurrences)


def expand(event: Event, window_start: datetime, window_end: datetime) -> list[Occurrence]:
    """Return the occurrences of ``event`` with ``window_start <= start <= window_end``."""
    return list(expand_detailed(event, window_start, window_end).occurrences)


def expand_detailed(
    event: Event,
    window_start: datetime,
    window_end: datetime,
    *,
    max_iterations: int = MAX_EXPANSION_ITERATIONS,
) -> Expansion:
    """Expand ``event`` over the closed window ``[window_start, window_end]``.

    Never raises for bad data: an end of recurrence before the start yields
    nothing, and the loop gives up after ``max_iterations`` rounds, reporting
    that through ``Expansion.truncated``. ``event`` is not modified.
    """
    window_start = _align(window_start, event.start)
    window_end = _align(window_end, event.start)
    if window_end < window_start:
        return Expansion()

    if not event.is_recurring:
        if window_start <= event.start <= window_end:
            return Expansion((_occurrence_at(event, event.start),))
        return Expansion()

    index = _fast_forward(event, window_start)
    found: list[Occurrence] = []
    for _ in range(max_iterations):
        cursor = _nth_start(event, index)
        if cursor is None or _is_exhausted(event, cursor, window_end):
            return Expansion(tuple(found))
        if cursor >= window_start:
            found.append(_occurrence_at(event, cursor))
        index += 1

    cursor = _nth_start(event, index)
    if cursor is None or _is_exhausted(event, cursor, window_end):
        return Expansion(tuple(found))
    _LOGGER.debug(
        "Expansion of event %s stopped after %d iterations", event.id, max_iterations
    )
    return Expansion(tuple(found), truncated=True)


def _nth_start(event: Event, index: int) -> datetime | None:
    """Start of occurrence ``index`` (0 is the original start)."""
    if event.recurrence is Recurrence.MONTHLY:
        return event.start + relativedelta(months=index)
    weeks = _WEEKS_PER_STEP.get(event.recurrence)
    if weeks is None:
        return None
    return event.start + timedelta(weeks=weeks * index)


def _fast_forward(event: Event, window_start: datetime) -> int:
    """Index of an occurrence at or before ``window_start``, at most one step early.

    The estimate backs off one step; the caller's loop checks
    containment from there on.
    """
    start = event.start
    if window_start <= start:
        return 0
    if event.recurrence is Recurrence.MONTHLY:
        months = (window_start.year - start.year) * 12 + (window_start.month - start.month)
        return max(months - 1, 0)
    weeks = _WEEKS_PER_STEP.get(event.recurrence)
    if weeks is None:
        return 0
    return max((window_start - start) // timedelta(weeks=weeks) - 1, 0)


def _is_exhausted(event: Event, cursor: datetime, window_end: datetime) -> bool:
    if event.recurrence_end_date is not None and cursor.date() > event.recurrence_end_date:
        return True
    return cursor > window_end


def _occurrence_at(event: Event, start: datetime) -> Occurrence:
    """Build the occurrence starting at ``start``.

    End and RSVP deadline keep their wall-clock offsets to the original start,
    including whole days, so overnight and multi-day events keep their length.
    """
    end = None
    if event.end is not None:
        end = start + (event.end - event.start)
    rsvp_deadline = None
    if event.rsvp_deadline is not None:
        rsvp_deadline = start - (event.start - event.rsvp_deadline)
    return Occurrence(event=event, start=start, end=end, rsvp_deadline=rsvp_deadline)


def _align(value: datetime, reference: datetime) -> datetime:
    """Express ``value`` in the same zone as ``reference``."""
    if reference.tzinfo is None:
        return value.replace(tzinfo=None) if value.tzinfo is not None else value
    if value.tzinfo is None:
        return value.replace(tzinfo=reference.tzinfo)
    return value.astimezone(reference.tzinfo)
