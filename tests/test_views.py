"""Tests for window helpers and occurrence queries."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from vereinsportal_api import (
    Event,
    Recurrence,
    day_window,
    group_by_day,
    month_window,
    occurrences_between,
    upcoming,
    week_window,
)

BERLIN = ZoneInfo("Europe/Berlin")


def _dt(y: int, m: int, d: int, h: int = 0, mi: int = 0) -> datetime:
    return datetime(y, m, d, h, mi, tzinfo=BERLIN)


def _make_event(
    event_id: str,
    start: datetime,
    *,
    end: datetime | None = None,
    recurrence: Recurrence = Recurrence.NONE,
    target_team_ids: frozenset[str] = frozenset(),
) -> Event:
    return Event(
        id=event_id,
        title=event_id.title(),
        start=start,
        end=end,
        recurrence=recurrence,
        target_team_ids=target_team_ids,
    )


class TestWindows:
    def test_day_window(self):
        start, end = day_window(date(2024, 6, 5), "Europe/Berlin")
        assert start == _dt(2024, 6, 5)
        assert end.date() == date(2024, 6, 5)
        assert end.time() == time.max

    def test_week_window_runs_monday_to_sunday(self):
        start, end = week_window(date(2024, 6, 5), BERLIN)
        assert start == _dt(2024, 6, 3)
        assert end.date() == date(2024, 6, 9)
        assert end.time() == time.max

    def test_week_window_on_monday(self):
        start, _ = week_window(date(2024, 6, 3), BERLIN)
        assert start == _dt(2024, 6, 3)

    def test_month_window_leap_february(self):
        start, end = month_window(2024, 2, BERLIN)
        assert start == _dt(2024, 2, 1)
        assert end.date() == date(2024, 2, 29)

    def test_month_window_december(self):
        start, end = month_window(2024, 12, "Europe/Berlin")
        assert start == _dt(2024, 12, 1)
        assert end.date() == date(2024, 12, 31)


class TestOccurrencesBetween:
    def test_sorted_by_start_then_event_id(self):
        events = [
            _make_event("b", _dt(2024, 6, 4, 18, 0), recurrence=Recurrence.WEEKLY),
            _make_event("a", _dt(2024, 6, 4, 18, 0)),
            _make_event("c", _dt(2024, 6, 5, 9, 0)),
        ]
        results = occurrences_between(events, *week_window(date(2024, 6, 4), BERLIN))
        assert [(occ.event.id, occ.day) for occ in results] == [
            ("a", date(2024, 6, 4)),
            ("b", date(2024, 6, 4)),
            ("c", date(2024, 6, 5)),
        ]

    def test_team_filter(self):
        events = [
            _make_event("all", _dt(2024, 6, 4, 18, 0)),
            _make_event("youth", _dt(2024, 6, 4, 19, 0), target_team_ids=frozenset({"u17"})),
            _make_event("seniors", _dt(2024, 6, 4, 20, 0), target_team_ids=frozenset({"herren"})),
        ]
        window = day_window(date(2024, 6, 4), BERLIN)

        ids = [occ.event.id for occ in occurrences_between(events, *window, team_ids=["u17"])]
        assert ids == ["all", "youth"]

        ids = [occ.event.id for occ in occurrences_between(events, *window, team_ids=[])]
        assert ids == ["all"]

        ids = [occ.event.id for occ in occurrences_between(events, *window)]
        assert ids == ["all", "youth", "seniors"]

    def test_empty(self):
        assert occurrences_between([], *day_window(date(2024, 6, 4), BERLIN)) == []


class TestUpcoming:
    def test_next_occurrences_in_order(self):
        events = [
            _make_event(
                "training",
                _dt(2024, 6, 4, 18, 0),
                end=_dt(2024, 6, 4, 20, 0),
                recurrence=Recurrence.WEEKLY,
            ),
            _make_event("match", _dt(2024, 6, 15, 15, 0)),
        ]
        results = upcoming(events, _dt(2024, 6, 10, 12, 0), limit=3)
        assert [(occ.event.id, occ.day) for occ in results] == [
            ("training", date(2024, 6, 11)),
            ("match", date(2024, 6, 15)),
            ("training", date(2024, 6, 18)),
        ]

    def test_running_occurrence_included(self):
        events = [
            _make_event("meeting", _dt(2024, 6, 10, 11, 0), end=_dt(2024, 6, 10, 13, 0)),
            _make_event("past", _dt(2024, 6, 10, 9, 0), end=_dt(2024, 6, 10, 10, 0)),
        ]
        results = upcoming(events, _dt(2024, 6, 10, 12, 0))
        assert [occ.event.id for occ in results] == ["meeting"]

    def test_running_recurring_occurrence_included(self):
        events = [
            _make_event(
                "overnight",
                _dt(2024, 5, 1, 22, 0),
                end=_dt(2024, 5, 2, 2, 0),
                recurrence=Recurrence.WEEKLY,
            )
        ]
        results = upcoming(events, _dt(2024, 6, 6, 1, 0), limit=1)
        assert results[0].start == _dt(2024, 6, 5, 22, 0)

    def test_horizon_limits_lookahead(self):
        events = [_make_event("far", _dt(2024, 12, 1, 10, 0))]
        now = _dt(2024, 6, 10, 12, 0)
        assert upcoming(events, now, horizon=timedelta(days=30)) == []
        assert len(upcoming(events, now, horizon=timedelta(days=365))) == 1

    def test_respects_team_filter(self):
        events = [
            _make_event("youth", _dt(2024, 6, 11, 18, 0), target_team_ids=frozenset({"u17"})),
        ]
        now = _dt(2024, 6, 10, 12, 0)
        assert upcoming(events, now, team_ids=["herren"]) == []
        assert len(upcoming(events, now, team_ids=["u17"])) == 1


class TestGroupByDay:
    def test_groups_by_local_date(self):
        events = [
            _make_event("training", _dt(2024, 6, 4, 18, 0), recurrence=Recurrence.WEEKLY),
            _make_event("meeting", _dt(2024, 6, 4, 20, 0)),
        ]
        grouped = group_by_day(occurrences_between(events, *month_window(2024, 6, BERLIN)))
        assert sorted(grouped) == [
            date(2024, 6, 4),
            date(2024, 6, 11),
            date(2024, 6, 18),
            date(2024, 6, 25),
        ]
        assert [occ.event.id for occ in grouped[date(2024, 6, 4)]] == ["training", "meeting"]
