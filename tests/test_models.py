"""Tests for mapping store documents onto models."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from vereinsportal_api import (
    Document,
    Event,
    EventMutation,
    EventResponse,
    Member,
    Occurrence,
    Recurrence,
    ResponseStatus,
    Team,
)

BERLIN = ZoneInfo("Europe/Berlin")
DOC_PREFIX = "projects/club/databases/(default)/documents"


def _str(value: str) -> dict:
    return {"stringValue": value}


def _ts(value: str) -> dict:
    return {"timestampValue": value}


def _make_doc(collection: str, doc_id: str, fields: dict, update_time: str | None = None) -> Document:
    data = {"name": f"{DOC_PREFIX}/{collection}/{doc_id}", "fields": fields}
    if update_time:
        data["updateTime"] = update_time
    return Document.from_api_response(data)


def _event_doc(**extra) -> Document:
    fields = {
        "title": _str("Training"),
        "date": _ts("2024-06-04T16:00:00Z"),
        "isAllDay": {"booleanValue": False},
        "recurrence": _str("weekly"),
    }
    fields.update(extra)
    return _make_doc("events", "evt_1", fields, update_time="2024-06-01T10:00:00.5Z")


class TestDocument:
    def test_id_and_snake_case_fields(self):
        doc = _event_doc()
        assert doc.id == "evt_1"
        assert doc.fields["is_all_day"] is False
        assert doc.update_time == datetime(2024, 6, 1, 10, 0, 0, 500000, tzinfo=timezone.utc)
        assert doc.create_time is None

    def test_missing_fields(self):
        doc = Document.from_api_response({"name": f"{DOC_PREFIX}/teams/t1"})
        assert doc.fields == {}


class TestEventFromDocument:
    def test_basic_fields(self):
        ev = Event.from_document(_event_doc(targetTeamIds={
            "arrayValue": {"values": [_str("u17")]}
        }))
        assert ev.id == "evt_1"
        assert ev.title == "Training"
        assert ev.start == datetime(2024, 6, 4, 18, 0, tzinfo=BERLIN)
        assert ev.start.tzinfo == BERLIN
        assert ev.recurrence is Recurrence.WEEKLY
        assert ev.is_recurring
        assert ev.end is None
        assert ev.duration is None
        assert ev.target_team_ids == frozenset({"u17"})
        assert ev.update_time is not None

    def test_end_timestamp(self):
        ev = Event.from_document(_event_doc(endTime=_ts("2024-06-04T18:00:00Z")))
        assert ev.end == datetime(2024, 6, 4, 20, 0, tzinfo=BERLIN)
        assert ev.duration == timedelta(hours=2)

    def test_legacy_clock_end_time(self):
        ev = Event.from_document(_event_doc(endTime=_str("20:30")))
        assert ev.end == datetime(2024, 6, 4, 20, 30, tzinfo=BERLIN)

    def test_legacy_clock_end_time_rolls_over_midnight(self):
        ev = Event.from_document(_event_doc(endTime=_str("01:00")))
        assert ev.end == datetime(2024, 6, 5, 1, 0, tzinfo=BERLIN)

    def test_unparseable_end_time_ignored(self):
        ev = Event.from_document(_event_doc(endTime=_str("abends")))
        assert ev.end is None

    def test_unknown_recurrence_shown_once(self, caplog):
        with caplog.at_level(logging.WARNING):
            ev = Event.from_document(_event_doc(recurrence=_str("yearly")))
        assert ev.recurrence is Recurrence.NONE
        assert not ev.is_recurring
        assert "yearly" in caplog.text

    def test_recurrence_end_date_in_local_zone(self):
        """Midnight Berlin is still the previous day in UTC."""
        ev = Event.from_document(_event_doc(recurrenceEndDate=_ts("2024-06-17T22:00:00Z")))
        assert ev.recurrence_end_date == date(2024, 6, 18)

    def test_rsvp_deadline(self):
        ev = Event.from_document(_event_doc(rsvpDeadline=_ts("2024-06-03T10:00:00Z")))
        assert ev.rsvp_deadline == datetime(2024, 6, 3, 12, 0, tzinfo=BERLIN)

    def test_document_timezone_wins(self):
        ev = Event.from_document(
            _event_doc(timezone=_str("Europe/London")), timezone="Europe/Berlin"
        )
        assert ev.timezone == "Europe/London"
        assert ev.start.hour == 17

    def test_empty_strings_become_none(self):
        ev = Event.from_document(_event_doc(location=_str(""), meetingPoint=_str("Parkplatz")))
        assert ev.location is None
        assert ev.meeting_point == "Parkplatz"

    def test_missing_date_raises(self):
        doc = _make_doc("events", "evt_2", {"title": _str("Broken")})
        with pytest.raises(KeyError):
            Event.from_document(doc)

    def test_string_date_parsed(self):
        doc = Document(
            name=f"{DOC_PREFIX}/events/evt_3",
            fields={
                "title": "Alt",
                "date": "2024-06-04T18:00:00",
                "rsvp_deadline": "2024-06-03T12:00:00Z",
            },
        )
        ev = Event.from_document(doc)
        assert ev.start == datetime(2024, 6, 4, 18, 0, tzinfo=BERLIN)
        assert ev.rsvp_deadline == datetime(2024, 6, 3, 14, 0, tzinfo=BERLIN)

    @pytest.mark.parametrize("value", [20240604, True, ["2024-06-04"]])
    def test_non_timestamp_date_raises_type_error(self, value):
        doc = Document(name=f"{DOC_PREFIX}/events/evt_4", fields={"date": value})
        with pytest.raises(TypeError):
            Event.from_document(doc)

    def test_unparseable_string_date_raises_value_error(self):
        doc = Document(name=f"{DOC_PREFIX}/events/evt_5", fields={"date": "morgen"})
        with pytest.raises(ValueError):
            Event.from_document(doc)


class TestVisibility:
    def _event(self, teams=()):
        return Event(
            id="e",
            title="t",
            start=datetime(2024, 6, 4, 18, 0, tzinfo=BERLIN),
            target_team_ids=frozenset(teams),
        )

    def test_no_targets_visible_to_all(self):
        assert self._event().visible_to({"u17"})
        assert self._event().visible_to(set())

    def test_targeted(self):
        ev = self._event({"u17", "u19"})
        assert ev.visible_to({"u19"})
        assert not ev.visible_to({"herren"})
        assert ev.visible_to(None)


class TestMemberAndTeam:
    def test_member_german_fields(self):
        doc = _make_doc(
            "users",
            "user_1",
            {
                "vorname": _str("Anna"),
                "nachname": _str("Schmidt"),
                "team_ids": {"arrayValue": {"values": [_str("u17")]}},
                "admin_rechte": {"booleanValue": True},
                "email": _str("anna@example.com"),
            },
        )
        member = Member.from_document(doc)
        assert member.id == "user_1"
        assert member.display_name == "Anna Schmidt"
        assert member.team_ids == frozenset({"u17"})
        assert member.is_admin

    def test_admin_flag_must_be_boolean_true(self):
        doc = _make_doc("users", "user_2", {"admin_rechte": _str("true")})
        member = Member.from_document(doc)
        assert not member.is_admin
        assert member.team_ids == frozenset()

    def test_team(self):
        team = Team.from_document(_make_doc("teams", "u17", {"name": _str("A-Jugend")}))
        assert team == Team(id="u17", name="A-Jugend")


class TestEventResponse:
    def test_from_document(self):
        doc = _make_doc(
            "event_responses",
            "evt_1_2024-06-11_user_1",
            {
                "eventId": _str("evt_1"),
                "eventDate": _str("2024-06-11"),
                "userId": _str("user_1"),
                "status": _str("attending"),
                "respondedAt": _ts("2024-06-05T08:00:00Z"),
            },
        )
        response = EventResponse.from_document(doc)
        assert response.key == ("evt_1", date(2024, 6, 11))
        assert response.status is ResponseStatus.ATTENDING
        assert response.responded_at == datetime(2024, 6, 5, 8, 0, tzinfo=timezone.utc)

    def test_unknown_status(self):
        doc = _make_doc(
            "event_responses",
            "x",
            {
                "eventId": _str("evt_1"),
                "eventDate": _str("2024-06-11"),
                "userId": _str("user_1"),
                "status": _str("maybe"),
            },
        )
        with pytest.raises(ValueError):
            EventResponse.from_document(doc)


class TestOccurrence:
    def _occ(self, deadline=None):
        ev = Event(id="evt_1", title="t", start=datetime(2024, 6, 4, 18, 0, tzinfo=BERLIN))
        return Occurrence(
            event=ev,
            start=datetime(2024, 6, 11, 18, 0, tzinfo=BERLIN),
            rsvp_deadline=deadline,
        )

    def test_keys(self):
        occ = self._occ()
        assert occ.day == date(2024, 6, 11)
        assert occ.display_date == occ.start
        assert occ.key == ("evt_1", date(2024, 6, 11))
        assert occ.uid == "evt_1_2024-06-11"

    def test_rsvp_open(self):
        deadline = datetime(2024, 6, 10, 12, 0, tzinfo=BERLIN)
        occ = self._occ(deadline)
        assert occ.is_rsvp_open(deadline)
        assert not occ.is_rsvp_open(deadline + timedelta(seconds=1))
        assert self._occ().is_rsvp_open(datetime(2030, 1, 1, tzinfo=BERLIN))


class TestEventMutation:
    def test_to_fields(self):
        mutation = EventMutation(
            title="Training",
            start=datetime(2024, 6, 4, 18, 0, tzinfo=BERLIN),
            end=datetime(2024, 6, 4, 20, 0, tzinfo=BERLIN),
            recurrence=Recurrence.BIWEEKLY,
            recurrence_end_date=date(2024, 8, 31),
            target_team_ids=frozenset({"u19", "u17"}),
        )
        fields = mutation.to_fields()
        assert fields["recurrence"] == "biweekly"
        assert fields["recurrenceEndDate"] == datetime(2024, 8, 31, tzinfo=BERLIN)
        assert fields["targetTeamIds"] == ["u17", "u19"]
        assert fields["location"] == ""
        assert fields["rsvpDeadline"] is None
        assert fields["timezone"] == "Europe/Berlin"
        assert fields["isAllDay"] is False

    def test_to_fields_subset(self):
        mutation = EventMutation(
            title="Training",
            start=datetime(2024, 6, 4, 18, 0, tzinfo=BERLIN),
            end=datetime(2024, 6, 4, 20, 0, tzinfo=BERLIN),
        )
        fields = mutation.to_fields(only=("title", "end_time", "is_all_day"))
        assert set(fields) == {"title", "endTime", "isAllDay"}

    def test_to_fields_unknown_name(self):
        mutation = EventMutation(title="t", start=datetime(2024, 6, 4, 18, 0, tzinfo=BERLIN))
        with pytest.raises(ValueError):
            mutation.to_fields(only=("targetTeamIds",))
