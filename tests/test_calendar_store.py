"""Tests for the SQLite-backed calendar store."""

from datetime import datetime, timedelta, timezone

import pytest

from eisenbox.stores.calendar import SqliteCalendarStore

START = datetime(2025, 6, 2, 15, 0, tzinfo=timezone.utc)


@pytest.fixture()
def calendar(tmp_path):
    with SqliteCalendarStore(tmp_path / "calendar.db") as c:
        yield c


class TestCreateEvent:
    def test_create_and_get(self, calendar):
        event = calendar.create_event("Email: Invoice", START, START + timedelta(minutes=15), "body")

        stored = calendar.get(event.id)
        assert stored == event
        assert stored.start == START
        assert stored.popup_minutes_before == []

    def test_end_before_start_rejected(self, calendar):
        with pytest.raises(ValueError, match="ends before"):
            calendar.create_event("Bad", START, START - timedelta(minutes=1), "")

    def test_get_missing(self, calendar):
        assert calendar.get("nope") is None


class TestPopupReminder:
    def test_reminders_merged_and_sorted(self, calendar):
        event = calendar.create_event("E", START, START, "")
        calendar.add_popup_reminder(event, 10)
        calendar.add_popup_reminder(event, 5)
        calendar.add_popup_reminder(event, 10)

        assert event.popup_minutes_before == [5, 10]
        assert calendar.get(event.id).popup_minutes_before == [5, 10]

    def test_missing_event_rejected(self, calendar):
        event = calendar.create_event("E", START, START, "")
        ghost = event.model_copy(update={"id": "ghost"})
        with pytest.raises(ValueError, match="not found"):
            calendar.add_popup_reminder(ghost, 5)


def test_list_upcoming(calendar):
    later = calendar.create_event("Later", START + timedelta(days=1), START + timedelta(days=1), "")
    sooner = calendar.create_event("Sooner", START, START, "")
    calendar.create_event("Past", START - timedelta(days=1), START - timedelta(days=1), "")

    upcoming = calendar.list_upcoming(START)

    assert [e.id for e in upcoming] == [sooner.id, later.id]
    assert calendar.list_upcoming(START, limit=1)[0].id == sooner.id


def test_list_upcoming_across_utc_offsets(calendar):
    eastern = timezone(timedelta(hours=-5))
    # 20:00-05:00 is 01:00Z the next day, after the 22:00Z cut-off.
    evening = datetime(2025, 6, 2, 20, 0, tzinfo=eastern)
    late = datetime(2025, 6, 2, 23, 0, tzinfo=timezone.utc)
    a = calendar.create_event("A", evening, evening, "")
    b = calendar.create_event("B", late, late, "")

    upcoming = calendar.list_upcoming(datetime(2025, 6, 2, 22, 0, tzinfo=timezone.utc))

    assert [e.id for e in upcoming] == [b.id, a.id]
    assert upcoming[1].start == evening


def test_persists_across_connections(tmp_path):
    db = tmp_path / "calendar.db"
    with SqliteCalendarStore(db) as c:
        event = c.create_event("E", START, START, "")
    with SqliteCalendarStore(db) as c:
        assert c.get(event.id).title == "E"
