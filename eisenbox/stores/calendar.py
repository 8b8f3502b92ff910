"""SQLite-backed calendar store for email reminders.

Stands in for a hosted calendar: events and their popup reminders are
kept locally and listed by `eisenbox events`.
"""

import json
import logging
import sqlite3
import uuid
from datetime import UTC, datetime
from pathlib import Path

from eisenbox.schemas.planning import CalendarEvent

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS calendar_events (
    id          TEXT PRIMARY KEY,
    title       TEXT NOT NULL,
    starts_at   TEXT NOT NULL,
    ends_at     TEXT NOT NULL,
    body        TEXT NOT NULL DEFAULT '',
    reminders   TEXT NOT NULL DEFAULT '[]'
)
"""

_INSERT = "INSERT INTO calendar_events (id, title, starts_at, ends_at, body) VALUES (?, ?, ?, ?, ?)"
_SELECT_BY_ID = "SELECT * FROM calendar_events WHERE id = ?"
_SELECT_RANGE = "SELECT * FROM calendar_events WHERE starts_at >= ? ORDER BY starts_at ASC LIMIT ?"
_UPDATE_REMINDERS = "UPDATE calendar_events SET reminders = ? WHERE id = ?"


def _utc(value: datetime) -> str:
    # starts_at is compared as text; every stored stamp is UTC.
    return value.astimezone(UTC).isoformat()


def _row_to_event(row: sqlite3.Row) -> CalendarEvent:
    return CalendarEvent(
        id=row["id"],
        title=row["title"],
        start=datetime.fromisoformat(row["starts_at"]),
        end=datetime.fromisoformat(row["ends_at"]),
        body=row["body"],
        popup_minutes_before=json.loads(row["reminders"]),
    )


class SqliteCalendarStore:
    """Local calendar of reminder events.

    Usage::

        with SqliteCalendarStore("data/calendar.db") as calendar:
            event = calendar.create_event("Email: Invoice", start, end, "body")
            calendar.add_popup_reminder(event, 5)
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        # The pipeline calls the store from a worker thread.
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_CREATE_TABLE)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SqliteCalendarStore":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def create_event(
        self, title: str, start: datetime, end: datetime, body: str
    ) -> CalendarEvent:
        """Create an event.

        Raises:
            ValueError: If the event ends before it starts.
        """
        if end < start:
            raise ValueError(f"Event '{title}' ends before it starts")

        event_id = str(uuid.uuid4())
        self._conn.execute(
            _INSERT, (event_id, title, _utc(start), _utc(end), body)
        )
        self._conn.commit()
        logger.info("Created calendar event %s: %s at %s", event_id, title, start.isoformat())
        return CalendarEvent(id=event_id, title=title, start=start, end=end, body=body)

    def add_popup_reminder(self, event: CalendarEvent, minutes_before: int) -> None:
        """Attach a popup reminder to an existing event.

        Raises:
            ValueError: If the event doesn't exist.
        """
        stored = self.get(event.id)
        if stored is None:
            raise ValueError(f"Calendar event not found: {event.id}")

        reminders = sorted(set(stored.popup_minutes_before) | {minutes_before})
        self._conn.execute(_UPDATE_REMINDERS, (json.dumps(reminders), event.id))
        self._conn.commit()
        event.popup_minutes_before = reminders

    def get(self, event_id: str) -> CalendarEvent | None:
        row = self._conn.execute(_SELECT_BY_ID, (event_id,)).fetchone()
        if row is None:
            return None
        return _row_to_event(row)

    def list_upcoming(self, since: datetime, limit: int = 50) -> list[CalendarEvent]:
        """List events starting at or after ``since``, soonest first."""
        rows = self._conn.execute(_SELECT_RANGE, (_utc(since), limit)).fetchall()
        return [_row_to_event(r) for r in rows]
