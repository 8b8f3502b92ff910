"""Free-form time expressions -> concrete datetimes, durations and due dates.

Three parsers, one per consumer, each with its own fallback:

- parse_scheduled_time: calendar event start. Never fails; unparseable
  text lands two hours from now.
- parse_duration: calendar event length in milliseconds. Unparseable
  text means 15 minutes.
- parse_due_date: task due date. Unparseable text means no due date.

They differ on purpose in how "today" is treated: a weekday reminder
never lands on today, a "this <weekday>" due date may.
"""

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import NamedTuple

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MS = 15 * 60 * 1000
TOMORROW_DEFAULT_TIME = time(9, 0)
TODAY_DEFAULT_TIME = time(14, 0)
ASAP_OFFSET = timedelta(hours=1)
FALLBACK_OFFSET = timedelta(hours=2)

# Index matches datetime.weekday().
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_WEEKDAY_ALT = "|".join(WEEKDAYS)

_ISO_DATETIME = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2}(?:\.\d{1,6})?)?(?:Z|[+-]\d{2}:?\d{2})?$"
)
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\b", re.IGNORECASE)
_WEEKDAY_TIME = re.compile(
    rf"\b({_WEEKDAY_ALT})\b[\s,]*(?:at\s+)?(\d{{1,2}})(?::(\d{{2}}))?\s*(am|pm)?\b",
    re.IGNORECASE,
)
_NEXT_WEEKDAY = re.compile(rf"\bnext\s+({_WEEKDAY_ALT})\b", re.IGNORECASE)
_THIS_WEEKDAY = re.compile(rf"\bthis\s+({_WEEKDAY_ALT})\b", re.IGNORECASE)

_HOUR_MS = 60 * 60 * 1000
_MINUTE_MS = 60 * 1000

# A number such as "2" or "1.5", never the tail of a longer one.
_AMOUNT = r"(?<![\d.])(\d+(?:\.\d+)?)"

# "1h30m", "2h 15m"
_COMPACT_HOURS_MINUTES = re.compile(rf"{_AMOUNT}\s*h\s*(\d+)\s*m\b", re.IGNORECASE)

# Checked in order; the first pattern that matches wins.
_DURATION_PATTERNS: tuple[tuple[re.Pattern[str], int], ...] = (
    (re.compile(rf"{_AMOUNT}\s*(?:hours?|hrs?)\b", re.IGNORECASE), _HOUR_MS),
    (re.compile(rf"{_AMOUNT}\s*(?:minutes?|mins?)\b", re.IGNORECASE), _MINUTE_MS),
    (re.compile(rf"{_AMOUNT}\s*h\b", re.IGNORECASE), _HOUR_MS),
    (re.compile(rf"{_AMOUNT}\s*m\b", re.IGNORECASE), _MINUTE_MS),
)


class ParsedTime(NamedTuple):
    value: datetime
    was_fallback: bool


class ParsedDuration(NamedTuple):
    milliseconds: int
    was_fallback: bool


def _to_time(hour: int, minute: int, meridiem: str | None) -> time | None:
    """Build a time from clock parts, or None if they are out of range."""
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if meridiem.lower() == "pm" else 0)
    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def _find_time(text: str) -> time | None:
    """Find a clock time in text.

    Prefers an explicit time ("2pm", "14:30") over a bare hour ("at 9").
    """
    bare: time | None = None
    for match in _TIME.finditer(text):
        parsed = _to_time(int(match.group(1)), int(match.group(2) or 0), match.group(3))
        if parsed is None:
            continue
        if match.group(2) or match.group(3):
            return parsed
        if bare is None:
            bare = parsed
    return bare


def _at(day: date, clock: time, now: datetime) -> datetime:
    return datetime.combine(day, clock, tzinfo=now.tzinfo)


def _days_until(weekday_name: str, today: date, *, skip_today: bool) -> int:
    days = (WEEKDAYS.index(weekday_name.lower()) - today.weekday()) % 7
    if days == 0 and skip_today:
        days = 7
    return days


# --- Scheduled time ---


def resolve_scheduled_time(text: str | None, now: datetime) -> ParsedTime:
    """Resolve a scheduling hint to a start time, reporting fallbacks."""
    stripped = (text or "").strip()
    lower = stripped.lower()
    today = now.date()

    if _ISO_DATETIME.match(stripped):
        try:
            value = datetime.fromisoformat(stripped)
        except ValueError:
            logger.debug("Malformed ISO date-time '%s'", stripped)
        else:
            if value.tzinfo is None and now.tzinfo is not None:
                value = value.replace(tzinfo=now.tzinfo)
            return ParsedTime(value, False)

    if "tomorrow" in lower:
        clock = _find_time(lower) or TOMORROW_DEFAULT_TIME
        return ParsedTime(_at(today + timedelta(days=1), clock, now), False)

    match = _WEEKDAY_TIME.search(lower)
    if match:
        clock = _to_time(int(match.group(2)), int(match.group(3) or 0), match.group(4))
        if clock is not None:
            days = _days_until(match.group(1), today, skip_today=True)
            return ParsedTime(_at(today + timedelta(days=days), clock, now), False)

    if re.search(r"\btoday\b", lower):
        clock = _find_time(lower) or TODAY_DEFAULT_TIME
        value = _at(today, clock, now)
        if value < now:
            value += timedelta(days=1)
        return ParsedTime(value, False)

    if "asap" in lower or "urgent" in lower:
        return ParsedTime(now + ASAP_OFFSET, False)

    logger.debug("Unparseable scheduled time '%s', using now + %s", stripped, FALLBACK_OFFSET)
    return ParsedTime(now + FALLBACK_OFFSET, True)


def parse_scheduled_time(text: str | None, now: datetime) -> datetime:
    """Convert a free-form scheduling hint into a concrete start time.

    Recognized, in order: ISO 8601 date-time, "tomorrow [time]",
    "<weekday> <time>", "today [time]", "asap"/"urgent". Anything else
    resolves to two hours from ``now``.
    """
    return resolve_scheduled_time(text, now).value


# --- Duration ---


def resolve_duration(text: str | None) -> ParsedDuration:
    """Resolve a duration hint to milliseconds, reporting fallbacks."""
    if not text or not text.strip():
        return ParsedDuration(DEFAULT_DURATION_MS, True)

    match = _COMPACT_HOURS_MINUTES.search(text)
    if match:
        milliseconds = round(float(match.group(1)) * _HOUR_MS) + int(match.group(2)) * _MINUTE_MS
        if milliseconds > 0:
            return ParsedDuration(milliseconds, False)

    for pattern, unit_ms in _DURATION_PATTERNS:
        match = pattern.search(text)
        if match:
            milliseconds = round(float(match.group(1)) * unit_ms)
            if milliseconds <= 0:
                break
            return ParsedDuration(milliseconds, False)

    logger.debug("Unparseable duration '%s', using 15 minutes", text)
    return ParsedDuration(DEFAULT_DURATION_MS, True)


def parse_duration(text: str | None) -> int:
    """Convert "2 hours", "1.5h", "1h30m", "45m" etc. to milliseconds.

    Empty, zero or unparseable input means 15 minutes.
    """
    return resolve_duration(text).milliseconds


# --- Due date ---


def parse_due_date(text: str | None, now: datetime) -> date | None:
    """Convert a relative or absolute due-date phrase to a date.

    Returns None when the phrase is empty or cannot be understood.
    """
    if not text or not text.strip():
        return None

    stripped = text.strip()
    lower = stripped.lower()
    today = now.date()

    if re.search(r"\btomorrow\b", lower):
        return today + timedelta(days=1)
    if re.search(r"\btoday\b", lower):
        return today

    match = _NEXT_WEEKDAY.search(lower)
    if match:
        return today + timedelta(days=_days_until(match.group(1), today, skip_today=True))

    match = _THIS_WEEKDAY.search(lower)
    if match:
        return today + timedelta(days=_days_until(match.group(1), today, skip_today=False))

    if _ISO_DATE.match(stripped):
        try:
            return date.fromisoformat(stripped)
        except ValueError:
            logger.warning("Invalid due date '%s'", stripped)
            return None

    try:
        return date_parser.parse(stripped, default=now).date()
    except (ValueError, OverflowError):
        logger.warning("Could not parse due date '%s'", stripped)
        return None
