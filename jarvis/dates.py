"""
Resolution of the loose date phrases the classifier extracts.

Understands "today", "tomorrow", weekday names (optionally prefixed with
"next"), "next week", ISO dates/datetimes, and an optional trailing time of
day such as "at 3pm" or "15:30".
"""
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

_TIME_RE = re.compile(
    r"(?:\bat\s+)?\b(\d{1,2})(?::(\d{2}))?\s*(am|pm)\b|(?:\bat\s+)?\b(\d{1,2}):(\d{2})\b",
    re.IGNORECASE,
)
_NOON_RE = re.compile(r"\b(noon|midday)\b", re.IGNORECASE)


def _parse_time_of_day(phrase: str) -> Optional[time]:
    if _NOON_RE.search(phrase):
        return time(12, 0)
    match = _TIME_RE.search(phrase)
    if not match:
        return None
    if match.group(1):
        hour = int(match.group(1)) % 12
        minute = int(match.group(2) or 0)
        if match.group(3).lower() == "pm":
            hour += 12
    else:
        hour = int(match.group(4))
        minute = int(match.group(5))
    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def _parse_day(phrase: str, today: date) -> Optional[date]:
    text = phrase.lower()

    iso = re.search(r"\b(\d{4}-\d{2}-\d{2})\b", text)
    if iso:
        try:
            return date.fromisoformat(iso.group(1))
        except ValueError:
            return None

    if re.search(r"\btoday\b|\btonight\b", text):
        return today
    if re.search(r"\btomorrow\b", text):
        return today + timedelta(days=1)
    if re.search(r"\bnext\s+week\b", text):
        return today + timedelta(days=7)

    for index, name in enumerate(WEEKDAYS):
        if re.search(rf"\b{name}\b", text):
            days_ahead = (index - today.weekday()) % 7 or 7
            return today + timedelta(days=days_ahead)

    return None


def resolve_datetime(
    value: Union[str, datetime, None],
    now: Optional[datetime] = None,
    default_time: time = time(9, 0),
) -> Optional[datetime]:
    """
    Turn a date phrase into an aware datetime.

    Args:
        value: Phrase, ISO string or datetime
        now: Reference point (defaults to the current UTC time)
        default_time: Time of day used when the phrase names only a day

    Returns:
        The resolved datetime, or None if the phrase is not understood
    """
    if value is None:
        return None
    now = now or datetime.now(timezone.utc)
    tz = now.tzinfo or timezone.utc

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=tz)

    phrase = value.strip()
    if not phrase:
        return None

    # Full ISO datetimes first ("2025-03-01T10:00:00Z")
    try:
        parsed = datetime.fromisoformat(phrase.replace("Z", "+00:00"))
        if "T" in phrase or " " in phrase.strip():
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=tz)
    except ValueError:
        pass

    day = _parse_day(phrase, now.date())
    time_of_day = _parse_time_of_day(phrase)

    if day is None and time_of_day is None:
        return None
    if day is None:
        # Bare time: today if still ahead, otherwise tomorrow
        candidate = datetime.combine(now.date(), time_of_day, tzinfo=tz)
        return candidate if candidate > now else candidate + timedelta(days=1)

    return datetime.combine(day, time_of_day or default_time, tzinfo=tz)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)
