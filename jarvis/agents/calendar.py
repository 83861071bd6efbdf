"""
Calendar specialist: event creation, free-slot search and daily summary.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union

from ..dates import resolve_datetime, start_of_day
from ..exceptions import ValidationError
from ..models import AgentType, CalendarEvent, Context, Response, ResponseType, TimeSlot, utcnow
from ..personality import PersonalityEngine
from ..storage import DataStore
from .base import BaseAgent, Handler, plural

logger = logging.getLogger(__name__)

WORKDAY_START_HOUR = 9
WORKDAY_END_HOUR = 17
SLOT_LENGTH = timedelta(hours=1)
UPCOMING_LIMIT = 10


def generate_available_slots(
    events: List[CalendarEvent],
    first_day: date,
    last_day: date,
    tz=timezone.utc,
) -> List[TimeSlot]:
    """
    One-hour working-day slots that no event overlaps.

    A slot is busy when slot_start < event_end and slot_end > event_start.
    Slots come back in chronological order and are never merged.
    """
    slots: List[TimeSlot] = []
    day = first_day
    while day <= last_day:
        for hour in range(WORKDAY_START_HOUR, WORKDAY_END_HOUR):
            slot_start = datetime(day.year, day.month, day.day, hour, tzinfo=tz)
            slot_end = slot_start + SLOT_LENGTH
            busy = any(
                slot_start < event.end_time and slot_end > event.start_time
                for event in events
            )
            if not busy:
                slots.append(TimeSlot(start=slot_start, end=slot_end))
        day += timedelta(days=1)
    return slots


def _normalize_attendees(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [a.strip() for a in value.split(",") if a.strip()]
    return [str(a) for a in value]


class CalendarAgent(BaseAgent):
    agent_type = AgentType.CALENDAR

    def __init__(self, store: DataStore, personality: PersonalityEngine, default_event_minutes: int = 60):
        super().__init__(store, personality)
        self.default_event_length = timedelta(minutes=default_event_minutes)

    def handlers(self) -> Dict[str, Handler]:
        return {
            "create_event": self.create_event,
            "list_events": self.get_events_summary,
            "find_slots": self.find_available_slots,
        }

    # ----------------------------------------------------------------------- #
    # Operations
    # ----------------------------------------------------------------------- #

    async def create_event(self, params: Dict[str, Any], context: Context) -> Response:
        start = resolve_datetime(params.get("start_time"))
        end = resolve_datetime(params.get("end_time"))

        # A single spoken time ("tomorrow at 3pm") becomes a default-length event
        if start is None and params.get("date_time"):
            start = resolve_datetime(params["date_time"])
            if start is not None and end is None:
                end = start + self.default_event_length

        if not params.get("title") or start is None or end is None:
            raise ValidationError(
                "Event title, start time, and end time are required",
                details={"title": params.get("title"), "date_time": params.get("date_time")},
            )
        if end <= start:
            raise ValidationError("Event end time must be after its start time")

        title = str(params["title"]).strip()
        location = params.get("location")
        event = self.store.insert_event(CalendarEvent(
            user_id=context.user_id,
            title=title,
            description=params.get("description"),
            start_time=start,
            end_time=end,
            location=location,
            attendees=_normalize_attendees(params.get("attendees")),
        ))
        logger.info(f"Created event {event.id} for user {context.user_id}")

        prefs = self.preferences(context)
        at = f" at {location}" if location else ""
        content = self.personality.phrase(
            prefs,
            f'I\'ve taken the liberty of scheduling the event "{title}"{at} for you, Sir/Madam.',
            f'Event "{title}" has been scheduled successfully{at}',
        )
        return self.success(
            content, prefs, context,
            response_type=ResponseType.CALENDAR_VIEW,
            raw_content={"event": event},
            humor_key="event_created",
            acknowledgment=self.personality.phrase(prefs, "With pleasure, Sir/Madam.", "On it!"),
            completion="Event scheduled successfully.",
        )

    async def find_available_slots(self, params: Dict[str, Any], context: Context) -> Response:
        """Free one-hour slots between 09:00 and 17:00 on each day of the range."""
        start = self._as_datetime(params.get("start_date"))
        end = self._as_datetime(params.get("end_date"))
        if start is None and params.get("date_time"):
            start = resolve_datetime(params["date_time"])
        if start is not None and end is None:
            end = start
        if start is None or end is None:
            raise ValidationError("Start date and end date are required")
        if end < start:
            raise ValidationError("End date must not be before start date")

        window_start = start_of_day(start)
        window_end = start_of_day(end) + timedelta(days=1)
        events = self.store.list_events_overlapping(context.user_id, window_start, window_end)
        slots = generate_available_slots(events, start.date(), end.date(), tz=start.tzinfo or timezone.utc)

        prefs = self.preferences(context)
        if not slots:
            content = self.personality.phrase(
                prefs,
                "I'm afraid your schedule is quite full during the requested time period, Sir/Madam.",
                "Your schedule appears to be full during this time.",
            )
        else:
            content = self.personality.phrase(
                prefs,
                f"I've analyzed your schedule and found {plural(len(slots), 'available time slot')}, Sir/Madam.",
                f"I found {plural(len(slots), 'available time slot')}",
            )

        return self.success(
            content, prefs, context,
            response_type=ResponseType.CALENDAR_VIEW,
            raw_content={"available_slots": slots, "existing_events": events},
            humor_key="slots_found" if slots else None,
            decorate=False,
        )

    async def get_events_summary(self, params: Dict[str, Any], context: Context) -> Response:
        """Today's events plus the next few upcoming ones."""
        now = utcnow()
        today_start = start_of_day(now)
        today_events = self.store.list_events_starting(
            context.user_id, today_start, end=today_start + timedelta(days=1)
        )
        upcoming_events = self.store.list_events_starting(context.user_id, now, limit=UPCOMING_LIMIT)

        prefs = self.preferences(context)
        if not today_events and not upcoming_events:
            content = self.personality.phrase(
                prefs,
                "Your calendar is clear, Sir/Madam. Would you like me to help you schedule something?",
                "Your calendar is clear. Want to schedule something?",
            )
        else:
            content = self.personality.phrase(
                prefs,
                f"You have {plural(len(today_events), 'event')} scheduled for today, Sir/Madam, "
                f"with {plural(len(upcoming_events), 'additional event')} upcoming.",
                f"You have {plural(len(today_events), 'event')} today and "
                f"{plural(len(upcoming_events), 'upcoming event')}",
            )

        return self.success(
            content, prefs, context,
            response_type=ResponseType.CALENDAR_VIEW,
            raw_content={"today_events": today_events, "upcoming_events": upcoming_events},
            decorate=False,
        )

    @staticmethod
    def _as_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
        if value in (None, ""):
            return None
        resolved = resolve_datetime(value, default_time=datetime.min.time())
        if resolved is None:
            raise ValidationError(f"Unrecognized date: {value}")
        return resolved
