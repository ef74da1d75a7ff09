"""Availability: bookable start times for one day, given open hours and existing meetings."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any

from .meetings import Meeting, OpenHours

# Same-day requests start at the next quarter-hour mark plus this lead time.
ROUNDING_MINUTES = 15
SAME_DAY_BUFFER_MINUTES = 15


def parse_clock(value: str) -> time:
    """Parse 'HH:MM' (or 'H:MM') into a time."""
    try:
        hours_str, minutes_str = value.strip().split(":")
        return time(int(hours_str), int(minutes_str))
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"expected HH:MM, got {value!r}") from exc


def format_slot(moment: datetime) -> str:
    """'H:MM' with unpadded hour, e.g. 9:00, 13:45."""
    return f"{moment.hour}:{moment.minute:02d}"


def _as_date(day: date | datetime) -> date:
    return day.date() if isinstance(day, datetime) else day


def same_day_cursor(now: datetime) -> datetime:
    """Round now up to the next :00/:15/:30/:45 mark, then add the same-day buffer."""
    base = now.replace(second=0, microsecond=0)
    rounded = -(-base.minute // ROUNDING_MINUTES) * ROUNDING_MINUTES
    return base.replace(minute=0) + timedelta(minutes=rounded + SAME_DAY_BUFFER_MINUTES)


def meetings_collide(candidate_start: datetime, meeting: Meeting) -> bool:
    """
    True if a slot starting at candidate_start runs into meeting.

    The candidate window is sized with the existing meeting's own duration: a
    booked meeting blocks a zone as long as itself around its start.
    """
    meeting_start = meeting.start
    meeting_end = meeting.end
    candidate_end = candidate_start + timedelta(minutes=meeting.duration_in_minutes)

    if meeting_start <= candidate_start < meeting_end:
        return True
    if meeting_start < candidate_end <= meeting_end:
        return True
    return candidate_start <= meeting_start and candidate_end >= meeting_end


def generate_time_slots(
    day: date | datetime,
    service_duration: int,
    open_hours: OpenHours | dict[str, Any],
    meetings: list[Meeting] | list[dict[str, Any]],
    now: datetime | None = None,
) -> list[str]:
    """
    Return the bookable start times for day, in order, formatted 'H:MM'.

    Every slot leaves service_duration minutes before the next meeting it would
    collide with. Days before today have no slots; on the current day slots
    start after the same-day cutoff. Each meeting blocks the cursor at most
    once. The caller's meeting list is not modified.
    """
    if isinstance(service_duration, bool) or not isinstance(service_duration, int) or service_duration <= 0:
        raise ValueError(f"service duration must be a positive number of minutes, got {service_duration!r}")
    if not isinstance(open_hours, OpenHours):
        open_hours = OpenHours.from_dict(open_hours)
    now = now or datetime.now()

    the_day = _as_date(day)
    cursor = datetime.combine(the_day, parse_clock(open_hours.start_time))
    window_end = datetime.combine(the_day, parse_clock(open_hours.end_time))

    if the_day < now.date():
        return []

    if cursor <= now:
        cursor = same_day_cursor(now)

    remaining = [Meeting.coerce(m) for m in meetings]
    slots: list[str] = []
    while cursor < window_end:
        blocking = next((m for m in remaining if meetings_collide(cursor, m)), None)
        if blocking is not None:
            remaining.remove(blocking)
            cursor = blocking.end
            continue
        slots.append(format_slot(cursor))
        cursor += timedelta(minutes=service_duration)
    return slots
