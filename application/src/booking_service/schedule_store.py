"""DynamoDB schedule days: one item per (user_id, date) holding that day's meetings."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any

from . import store
from .meetings import Meeting, parse_start, vacation_meeting
from .store import ConcurrentUpdateError
from .stats_engine import month_end, month_start

logger = logging.getLogger(__name__)

PK = "user_id"
SK = "date"


class MeetingNotFoundError(LookupError):
    """No meeting with the given start on that day."""


def _key(user_id: str, day: date) -> dict[str, Any]:
    return {PK: {"S": user_id}, SK: {"S": day.isoformat()}}


def _get_day(ddb, user_id: str, day: date) -> dict[str, Any] | None:
    resp = ddb.get_item(
        TableName=store.table_name("schedule_days"),
        Key=_key(user_id, day),
        ConsistentRead=True,
    )
    item = resp.get("Item")
    return store.from_item(item) if item else None


def get_meetings(user_id: str, day: date) -> list[dict[str, Any]]:
    """Return the meetings stored for day (stored shape). Empty list if none."""
    ddb = store.client()
    try:
        item = _get_day(ddb, user_id, day)
    except ddb.exceptions.ResourceNotFoundException:
        return []
    if not item:
        return []
    return item.get("meetings") or []


def get_month_days(user_id: str, month: date) -> list[dict[str, Any]]:
    """All schedule day items between the first and last day of month."""
    ddb = store.client()
    return store.query_all(
        ddb,
        TableName=store.table_name("schedule_days"),
        KeyConditionExpression="#pk = :user_id AND #d BETWEEN :first AND :last",
        ExpressionAttributeNames={"#pk": PK, "#d": SK},
        ExpressionAttributeValues={
            ":user_id": {"S": user_id},
            ":first": {"S": month_start(month).isoformat()},
            ":last": {"S": month_end(month).isoformat()},
        },
    )


def _append_meetings(ddb, user_id: str, day: date, meetings: list[Meeting], *, day_off: bool | None = None) -> None:
    """Atomically append to the day's list, creating the item if needed."""
    parts = [
        "meetings = list_append(if_not_exists(meetings, :empty), :new)",
        "updated_at = :updated_at",
    ]
    values = {
        ":empty": {"L": []},
        ":new": store.to_ddb([m.to_dict() for m in meetings]),
        ":updated_at": store.to_ddb(store.now_ms()),
    }
    if day_off is not None:
        parts.append("is_day_off = :day_off")
        values[":day_off"] = {"BOOL": day_off}
    else:
        parts.append("is_day_off = if_not_exists(is_day_off, :day_off)")
        values[":day_off"] = {"BOOL": False}
    ddb.update_item(
        TableName=store.table_name("schedule_days"),
        Key=_key(user_id, day),
        UpdateExpression="SET " + ", ".join(parts),
        ExpressionAttributeValues=values,
    )


def add_meeting(user_id: str, meeting: Meeting) -> date:
    """Append meeting to its day. Returns the day it was stored under."""
    day = meeting.start.date()
    _append_meetings(store.client(), user_id, day, [meeting])
    logger.info("Added meeting for %s on %s at %s", user_id, day, meeting.start.time())
    return day


def add_time_off(user_id: str, day_from: date, day_to: date) -> list[date]:
    """Block every day from day_from through day_to (inclusive) with a vacation record."""
    if day_to < day_from:
        raise ValueError(f"time off ends ({day_to}) before it starts ({day_from})")
    ddb = store.client()
    days: list[date] = []
    day = day_from
    while day <= day_to:
        _append_meetings(ddb, user_id, day, [vacation_meeting(day)], day_off=True)
        days.append(day)
        day += timedelta(days=1)
    logger.info("Added %d time-off days for %s starting %s", len(days), user_id, day_from)
    return days


def _replace_meetings(ddb, user_id: str, day: date, meetings: list[dict[str, Any]], expected_updated_at: Any) -> None:
    """Write the day's list only if nobody touched the item since it was read."""
    values = {
        ":meetings": store.to_ddb(meetings),
        ":updated_at": store.to_ddb(store.now_ms()),
    }
    if expected_updated_at is None:
        condition = "attribute_not_exists(updated_at)"
    else:
        condition = "updated_at = :expected"
        values[":expected"] = store.to_ddb(expected_updated_at)
    try:
        ddb.update_item(
            TableName=store.table_name("schedule_days"),
            Key=_key(user_id, day),
            UpdateExpression="SET meetings = :meetings, updated_at = :updated_at",
            ConditionExpression=condition,
            ExpressionAttributeValues=values,
        )
    except ddb.exceptions.ConditionalCheckFailedException as exc:
        raise ConcurrentUpdateError(f"schedule day {day} for {user_id} changed concurrently") from exc


def _same_start(raw: dict[str, Any], start: datetime) -> bool:
    try:
        return parse_start(raw.get("start")) == start
    except ValueError:
        return False


def delete_meeting(user_id: str, start: datetime | str) -> Meeting:
    """Remove the meetings starting at start. Returns the (first) removed meeting."""
    start = parse_start(start)
    day = start.date()
    ddb = store.client()
    item = _get_day(ddb, user_id, day)
    existing = (item or {}).get("meetings") or []
    removed = [m for m in existing if _same_start(m, start)]
    if not removed:
        raise MeetingNotFoundError(f"no meeting at {start.isoformat()} for {user_id}")
    meeting = Meeting.from_dict(removed[0])
    kept = [m for m in existing if not _same_start(m, start)]
    _replace_meetings(ddb, user_id, day, kept, item.get("updated_at"))
    logger.info("Deleted meeting for %s at %s", user_id, start.isoformat())
    return meeting


def confirm_meeting(user_id: str, start: datetime | str) -> Meeting:
    """Mark the meeting starting at start as confirmed and return it."""
    start = parse_start(start)
    day = start.date()
    ddb = store.client()
    item = _get_day(ddb, user_id, day)
    meetings = (item or {}).get("meetings") or []
    index = next((i for i, m in enumerate(meetings) if _same_start(m, start)), None)
    if index is None:
        raise MeetingNotFoundError(f"no meeting at {start.isoformat()} for {user_id}")
    meetings[index]["confirmed"] = True
    meetings[index].pop("meetingConfirm", None)
    _replace_meetings(ddb, user_id, day, meetings, item.get("updated_at"))
    logger.info("Confirmed meeting for %s at %s", user_id, start.isoformat())
    return Meeting.from_dict(meetings[index])
