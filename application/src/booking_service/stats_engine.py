"""Monthly statistics: income and meeting counts per weekday, rolling history, MTM trend."""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Iterable

from .meetings import Meeting

logger = logging.getLogger(__name__)

HISTORY_MONTHS = 5


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip()[:10]).date()
    raise ValueError(f"not a date: {value!r}")


def _number(value: Any, default: float = math.nan) -> float:
    """Stored number as float; default (NaN unless given) when missing or not numeric."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return default


def _stored_number(value: float) -> float | None:
    # DynamoDB and JSON reject NaN/inf
    return value if math.isfinite(value) else None


def month_start(day: date) -> date:
    return date(day.year, day.month, 1)


def month_end(day: date) -> date:
    """Last calendar day of day's month."""
    first_of_next = (month_start(day) + timedelta(days=32)).replace(day=1)
    return first_of_next - timedelta(days=1)


def previous_month(day: date) -> date:
    """First day of the month before day's month."""
    return month_start(month_start(day) - timedelta(days=1))


@dataclass
class DayStats:
    """Totals for one weekday bucket. day is 1-based, Sunday = 1."""
    day: int
    day_income: float = 0.0
    meeting_num: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"day": self.day, "dayIncome": self.day_income, "meetingNum": self.meeting_num}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DayStats:
        return cls(
            day=int(data["day"]),
            day_income=_number(data.get("dayIncome"), 0.0),
            meeting_num=int(data.get("meetingNum") or 0),
        )


@dataclass
class MonthSummary:
    """One entry of the rolling history."""
    month: date
    income: float

    def to_dict(self) -> dict[str, Any]:
        return {"month": self.month.isoformat(), "income": _stored_number(self.income)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MonthSummary:
        return cls(month=_to_date(data["month"]), income=_number(data.get("income")))


@dataclass
class MonthStats:
    """Aggregate for one business and calendar month."""
    date: date
    meeting_num: int = 0
    income: float = 0.0
    days_stats: list[DayStats] = field(default_factory=list)
    last5month: list[MonthSummary] = field(default_factory=list)
    mtm: float = 0.0
    site_visit: int = 0
    new_customers: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Stored / API shape."""
        return {
            "date": self.date.isoformat(),
            "meetingNum": self.meeting_num,
            "income": _stored_number(self.income),
            "daysStats": [d.to_dict() for d in self.days_stats],
            "last5month": [m.to_dict() for m in self.last5month],
            "MTM": _stored_number(self.mtm),
            "siteVisit": self.site_visit,
            "newCustomers": self.new_customers,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MonthStats:
        return cls(
            date=_to_date(data["date"]),
            meeting_num=int(data.get("meetingNum") or 0),
            income=_number(data.get("income")),
            days_stats=[DayStats.from_dict(d) for d in data.get("daysStats") or []],
            last5month=[MonthSummary.from_dict(m) for m in data.get("last5month") or []],
            mtm=_number(data.get("MTM"), 0.0),
            site_visit=int(data.get("siteVisit") or 0),
            new_customers=int(data.get("newCustomers") or 0),
        )


def empty_month_stats(month: date) -> MonthStats:
    return MonthStats(date=month_start(month))


def weekday_index(day: date) -> int:
    """1-based weekday with Sunday = 1 ... Saturday = 7."""
    return (day.weekday() + 1) % 7 + 1


def roll_history(previous: MonthStats | None) -> list[MonthSummary]:
    """
    History for the month after previous: previous month's summary prepended to
    its own history, most recent first, capped at HISTORY_MONTHS.
    """
    if previous is None:
        return []
    window: deque[MonthSummary] = deque(previous.last5month[:HISTORY_MONTHS], maxlen=HISTORY_MONTHS)
    # appendleft on a full deque drops the oldest entry from the right
    window.appendleft(MonthSummary(month=previous.date, income=previous.income))
    return list(window)


def month_over_month(history: list[MonthSummary]) -> float:
    """Percent change from the second most recent to the most recent income; 0 when undefined."""
    if len(history) < 2:
        return 0.0
    latest = history[0].income
    before = history[1].income
    if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in (latest, before)):
        return 0.0
    if before == 0:
        return 0.0
    change = (latest - before) / before * 100
    return change if math.isfinite(change) else 0.0


def _record_day(record: Any) -> tuple[date, list[Any]] | None:
    """(date, meetings) for a usable daily record, None for a malformed one."""
    if not isinstance(record, dict):
        return None
    meetings = record.get("meetings")
    if not isinstance(meetings, list):
        return None
    try:
        return _to_date(record.get("date")), meetings
    except (TypeError, ValueError):
        return None


def aggregate_month(
    month: date,
    daily_records: Iterable[dict[str, Any]],
    previous_stats: MonthStats | None = None,
    current_stats: MonthStats | None = None,
) -> MonthStats:
    """
    Roll a month's schedule days into MonthStats.

    Time-off meetings are not counted and days with no real meetings leave no
    bucket. Malformed day records are skipped. Counters maintained outside this
    function (siteVisit, newCustomers) are carried over from current_stats.
    """
    buckets: dict[int, DayStats] = {}
    for record in daily_records:
        parsed = _record_day(record)
        if parsed is None:
            logger.warning("Skipping malformed schedule day record: %r", record)
            continue
        day, raw_meetings = parsed
        real = [m for m in (Meeting.coerce(r) for r in raw_meetings) if not m.is_time_off]
        if not real:
            continue
        index = weekday_index(day)
        bucket = buckets.setdefault(index, DayStats(day=index))
        bucket.day_income += sum(m.price for m in real)
        bucket.meeting_num += len(real)

    days_stats = list(buckets.values())
    history = roll_history(previous_stats)
    return MonthStats(
        date=month_start(month),
        meeting_num=sum(d.meeting_num for d in days_stats),
        income=sum(d.day_income for d in days_stats),
        days_stats=days_stats,
        last5month=history,
        mtm=month_over_month(history),
        site_visit=current_stats.site_visit if current_stats else 0,
        new_customers=current_stats.new_customers if current_stats else 0,
    )
