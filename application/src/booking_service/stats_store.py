"""DynamoDB month stats: one item per (user_id, month), plus the month statistics use case."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from . import schedule_store, store
from .stats_engine import MonthStats, aggregate_month, month_start, previous_month

logger = logging.getLogger(__name__)

PK = "user_id"
SK = "month"

COUNTER_FIELDS = ("siteVisit", "newCustomers")


def _key(user_id: str, month: date) -> dict[str, Any]:
    return {PK: {"S": user_id}, SK: {"S": month_start(month).isoformat()}}


def get_stats(user_id: str, month: date) -> MonthStats | None:
    """Stored stats for month, or None if that month has no record yet."""
    ddb = store.client()
    try:
        resp = ddb.get_item(TableName=store.table_name("stats"), Key=_key(user_id, month))
    except ddb.exceptions.ResourceNotFoundException:
        return None
    item = resp.get("Item")
    if not item:
        return None
    return MonthStats.from_dict(store.from_item(item))


def put_stats(user_id: str, stats: MonthStats) -> None:
    """
    Upsert the stats record for stats.date's month.

    Counters already stored are left alone so concurrent increments survive.
    """
    data = stats.to_dict()
    ddb = store.client()
    ddb.update_item(
        TableName=store.table_name("stats"),
        Key=_key(user_id, stats.date),
        UpdateExpression=(
            "SET #date = :date, meetingNum = :meetingNum, income = :income, "
            "daysStats = :daysStats, last5month = :last5month, MTM = :MTM, "
            "siteVisit = if_not_exists(siteVisit, :siteVisit), "
            "newCustomers = if_not_exists(newCustomers, :newCustomers)"
        ),
        ExpressionAttributeNames={"#date": "date"},
        ExpressionAttributeValues={f":{k}": store.to_ddb(v) for k, v in data.items()},
    )
    logger.info("Saved stats for %s month %s (income=%s, meetings=%s)", user_id, data["date"], stats.income, stats.meeting_num)


def increment_counter(user_id: str, counter: str, month: date | None = None) -> None:
    """
    Atomically add 1 to siteVisit or newCustomers for month (default: current month).

    Creates the month record with zeroed totals if it does not exist yet.
    """
    if counter not in COUNTER_FIELDS:
        raise ValueError(f"unknown stats counter {counter!r}")
    month = month_start(month or date.today())
    other = next(f for f in COUNTER_FIELDS if f != counter)
    ddb = store.client()
    ddb.update_item(
        TableName=store.table_name("stats"),
        Key=_key(user_id, month),
        UpdateExpression=(
            "SET #date = if_not_exists(#date, :date), "
            "meetingNum = if_not_exists(meetingNum, :zero), "
            "income = if_not_exists(income, :zero), "
            "daysStats = if_not_exists(daysStats, :empty), "
            "last5month = if_not_exists(last5month, :empty), "
            "MTM = if_not_exists(MTM, :zero), "
            "#other = if_not_exists(#other, :zero) "
            "ADD #counter :one"
        ),
        ExpressionAttributeNames={"#date": "date", "#counter": counter, "#other": other},
        ExpressionAttributeValues={
            ":date": {"S": month.isoformat()},
            ":zero": {"N": "0"},
            ":one": {"N": "1"},
            ":empty": {"L": []},
        },
    )


def refresh_month_stats(user_id: str, day: date, previous_call: int | float = 0) -> tuple[MonthStats, bool]:
    """
    Return (stats, from_memory) for the month containing day.

    Stored stats are returned as-is when no schedule day of the month was
    updated after previous_call (epoch ms). Otherwise the month is aggregated
    again, keeping the stored counters, and saved.
    """
    month = month_start(day)
    days = schedule_store.get_month_days(user_id, month)
    existing = get_stats(user_id, month)
    changed = [d for d in days if (d.get("updated_at") or 0) > (previous_call or 0)]
    if existing is not None and not changed:
        return existing, True

    previous = get_stats(user_id, previous_month(month))
    stats = aggregate_month(month, days, previous_stats=previous, current_stats=existing)
    put_stats(user_id, stats)
    return stats, False
