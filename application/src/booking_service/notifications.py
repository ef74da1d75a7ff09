"""In-app notifications for the business owner: last MAX_NOTIFICATIONS per user."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any

from . import store

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 20
PK = "user_id"
SK = "notification_id"

MEETING_DELETED = "Meeting Was Deleted"
NEW_CUSTOMER = "New Customer Was Register"


def _new_id(now: datetime) -> str:
    # ISO timestamp prefix keeps the sort key in insertion order
    return f"{now.isoformat()}#{uuid.uuid4().hex[:8]}"


def _ids_oldest_first(ddb, user_id: str) -> list[str]:
    items = store.query_all(
        ddb,
        TableName=store.table_name("notifications"),
        KeyConditionExpression="#pk = :user_id",
        ExpressionAttributeNames={"#pk": PK, "#sk": SK},
        ExpressionAttributeValues={":user_id": {"S": user_id}},
        ProjectionExpression="#sk",
        ScanIndexForward=True,
    )
    return [i[SK] for i in items]


def add_notification(user_id: str, title: str, customer_name: str, color: int, day: date) -> dict[str, Any]:
    """Store a notification, first dropping the oldest ones once the user has MAX_NOTIFICATIONS."""
    ddb = store.client()
    table = store.table_name("notifications")

    existing = _ids_oldest_first(ddb, user_id)
    overflow = len(existing) - MAX_NOTIFICATIONS + 1
    for notification_id in existing[:max(overflow, 0)]:
        ddb.delete_item(TableName=table, Key={PK: {"S": user_id}, SK: {"S": notification_id}})

    now = datetime.now(timezone.utc)
    notification = {
        "date": day.isoformat(),
        "title": title,
        "customerName": customer_name,
        "color": color,
        "addedDate": now.isoformat(),
    }
    item = dict(notification, **{PK: user_id, SK: _new_id(now)})
    ddb.put_item(TableName=table, Item=store.to_item(item))
    logger.info("Notification %r added for %s", title, user_id)
    return notification


def list_notifications(user_id: str) -> list[dict[str, Any]]:
    """Newest first."""
    ddb = store.client()
    items = store.query_all(
        ddb,
        TableName=store.table_name("notifications"),
        KeyConditionExpression="#pk = :user_id",
        ExpressionAttributeNames={"#pk": PK},
        ExpressionAttributeValues={":user_id": {"S": user_id}},
        ScanIndexForward=False,
    )
    for item in items:
        item.pop(PK, None)
    return items
