"""Business profiles and their customer lists."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from . import store

logger = logging.getLogger(__name__)


class UserNotFoundError(LookupError):
    pass


def get_business_profile(user_id: str) -> dict[str, Any] | None:
    """The user item (businessName, address, services, ...) or None."""
    ddb = store.client()
    try:
        resp = ddb.get_item(TableName=store.table_name("users"), Key={"user_id": {"S": user_id}})
    except ddb.exceptions.ResourceNotFoundException:
        return None
    item = resp.get("Item")
    return store.from_item(item) if item else None


def get_website_data(user_id: str) -> dict[str, Any]:
    """Profile and offered services for the public booking site."""
    profile = get_business_profile(user_id)
    if profile is None:
        raise UserNotFoundError(f"user {user_id} not found")
    services = profile.pop("services", None) or []
    return {"userDoc": profile, "services": services}


def add_customer_if_new(user_id: str, full_name: str, phone_number: str) -> bool:
    """Register the customer under user_id. Returns False if the phone number is already known."""
    ddb = store.client()
    item = {
        "user_id": user_id,
        "phone_number": phone_number,
        "fullName": full_name,
        "own": 0,
        "lastPractice": "",
        "created_at": datetime.now(timezone.utc).isoformat(),
    }
    try:
        ddb.put_item(
            TableName=store.table_name("customers"),
            Item=store.to_item(item),
            ConditionExpression="attribute_not_exists(phone_number)",
        )
    except ddb.exceptions.ConditionalCheckFailedException:
        return False
    logger.info("New customer %s for %s", phone_number, user_id)
    return True
