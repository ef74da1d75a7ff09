"""Shared DynamoDB plumbing: client, table names, attribute (de)serialization."""

from __future__ import annotations

import os
import time
from decimal import Decimal
from typing import Any

import boto3
from boto3.dynamodb.types import TypeSerializer, TypeDeserializer
from botocore.config import Config

_SERIALIZER = TypeSerializer()
_DESERIALIZER = TypeDeserializer()

# env var -> default table name
TABLES = {
    "schedule_days": ("SCHEDULE_DAYS_TABLE_NAME", "schedule_days"),
    "stats": ("STATS_TABLE_NAME", "month_stats"),
    "users": ("USERS_TABLE_NAME", "users"),
    "customers": ("CUSTOMERS_TABLE_NAME", "customers"),
    "notifications": ("NOTIFICATIONS_TABLE_NAME", "notifications"),
    "contact_messages": ("CONTACT_MESSAGES_TABLE_NAME", "contact_messages"),
}


class ConcurrentUpdateError(Exception):
    """The item changed between read and conditional write."""


def client():
    endpoint = os.environ.get("DYNAMODB_ENDPOINT_URL")
    region = os.environ.get("AWS_REGION", "us-west-2")
    kwargs = {"region_name": region}
    if endpoint:
        kwargs["endpoint_url"] = endpoint
    return boto3.client("dynamodb", config=Config(retries={"mode": "standard", "max_attempts": 3}), **kwargs)


def table_name(kind: str) -> str:
    env_var, default = TABLES[kind]
    return os.environ.get(env_var, default)


def now_ms() -> int:
    return int(time.time() * 1000)


def _floats_to_decimal(value: Any) -> Any:
    """Recursively convert floats to Decimal so DynamoDB serializer accepts them."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _floats_to_decimal(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_floats_to_decimal(v) for v in value]
    return value


def _decimals_to_numbers(value: Any) -> Any:
    """Inverse of _floats_to_decimal: whole Decimals become int, others float."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _decimals_to_numbers(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decimals_to_numbers(v) for v in value]
    return value


def to_ddb(value: Any) -> dict[str, Any]:
    """Serialize a Python value to DynamoDB attribute format (floats converted to Decimal)."""
    return _SERIALIZER.serialize(_floats_to_decimal(value))


def from_ddb(attr: dict[str, Any]) -> Any:
    """Deserialize a DynamoDB attribute value to plain Python numbers/strings/lists/dicts."""
    return _decimals_to_numbers(_DESERIALIZER.deserialize(attr))


def to_item(data: dict[str, Any]) -> dict[str, Any]:
    return {k: to_ddb(v) for k, v in data.items()}


def from_item(item: dict[str, Any]) -> dict[str, Any]:
    return {k: from_ddb(v) for k, v in item.items()}


def query_all(ddb, **kwargs) -> list[dict[str, Any]]:
    """Run a Query following LastEvaluatedKey; returns deserialized items."""
    items: list[dict[str, Any]] = []
    while True:
        resp = ddb.query(**kwargs)
        items.extend(from_item(i) for i in resp.get("Items") or [])
        last_key = resp.get("LastEvaluatedKey")
        if not last_key:
            return items
        kwargs["ExclusiveStartKey"] = last_key
