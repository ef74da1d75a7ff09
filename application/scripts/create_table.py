#!/usr/bin/env python3
"""Create the booking DynamoDB tables (local or AWS). Set DYNAMODB_ENDPOINT_URL for local."""

import os
import sys
from pathlib import Path

import boto3
from dotenv import load_dotenv

# Load .env from application/ or repo root so AWS_REGION etc. are set
_app_dir = Path(__file__).resolve().parent.parent
_repo_root = _app_dir.parent
load_dotenv(_app_dir / ".env")
load_dotenv(_repo_root / ".env")
load_dotenv(_repo_root / ".env.local")

# table name -> (hash key, range key or None)
TABLES = {
    os.environ.get("SCHEDULE_DAYS_TABLE_NAME", "schedule_days"): ("user_id", "date"),
    os.environ.get("STATS_TABLE_NAME", "month_stats"): ("user_id", "month"),
    os.environ.get("USERS_TABLE_NAME", "users"): ("user_id", None),
    os.environ.get("CUSTOMERS_TABLE_NAME", "customers"): ("user_id", "phone_number"),
    os.environ.get("NOTIFICATIONS_TABLE_NAME", "notifications"): ("user_id", "notification_id"),
    os.environ.get("CONTACT_MESSAGES_TABLE_NAME", "contact_messages"): ("message_id", None),
}


def main():
    endpoint = os.environ.get("DYNAMODB_ENDPOINT_URL")
    region = os.environ.get("AWS_REGION", "us-west-2")
    kwargs = {"region_name": region}
    if endpoint:
        kwargs["endpoint_url"] = endpoint
    client = boto3.client("dynamodb", **kwargs)
    failed = False
    for table_name, (hash_key, range_key) in TABLES.items():
        key_schema = [{"AttributeName": hash_key, "KeyType": "HASH"}]
        attributes = [{"AttributeName": hash_key, "AttributeType": "S"}]
        if range_key:
            key_schema.append({"AttributeName": range_key, "KeyType": "RANGE"})
            attributes.append({"AttributeName": range_key, "AttributeType": "S"})
        try:
            client.create_table(
                TableName=table_name,
                KeySchema=key_schema,
                AttributeDefinitions=attributes,
                BillingMode="PAY_PER_REQUEST",
            )
            print(f"Created table: {table_name}")
        except client.exceptions.ResourceInUseException:
            print(f"Table {table_name} already exists.", file=sys.stderr)
        except Exception as e:
            print(f"Error creating {table_name}: {e}", file=sys.stderr)
            failed = True
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
