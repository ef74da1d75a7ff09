"""Contact-us messages left by visitors of the public booking site."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from . import store

logger = logging.getLogger(__name__)

PK = "message_id"


def add_contact_message(name: str, email: str, message: str) -> dict[str, Any]:
    """Store the message with its add date. Returns the stored record."""
    now = datetime.now(timezone.utc)
    record = {
        "name": name,
        "email": email,
        "message": message,
        "addDate": now.isoformat(),
    }
    ddb = store.client()
    ddb.put_item(
        TableName=store.table_name("contact_messages"),
        Item=store.to_item(dict(record, **{PK: f"{now.isoformat()}#{uuid.uuid4().hex[:8]}"})),
    )
    logger.info("Contact message from %s stored", email)
    return record
