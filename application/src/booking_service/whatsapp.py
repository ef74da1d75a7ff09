"""Outbound WhatsApp template messages via Twilio (fire-and-forget)."""

from __future__ import annotations

import json
import logging
import os
from urllib.parse import quote

from twilio.rest import Client

from .meetings import Meeting

logger = logging.getLogger(__name__)


def get_twilio_client() -> Client:
    sid = os.environ.get("TWILIO_ACCOUNT_SID")
    token = os.environ.get("TWILIO_AUTH_TOKEN")
    if not sid or not token:
        raise ValueError("TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN must be set")
    return Client(sid, token)


def get_from_number() -> str:
    num = os.environ.get("TWILIO_WHATSAPP_NUMBER")
    if not num:
        raise ValueError("TWILIO_WHATSAPP_NUMBER must be set")
    return _whatsapp_address(num)


def _meeting_approved_content_sid() -> str:
    sid = os.environ.get("TWILIO_MEETING_APPROVED_CONTENT_SID")
    if not sid:
        raise ValueError("TWILIO_MEETING_APPROVED_CONTENT_SID must be set")
    return sid


def _whatsapp_address(phone: str) -> str:
    phone = phone.strip()
    return phone if phone.startswith("whatsapp:") else f"whatsapp:{phone}"


def maps_link(address: str) -> str:
    """Suffix for the template's maps URL button."""
    return f"/?api=1&query={quote(address or '', safe='')}"


def build_meeting_approved_variables(meeting: Meeting, address: str, business_name: str) -> dict[str, str]:
    """Template variables: customer, business, long date, time, maps link."""
    start = meeting.start
    return {
        "1": meeting.customer_name,
        "2": business_name or "",
        "3": f"{start.strftime('%A')}, {start.day} {start.strftime('%B %Y')}",
        "4": start.strftime("%H:%M"),
        "5": maps_link(address),
    }


def send_meeting_approved(meeting: Meeting, address: str, business_name: str) -> str | None:
    """Send the 'meeting approved' template to the customer. Returns message SID or None on failure."""
    if not meeting.phone_number:
        logger.warning("Meeting at %s has no phone number; skipping approval message", meeting.start)
        return None
    try:
        client = get_twilio_client()
        msg = client.messages.create(
            to=_whatsapp_address(meeting.phone_number),
            from_=get_from_number(),
            content_sid=_meeting_approved_content_sid(),
            content_variables=json.dumps(build_meeting_approved_variables(meeting, address, business_name)),
        )
    except Exception:
        logger.exception("Failed to send meeting approval to %s", meeting.phone_number)
        return None
    logger.info("Meeting approval sent to %s (SID %s)", meeting.phone_number, msg.sid)
    return msg.sid
