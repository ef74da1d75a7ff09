"""FastAPI app: booking endpoints (time slots, meetings, time off, monthly stats)."""

from __future__ import annotations

import logging
import os
from datetime import date
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# Load .env when running locally (application/.env or repo root .env / .env.local)
_app_dir = Path(__file__).resolve().parent.parent.parent  # application/
_repo_root = _app_dir.parent
load_dotenv(_app_dir / ".env")
load_dotenv(_app_dir / ".env.local")
load_dotenv(_repo_root / ".env")
load_dotenv(_repo_root / ".env.local")

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse

from . import contact_messages, notifications, schedule_store, scheduler, stats_store, users, whatsapp
from .meetings import Meeting, OpenHours, parse_start
from .schemas import (
    ContactUsRequestSchema,
    MeetingRefSchema,
    MeetingRequestSchema,
    MonthStatsRequestSchema,
    TimeOffRequestSchema,
    TimeSlotsRequestSchema,
)
from .schedule_store import MeetingNotFoundError
from .store import ConcurrentUpdateError
from .users import UserNotFoundError

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Booking Backend", version="0.1.0")


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": str(exc)})


@app.exception_handler(ValueError)
async def _bad_input(request: Request, exc: ValueError) -> JSONResponse:
    # InvalidMeetingError is a ValueError
    return _error(400, exc)


@app.exception_handler(MeetingNotFoundError)
@app.exception_handler(UserNotFoundError)
async def _not_found(request: Request, exc: LookupError) -> JSONResponse:
    return _error(404, exc)


@app.exception_handler(ConcurrentUpdateError)
async def _conflict(request: Request, exc: ConcurrentUpdateError) -> JSONResponse:
    logger.warning("Concurrent update on %s: %s", request.url.path, exc)
    return _error(409, exc)


@app.post("/api/users/{user_id}/time-slots")
async def time_slots(user_id: str, body: TimeSlotsRequestSchema) -> dict[str, Any]:
    """Bookable start times for the requested day."""
    day = parse_start(body.date).date()
    if body.openHours is None or not body.openHours.isActive:
        return {"success": True, "timeSlotList": []}
    open_hours = OpenHours(
        start_time=body.openHours.startTime,
        end_time=body.openHours.endTime,
        day_of_week=body.openHours.dayOfWeek,
        is_active=True,
    )
    meetings = schedule_store.get_meetings(user_id, day)
    slots = scheduler.generate_time_slots(day, body.serviceDuration, open_hours, meetings)
    return {"success": True, "timeSlotList": slots}


@app.post("/api/users/{user_id}/meetings")
async def add_meeting(user_id: str, body: MeetingRequestSchema) -> dict[str, Any]:
    meeting = Meeting.from_dict(body.meeting)
    schedule_store.add_meeting(user_id, meeting)
    return {"success": True}


@app.post("/api/users/{user_id}/website-meetings")
async def add_website_meeting(user_id: str, body: MeetingRequestSchema) -> dict[str, Any]:
    """Booking from the public site: also registers first-time customers."""
    meeting = Meeting.from_dict(body.meeting)
    schedule_store.add_meeting(user_id, meeting)

    new_customer = False
    if meeting.phone_number:
        new_customer = users.add_customer_if_new(user_id, meeting.customer_name, meeting.phone_number)
    if new_customer:
        stats_store.increment_counter(user_id, "newCustomers")
        notifications.add_notification(
            user_id, notifications.NEW_CUSTOMER, meeting.customer_name, meeting.color, date.today()
        )
    return {"success": True, "message": "meeting was added!", "newCustomer": new_customer}


@app.delete("/api/users/{user_id}/meetings")
async def delete_meeting(user_id: str, start: str) -> dict[str, Any]:
    meeting = schedule_store.delete_meeting(user_id, start)
    notifications.add_notification(
        user_id, notifications.MEETING_DELETED, meeting.customer_name, meeting.color, meeting.start.date()
    )
    return {"success": True}


def _send_approval(user_id: str, meeting: Meeting) -> None:
    profile = users.get_business_profile(user_id)
    if profile is None:
        logger.warning("User %s not found; approval message not sent", user_id)
        return
    whatsapp.send_meeting_approved(meeting, profile.get("address") or "", profile.get("businessName") or "")


@app.post("/api/users/{user_id}/meetings/confirm")
async def confirm_meeting(user_id: str, body: MeetingRefSchema, background_tasks: BackgroundTasks) -> dict[str, Any]:
    meeting = schedule_store.confirm_meeting(user_id, body.start)
    background_tasks.add_task(_send_approval, user_id, meeting)
    return {"success": True, "meeting": meeting.to_dict()}


@app.post("/api/users/{user_id}/time-off")
async def add_time_off(user_id: str, body: TimeOffRequestSchema) -> dict[str, Any]:
    days = schedule_store.add_time_off(user_id, body.startDate, body.endDate)
    return {"success": True, "days": [d.isoformat() for d in days]}


@app.post("/api/users/{user_id}/stats")
async def month_statistics(user_id: str, body: MonthStatsRequestSchema) -> dict[str, Any]:
    stats, from_memory = stats_store.refresh_month_stats(user_id, body.date, body.previousCall)
    return {"success": True, "stats": stats.to_dict(), "fromMemory": from_memory}


@app.post("/api/users/{user_id}/site-visit")
async def site_visit(user_id: str) -> dict[str, Any]:
    stats_store.increment_counter(user_id, "siteVisit")
    return {"success": True}


@app.get("/api/users/{user_id}/notifications")
async def list_notifications(user_id: str) -> dict[str, Any]:
    return {"success": True, "notifications": notifications.list_notifications(user_id)}


@app.get("/api/users/{user_id}/website")
async def website_data(user_id: str) -> dict[str, Any]:
    return {"success": True, "data": users.get_website_data(user_id)}


@app.post("/api/website/contact-us")
async def contact_us(body: ContactUsRequestSchema) -> dict[str, Any]:
    contact_messages.add_contact_message(body.name, body.email, body.message)
    return {"success": True, "message": "ContactUs from website was added!"}


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
