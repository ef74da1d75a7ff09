"""Request bodies for the booking API (camelCase on the wire)."""

from datetime import date
from typing import Any

from pydantic import BaseModel, Field


class OpenHoursSchema(BaseModel):
    startTime: str
    endTime: str
    dayOfWeek: str = ""
    isActive: bool = False


class TimeSlotsRequestSchema(BaseModel):
    date: str  # ISO date or datetime
    serviceDuration: int = Field(gt=0)
    openHours: OpenHoursSchema | None = None


class MeetingRequestSchema(BaseModel):
    # stored meeting shape, validated by Meeting.from_dict
    meeting: dict[str, Any]


class MeetingRefSchema(BaseModel):
    start: str


class TimeOffRequestSchema(BaseModel):
    startDate: date
    endDate: date


class MonthStatsRequestSchema(BaseModel):
    date: date
    previousCall: int = 0


class ContactUsRequestSchema(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    message: str = Field(min_length=1)
