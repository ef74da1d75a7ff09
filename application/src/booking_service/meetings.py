"""Meeting and open-hours records: parsing from the stored shape and back."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

# durationInMinutes used by whole-day block-offs (vacation / time out)
TIME_OFF_DURATION = 9999

# Service names that mark a block-off rather than a real booking (normalized)
TIME_OFF_SERVICE_NAMES = frozenset({"vacation", "timeout"})

VACATION_SERVICE_NAME = "Vacation"


class InvalidMeetingError(ValueError):
    """A meeting record is missing a required field or has the wrong type."""


def parse_start(value: Any) -> datetime:
    """
    Parse a meeting start into a naive wall-clock datetime.

    Accepts datetime/date objects or ISO strings. Any UTC offset or trailing 'Z'
    is dropped: the date, hour and minute are taken exactly as written.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None, second=0, microsecond=0)
    if isinstance(value, date):
        return datetime.combine(value, time())
    if not isinstance(value, str) or not value.strip():
        raise InvalidMeetingError(f"meeting start must be an ISO date string, got {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1]
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise InvalidMeetingError(f"meeting start is not an ISO date: {value!r}") from exc
    return datetime(parsed.year, parsed.month, parsed.day, parsed.hour, parsed.minute)


def _as_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise InvalidMeetingError(f"{field} must be a number, got {value!r}")
    if isinstance(value, (int, Decimal)):
        return int(value)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise InvalidMeetingError(f"{field} must be a whole number, got {value!r}")


def _as_price(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise InvalidMeetingError(f"price must be a number, got {value!r}")
    return float(value)


@dataclass
class Meeting:
    """A booked appointment or a block-off on a business calendar."""
    start: datetime
    duration_in_minutes: int
    price: float = 0.0
    customer_name: str = ""
    phone_number: str = ""
    service_name: str = ""
    service_description: str = ""
    color: int = 0
    confirmed: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Meeting:
        """Build from the stored camelCase shape. 'meetingConfirm' is read as 'confirmed'."""
        if not isinstance(data, dict):
            raise InvalidMeetingError(f"meeting must be a mapping, got {type(data).__name__}")
        if "start" not in data:
            raise InvalidMeetingError("meeting is missing 'start'")
        if "durationInMinutes" not in data:
            raise InvalidMeetingError("meeting is missing 'durationInMinutes'")
        duration = _as_int(data["durationInMinutes"], "durationInMinutes")
        if duration <= 0:
            raise InvalidMeetingError(f"durationInMinutes must be positive, got {duration}")
        confirmed = data.get("confirmed", data.get("meetingConfirm", False))
        return cls(
            start=parse_start(data["start"]),
            duration_in_minutes=duration,
            price=_as_price(data.get("price")),
            customer_name=str(data.get("customerName") or ""),
            phone_number=str(data.get("phoneNumber") or ""),
            service_name=str(data.get("serviceName") or ""),
            service_description=str(data.get("serviceDescription") or ""),
            color=int(data.get("color") or 0),
            confirmed=bool(confirmed),
        )

    @classmethod
    def coerce(cls, value: Meeting | dict[str, Any]) -> Meeting:
        return value if isinstance(value, Meeting) else cls.from_dict(value)

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_in_minutes)

    @property
    def is_time_off(self) -> bool:
        """True for vacation / time-out records, which are not real bookings."""
        if self.duration_in_minutes == TIME_OFF_DURATION:
            return True
        normalized = self.service_name.strip().lower().replace("-", "").replace(" ", "")
        return normalized in TIME_OFF_SERVICE_NAMES

    def to_dict(self) -> dict[str, Any]:
        """Stored shape (start as ISO wall-clock string)."""
        return {
            "start": self.start.isoformat(),
            "durationInMinutes": self.duration_in_minutes,
            "price": self.price,
            "customerName": self.customer_name,
            "phoneNumber": self.phone_number,
            "serviceName": self.service_name,
            "serviceDescription": self.service_description,
            "color": self.color,
            "confirmed": self.confirmed,
        }


def vacation_meeting(day: date) -> Meeting:
    """Whole-day block-off starting at midnight of day."""
    return Meeting(
        start=datetime.combine(day, time()),
        duration_in_minutes=TIME_OFF_DURATION,
        price=0.0,
        customer_name=VACATION_SERVICE_NAME,
        service_name=VACATION_SERVICE_NAME,
        service_description=VACATION_SERVICE_NAME,
    )


@dataclass
class OpenHours:
    """Business hours for one weekday."""
    start_time: str  # "HH:MM"
    end_time: str    # "HH:MM"
    day_of_week: str = ""
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OpenHours:
        try:
            return cls(
                start_time=str(data["startTime"]),
                end_time=str(data["endTime"]),
                day_of_week=str(data.get("dayOfWeek") or ""),
                is_active=bool(data.get("isActive", True)),
            )
        except KeyError as exc:
            raise ValueError(f"open hours missing {exc.args[0]!r}") from exc
