"""Booking, booking form, and submission result models."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from carelink.utils import generate_booking_id, utc_now_iso


class ServiceType(str, Enum):
    COUNSELOR = "counselor"
    HELPLINE = "helpline"


SERVICE_LABELS: dict[ServiceType, str] = {
    ServiceType.COUNSELOR: "On-campus Counselor",
    ServiceType.HELPLINE: "Mental Health Helpline",
}

TIME_SLOTS: tuple[str, ...] = (
    "9:00 AM",
    "10:00 AM",
    "11:00 AM",
    "12:00 PM",
    "1:00 PM",
    "2:00 PM",
    "3:00 PM",
    "4:00 PM",
)

REQUIRED_FORM_FIELDS: tuple[str, ...] = ("service_type", "date", "time")


def parse_service_type(value: str) -> ServiceType:
    """Accept either the enum value or its display label."""
    normalized = value.strip().lower()
    for service, label in SERVICE_LABELS.items():
        if normalized in (service.value, label.lower()):
            return service
    raise ValueError(f"Unknown service type: {value!r}")


class Booking(BaseModel):
    """One appointment request, immutable once persisted."""

    id: str = Field(default_factory=generate_booking_id)
    service_type: ServiceType
    date: str
    time: str
    note: str = ""
    created_at: str = Field(default_factory=utc_now_iso)

    model_config = {"frozen": True}

    @field_validator("service_type", mode="before")
    @classmethod
    def _coerce_service_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_service_type(value)
        return value

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        datetime.strptime(value.strip(), "%Y-%m-%d")
        return value.strip()

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        if value.strip() not in TIME_SLOTS:
            raise ValueError(f"Time must be one of {list(TIME_SLOTS)}, got {value!r}")
        return value.strip()

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "serviceType": self.service_type.value,
            "date": self.date,
            "time": self.time,
            "note": self.note,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_document(cls, raw: dict[str, Any]) -> "Booking":
        """Parse a stored booking, accepting the older appointment* keys."""
        return cls(
            id=raw["id"],
            service_type=raw["serviceType"],
            date=raw.get("date") or raw.get("appointmentDate", ""),
            time=raw.get("time") or raw.get("appointmentTime", ""),
            note=raw.get("note") or raw.get("message") or "",
            created_at=raw.get("createdAt", ""),
        )


class BookingForm(BaseModel):
    """Editable booking form state. All fields are plain strings."""

    service_type: str = ""
    date: str = ""
    time: str = ""
    note: str = ""

    def missing_fields(self) -> list[str]:
        return [name for name in REQUIRED_FORM_FIELDS if not getattr(self, name).strip()]

    def reset(self) -> None:
        self.service_type = ""
        self.date = ""
        self.time = ""
        self.note = ""

    def to_booking(self) -> Booking:
        """Build a Booking with a fresh id.

        Raises:
            pydantic.ValidationError: If a field holds an invalid value.
        """
        return Booking(
            service_type=self.service_type,
            date=self.date,
            time=self.time,
            note=self.note.strip(),
        )


class CounselorContact(BaseModel):
    """Static contact details shown on the booking confirmation."""

    name: str
    phone: str
    email: str
    location: str
    hours: str


class BookingConfirmation(BaseModel):
    booking: Booking
    contact: CounselorContact


class BookingOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    REJECTED = "rejected"


class BookingResult(BaseModel):
    """Result of one submit attempt."""

    outcome: BookingOutcome
    message: str
    booking: Optional[Booking] = None
    confirmation: Optional[BookingConfirmation] = None
    missing_fields: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.outcome == BookingOutcome.SUCCEEDED
