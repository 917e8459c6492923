# app/models/domain/booking_domain.py
"""
Booking, contact and user domain models, plus the transient shapes used while
turning a free-text request into a booking (intent, time slot, draft).
"""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models.domain.calendar_domain import as_utc
from app.models.domain.connection_domain import (
    Connected,
    ConnectionState,
    Disconnected,
)


class BookingStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


# User-initiated lifecycle; cancelled is terminal and bookings are never deleted
ALLOWED_STATUS_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.SCHEDULED: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
}


class User(BaseModel):
    """Application user with exactly one calendar connection record."""

    id: str
    email: str
    display_name: str | None = None
    is_private_mode: bool = False
    connection: ConnectionState = Field(default_factory=Disconnected)

    @property
    def active_connection(self) -> Connected | None:
        return self.connection if isinstance(self.connection, Connected) else None


class Contact(BaseModel):
    """Someone the user books with, entered manually or imported from a provider."""

    id: int | None = None
    user_id: str
    name: str = Field(..., min_length=1)
    email: str | None = None
    role: str | None = None
    avatar: str | None = None
    status: Literal["online", "offline", "busy"] = "offline"
    is_private: bool = False
    external_contact_id: str | None = None


class Booking(BaseModel):
    """A booking on the user's own calendar."""

    model_config = ConfigDict(validate_assignment=True)

    id: int | None = None
    user_id: str
    title: str = Field(..., min_length=1)
    description: str | None = None
    start_time: datetime
    end_time: datetime
    contact_id: int | None = None
    type: str = "meeting"
    status: BookingStatus = BookingStatus.SCHEDULED
    location: str | None = None
    is_all_day: bool = False
    is_private: bool = False
    external_event_id: str | None = None
    external_event_url: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_timezone(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _check_range(self) -> "Booking":
        if self.end_time <= self.start_time:
            raise ValueError("Booking end_time must be after start_time")
        return self

    @property
    def is_synced(self) -> bool:
        return self.external_event_id is not None


class BookingIntent(BaseModel):
    """Structured representation of a free-text scheduling request."""

    event_type: str = Field(..., min_length=1)
    preferred_day: str | None = None
    preferred_time: str | None = None
    time_window: str | None = None
    location: str | None = None
    duration_minutes: int = Field(default=60, gt=0, le=24 * 60)
    invitees: list[str] = Field(default_factory=list)
    notes: str | None = None

    @field_validator("duration_minutes", mode="before")
    @classmethod
    def _default_duration(cls, value):
        # Completion output sometimes carries an explicit null
        return 60 if value is None else value

    @field_validator("invitees", mode="before")
    @classmethod
    def _default_invitees(cls, value):
        return [] if value is None else value


class TimeSlot(BaseModel):
    """A candidate start/end window offered to the user."""

    start: datetime
    end: datetime
    label: str

    @model_validator(mode="after")
    def _check_range(self) -> "TimeSlot":
        if self.end <= self.start:
            raise ValueError("Time slot end must be after start")
        return self


class BookingDraft(BaseModel):
    """What the user confirmed: a chosen slot plus the booking details."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    start_time: datetime
    end_time: datetime
    type: str = "meeting"
    location: str | None = None
    is_all_day: bool = False
    is_private: bool = False
    invitees: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_range(self) -> "BookingDraft":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class PullResult(BaseModel):
    contacts_imported: int = 0
    events_seen: int = 0


class PushResult(BaseModel):
    external_event_id: str
    external_event_url: str | None = None


SyncStatus = Literal["succeeded", "failed", "skipped"]


class BookingResult(BaseModel):
    """A created booking plus the outcome of the best-effort provider push."""

    booking: Booking
    sync_status: SyncStatus
    sync_error: str | None = None
