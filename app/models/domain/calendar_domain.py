# app/models/domain/calendar_domain.py
"""
Calendar Domain Models
Normalized shapes returned by provider adapters. Each provider's wire format is
translated into these before it reaches the connection or sync services.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, Field, model_validator


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class ProviderCalendar(BaseModel):
    """A calendar visible to the connected account."""

    id: str
    name: str = ""
    is_default: bool = False


class ProviderContact(BaseModel):
    """A person from the provider's contacts/people API."""

    external_id: str
    name: str
    email: str | None = None
    role: str | None = None


class ProviderEvent(BaseModel):
    """An event read from the provider calendar (used for counts and conflicts)."""

    external_id: str
    title: str = ""
    start_time: datetime
    end_time: datetime


class EventDraft(BaseModel):
    """Provider-neutral event to create, built from a local booking."""

    title: str
    description: str = ""
    start_time: datetime
    end_time: datetime
    location: str | None = None
    attendees: list[str] = Field(default_factory=list)
    is_private: bool = False

    @model_validator(mode="after")
    def _check_range(self) -> "EventDraft":
        if self.end_time <= self.start_time:
            raise ValueError("Event end_time must be after start_time")
        return self


class CreatedEvent(BaseModel):
    """Identifiers of an event the provider accepted."""

    external_id: str
    join_url: str | None = None
    web_link: str | None = None

    @property
    def url(self) -> str | None:
        """Best link to show the user: meeting join link first, then the web view."""
        return self.join_url or self.web_link
