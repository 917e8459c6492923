# models/api/booking_request.py
from pydantic import BaseModel, Field

from app.models.domain.booking_domain import BookingDraft, BookingStatus


class ParseBookingRequest(BaseModel):
    """Free-text booking request from the chat."""

    message: str = Field(..., min_length=1, max_length=2000, description="User's request")


class CreateBookingRequest(BookingDraft):
    """Confirmed slot plus booking details."""


class UpdateBookingStatusRequest(BaseModel):
    status: BookingStatus = Field(..., description="New lifecycle status")
