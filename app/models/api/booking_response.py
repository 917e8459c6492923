# app/models/api/booking_response.py
"""
Booking API response models.
"""

from pydantic import BaseModel, Field

from app.models.domain.booking_domain import Booking, BookingIntent, SyncStatus, TimeSlot


class ParseBookingResponse(BaseModel):
    intent: BookingIntent
    time_slots: list[TimeSlot] = Field(..., description="Candidate slots, best first")
    message: str


class BookingResponse(BaseModel):
    booking: Booking
    sync_status: SyncStatus = Field(..., description="Outcome of the provider push")
    sync_error: str | None = Field(None, description="Why the push failed, when it did")


class BookingsListResponse(BaseModel):
    bookings: list[Booking]
    total_count: int
