"""
Booking API Routes
Free-text parsing into suggested slots, booking creation with provider push,
listing (all or today's) and status changes.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies import (
    get_booking_service,
    get_current_user,
    get_intent_extractor,
    get_slot_recommender,
)
from app.infrastructure.observability.logging import get_logger
from app.models.api.booking_request import (
    CreateBookingRequest,
    ParseBookingRequest,
    UpdateBookingStatusRequest,
)
from app.models.api.booking_response import (
    BookingResponse,
    BookingsListResponse,
    ParseBookingResponse,
)
from app.models.domain.booking_domain import Booking, BookingDraft, User
from app.services.booking_service import BookingNotFoundError, BookingService, BookingStatusError
from app.services.intent_extractor import IntentExtractor, IntentParseError
from app.services.slot_recommender import SlotRecommender

logger = get_logger(__name__)

router = APIRouter(tags=["bookings"])


@router.post("/assistant/parse-booking", response_model=ParseBookingResponse)
async def parse_booking(
    request: ParseBookingRequest,
    user: User = Depends(get_current_user),
    extractor: IntentExtractor = Depends(get_intent_extractor),
    recommender: SlotRecommender = Depends(get_slot_recommender),
    bookings: BookingService = Depends(get_booking_service),
):
    """Turn a chat message into an intent plus candidate slots."""
    try:
        intent = await extractor.extract(request.message)
    except IntentParseError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    commitments = await bookings.existing_commitments(user)
    slots = await recommender.suggest(intent, commitments)

    return ParseBookingResponse(
        intent=intent,
        time_slots=slots,
        message=f"I found {len(slots)} option{'s' if len(slots) != 1 else ''} for your {intent.event_type}.",
    )


@router.get("/bookings", response_model=BookingsListResponse)
async def list_bookings(
    user: User = Depends(get_current_user),
    bookings: BookingService = Depends(get_booking_service),
):
    items = await bookings.list_bookings(user.id)
    return BookingsListResponse(bookings=items, total_count=len(items))


@router.get("/bookings/today", response_model=BookingsListResponse)
async def list_todays_bookings(
    user: User = Depends(get_current_user),
    bookings: BookingService = Depends(get_booking_service),
):
    items = await bookings.todays_bookings(user.id)
    return BookingsListResponse(bookings=items, total_count=len(items))


@router.post("/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: CreateBookingRequest,
    user: User = Depends(get_current_user),
    bookings: BookingService = Depends(get_booking_service),
):
    """Create a booking; the provider push outcome is reported, never fatal."""
    result = await bookings.create_booking(user, BookingDraft.model_validate(request.model_dump()))
    return BookingResponse(
        booking=result.booking,
        sync_status=result.sync_status,
        sync_error=result.sync_error,
    )


@router.patch("/bookings/{booking_id}/status", response_model=Booking)
async def update_booking_status(
    booking_id: int,
    request: UpdateBookingStatusRequest,
    user: User = Depends(get_current_user),
    bookings: BookingService = Depends(get_booking_service),
):
    try:
        return await bookings.update_status(user.id, booking_id, request.status)
    except BookingNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except BookingStatusError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
