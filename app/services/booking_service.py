"""
Booking Service
Creates bookings from a confirmed slot, links named contacts, and mirrors the
booking to the connected provider on a best-effort basis. Booking creation
never fails because of the provider push.
"""

from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo

from app.config import settings
from app.infrastructure.observability.logging import get_logger, log_transition
from app.models.domain.booking_domain import (
    ALLOWED_STATUS_TRANSITIONS,
    Booking,
    BookingDraft,
    BookingResult,
    BookingStatus,
    Contact,
    User,
)
from app.models.domain.calendar_domain import ProviderEvent, as_utc
from app.repositories.base import Repository
from app.services.connection_service import NotConnectedError
from app.services.sync_service import SyncError, SyncOrchestrator

logger = get_logger(__name__)

COMPONENT = "booking"

COMMITMENT_WINDOW = timedelta(days=60)


class BookingNotFoundError(Exception):
    def __init__(self, booking_id: int, user_id: str | None = None):
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id
        self.user_id = user_id


class BookingStatusError(Exception):
    """Requested status change is not an allowed transition."""

    def __init__(self, current: BookingStatus, requested: BookingStatus):
        super().__init__(f"Cannot change booking status from {current.value} to {requested.value}")
        self.current = current
        self.requested = requested


class BookingService:
    def __init__(
        self, repository: Repository, sync: SyncOrchestrator, timezone: str | None = None
    ):
        self.repository = repository
        self.sync = sync
        self.tz = ZoneInfo(timezone or settings.DEFAULT_TIMEZONE)

    async def create_booking(self, user: User, draft: BookingDraft) -> BookingResult:
        """
        Persist a booking, then push it to the connected provider.

        Users in private mode get private bookings regardless of the draft.

        Args:
            user: Owner of the booking
            draft: Confirmed slot and details

        Returns:
            BookingResult: Stored booking plus push outcome
                ("succeeded", "failed" or "skipped" when not connected)
        """
        contacts = await self._resolve_invitees(user.id, draft.invitees)
        attendees = [contact.email for contact in contacts if contact.email]

        booking = await self.repository.create_booking(
            Booking(
                user_id=user.id,
                title=draft.title,
                description=draft.description,
                start_time=draft.start_time,
                end_time=draft.end_time,
                contact_id=contacts[0].id if contacts else None,
                type=draft.type,
                location=draft.location,
                is_all_day=draft.is_all_day,
                is_private=draft.is_private or user.is_private_mode,
            )
        )
        logger.info(
            "Booking created",
            user_id=user.id,
            booking_id=booking.id,
            linked_contacts=len(contacts),
        )

        if user.active_connection is None:
            return BookingResult(booking=booking, sync_status="skipped")

        try:
            pushed = await self.sync.push_booking(user, booking, attendees)
        except (SyncError, NotConnectedError) as e:
            logger.warning(
                "Booking kept locally, provider push failed",
                user_id=user.id,
                booking_id=booking.id,
                error=str(e),
            )
            return BookingResult(booking=booking, sync_status="failed", sync_error=str(e))

        updated = await self.repository.update_booking(
            booking.id,
            {
                "external_event_id": pushed.external_event_id,
                "external_event_url": pushed.external_event_url,
            },
        )
        return BookingResult(booking=updated or booking, sync_status="succeeded")

    async def list_bookings(self, user_id: str) -> list[Booking]:
        return await self.repository.get_bookings(user_id)

    async def todays_bookings(self, user_id: str, now: datetime | None = None) -> list[Booking]:
        """Bookings starting on the current calendar day in the service timezone."""
        local_now = as_utc(now or datetime.now(UTC)).astimezone(self.tz)
        day_start = datetime.combine(local_now.date(), time.min, tzinfo=self.tz)
        day_end = day_start + timedelta(days=1)
        return [
            booking
            for booking in await self.repository.get_bookings(user_id)
            if day_start <= booking.start_time < day_end
        ]

    async def update_status(
        self, user_id: str, booking_id: int, status: BookingStatus | str
    ) -> Booking:
        """
        Apply a user-initiated status change.

        Raises:
            BookingNotFoundError: If the booking does not exist or belongs to someone else
            BookingStatusError: If the transition is not allowed
        """
        status = BookingStatus(status)
        booking = await self.repository.get_booking(booking_id)
        if booking is None or booking.user_id != user_id:
            raise BookingNotFoundError(booking_id, user_id)

        if booking.status == status:
            return booking
        if status not in ALLOWED_STATUS_TRANSITIONS[booking.status]:
            log_transition(
                COMPONENT,
                "status",
                "failed",
                reason="transition_not_allowed",
                booking_id=booking_id,
                current=booking.status.value,
                requested=status.value,
            )
            raise BookingStatusError(booking.status, status)

        updated = await self.repository.update_booking(booking_id, {"status": status})
        if updated is None:
            raise BookingNotFoundError(booking_id, user_id)

        log_transition(
            COMPONENT,
            "status",
            "succeeded",
            booking_id=booking_id,
            previous=booking.status.value,
            current=status.value,
        )
        return updated

    async def existing_commitments(
        self, user: User, now: datetime | None = None
    ) -> list[Booking | ProviderEvent]:
        """
        Everything occupying the user's time: active local bookings plus
        provider events for the next two months.

        Provider failures are logged and ignored; local bookings are always returned.
        """
        now = now or datetime.now(UTC)
        bookings = [
            booking
            for booking in await self.repository.get_bookings(user.id)
            if booking.status != BookingStatus.CANCELLED
        ]

        synced_ids = {booking.external_event_id for booking in bookings if booking.is_synced}
        try:
            events = await self.sync.list_provider_events(user, now, now + COMMITMENT_WINDOW)
        except SyncError as e:
            logger.warning("Provider events unavailable for conflict check", user_id=user.id, error=str(e))
            events = []

        # Bookings already pushed show up on both sides
        return [*bookings, *(event for event in events if event.external_id not in synced_ids)]

    async def _resolve_invitees(self, user_id: str, invitees: list[str]) -> list[Contact]:
        contacts: list[Contact] = []
        seen: set[int] = set()
        for name in invitees:
            if not name or not name.strip():
                continue
            contact = await self.repository.get_contact_by_name(name, user_id)
            if contact and contact.id not in seen:
                contacts.append(contact)
                seen.add(contact.id)
        return contacts
