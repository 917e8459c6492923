"""
Calendar Sync Service
One-shot, user-triggered synchronization against the connected provider:
pull contacts (and count events) in, push a single booking out.
"""

from datetime import UTC, datetime, timedelta

from app.infrastructure.observability.logging import get_logger, log_transition
from app.models.domain.booking_domain import Booking, Contact, PullResult, PushResult, User
from app.models.domain.calendar_domain import EventDraft, ProviderEvent
from app.models.domain.connection_domain import Connected
from app.repositories.base import Repository
from app.services.calendar.http import ProviderHttpError
from app.services.connection_service import (
    CalendarConnectionError,
    ConfigurationError,
    ConnectionManager,
)

logger = get_logger(__name__)

COMPONENT = "sync"

PULL_WINDOW_BACK = timedelta(days=30)
PULL_WINDOW_FORWARD = timedelta(days=60)


class SyncError(Exception):
    """Sync against the provider failed."""

    def __init__(
        self,
        message: str,
        user_id: str | None = None,
        operation: str | None = None,
        status_code: int | None = None,
        connection_marked_error: bool = False,
    ):
        super().__init__(message)
        self.user_id = user_id
        self.operation = operation
        self.status_code = status_code
        self.connection_marked_error = connection_marked_error


class SyncOrchestrator:
    """
    Pulls from and pushes to the user's connected provider.

    Auth failures get exactly one refresh-and-retry through the
    ConnectionManager; nothing here retries on its own.
    """

    def __init__(self, repository: Repository, connections: ConnectionManager):
        self.repository = repository
        self.connections = connections

    async def pull_contacts_and_events(
        self, user: User, now: datetime | None = None
    ) -> PullResult:
        """
        Import provider contacts and count provider events.

        Contacts already present for the user (case-insensitive name containment
        or same external id) are skipped, so repeated pulls do not grow the
        contact list. Events are counted over one month back and two months
        forward; they are never imported as bookings.

        Args:
            user: User with an active connection
            now: Reference time for the event window

        Returns:
            PullResult: Imported contact count and seen event count

        Raises:
            NotConnectedError: If the user has no active connection
            SyncError: If the provider fails (after one refresh-and-retry on 401)
        """
        state = self.connections.require_connected(user)
        now = now or datetime.now(UTC)
        log_transition(
            COMPONENT, "pull", "attempted", user_id=user.id, provider=state.provider.value
        )

        async def pull(connected: Connected) -> PullResult:
            adapter = self.connections.providers.get(connected.provider)
            # Contacts are written only after both provider reads succeed
            events = await adapter.list_events(
                connected.access_token,
                connected.calendar_id,
                now - PULL_WINDOW_BACK,
                now + PULL_WINDOW_FORWARD,
            )
            provider_contacts = await adapter.list_contacts(connected.access_token)

            imported = 0
            for provider_contact in provider_contacts:
                name = provider_contact.name.strip()
                if not name:
                    continue
                if await self._contact_exists(user.id, name, provider_contact.external_id):
                    continue
                await self.repository.create_contact(
                    Contact(
                        user_id=user.id,
                        name=name,
                        email=provider_contact.email,
                        role=provider_contact.role,
                        external_contact_id=provider_contact.external_id,
                    )
                )
                imported += 1

            return PullResult(contacts_imported=imported, events_seen=len(events))

        result = await self._run(user, "pull", pull)
        log_transition(
            COMPONENT,
            "pull",
            "succeeded",
            user_id=user.id,
            provider=state.provider.value,
            contacts_imported=result.contacts_imported,
            events_seen=result.events_seen,
        )
        return result

    async def push_booking(
        self, user: User, booking: Booking, attendees: list[str] | None = None
    ) -> PushResult:
        """
        Create the provider event for a local booking.

        Does not modify the booking; the caller stores the returned identifiers.

        Raises:
            NotConnectedError: If the user has no active connection
            SyncError: If event creation fails (after one refresh-and-retry on 401)
        """
        state = self.connections.require_connected(user)
        draft = EventDraft(
            title=booking.title,
            description=booking.description or "",
            start_time=booking.start_time,
            end_time=booking.end_time,
            location=booking.location,
            attendees=attendees or [],
            is_private=booking.is_private,
        )
        log_transition(
            COMPONENT,
            "push",
            "attempted",
            user_id=user.id,
            provider=state.provider.value,
            booking_id=booking.id,
        )

        async def push(connected: Connected):
            adapter = self.connections.providers.get(connected.provider)
            return await adapter.create_event(connected.access_token, connected.calendar_id, draft)

        created = await self._run(user, "push", push, booking_id=booking.id)
        log_transition(
            COMPONENT,
            "push",
            "succeeded",
            user_id=user.id,
            provider=state.provider.value,
            booking_id=booking.id,
            external_event_id=created.external_id,
        )
        return PushResult(external_event_id=created.external_id, external_event_url=created.url)

    async def list_provider_events(
        self, user: User, range_start: datetime, range_end: datetime
    ) -> list[ProviderEvent]:
        """Provider events in a range for conflict avoidance; [] when not connected."""
        if not isinstance(user.connection, Connected):
            return []

        async def list_events(connected: Connected) -> list[ProviderEvent]:
            adapter = self.connections.providers.get(connected.provider)
            return await adapter.list_events(
                connected.access_token, connected.calendar_id, range_start, range_end
            )

        return await self._run(user, "list_events", list_events)

    async def _contact_exists(self, user_id: str, name: str, external_id: str) -> bool:
        if await self.repository.get_contact_by_external_id(external_id, user_id):
            return True
        return await self.repository.get_contact_by_name(name, user_id) is not None

    async def _run(self, user: User, transition: str, call, **fields):
        """Run a provider call under refresh-once and translate failures to SyncError."""
        try:
            return await self.connections.run_with_fresh_token(user, call)
        except ProviderHttpError as e:
            marked = await self._connection_marked_error(user.id)
            log_transition(
                COMPONENT,
                transition,
                "failed",
                reason=str(e),
                user_id=user.id,
                status_code=e.status_code,
                connection_marked_error=marked,
                **fields,
            )
            raise SyncError(
                f"Calendar sync failed: {e}",
                user_id=user.id,
                operation=e.operation,
                status_code=e.status_code,
                connection_marked_error=marked,
            ) from e
        except (CalendarConnectionError, ConfigurationError) as e:
            log_transition(
                COMPONENT, transition, "failed", reason=str(e), user_id=user.id, **fields
            )
            raise SyncError(
                f"Calendar sync failed: {e}",
                user_id=user.id,
                connection_marked_error=isinstance(e, CalendarConnectionError),
            ) from e

    async def _connection_marked_error(self, user_id: str) -> bool:
        return (await self.connections.get_status(user_id)).status == "error"
