"""
Storage contract used by the services.
Services only call these methods; they never issue queries themselves.
"""

from typing import Any, Protocol

from app.models.domain.booking_domain import Booking, Contact, User


class Repository(Protocol):
    async def get_user(self, user_id: str) -> User | None: ...

    async def create_user(self, user: User) -> User:
        """Insert a user; an existing user with the same id is returned unchanged."""
        ...

    async def update_user(self, user_id: str, patch: dict[str, Any]) -> User | None:
        """
        Apply a patch to a user.

        A ``connection`` key carries a complete ConnectionState and replaces the
        stored connection record as a whole.
        """
        ...

    async def get_bookings(self, user_id: str) -> list[Booking]: ...

    async def get_booking(self, booking_id: int) -> Booking | None: ...

    async def create_booking(self, booking: Booking) -> Booking: ...

    async def update_booking(self, booking_id: int, patch: dict[str, Any]) -> Booking | None: ...

    async def get_contacts(self, user_id: str) -> list[Contact]: ...

    async def get_contact_by_name(self, name: str, user_id: str) -> Contact | None:
        """First contact of the user whose name contains ``name``, case-insensitively."""
        ...

    async def get_contact_by_external_id(self, external_id: str, user_id: str) -> Contact | None: ...

    async def create_contact(self, contact: Contact) -> Contact: ...
