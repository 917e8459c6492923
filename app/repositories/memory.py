"""
In-memory repository for tests and local development without DATABASE_URL.
Stored models are copied on the way in and out so callers never share state
with the store.
"""

from itertools import count
from typing import Any

from pydantic import BaseModel

from app.models.domain.booking_domain import Booking, Contact, User


def _plain(patch: dict[str, Any]) -> dict[str, Any]:
    # Nested models (the connection variant) are re-validated from dicts
    return {
        key: value.model_dump() if isinstance(value, BaseModel) else value
        for key, value in patch.items()
    }


class InMemoryRepository:
    def __init__(self):
        self.users: dict[str, User] = {}
        self.bookings: dict[int, Booking] = {}
        self.contacts: dict[int, Contact] = {}
        self._booking_ids = count(1)
        self._contact_ids = count(1)

    def add_user(self, user: User) -> User:
        self.users[user.id] = user.model_copy()
        return user

    # Users

    async def get_user(self, user_id: str) -> User | None:
        user = self.users.get(user_id)
        return user.model_copy() if user else None

    async def create_user(self, user: User) -> User:
        existing = self.users.get(user.id)
        if existing is not None:
            return existing.model_copy()
        self.users[user.id] = user.model_copy()
        return user.model_copy()

    async def update_user(self, user_id: str, patch: dict[str, Any]) -> User | None:
        user = self.users.get(user_id)
        if user is None:
            return None
        updated = User.model_validate({**user.model_dump(), **_plain(patch)})
        self.users[user_id] = updated
        return updated.model_copy()

    # Bookings

    async def get_bookings(self, user_id: str) -> list[Booking]:
        bookings = [b for b in self.bookings.values() if b.user_id == user_id]
        return [b.model_copy() for b in sorted(bookings, key=lambda b: b.start_time)]

    async def get_booking(self, booking_id: int) -> Booking | None:
        booking = self.bookings.get(booking_id)
        return booking.model_copy() if booking else None

    async def create_booking(self, booking: Booking) -> Booking:
        stored = booking.model_copy(update={"id": next(self._booking_ids)})
        self.bookings[stored.id] = stored
        return stored.model_copy()

    async def update_booking(self, booking_id: int, patch: dict[str, Any]) -> Booking | None:
        booking = self.bookings.get(booking_id)
        if booking is None:
            return None
        updated = Booking.model_validate(
            {**booking.model_dump(), **_plain(patch), "id": booking_id}
        )
        self.bookings[booking_id] = updated
        return updated.model_copy()

    # Contacts

    async def get_contacts(self, user_id: str) -> list[Contact]:
        contacts = [c for c in self.contacts.values() if c.user_id == user_id]
        return [c.model_copy() for c in sorted(contacts, key=lambda c: c.name.lower())]

    async def get_contact_by_name(self, name: str, user_id: str) -> Contact | None:
        needle = name.strip().lower()
        if not needle:
            return None
        for contact in self.contacts.values():
            if contact.user_id == user_id and needle in contact.name.lower():
                return contact.model_copy()
        return None

    async def get_contact_by_external_id(self, external_id: str, user_id: str) -> Contact | None:
        for contact in self.contacts.values():
            if contact.user_id == user_id and contact.external_contact_id == external_id:
                return contact.model_copy()
        return None

    async def create_contact(self, contact: Contact) -> Contact:
        stored = contact.model_copy(update={"id": next(self._contact_ids)})
        self.contacts[stored.id] = stored
        return stored.model_copy()
