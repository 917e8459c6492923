"""
Contact Service
User-managed contacts: listing, manual creation and name lookup. Provider
imports go through the sync service instead.
"""

from typing import Any

from app.infrastructure.observability.logging import get_logger
from app.models.domain.booking_domain import Contact
from app.repositories.base import Repository

logger = get_logger(__name__)


class ContactService:
    def __init__(self, repository: Repository):
        self.repository = repository

    async def list_contacts(self, user_id: str) -> list[Contact]:
        return await self.repository.get_contacts(user_id)

    async def add_contact(self, user_id: str, details: dict[str, Any]) -> Contact:
        """Store a manually entered contact for the user (never provider-linked)."""
        created = await self.repository.create_contact(Contact(user_id=user_id, **details))
        logger.info("Contact created", user_id=user_id, contact_id=created.id)
        return created

    async def find_by_name(self, user_id: str, name: str) -> Contact | None:
        """First contact whose name contains ``name``, case-insensitively."""
        return await self.repository.get_contact_by_name(name, user_id)
