# app/models/api/contact_response.py
from pydantic import BaseModel

from app.models.domain.booking_domain import Contact


class ContactsListResponse(BaseModel):
    contacts: list[Contact]
    total_count: int


class ContactSearchResponse(BaseModel):
    contact: Contact | None = None
