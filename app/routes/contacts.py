"""
Contact API Routes
List, create and search the current user's contacts.
"""

from fastapi import APIRouter, Depends, Query, status

from app.dependencies import get_contact_service, get_current_user
from app.models.api.contact_request import CreateContactRequest
from app.models.api.contact_response import ContactSearchResponse, ContactsListResponse
from app.models.domain.booking_domain import Contact, User
from app.services.contact_service import ContactService

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.get("", response_model=ContactsListResponse)
async def list_contacts(
    user: User = Depends(get_current_user),
    contacts: ContactService = Depends(get_contact_service),
):
    items = await contacts.list_contacts(user.id)
    return ContactsListResponse(contacts=items, total_count=len(items))


@router.post("", response_model=Contact, status_code=status.HTTP_201_CREATED)
async def create_contact(
    request: CreateContactRequest,
    user: User = Depends(get_current_user),
    contacts: ContactService = Depends(get_contact_service),
):
    return await contacts.add_contact(user.id, request.model_dump())


@router.get("/search", response_model=ContactSearchResponse)
async def search_contacts(
    name: str = Query(..., min_length=1, description="Part of the contact's name"),
    user: User = Depends(get_current_user),
    contacts: ContactService = Depends(get_contact_service),
):
    """First contact whose name contains the query; ``contact`` is null when none does."""
    return ContactSearchResponse(contact=await contacts.find_by_name(user.id, name))
