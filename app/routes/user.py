"""
User API Routes
Current user profile and preferences.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies import get_current_user, get_user_service
from app.models.api.user_request import UpdatePrivacyRequest
from app.models.api.user_response import UserProfileResponse
from app.models.domain.booking_domain import User
from app.services.user_service import UserNotFoundError, UserService

router = APIRouter(prefix="/user", tags=["user"])


@router.get("/me", response_model=UserProfileResponse)
async def get_me(user: User = Depends(get_current_user)):
    return UserProfileResponse.from_user(user)


@router.put("/privacy", response_model=UserProfileResponse)
async def update_privacy(
    request: UpdatePrivacyRequest,
    user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    """Toggle private mode; bookings created while it is on are private."""
    try:
        updated = await users.set_private_mode(user.id, request.is_private_mode)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return UserProfileResponse.from_user(updated)
