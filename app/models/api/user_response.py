# app/models/api/user_response.py
"""
User profile response models.
"""

from pydantic import BaseModel, Field

from app.models.api.office_response import ConnectionStatusResponse
from app.models.domain.booking_domain import User


class UserProfileResponse(BaseModel):
    """Profile for the current user; the connection is reported without credentials."""

    id: str
    email: str
    display_name: str | None = None
    is_private_mode: bool
    connection: ConnectionStatusResponse = Field(..., description="Calendar connection status")

    @classmethod
    def from_user(cls, user: User) -> "UserProfileResponse":
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            is_private_mode=user.is_private_mode,
            connection=ConnectionStatusResponse.from_state(user.connection),
        )
