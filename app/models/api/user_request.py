# models/api/user_request.py
from pydantic import BaseModel, Field


class UpdatePrivacyRequest(BaseModel):
    is_private_mode: bool = Field(..., description="Mark new bookings private by default")
