# models/api/contact_request.py
from typing import Literal

from pydantic import BaseModel, Field


class CreateContactRequest(BaseModel):
    """Manually entered contact."""

    name: str = Field(..., min_length=1, max_length=200)
    email: str | None = Field(None, max_length=320)
    role: str | None = None
    avatar: str | None = None
    status: Literal["online", "offline", "busy"] = "offline"
    is_private: bool = False
