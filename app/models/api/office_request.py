# models/api/office_request.py
from pydantic import BaseModel, Field

from app.models.domain.connection_domain import ProviderKind


class ConnectRequest(BaseModel):
    """Request to start a calendar connection."""

    provider: ProviderKind = Field(..., description="Calendar provider to connect")


class OfficeCallbackRequest(BaseModel):
    """Authorization code posted back by the client after the provider redirect."""

    code: str = Field(..., min_length=1, description="Authorization code from OAuth flow")
    state: str = Field(..., min_length=1, description="State returned by the provider")
