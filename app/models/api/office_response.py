# app/models/api/office_response.py
"""
Calendar connection API response models.
"""

from pydantic import BaseModel, Field

from app.models.domain.connection_domain import ConnectionState, ProviderKind


class ConnectResponse(BaseModel):
    auth_url: str = Field(..., description="Provider authorization URL to redirect the user to")
    provider: ProviderKind


class ConnectionStatusResponse(BaseModel):
    """Connection status without credentials."""

    status: str = Field(..., description="disconnected, connected or error")
    provider: ProviderKind | None = Field(None, description="Connected or failed provider")
    calendar_id: str | None = Field(None, description="Bound calendar when connected")
    needs_reconnect: bool = Field(default=False, description="True when status is error")

    @classmethod
    def from_state(cls, state: ConnectionState) -> "ConnectionStatusResponse":
        return cls(
            status=state.status,
            provider=state.provider,
            calendar_id=getattr(state, "calendar_id", None),
            needs_reconnect=state.status == "error",
        )


class SyncResponse(BaseModel):
    success: bool = True
    contacts_imported: int = Field(..., description="New contacts created by this pull")
    events_seen: int = Field(..., description="Provider events in the sync window")
    message: str
