# app/models/domain/connection_domain.py
"""
Calendar connection domain model.

A user's connection is a tagged variant on ``status``: Disconnected, Connected
or ConnectionFailed. Storage keeps it as flat nullable columns; ``to_columns``
and ``from_columns`` are the only translation points between the two shapes.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ProviderKind(str, Enum):
    """External calendar providers a user can connect."""

    GOOGLE = "google"
    MICROSOFT = "microsoft"


class Disconnected(BaseModel):
    """No provider connected."""

    model_config = ConfigDict(frozen=True)

    status: Literal["disconnected"] = "disconnected"

    @property
    def provider(self) -> None:
        return None


class Connected(BaseModel):
    """Active OAuth connection bound to one provider calendar."""

    model_config = ConfigDict(frozen=True)

    status: Literal["connected"] = "connected"
    provider: ProviderKind
    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None
    calendar_id: str = Field(..., min_length=1)

    def with_tokens(self, access_token: str, refresh_token: str | None) -> "Connected":
        """Return a copy with a rotated token pair (refresh token kept if not reissued)."""
        return Connected(
            provider=self.provider,
            access_token=access_token,
            refresh_token=refresh_token or self.refresh_token,
            calendar_id=self.calendar_id,
        )


class ConnectionFailed(BaseModel):
    """Connection broken by a failed handshake or refresh; user must reconnect."""

    model_config = ConfigDict(frozen=True)

    status: Literal["error"] = "error"
    provider: ProviderKind | None = None


ConnectionState = Annotated[
    Union[Disconnected, Connected, ConnectionFailed], Field(discriminator="status")
]

_connection_state_adapter = TypeAdapter(ConnectionState)

# Flat column names as stored on the users table
STATUS_COLUMN = "office_connection_status"
TYPE_COLUMN = "office_connection_type"
ACCESS_TOKEN_COLUMN = "office_access_token"
REFRESH_TOKEN_COLUMN = "office_refresh_token"
CALENDAR_ID_COLUMN = "office_calendar_id"

CONNECTION_COLUMNS = (
    STATUS_COLUMN,
    TYPE_COLUMN,
    ACCESS_TOKEN_COLUMN,
    REFRESH_TOKEN_COLUMN,
    CALENDAR_ID_COLUMN,
)


def parse_connection_state(data: Any) -> ConnectionState:
    """Validate a dict (or model) into the matching connection variant."""
    return _connection_state_adapter.validate_python(data)


def to_columns(state: ConnectionState) -> dict[str, str | None]:
    """
    Flatten a connection state into a complete column set.

    Every column is always present so a write replaces the whole record and can
    never leave a mismatched token/calendar pair behind.
    """
    columns: dict[str, str | None] = {column: None for column in CONNECTION_COLUMNS}
    columns[STATUS_COLUMN] = state.status

    if isinstance(state, Connected):
        columns[TYPE_COLUMN] = state.provider.value
        columns[ACCESS_TOKEN_COLUMN] = state.access_token
        columns[REFRESH_TOKEN_COLUMN] = state.refresh_token
        columns[CALENDAR_ID_COLUMN] = state.calendar_id
    elif isinstance(state, ConnectionFailed) and state.provider is not None:
        columns[TYPE_COLUMN] = state.provider.value

    return columns


def from_columns(row: dict[str, Any]) -> ConnectionState:
    """
    Rebuild the tagged state from flat columns.

    Rows the storage layer could hold but the domain forbids (for example
    ``connected`` without a token or calendar) are read back as ConnectionFailed.
    """
    status = row.get(STATUS_COLUMN) or "disconnected"
    provider = _parse_provider(row.get(TYPE_COLUMN))

    if status == "connected":
        access_token = row.get(ACCESS_TOKEN_COLUMN)
        calendar_id = row.get(CALENDAR_ID_COLUMN)
        if provider is None or not access_token or not calendar_id:
            return ConnectionFailed(provider=provider)
        return Connected(
            provider=provider,
            access_token=access_token,
            refresh_token=row.get(REFRESH_TOKEN_COLUMN),
            calendar_id=calendar_id,
        )

    if status == "error":
        return ConnectionFailed(provider=provider)

    return Disconnected()


def _parse_provider(value: str | None) -> ProviderKind | None:
    if not value:
        return None
    try:
        return ProviderKind(value)
    except ValueError:
        return None


class ConnectionSummary(BaseModel):
    """Result of a completed connection handshake."""

    provider: ProviderKind
    status: Literal["connected"] = "connected"
    calendar_id: str
    calendar_name: str
    message: str


class TokenSet(BaseModel):
    """Normalized OAuth token endpoint response."""

    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None
    expires_in: int | None = None
