"""
Calendar Connection API Routes
Connect, OAuth callback, status, disconnect and manual sync for the user's
external calendar provider.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.dependencies import get_connection_manager, get_current_user, get_sync_orchestrator
from app.infrastructure.observability.logging import get_logger
from app.models.api.office_request import ConnectRequest, OfficeCallbackRequest
from app.models.api.office_response import ConnectionStatusResponse, ConnectResponse, SyncResponse
from app.models.domain.booking_domain import User
from app.models.domain.connection_domain import ConnectionSummary
from app.services.connection_service import (
    CalendarConnectionError,
    ConfigurationError,
    ConnectionManager,
    NotConnectedError,
)
from app.services.oauth_state_service import DecodedState, OAuthStateError
from app.services.sync_service import SyncError, SyncOrchestrator

logger = get_logger(__name__)

router = APIRouter(prefix="/office", tags=["office"])


@router.post("/connect", response_model=ConnectResponse)
async def start_connection(
    request: ConnectRequest,
    user: User = Depends(get_current_user),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """Return the provider authorization URL for the current user."""
    try:
        auth_url = connections.begin_connection(user.id, request.provider)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e

    return ConnectResponse(auth_url=auth_url, provider=request.provider)


@router.get("/callback", response_model=ConnectionSummary)
async def provider_callback(
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    error: str | None = Query(default=None),
    error_description: str | None = Query(default=None),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """
    Provider redirect target.

    The user is identified by the signed state parameter alone. A provider error
    or a bad or forged state is rejected without touching the stored connection.
    """
    if error:
        logger.warning("Provider returned OAuth error", error=error, description=error_description)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Authorization failed: {error_description or error}",
        )
    if not code or not state:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Missing code or state parameter"
        )

    decoded = _decode_state(connections, state)

    return await _complete(connections, decoded.user_id, decoded.provider, code)


@router.post("/callback", response_model=ConnectionSummary)
async def complete_callback(
    request: OfficeCallbackRequest,
    user: User = Depends(get_current_user),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """Complete a connection from the client; the state must belong to the caller."""
    decoded = _decode_state(connections, request.state)

    if decoded.user_id != user.id:
        logger.warning(
            "OAuth state user mismatch",
            user_id=user.id,
            state_preview=request.state[:12] + "...",
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="OAuth state does not belong to the current user",
        )

    return await _complete(connections, user.id, decoded.provider, request.code)


@router.get("/status", response_model=ConnectionStatusResponse)
async def connection_status(user: User = Depends(get_current_user)):
    return ConnectionStatusResponse.from_state(user.connection)


@router.delete("/disconnect", response_model=ConnectionStatusResponse)
async def disconnect(
    user: User = Depends(get_current_user),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    await connections.disconnect(user.id)
    return ConnectionStatusResponse.from_state(await connections.get_status(user.id))


@router.post("/sync", response_model=SyncResponse)
async def sync_now(
    user: User = Depends(get_current_user),
    sync: SyncOrchestrator = Depends(get_sync_orchestrator),
):
    """Pull contacts and count events from the connected provider."""
    try:
        result = await sync.pull_contacts_and_events(user)
    except NotConnectedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except SyncError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    return SyncResponse(
        contacts_imported=result.contacts_imported,
        events_seen=result.events_seen,
        message=f"Imported {result.contacts_imported} contacts, saw {result.events_seen} events",
    )


def _decode_state(connections: ConnectionManager, state: str) -> DecodedState:
    try:
        return connections.decode_callback_state(state)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    except OAuthStateError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


async def _complete(
    connections: ConnectionManager, user_id: str, provider, code: str
) -> ConnectionSummary:
    try:
        return await connections.complete_connection(user_id, provider, code)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e
    except CalendarConnectionError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
