"""
Calendar Connection Service
Owns the per-user OAuth connection lifecycle: authorization URL, code exchange
with calendar discovery, token refresh and disconnect.

Every write replaces the user's whole connection record. A handshake or refresh
that fails leaves the user in ConnectionFailed until they reconnect.
"""

import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

from app.config import Settings, settings
from app.infrastructure.observability.logging import get_logger, log_transition
from app.models.domain.booking_domain import User
from app.models.domain.calendar_domain import ProviderCalendar
from app.models.domain.connection_domain import (
    Connected,
    ConnectionFailed,
    ConnectionState,
    ConnectionSummary,
    Disconnected,
    ProviderKind,
    TokenSet,
)
from app.repositories.base import Repository
from app.services.calendar.http import ProviderHttpError
from app.services.calendar.provider import CalendarProvider, ProviderRegistry, provider_registry
from app.services.oauth_state_service import DecodedState, decode_state, encode_state

logger = get_logger(__name__)

COMPONENT = "connection"

T = TypeVar("T")


class ConfigurationError(Exception):
    """Provider credentials are not configured."""

    def __init__(self, message: str, provider: ProviderKind | None = None):
        super().__init__(message)
        self.provider = provider
        self.recoverable = False


class CalendarConnectionError(Exception):
    """Token exchange, calendar discovery or refresh failed; connection is now in error."""

    def __init__(
        self,
        message: str,
        user_id: str | None = None,
        provider: ProviderKind | None = None,
        error_code: str | None = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.user_id = user_id
        self.provider = provider
        self.error_code = error_code
        self.recoverable = recoverable


class NotConnectedError(Exception):
    """Operation needs an active connection and the user has none."""

    def __init__(self, user_id: str, status: str = "disconnected"):
        super().__init__(f"User has no active calendar connection (status={status})")
        self.user_id = user_id
        self.status = status
        self.recoverable = True


class CalendarDiscoveryError(Exception):
    """Provider returned no calendar usable as the default."""


class ConnectionManager:
    """
    Connection state machine for one repository and provider registry.

    Args:
        repository: Storage for users (only update_user/get_user are used)
        providers: Adapter registry; defaults to the process-wide registry
        config: Settings holding client ids, secrets and redirect URIs
    """

    def __init__(
        self,
        repository: Repository,
        providers: ProviderRegistry | None = None,
        config: Settings | None = None,
    ):
        self.repository = repository
        self.settings = config or settings
        if providers is None:
            providers = ProviderRegistry(config=config) if config else provider_registry
        self.providers = providers

    # =================================================================
    # HANDSHAKE
    # =================================================================

    def begin_connection(self, user_id: str, provider: ProviderKind | str) -> str:
        """
        Build the provider authorization URL for a user.

        Nothing is persisted; the pending state lives only in the URL's
        ``state`` parameter.

        Args:
            user_id: User starting the connection
            provider: Provider kind to connect

        Returns:
            str: Authorization URL to redirect the user to

        Raises:
            ConfigurationError: If the provider's client id is not configured
        """
        provider = ProviderKind(provider)
        client_id, _ = self._credentials(provider)
        adapter = self.providers.get(provider)

        state = encode_state(user_id, provider, self._state_secret(), int(time.time() * 1000))
        url = adapter.build_authorization_url(
            client_id, self.settings.office_redirect_uri(provider.value), state
        )

        log_transition(COMPONENT, "begin", "succeeded", user_id=user_id, provider=provider.value)
        return url

    def decode_callback_state(self, state: str) -> DecodedState:
        """
        Recover (user_id, provider) from a signed callback state.

        Raises:
            ConfigurationError: If no state signing secret is configured
            OAuthStateError: If the state is malformed, forged or expired
        """
        return decode_state(state, self._state_secret())

    async def complete_connection(
        self, user_id: str, provider: ProviderKind | str, code: str
    ) -> ConnectionSummary:
        """
        Exchange an authorization code and bind the user to a calendar.

        The Connected state is written only after both the code exchange and
        calendar discovery succeed. Any failure in either step writes
        ConnectionFailed before raising.

        Args:
            user_id: User completing the connection
            provider: Provider kind from the decoded state
            code: Authorization code from the callback

        Returns:
            ConnectionSummary: Provider and chosen calendar

        Raises:
            ConfigurationError: If the provider's client id is not configured (nothing written)
            CalendarConnectionError: If exchange or discovery fails (state is now error)
        """
        provider = ProviderKind(provider)
        client_id, client_secret = self._credentials(provider)
        adapter = self.providers.get(provider)
        redirect_uri = self.settings.office_redirect_uri(provider.value)

        log_transition(COMPONENT, "complete", "attempted", user_id=user_id, provider=provider.value)

        try:
            tokens = await self._exchange_code(adapter, code, client_id, client_secret, redirect_uri)
            calendar = _choose_default_calendar(await adapter.list_calendars(tokens.access_token))
        except (ProviderHttpError, CalendarDiscoveryError) as e:
            await self._write_state(user_id, ConnectionFailed(provider=provider))
            log_transition(
                COMPONENT,
                "complete",
                "failed",
                reason=str(e),
                user_id=user_id,
                provider=provider.value,
                status_code=getattr(e, "status_code", None),
            )
            raise CalendarConnectionError(
                f"Failed to connect {provider.value} calendar: {e}",
                user_id=user_id,
                provider=provider,
                error_code="connection_failed",
            ) from e

        state = Connected(
            provider=provider,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            calendar_id=calendar.id,
        )
        if not await self._write_state(user_id, state):
            raise CalendarConnectionError(
                "User not found", user_id=user_id, provider=provider, error_code="user_not_found"
            )

        log_transition(
            COMPONENT,
            "complete",
            "succeeded",
            user_id=user_id,
            provider=provider.value,
            calendar_id=calendar.id,
            has_refresh_token=bool(tokens.refresh_token),
        )

        calendar_name = calendar.name or calendar.id
        return ConnectionSummary(
            provider=provider,
            calendar_id=calendar.id,
            calendar_name=calendar_name,
            message=f"Connected to {provider.value} calendar '{calendar_name}'",
        )

    async def disconnect(self, user_id: str) -> None:
        """Clear tokens and calendar binding. Safe to call repeatedly."""
        await self._write_state(user_id, Disconnected())
        log_transition(COMPONENT, "disconnect", "succeeded", user_id=user_id)

    async def get_status(self, user_id: str) -> ConnectionState:
        user = await self.repository.get_user(user_id)
        return user.connection if user else Disconnected()

    # =================================================================
    # TOKEN REFRESH
    # =================================================================

    async def ensure_fresh_token(self, user: User) -> Connected:
        """
        Refresh the user's access token once.

        Called after a provider rejected the current token. On success the new
        pair is persisted (keeping the old refresh token when the provider does
        not reissue one). On failure the connection is marked error and the
        underlying error propagates.

        Raises:
            NotConnectedError: If the user has no active connection
            ConfigurationError: If the provider's client id is not configured
            CalendarConnectionError: If no refresh token is stored
            ProviderHttpError: If the token endpoint rejects the refresh
        """
        state = self.require_connected(user)
        client_id, client_secret = self._credentials(state.provider)
        adapter = self.providers.get(state.provider)

        log_transition(
            COMPONENT, "refresh", "attempted", user_id=user.id, provider=state.provider.value
        )

        if not state.refresh_token:
            await self.mark_error(user.id, state.provider, reason="no_refresh_token")
            raise CalendarConnectionError(
                "No refresh token stored; reconnect required",
                user_id=user.id,
                provider=state.provider,
                error_code="no_refresh_token",
            )

        try:
            tokens = await self._refresh(adapter, state.refresh_token, client_id, client_secret)
        except ProviderHttpError as e:
            await self.mark_error(user.id, state.provider, reason=str(e))
            raise

        refreshed = state.with_tokens(tokens.access_token, tokens.refresh_token)
        await self._write_state(user.id, refreshed)
        log_transition(
            COMPONENT,
            "refresh",
            "succeeded",
            user_id=user.id,
            provider=state.provider.value,
            refresh_token_rotated=bool(tokens.refresh_token),
        )
        return refreshed

    async def run_with_fresh_token(
        self, user: User, call: Callable[[Connected], Awaitable[T]]
    ) -> T:
        """
        Run a provider call, refreshing and retrying once on an auth failure.

        A failure of the retried call marks the connection error, since the
        freshly issued token did not help.

        Args:
            user: Connected user
            call: Coroutine function taking the current Connected state

        Raises:
            NotConnectedError: If the user has no active connection
            ProviderHttpError: From the call or the refresh
            CalendarConnectionError / ConfigurationError: From the refresh
        """
        state = self.require_connected(user)
        try:
            return await call(state)
        except ProviderHttpError as e:
            if not e.is_auth_error:
                raise
            logger.info(
                "Provider rejected access token, refreshing",
                user_id=user.id,
                provider=state.provider.value,
                operation=e.operation,
            )

        refreshed = await self.ensure_fresh_token(user)
        try:
            return await call(refreshed)
        except ProviderHttpError as e:
            await self.mark_error(user.id, refreshed.provider, reason=f"retry failed: {e}")
            raise

    async def mark_error(self, user_id: str, provider: ProviderKind | None, reason: str) -> None:
        await self._write_state(user_id, ConnectionFailed(provider=provider))
        log_transition(
            COMPONENT,
            "mark_error",
            "succeeded",
            reason=reason,
            user_id=user_id,
            provider=provider.value if provider else None,
        )

    @staticmethod
    def require_connected(user: User) -> Connected:
        if isinstance(user.connection, Connected):
            return user.connection
        raise NotConnectedError(user.id, user.connection.status)

    # =================================================================
    # INTERNALS
    # =================================================================

    def _state_secret(self) -> str:
        secret = self.settings.oauth_state_secret()
        if not secret:
            log_transition(COMPONENT, "configure", "failed", reason="state_secret_missing")
            raise ConfigurationError("OAuth state signing secret is not configured")
        return secret

    def _credentials(self, provider: ProviderKind) -> tuple[str, str | None]:
        client_id, client_secret = self.settings.provider_client_credentials(provider.value)
        if not client_id:
            log_transition(
                COMPONENT,
                "configure",
                "failed",
                reason="client_id_missing",
                provider=provider.value,
            )
            raise ConfigurationError(
                f"{provider.value} client id is not configured", provider=provider
            )
        return client_id, client_secret

    async def _exchange_code(
        self,
        adapter: CalendarProvider,
        code: str,
        client_id: str,
        client_secret: str | None,
        redirect_uri: str,
    ) -> TokenSet:
        try:
            return await adapter.exchange_code(code, client_id, client_secret, redirect_uri)
        except ProviderHttpError as e:
            if not client_secret or not e.is_client_rejection:
                raise
            logger.info(
                "Client secret rejected, retrying code exchange as public client",
                provider=adapter.kind.value,
                status_code=e.status_code,
            )
        return await adapter.exchange_code(code, client_id, None, redirect_uri)

    async def _refresh(
        self,
        adapter: CalendarProvider,
        refresh_token: str,
        client_id: str,
        client_secret: str | None,
    ) -> TokenSet:
        try:
            return await adapter.refresh_token(refresh_token, client_id, client_secret)
        except ProviderHttpError as e:
            if not client_secret or not e.is_client_rejection:
                raise
            logger.info(
                "Client secret rejected, retrying refresh as public client",
                provider=adapter.kind.value,
                status_code=e.status_code,
            )
        return await adapter.refresh_token(refresh_token, client_id, None)

    async def _write_state(self, user_id: str, state: ConnectionState) -> bool:
        updated = await self.repository.update_user(user_id, {"connection": state})
        if updated is None:
            logger.warning("Connection write skipped, user not found", user_id=user_id)
            return False
        return True


def _choose_default_calendar(calendars: list[ProviderCalendar]) -> ProviderCalendar:
    if not calendars:
        raise CalendarDiscoveryError("Provider returned no calendars")
    for calendar in calendars:
        if calendar.is_default:
            return calendar
    return calendars[0]
