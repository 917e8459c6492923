"""
Calendar provider interface and registry.
Both adapters satisfy CalendarProvider structurally; callers pick one by
ProviderKind and never depend on a concrete class.
"""

from datetime import datetime
from typing import Protocol

from app.config import Settings, settings
from app.models.domain.calendar_domain import (
    CreatedEvent,
    EventDraft,
    ProviderCalendar,
    ProviderContact,
    ProviderEvent,
)
from app.models.domain.connection_domain import ProviderKind, TokenSet
from app.services.calendar.google_client import GoogleCalendarProvider
from app.services.calendar.http import create_client
from app.services.calendar.microsoft_client import MicrosoftCalendarProvider


class CalendarProvider(Protocol):
    """Operations every external calendar provider exposes."""

    kind: ProviderKind

    def build_authorization_url(self, client_id: str, redirect_uri: str, state: str) -> str: ...

    async def exchange_code(
        self, code: str, client_id: str, client_secret: str | None, redirect_uri: str
    ) -> TokenSet: ...

    async def refresh_token(
        self, refresh_token: str, client_id: str, client_secret: str | None
    ) -> TokenSet: ...

    async def list_calendars(self, access_token: str) -> list[ProviderCalendar]: ...

    async def list_contacts(self, access_token: str) -> list[ProviderContact]: ...

    async def list_events(
        self, access_token: str, calendar_id: str, range_start: datetime, range_end: datetime
    ) -> list[ProviderEvent]: ...

    async def create_event(
        self, access_token: str, calendar_id: str, draft: EventDraft
    ) -> CreatedEvent: ...

    async def close(self) -> None: ...


class ProviderRegistry:
    """
    Maps provider kinds to adapter instances.

    Adapters missing from ``providers`` are built on first use from ``config``
    (request timeout, Microsoft tenant).
    """

    def __init__(
        self,
        providers: dict[ProviderKind, CalendarProvider] | None = None,
        config: Settings | None = None,
    ):
        self._providers: dict[ProviderKind, CalendarProvider] = dict(providers or {})
        self.settings = config or settings

    def get(self, kind: ProviderKind | str) -> CalendarProvider:
        kind = ProviderKind(kind)
        if kind not in self._providers:
            self._providers[kind] = _build_default(kind, self.settings)
        return self._providers[kind]

    async def close(self) -> None:
        for provider in self._providers.values():
            await provider.close()
        self._providers.clear()


def _build_default(kind: ProviderKind, config: Settings) -> CalendarProvider:
    client = create_client(config.PROVIDER_REQUEST_TIMEOUT)
    if kind is ProviderKind.GOOGLE:
        return GoogleCalendarProvider(client)
    return MicrosoftCalendarProvider(client, tenant_id=config.MICROSOFT_TENANT_ID)


# Process-wide registry; adapters are created lazily on first use
provider_registry = ProviderRegistry()

