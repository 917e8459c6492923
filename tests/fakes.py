"""
In-process doubles for the provider adapters and the completion service.
"""

from collections import defaultdict

from app.models.domain.calendar_domain import (
    CreatedEvent,
    ProviderCalendar,
    ProviderContact,
    ProviderEvent,
)
from app.models.domain.connection_domain import ProviderKind, TokenSet
from app.services.openai_service import CompletionServiceError


class FakeProvider:
    """In-process provider adapter; queue errors per method with fail()."""

    def __init__(self, kind: ProviderKind):
        self.kind = kind
        self.calls: list[tuple[str, dict]] = []
        self.errors: dict[str, list[Exception]] = defaultdict(list)
        self.tokens = TokenSet(access_token="access-1", refresh_token="refresh-1", expires_in=3600)
        self.refreshed = TokenSet(access_token="access-2", refresh_token=None, expires_in=3600)
        self.calendars = [
            ProviderCalendar(id="cal-other", name="Birthdays"),
            ProviderCalendar(id="cal-1", name="Calendar", is_default=True),
        ]
        self.contacts: list[ProviderContact] = []
        self.events: list[ProviderEvent] = []
        self.created = CreatedEvent(
            external_id="evt-1", web_link="https://calendar.example.com/evt-1"
        )
        self.closed = False

    def fail(self, method: str, *errors: Exception) -> None:
        self.errors[method].extend(errors)

    def calls_to(self, method: str) -> list[dict]:
        return [kwargs for name, kwargs in self.calls if name == method]

    def _record(self, method: str, **kwargs) -> None:
        self.calls.append((method, kwargs))
        if self.errors[method]:
            raise self.errors[method].pop(0)

    def build_authorization_url(self, client_id: str, redirect_uri: str, state: str) -> str:
        return f"https://auth.example.com/{self.kind.value}?client_id={client_id}&state={state}"

    async def exchange_code(self, code, client_id, client_secret, redirect_uri) -> TokenSet:
        self._record("exchange_code", code=code, client_id=client_id, client_secret=client_secret)
        return self.tokens

    async def refresh_token(self, refresh_token, client_id, client_secret) -> TokenSet:
        self._record("refresh_token", refresh_token=refresh_token, client_secret=client_secret)
        return self.refreshed

    async def list_calendars(self, access_token):
        self._record("list_calendars", access_token=access_token)
        return self.calendars

    async def list_contacts(self, access_token):
        self._record("list_contacts", access_token=access_token)
        return self.contacts

    async def list_events(self, access_token, calendar_id, range_start, range_end):
        self._record(
            "list_events",
            access_token=access_token,
            calendar_id=calendar_id,
            range_start=range_start,
            range_end=range_end,
        )
        return self.events

    async def create_event(self, access_token, calendar_id, draft):
        self._record("create_event", access_token=access_token, calendar_id=calendar_id, draft=draft)
        return self.created

    async def close(self) -> None:
        self.closed = True


class FakeCompletionService:
    """Returns queued JSON objects in order; queued exceptions are raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.prompts: list[tuple[str, str]] = []

    async def complete_json(self, system_prompt, user_prompt, temperature=0.3):
        self.prompts.append((system_prompt, user_prompt))
        if not self.responses:
            raise CompletionServiceError("No response queued")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response
