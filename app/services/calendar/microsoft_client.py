"""
Microsoft Graph provider adapter (Outlook calendar and People).
OAuth goes through the Microsoft identity platform v2.0 endpoints of the
configured tenant.
"""

import re
from datetime import datetime
from typing import Any
from urllib.parse import quote, urlencode

import httpx
from pydantic import ValidationError

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.calendar_domain import (
    CreatedEvent,
    EventDraft,
    ProviderCalendar,
    ProviderContact,
    ProviderEvent,
    as_utc,
)
from app.models.domain.connection_domain import ProviderKind, TokenSet
from app.services.calendar.http import (
    ProviderHttpError,
    bearer_headers,
    create_client,
    send_json,
)

logger = get_logger(__name__)

MICROSOFT_AUTHORITY = "https://login.microsoftonline.com"
GRAPH_API_BASE_URL = "https://graph.microsoft.com/v1.0"

MICROSOFT_SCOPES = [
    "Calendars.ReadWrite",
    "User.Read",
    "People.Read",
    "offline_access",
]

# Graph returns event times in the mailbox timezone unless asked for UTC
UTC_PREFER_HEADER = {"Prefer": 'outlook.timezone="UTC"'}

EVENTS_PAGE_SIZE = 250
PEOPLE_PAGE_SIZE = 100

# Graph emits 7 fractional digits ("2026-10-20T14:00:00.0000000")
_FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")


class MicrosoftCalendarProvider:
    """
    Adapter for Microsoft Graph calendars, events and people.

    Same shape as the Google adapter but with Graph's field names. Errors
    surface as ProviderHttpError; this class never retries.
    """

    kind = ProviderKind.MICROSOFT

    def __init__(self, client: httpx.AsyncClient | None = None, tenant_id: str | None = None):
        self._client = client or create_client()
        self.tenant_id = tenant_id or settings.MICROSOFT_TENANT_ID

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    @property
    def authorize_endpoint(self) -> str:
        return f"{MICROSOFT_AUTHORITY}/{self.tenant_id}/oauth2/v2.0/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{MICROSOFT_AUTHORITY}/{self.tenant_id}/oauth2/v2.0/token"

    # =================================================================
    # OAUTH
    # =================================================================

    def build_authorization_url(self, client_id: str, redirect_uri: str, state: str) -> str:
        params = {
            "client_id": client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "response_mode": "query",
            "scope": " ".join(MICROSOFT_SCOPES),
            "prompt": "select_account",
            "state": state,
        }
        return f"{self.authorize_endpoint}?{urlencode(params)}"

    async def exchange_code(
        self,
        code: str,
        client_id: str,
        client_secret: str | None,
        redirect_uri: str,
    ) -> TokenSet:
        """
        Exchange an authorization code for a token pair.

        Args:
            code: Authorization code from the callback
            client_id: Application (client) id
            client_secret: Client secret, or None for a public client
            redirect_uri: Must match the URI used to build the authorization URL

        Raises:
            ProviderHttpError: If the token endpoint rejects the request
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "scope": " ".join(MICROSOFT_SCOPES),
        }
        if client_secret:
            data["client_secret"] = client_secret

        payload = await send_json(
            self._client, "POST", self.token_endpoint, "microsoft.exchange_code", data=data
        )
        return _parse_token_response(payload, "microsoft.exchange_code")

    async def refresh_token(
        self,
        refresh_token: str,
        client_id: str,
        client_secret: str | None,
    ) -> TokenSet:
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": client_id,
            "scope": " ".join(MICROSOFT_SCOPES),
        }
        if client_secret:
            data["client_secret"] = client_secret

        payload = await send_json(
            self._client, "POST", self.token_endpoint, "microsoft.refresh_token", data=data
        )
        return _parse_token_response(payload, "microsoft.refresh_token")

    # =================================================================
    # CALENDARS, CONTACTS, EVENTS
    # =================================================================

    async def list_calendars(self, access_token: str) -> list[ProviderCalendar]:
        payload = await send_json(
            self._client,
            "GET",
            f"{GRAPH_API_BASE_URL}/me/calendars",
            "microsoft.list_calendars",
            headers=bearer_headers(access_token),
        )
        return [
            ProviderCalendar(
                id=item["id"],
                name=item.get("name") or "",
                is_default=bool(item.get("isDefaultCalendar", False)),
            )
            for item in payload.get("value", [])
            if item.get("id")
        ]

    async def list_contacts(self, access_token: str) -> list[ProviderContact]:
        """List relevant people, following @odata.nextLink until exhausted."""
        contacts: list[ProviderContact] = []
        url: str | None = f"{GRAPH_API_BASE_URL}/me/people"
        params: dict[str, Any] | None = {"$top": PEOPLE_PAGE_SIZE}

        while url:
            payload = await send_json(
                self._client,
                "GET",
                url,
                "microsoft.list_contacts",
                headers=bearer_headers(access_token),
                params=params,
            )
            for person in payload.get("value", []):
                contact = _person_to_contact(person)
                if contact:
                    contacts.append(contact)

            # nextLink already carries the query string
            url = payload.get("@odata.nextLink")
            params = None

        logger.debug("Microsoft contacts listed", contact_count=len(contacts))
        return contacts

    async def list_events(
        self,
        access_token: str,
        calendar_id: str,
        range_start: datetime,
        range_end: datetime,
    ) -> list[ProviderEvent]:
        """List non-cancelled calendarView events, following @odata.nextLink until exhausted."""
        events: list[ProviderEvent] = []
        url: str | None = (
            f"{GRAPH_API_BASE_URL}/me/calendars/{quote(calendar_id, safe='')}/calendarView"
        )
        params: dict[str, Any] | None = {
            "startDateTime": as_utc(range_start).isoformat(),
            "endDateTime": as_utc(range_end).isoformat(),
            "$top": EVENTS_PAGE_SIZE,
        }

        while url:
            payload = await send_json(
                self._client,
                "GET",
                url,
                "microsoft.list_events",
                headers=bearer_headers(access_token, UTC_PREFER_HEADER),
                params=params,
            )
            for item in payload.get("value", []):
                if item.get("isCancelled"):
                    continue
                start = _parse_graph_time(item.get("start"))
                end = _parse_graph_time(item.get("end"))
                if not item.get("id") or start is None or end is None:
                    continue
                events.append(
                    ProviderEvent(
                        external_id=item["id"],
                        title=item.get("subject") or "",
                        start_time=start,
                        end_time=end,
                    )
                )

            url = payload.get("@odata.nextLink")
            params = None

        logger.debug("Microsoft events listed", event_count=len(events))
        return events

    async def create_event(
        self, access_token: str, calendar_id: str, draft: EventDraft
    ) -> CreatedEvent:
        body: dict[str, Any] = {
            "subject": draft.title,
            "body": {"contentType": "text", "content": draft.description},
            "start": {"dateTime": _graph_datetime(draft.start_time), "timeZone": "UTC"},
            "end": {"dateTime": _graph_datetime(draft.end_time), "timeZone": "UTC"},
            "sensitivity": "private" if draft.is_private else "normal",
        }
        if draft.location:
            body["location"] = {"displayName": draft.location}
        if draft.attendees:
            body["attendees"] = [
                {"emailAddress": {"address": email}, "type": "required"}
                for email in draft.attendees
            ]

        payload = await send_json(
            self._client,
            "POST",
            f"{GRAPH_API_BASE_URL}/me/calendars/{quote(calendar_id, safe='')}/events",
            "microsoft.create_event",
            headers=bearer_headers(access_token, {"Content-Type": "application/json"}),
            json=body,
        )
        if not payload.get("id"):
            raise ProviderHttpError("microsoft.create_event", 200, "Response missing event id")

        online_meeting = payload.get("onlineMeeting") or {}
        return CreatedEvent(
            external_id=payload["id"],
            join_url=online_meeting.get("joinUrl"),
            web_link=payload.get("webLink"),
        )


def _parse_token_response(payload: dict[str, Any], operation: str) -> TokenSet:
    if not payload.get("access_token"):
        raise ProviderHttpError(operation, 200, "Token response missing access_token")
    try:
        return TokenSet(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_in=payload.get("expires_in"),
        )
    except ValidationError as e:
        raise ProviderHttpError(operation, 200, f"Malformed token response: {e}") from e


def _person_to_contact(person: dict[str, Any]) -> ProviderContact | None:
    name = person.get("displayName")
    if not name or not person.get("id"):
        return None

    emails = person.get("scoredEmailAddresses") or []
    return ProviderContact(
        external_id=person["id"],
        name=name,
        email=emails[0].get("address") if emails else None,
        role=person.get("jobTitle"),
    )


def _graph_datetime(value: datetime) -> str:
    """Graph expects a naive local time paired with an explicit timeZone field."""
    return as_utc(value).replace(tzinfo=None).isoformat()


def _parse_graph_time(value: dict[str, Any] | None) -> datetime | None:
    if not value or not value.get("dateTime"):
        return None
    try:
        raw = _FRACTION_PATTERN.sub(r"\1", value["dateTime"])
        # Requested with Prefer: outlook.timezone="UTC", so naive values are UTC
        return as_utc(datetime.fromisoformat(raw))
    except (TypeError, ValueError) as e:
        raise ProviderHttpError(
            "microsoft.list_events", 200, f"Malformed event time: {value['dateTime']!r}"
        ) from e
