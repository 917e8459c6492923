"""
Google Calendar provider adapter.
Covers the OAuth handshake against Google's token endpoint, the Calendar v3 API
for calendars and events, and the People API for contacts.
"""

from datetime import datetime
from typing import Any
from urllib.parse import quote, urlencode

import httpx
from pydantic import ValidationError

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

# Google OAuth and API endpoints
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
PEOPLE_API_BASE_URL = "https://people.googleapis.com/v1"

# Calendar read/write, profile read, contacts read
GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/contacts.readonly",
]

PEOPLE_PAGE_SIZE = 200
EVENTS_PAGE_SIZE = 250


class GoogleCalendarProvider:
    """
    Adapter for Google Calendar and Google People.

    Translates Google's wire format into the normalized calendar domain shapes.
    Errors surface as ProviderHttpError; this class never retries.
    """

    kind = ProviderKind.GOOGLE

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client or create_client()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # =================================================================
    # OAUTH
    # =================================================================

    def build_authorization_url(self, client_id: str, redirect_uri: str, state: str) -> str:
        """
        Generate Google OAuth authorization URL.

        Uses offline access with forced consent so Google issues a refresh token
        on every connection, not only the first.
        """
        params = {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(GOOGLE_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "include_granted_scopes": "true",
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(
        self,
        code: str,
        client_id: str,
        client_secret: str | None,
        redirect_uri: str,
    ) -> TokenSet:
        """Exchange an authorization code for a token pair."""
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": client_id,
            "redirect_uri": redirect_uri,
        }
        if client_secret:
            data["client_secret"] = client_secret

        payload = await send_json(
            self._client, "POST", GOOGLE_TOKEN_URL, "google.exchange_code", data=data
        )
        return _parse_token_response(payload, "google.exchange_code")

    async def refresh_token(
        self,
        refresh_token: str,
        client_id: str,
        client_secret: str | None,
    ) -> TokenSet:
        """Obtain a new access token. Google usually does not reissue the refresh token."""
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": client_id,
        }
        if client_secret:
            data["client_secret"] = client_secret

        payload = await send_json(
            self._client, "POST", GOOGLE_TOKEN_URL, "google.refresh_token", data=data
        )
        return _parse_token_response(payload, "google.refresh_token")

    # =================================================================
    # CALENDARS, CONTACTS, EVENTS
    # =================================================================

    async def list_calendars(self, access_token: str) -> list[ProviderCalendar]:
        payload = await send_json(
            self._client,
            "GET",
            f"{CALENDAR_API_BASE_URL}/users/me/calendarList",
            "google.list_calendars",
            headers=bearer_headers(access_token),
        )
        return [
            ProviderCalendar(
                id=item["id"],
                name=item.get("summaryOverride") or item.get("summary") or "",
                is_default=bool(item.get("primary", False)),
            )
            for item in payload.get("items", [])
            if item.get("id")
        ]

    async def list_contacts(self, access_token: str) -> list[ProviderContact]:
        """List the user's connections, following nextPageToken until exhausted."""
        contacts: list[ProviderContact] = []
        page_token: str | None = None

        while True:
            params = {
                "personFields": "names,emailAddresses,organizations",
                "pageSize": PEOPLE_PAGE_SIZE,
            }
            if page_token:
                params["pageToken"] = page_token

            payload = await send_json(
                self._client,
                "GET",
                f"{PEOPLE_API_BASE_URL}/people/me/connections",
                "google.list_contacts",
                headers=bearer_headers(access_token),
                params=params,
            )

            for person in payload.get("connections", []):
                contact = _person_to_contact(person)
                if contact:
                    contacts.append(contact)

            page_token = payload.get("nextPageToken")
            if not page_token:
                break

        logger.debug("Google contacts listed", contact_count=len(contacts))
        return contacts

    async def list_events(
        self,
        access_token: str,
        calendar_id: str,
        range_start: datetime,
        range_end: datetime,
    ) -> list[ProviderEvent]:
        """List non-cancelled events in a range, following nextPageToken until exhausted."""
        events: list[ProviderEvent] = []
        page_token: str | None = None

        while True:
            params = {
                "timeMin": as_utc(range_start).isoformat(),
                "timeMax": as_utc(range_end).isoformat(),
                "singleEvents": "true",
                "orderBy": "startTime",
                "maxResults": EVENTS_PAGE_SIZE,
            }
            if page_token:
                params["pageToken"] = page_token

            payload = await send_json(
                self._client,
                "GET",
                f"{CALENDAR_API_BASE_URL}/calendars/{quote(calendar_id, safe='')}/events",
                "google.list_events",
                headers=bearer_headers(access_token),
                params=params,
            )

            for item in payload.get("items", []):
                if item.get("status") == "cancelled":
                    continue
                start = _parse_event_time(item.get("start"))
                end = _parse_event_time(item.get("end"))
                if not item.get("id") or start is None or end is None:
                    continue
                events.append(
                    ProviderEvent(
                        external_id=item["id"],
                        title=item.get("summary", ""),
                        start_time=start,
                        end_time=end,
                    )
                )

            page_token = payload.get("nextPageToken")
            if not page_token:
                break

        logger.debug("Google events listed", event_count=len(events))
        return events

    async def create_event(
        self, access_token: str, calendar_id: str, draft: EventDraft
    ) -> CreatedEvent:
        body: dict[str, Any] = {
            "summary": draft.title,
            "description": draft.description,
            "start": {"dateTime": as_utc(draft.start_time).isoformat(), "timeZone": "UTC"},
            "end": {"dateTime": as_utc(draft.end_time).isoformat(), "timeZone": "UTC"},
            "visibility": "private" if draft.is_private else "default",
        }
        if draft.location:
            body["location"] = draft.location
        if draft.attendees:
            body["attendees"] = [{"email": email} for email in draft.attendees]

        payload = await send_json(
            self._client,
            "POST",
            f"{CALENDAR_API_BASE_URL}/calendars/{quote(calendar_id, safe='')}/events",
            "google.create_event",
            headers=bearer_headers(access_token, {"Content-Type": "application/json"}),
            json=body,
        )
        if not payload.get("id"):
            raise ProviderHttpError("google.create_event", 200, "Response missing event id")

        return CreatedEvent(
            external_id=payload["id"],
            join_url=payload.get("hangoutLink"),
            web_link=payload.get("htmlLink"),
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
    names = person.get("names") or []
    name = names[0].get("displayName") if names else None
    if not name or not person.get("resourceName"):
        return None

    emails = person.get("emailAddresses") or []
    organizations = person.get("organizations") or []
    return ProviderContact(
        external_id=person["resourceName"],
        name=name,
        email=emails[0].get("value") if emails else None,
        role=organizations[0].get("title") if organizations else None,
    )


def _parse_event_time(value: dict[str, Any] | None) -> datetime | None:
    """Google sends dateTime for timed events and date for all-day events."""
    if not value:
        return None
    raw = value.get("dateTime") or value.get("date")
    if not raw:
        return None
    try:
        return as_utc(datetime.fromisoformat(raw))
    except (TypeError, ValueError) as e:
        raise ProviderHttpError("google.list_events", 200, f"Malformed event time: {raw!r}") from e
