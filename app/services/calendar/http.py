"""
Shared HTTP helpers for calendar provider adapters.
Every non-success response or transport failure becomes a ProviderHttpError so
callers can branch on ``is_auth_error`` without knowing which provider answered.
"""

from typing import Any

import httpx

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Keep error bodies short in logs and exception messages
MAX_ERROR_BODY_CHARS = 500


class ProviderHttpError(Exception):
    """Provider API call failed (non-2xx response or transport error)."""

    def __init__(self, operation: str, status_code: int | None, body: str = ""):
        self.operation = operation
        self.status_code = status_code
        self.body = (body or "")[:MAX_ERROR_BODY_CHARS]
        if status_code is None:
            message = f"{operation} failed: {self.body or 'transport error'}"
        else:
            message = f"{operation} failed with HTTP {status_code}: {self.body}"
        super().__init__(message)

    @property
    def is_auth_error(self) -> bool:
        """True when the provider rejected the bearer token."""
        return self.status_code == 401

    @property
    def is_client_rejection(self) -> bool:
        """True for 400/401, how token endpoints reject bad client credentials."""
        return self.status_code in (400, 401)


def create_client(timeout: float | None = None) -> httpx.AsyncClient:
    """Create async HTTP client for provider APIs."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout or settings.PROVIDER_REQUEST_TIMEOUT),
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=50),
    )


def bearer_headers(access_token: str, extra: dict[str, str] | None = None) -> dict[str, str]:
    headers = {
        "Authorization": f"Bearer {access_token}",
        "Accept": "application/json",
    }
    if extra:
        headers.update(extra)
    return headers


async def send_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    operation: str,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Send one request and return the decoded JSON body.

    Args:
        client: Shared async client
        method: HTTP method
        url: Absolute URL
        operation: Short name used in errors and logs (e.g. "google.list_calendars")
        **kwargs: Passed through to ``httpx.AsyncClient.request``

    Returns:
        dict: Parsed body ({} for empty responses)

    Raises:
        ProviderHttpError: On transport failure, non-2xx status or undecodable body
    """
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.RequestError as e:
        logger.warning("Provider request transport error", operation=operation, error=str(e))
        raise ProviderHttpError(operation, None, str(e)) from e

    logger.debug(
        "Provider response",
        operation=operation,
        status_code=response.status_code,
        response_size=len(response.content),
    )

    if not response.is_success:
        logger.warning(
            "Provider request rejected",
            operation=operation,
            status_code=response.status_code,
        )
        raise ProviderHttpError(operation, response.status_code, response.text)

    if not response.content:
        return {}

    try:
        data = response.json()
    except ValueError as e:
        raise ProviderHttpError(operation, response.status_code, f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ProviderHttpError(operation, response.status_code, "Expected a JSON object")
    return data
