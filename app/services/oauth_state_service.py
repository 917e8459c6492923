"""
OAuth state encoding for calendar connection flows.
The state parameter carries ``user_id:provider:timestamp_ms:signature`` so the
callback can be correlated to a user without any server-side session storage.
The signature is an HMAC-SHA256 over the first three fields; a state that was
not issued by this server cannot bind a calendar to anyone's account.
"""

import hashlib
import hmac
import time
from dataclasses import dataclass

from app.infrastructure.observability.logging import get_logger
from app.models.domain.connection_domain import ProviderKind

logger = get_logger(__name__)

STATE_TTL_SECONDS = 900  # 15 minutes
STATE_SEPARATOR = ":"
STATE_NAMESPACE = "oauth_state"
SECRET_MIN_LENGTH = 16


class OAuthStateError(Exception):
    """State parameter is malformed, unsigned, names an unknown provider, or has expired."""

    def __init__(self, message: str, state_preview: str | None = None):
        super().__init__(message)
        self.state_preview = state_preview


@dataclass(frozen=True)
class DecodedState:
    user_id: str
    provider: ProviderKind
    issued_at_ms: int


def _sign(payload: str, secret: str) -> str:
    if not secret or len(secret) < SECRET_MIN_LENGTH:
        raise OAuthStateError("OAuth state secret is missing or too short")
    scoped = f"{STATE_NAMESPACE}:{payload}"
    return hmac.new(secret.encode("utf-8"), scoped.encode("utf-8"), hashlib.sha256).hexdigest()


def encode_state(
    user_id: str, provider: ProviderKind, secret: str, now_ms: int | None = None
) -> str:
    """
    Build the signed state parameter for an authorization URL.

    Args:
        user_id: User starting the connection
        provider: Provider the user is connecting
        secret: Server-side signing secret
        now_ms: Issue time in epoch milliseconds (defaults to now)

    Returns:
        str: ``user_id:provider:timestamp_ms:signature``
    """
    issued_at = now_ms if now_ms is not None else int(time.time() * 1000)
    payload = STATE_SEPARATOR.join([user_id, ProviderKind(provider).value, str(issued_at)])
    return f"{payload}{STATE_SEPARATOR}{_sign(payload, secret)}"


def decode_state(state: str, secret: str, now_ms: int | None = None) -> DecodedState:
    """
    Recover user and provider from a callback state parameter.

    Splits from the right so user ids containing the separator still decode.
    The signature is checked before any field is trusted.

    Raises:
        OAuthStateError: If the state is malformed, badly signed, unknown, or older than the TTL
    """
    preview = state[:12] + "..." if state else None
    parts = state.rsplit(STATE_SEPARATOR, 3) if state else []
    if len(parts) != 4 or not parts[0]:
        raise OAuthStateError("Malformed OAuth state", state_preview=preview)

    user_id, provider_value, issued_raw, signature = parts
    expected = _sign(STATE_SEPARATOR.join([user_id, provider_value, issued_raw]), secret)
    if not hmac.compare_digest(signature, expected):
        logger.warning("OAuth state signature mismatch", state_preview=preview)
        raise OAuthStateError("Invalid OAuth state signature", state_preview=preview)

    try:
        provider = ProviderKind(provider_value)
    except ValueError as e:
        raise OAuthStateError(
            f"Unknown provider in OAuth state: {provider_value}", state_preview=preview
        ) from e

    try:
        issued_at_ms = int(issued_raw)
    except ValueError as e:
        raise OAuthStateError("Malformed OAuth state timestamp", state_preview=preview) from e

    current_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    age_seconds = (current_ms - issued_at_ms) / 1000
    if age_seconds < 0 or age_seconds > STATE_TTL_SECONDS:
        logger.warning(
            "OAuth state expired or from the future",
            state_preview=preview,
            age_seconds=round(age_seconds, 1),
        )
        raise OAuthStateError("OAuth state expired", state_preview=preview)

    return DecodedState(user_id=user_id, provider=provider, issued_at_ms=issued_at_ms)
