import pytest
from pydantic import ValidationError

from app.models.domain.booking_domain import User
from app.models.domain.connection_domain import (
    CONNECTION_COLUMNS,
    Connected,
    ConnectionFailed,
    Disconnected,
    ProviderKind,
    from_columns,
    parse_connection_state,
    to_columns,
)

CONNECTED = Connected(
    provider=ProviderKind.GOOGLE,
    access_token="access",
    refresh_token="refresh",
    calendar_id="primary",
)


@pytest.mark.parametrize(
    "state",
    [
        Disconnected(),
        CONNECTED,
        ConnectionFailed(provider=ProviderKind.MICROSOFT),
        ConnectionFailed(),
    ],
)
def test_columns_round_trip(state):
    columns = to_columns(state)

    assert set(columns) == set(CONNECTION_COLUMNS)
    assert from_columns(columns) == state


def test_disconnect_clears_every_column():
    columns = to_columns(Disconnected())

    assert columns["office_connection_status"] == "disconnected"
    assert all(columns[c] is None for c in CONNECTION_COLUMNS if c != "office_connection_status")


def test_error_keeps_provider_but_no_tokens():
    columns = to_columns(ConnectionFailed(provider=ProviderKind.MICROSOFT))

    assert columns["office_connection_type"] == "microsoft"
    assert columns["office_access_token"] is None
    assert columns["office_refresh_token"] is None
    assert columns["office_calendar_id"] is None


@pytest.mark.parametrize(
    "row",
    [
        {"office_connection_status": "connected", "office_connection_type": "google"},
        {
            "office_connection_status": "connected",
            "office_connection_type": "google",
            "office_access_token": "access",
        },
        {
            "office_connection_status": "connected",
            "office_connection_type": "yahoo",
            "office_access_token": "access",
            "office_calendar_id": "primary",
        },
    ],
)
def test_incomplete_connected_row_reads_as_error(row):
    assert isinstance(from_columns(row), ConnectionFailed)


def test_missing_status_reads_as_disconnected():
    assert from_columns({}) == Disconnected()


def test_connected_requires_token_and_calendar():
    with pytest.raises(ValidationError):
        Connected(provider=ProviderKind.GOOGLE, access_token="", calendar_id="primary")
    with pytest.raises(ValidationError):
        parse_connection_state({"status": "connected", "provider": "google"})


def test_with_tokens_keeps_refresh_token_when_not_reissued():
    assert CONNECTED.with_tokens("new", None).refresh_token == "refresh"
    assert CONNECTED.with_tokens("new", "rotated").refresh_token == "rotated"


def test_user_connection_parses_tagged_dict():
    user = User.model_validate(
        {
            "id": "user-123",
            "email": "ada@example.com",
            "connection": {
                "status": "connected",
                "provider": "microsoft",
                "access_token": "a",
                "calendar_id": "c",
            },
        }
    )

    assert isinstance(user.connection, Connected)
    assert user.active_connection is user.connection
    assert User(id="u", email="e@example.com").active_connection is None
