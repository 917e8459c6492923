import pytest

from app.models.domain.booking_domain import User
from app.models.domain.connection_domain import Disconnected
from app.services.user_service import (
    UserNotFoundError,
    UserProvisioningError,
    UserService,
)

USER_ID = "user-123"


@pytest.fixture
def users(repository):
    return UserService(repository)


@pytest.mark.asyncio
async def test_first_request_creates_user_from_claims(users, repository):
    user = await users.get_or_create_user(
        {
            "sub": "new-user",
            "email": "grace@example.com",
            "user_metadata": {"full_name": "Grace Hopper"},
        }
    )

    assert user.id == "new-user"
    assert user.display_name == "Grace Hopper"
    assert user.connection == Disconnected()
    stored = await repository.get_user("new-user")
    assert stored.email == "grace@example.com"


@pytest.mark.asyncio
async def test_name_claim_wins_over_metadata(users):
    user = await users.get_or_create_user(
        {
            "sub": "new-user",
            "email": "grace@example.com",
            "name": "Amazing Grace",
            "user_metadata": {"full_name": "Grace Hopper"},
        }
    )

    assert user.display_name == "Amazing Grace"


@pytest.mark.asyncio
async def test_existing_user_is_returned_unchanged(users, connected_user):
    user = await users.get_or_create_user(
        {"sub": USER_ID, "email": "changed@example.com", "name": "Someone Else"}
    )

    assert user.email == "ada@example.com"
    assert user.display_name == "Ada"
    assert user.connection == connected_user.connection


@pytest.mark.asyncio
async def test_unknown_user_without_email_is_not_provisioned(users, repository):
    with pytest.raises(UserProvisioningError):
        await users.get_or_create_user({"sub": "ghost"})

    assert await repository.get_user("ghost") is None


@pytest.mark.asyncio
async def test_create_user_keeps_the_first_record(repository):
    first = await repository.create_user(User(id="dup", email="first@example.com"))
    second = await repository.create_user(User(id="dup", email="second@example.com"))

    assert first.email == "first@example.com"
    assert second.email == "first@example.com"


@pytest.mark.asyncio
async def test_set_private_mode(users, disconnected_user, repository):
    updated = await users.set_private_mode(USER_ID, True)

    assert updated.is_private_mode is True
    assert (await repository.get_user(USER_ID)).is_private_mode is True


@pytest.mark.asyncio
async def test_set_private_mode_for_missing_user(users):
    with pytest.raises(UserNotFoundError):
        await users.set_private_mode("ghost", True)
