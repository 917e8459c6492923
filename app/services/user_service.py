"""
User Service
Resolves the authenticated caller to a stored user, creating the record on the
first request a new account makes, and applies profile preference changes.
"""

from app.infrastructure.observability.logging import get_logger
from app.models.domain.booking_domain import User
from app.repositories.base import Repository

logger = get_logger(__name__)


class UserProvisioningError(Exception):
    """Token identifies a user that is not stored and cannot be created."""

    def __init__(self, message: str, user_id: str | None = None):
        super().__init__(message)
        self.user_id = user_id


class UserNotFoundError(Exception):
    def __init__(self, user_id: str):
        super().__init__("User not found")
        self.user_id = user_id


class UserService:
    def __init__(self, repository: Repository):
        self.repository = repository

    async def get_or_create_user(self, claims: dict) -> User:
        """
        Load the user named by verified JWT claims, creating it if missing.

        A new user needs an ``email`` claim; ``name`` (or ``user_metadata.full_name``)
        becomes the display name when present.

        Raises:
            UserProvisioningError: If the user is unknown and the token has no email
        """
        user_id = claims["sub"]
        user = await self.repository.get_user(user_id)
        if user is not None:
            return user

        email = claims.get("email")
        if not email:
            logger.warning("Unknown user token without email claim", user_id=user_id)
            raise UserProvisioningError("User not found", user_id=user_id)

        metadata = claims.get("user_metadata") or {}
        user = await self.repository.create_user(
            User(
                id=user_id,
                email=email,
                display_name=claims.get("name") or metadata.get("full_name"),
            )
        )
        logger.info("User provisioned on first request", user_id=user_id)
        return user

    async def set_private_mode(self, user_id: str, enabled: bool) -> User:
        updated = await self.repository.update_user(user_id, {"is_private_mode": enabled})
        if updated is None:
            raise UserNotFoundError(user_id)

        logger.info("Privacy mode updated", user_id=user_id, is_private_mode=enabled)
        return updated
