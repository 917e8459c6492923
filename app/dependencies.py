"""
Dependency providers for FastAPI routes.
Services are built once per process; tests replace them through
``app.dependency_overrides``.
"""

from functools import lru_cache

from fastapi import Depends, HTTPException, status

from app.auth.verify import auth_dependency
from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.booking_domain import User
from app.repositories.base import Repository
from app.repositories.memory import InMemoryRepository
from app.repositories.postgres import PostgresRepository
from app.services.booking_service import BookingService
from app.services.connection_service import ConnectionManager
from app.services.contact_service import ContactService
from app.services.intent_extractor import IntentExtractor
from app.services.openai_service import get_completion_service
from app.services.slot_recommender import SlotRecommender
from app.services.sync_service import SyncOrchestrator
from app.services.user_service import UserProvisioningError, UserService

logger = get_logger(__name__)


@lru_cache
def get_repository() -> Repository:
    if settings.DATABASE_URL:
        return PostgresRepository()
    logger.warning("DATABASE_URL not set, using in-memory repository")
    return InMemoryRepository()


@lru_cache
def get_connection_manager() -> ConnectionManager:
    return ConnectionManager(get_repository())


@lru_cache
def get_sync_orchestrator() -> SyncOrchestrator:
    return SyncOrchestrator(get_repository(), get_connection_manager())


@lru_cache
def get_booking_service() -> BookingService:
    return BookingService(get_repository(), get_sync_orchestrator())


@lru_cache
def get_intent_extractor() -> IntentExtractor:
    return IntentExtractor(get_completion_service())


@lru_cache
def get_slot_recommender() -> SlotRecommender:
    return SlotRecommender(get_completion_service())


def get_user_service(repository: Repository = Depends(get_repository)) -> UserService:
    return UserService(repository)


def get_contact_service(repository: Repository = Depends(get_repository)) -> ContactService:
    return ContactService(repository)


async def get_current_user(
    claims: dict = Depends(auth_dependency),
    users: UserService = Depends(get_user_service),
) -> User:
    """Load the authenticated user, creating it on its first request."""
    if not claims.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    try:
        return await users.get_or_create_user(claims)
    except UserProvisioningError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
