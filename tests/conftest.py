import pytest

from app.auth.verify import auth_dependency
from app.config import Settings
from app.dependencies import (
    get_booking_service,
    get_connection_manager,
    get_repository,
    get_sync_orchestrator,
)
from app.models.domain.booking_domain import User
from app.models.domain.connection_domain import Connected, ProviderKind
from app.repositories.memory import InMemoryRepository
from app.services.booking_service import BookingService
from app.services.calendar.provider import ProviderRegistry
from app.services.connection_service import ConnectionManager
from app.services.oauth_state_service import encode_state
from app.services.sync_service import SyncOrchestrator
from tests.fakes import FakeProvider

USER_ID = "user-123"


@pytest.fixture
def auth_override():
    def _override():
        return {"sub": USER_ID}

    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override

    return _apply


@pytest.fixture
def test_settings():
    return Settings(
        GOOGLE_CLIENT_ID="google-client",
        GOOGLE_CLIENT_SECRET="google-secret",
        GOOGLE_REDIRECT_URI="http://testserver/office/callback",
        MICROSOFT_CLIENT_ID="ms-client",
        MICROSOFT_CLIENT_SECRET="ms-secret",
        MICROSOFT_REDIRECT_URI="http://testserver/office/callback",
        OAUTH_STATE_SECRET="test-oauth-state-secret",
    )


@pytest.fixture
def signed_state(test_settings):
    """Build a callback state the way begin_connection does."""

    def _sign(user_id, provider):
        return encode_state(user_id, provider, test_settings.oauth_state_secret())

    return _sign


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def fake_google():
    return FakeProvider(ProviderKind.GOOGLE)


@pytest.fixture
def fake_microsoft():
    return FakeProvider(ProviderKind.MICROSOFT)


@pytest.fixture
def providers(fake_google, fake_microsoft):
    return ProviderRegistry(
        {ProviderKind.GOOGLE: fake_google, ProviderKind.MICROSOFT: fake_microsoft}
    )


@pytest.fixture
def connections(repository, providers, test_settings):
    return ConnectionManager(repository, providers, test_settings)


@pytest.fixture
def sync(repository, connections):
    return SyncOrchestrator(repository, connections)


@pytest.fixture
def booking_service(repository, sync):
    return BookingService(repository, sync)


@pytest.fixture
def disconnected_user(repository):
    return repository.add_user(User(id=USER_ID, email="ada@example.com", display_name="Ada"))


@pytest.fixture
def connected_user(repository):
    return repository.add_user(
        User(
            id=USER_ID,
            email="ada@example.com",
            display_name="Ada",
            connection=Connected(
                provider=ProviderKind.MICROSOFT,
                access_token="access-0",
                refresh_token="refresh-0",
                calendar_id="cal-1",
            ),
        )
    )


@pytest.fixture
def override_services(repository, connections, sync, booking_service):
    """Point the route dependencies at the in-memory test wiring."""

    def _apply(app):
        app.dependency_overrides[get_repository] = lambda: repository
        app.dependency_overrides[get_connection_manager] = lambda: connections
        app.dependency_overrides[get_sync_orchestrator] = lambda: sync
        app.dependency_overrides[get_booking_service] = lambda: booking_service

    return _apply
