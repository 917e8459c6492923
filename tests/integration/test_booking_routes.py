from datetime import UTC, datetime, timedelta

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.dependencies import get_intent_extractor, get_slot_recommender
from app.routes.bookings import router as bookings_router
from app.services.calendar.http import ProviderHttpError
from app.services.intent_extractor import REPHRASE_MESSAGE, IntentExtractor
from app.services.openai_service import CompletionServiceError
from app.services.slot_recommender import SlotRecommender
from tests.fakes import FakeCompletionService

USER_ID = "user-123"
START = datetime.now(UTC).replace(microsecond=0) + timedelta(days=3)


def _create_app(apply_auth_override, override_services, *completions):
    app = FastAPI()
    apply_auth_override(app)
    override_services(app)
    extractor = IntentExtractor(FakeCompletionService(*completions))
    app.dependency_overrides[get_intent_extractor] = lambda: extractor
    app.dependency_overrides[get_slot_recommender] = lambda: SlotRecommender(None, "UTC")
    app.include_router(bookings_router)
    return app


def _booking_payload(**overrides):
    payload = {
        "title": "Coffee with Grace",
        "start_time": START.isoformat(),
        "end_time": (START + timedelta(minutes=30)).isoformat(),
    }
    payload.update(overrides)
    return payload


def test_parse_booking_returns_intent_and_slot(
    apply_auth_override, override_services, connected_user
):
    app = _create_app(
        apply_auth_override,
        override_services,
        {
            "event_type": "coffee",
            "preferred_day": "tuesday",
            "preferred_time": "2pm",
            "duration_minutes": 30,
            "invitees": ["Grace"],
        },
    )
    client = TestClient(app)

    response = client.post(
        "/assistant/parse-booking", json={"message": "Coffee with Grace on Tuesday at 2pm"}
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["intent"]["event_type"] == "coffee"
    assert len(payload["time_slots"]) == 1
    slot = payload["time_slots"][0]
    assert slot["label"].startswith("Tuesday")
    assert slot["label"].endswith("at 2:00 PM")
    start = datetime.fromisoformat(slot["start"])
    end = datetime.fromisoformat(slot["end"])
    assert start > datetime.now(UTC)
    assert end - start == timedelta(minutes=30)


def test_parse_booking_unparseable_message(apply_auth_override, override_services, connected_user):
    app = _create_app(
        apply_auth_override, override_services, CompletionServiceError("Invalid JSON")
    )
    client = TestClient(app)

    response = client.post("/assistant/parse-booking", json={"message": "asdf"})

    assert response.status_code == 400
    assert response.json()["detail"] == REPHRASE_MESSAGE


def test_create_booking_pushes_to_provider(
    apply_auth_override, override_services, connected_user
):
    client = TestClient(_create_app(apply_auth_override, override_services))

    response = client.post("/bookings", json=_booking_payload())

    assert response.status_code == 201
    payload = response.json()
    assert payload["sync_status"] == "succeeded"
    assert payload["booking"]["external_event_id"] == "evt-1"
    assert payload["booking"]["status"] == "scheduled"


def test_create_booking_survives_push_failure(
    apply_auth_override, override_services, connected_user, fake_microsoft
):
    fake_microsoft.fail("create_event", ProviderHttpError("microsoft.create_event", 500, ""))
    client = TestClient(_create_app(apply_auth_override, override_services))

    response = client.post("/bookings", json=_booking_payload())

    assert response.status_code == 201
    assert response.json()["sync_status"] == "failed"

    listed = client.get("/bookings").json()
    assert listed["total_count"] == 1
    assert listed["bookings"][0]["external_event_id"] is None
    assert listed["bookings"][0]["status"] == "scheduled"


def test_create_booking_without_connection(
    apply_auth_override, override_services, disconnected_user
):
    client = TestClient(_create_app(apply_auth_override, override_services))

    response = client.post("/bookings", json=_booking_payload())

    assert response.status_code == 201
    assert response.json()["sync_status"] == "skipped"


def test_create_booking_rejects_inverted_range(
    apply_auth_override, override_services, disconnected_user
):
    client = TestClient(_create_app(apply_auth_override, override_services))

    response = client.post(
        "/bookings",
        json=_booking_payload(end_time=(START - timedelta(hours=1)).isoformat()),
    )

    assert response.status_code == 422


def test_update_booking_status(apply_auth_override, override_services, disconnected_user):
    client = TestClient(_create_app(apply_auth_override, override_services))
    booking_id = client.post("/bookings", json=_booking_payload()).json()["booking"]["id"]

    confirmed = client.patch(f"/bookings/{booking_id}/status", json={"status": "confirmed"})
    cancelled = client.patch(f"/bookings/{booking_id}/status", json={"status": "cancelled"})
    reopened = client.patch(f"/bookings/{booking_id}/status", json={"status": "scheduled"})
    missing = client.patch("/bookings/999/status", json={"status": "confirmed"})

    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"
    assert cancelled.json()["status"] == "cancelled"
    assert reopened.status_code == 409
    assert missing.status_code == 404


def test_list_todays_bookings(apply_auth_override, override_services, disconnected_user):
    client = TestClient(_create_app(apply_auth_override, override_services))
    now = datetime.now(UTC).replace(microsecond=0)
    client.post(
        "/bookings",
        json=_booking_payload(
            title="Standup",
            start_time=now.isoformat(),
            end_time=(now + timedelta(minutes=15)).isoformat(),
        ),
    )
    client.post("/bookings", json=_booking_payload(title="Later this week"))

    response = client.get("/bookings/today")

    assert response.status_code == 200
    payload = response.json()
    assert payload["total_count"] == 1
    assert payload["bookings"][0]["title"] == "Standup"
