from datetime import UTC, datetime, timedelta

import pytest

from app.models.domain.booking_domain import Booking, BookingIntent
from app.services.openai_service import CompletionServiceError
from app.services.slot_recommender import (
    SlotRecommender,
    format_slot_label,
    parse_preferred_time,
    resolve_preferred_day,
)
from tests.fakes import FakeCompletionService

# Saturday
NOW = datetime(2026, 10, 17, 9, 0, tzinfo=UTC)


def _intent(**overrides) -> BookingIntent:
    data = {"event_type": "meeting"}
    data.update(overrides)
    return BookingIntent(**data)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("2pm", (14, 0)),
        ("2:30 pm", (14, 30)),
        ("10:30 a.m.", (10, 30)),
        ("12am", (0, 0)),
        ("12 pm", (12, 0)),
        ("14:45", (14, 45)),
        ("noon", (12, 0)),
        ("around midnight", (0, 0)),
        ("whenever works", (14, 0)),
        (None, (14, 0)),
    ],
)
def test_parse_preferred_time(text, expected):
    assert parse_preferred_time(text) == expected


@pytest.mark.parametrize(
    "text,expected_day",
    [
        ("tuesday", 20),
        ("next Tue", 20),
        ("tusday", 20),
        ("saturday", 24),
        ("tomorrow", 18),
        ("someday", 18),
        (None, 18),
    ],
)
def test_resolve_preferred_day(text, expected_day):
    assert resolve_preferred_day(text, NOW, 14, 0).day == expected_day


def test_today_only_while_time_is_ahead():
    assert resolve_preferred_day("today", NOW, 14, 0).day == 17
    assert resolve_preferred_day("today", NOW, 8, 0).day == 18


def test_format_slot_label():
    start = datetime(2026, 10, 20, 14, 0, tzinfo=UTC)
    assert format_slot_label(start) == "Tuesday, Oct 20 at 2:00 PM"


def test_deterministic_slot_for_tuesday_at_two():
    recommender = SlotRecommender(timezone="UTC")
    intent = _intent(preferred_day="tuesday", preferred_time="2pm", duration_minutes=30)

    slot = recommender.deterministic_slot(intent, NOW)

    assert slot.start == datetime(2026, 10, 20, 14, 0, tzinfo=UTC)
    assert slot.end == datetime(2026, 10, 20, 14, 30, tzinfo=UTC)
    assert slot.label == "Tuesday, Oct 20 at 2:00 PM"


@pytest.mark.parametrize("day", ["monday", "saturday", "today", "tomorrow", None, "garbage"])
@pytest.mark.parametrize("time_text", ["8am", "9:00", "2pm", "11:59 pm", None])
def test_deterministic_slot_is_always_in_the_future(day, time_text):
    recommender = SlotRecommender(timezone="UTC")
    slot = recommender.deterministic_slot(
        _intent(preferred_day=day, preferred_time=time_text), NOW
    )

    assert slot.start > NOW
    assert slot.end > slot.start


def test_deterministic_slot_uses_configured_timezone():
    recommender = SlotRecommender(timezone="America/New_York")

    slot = recommender.deterministic_slot(_intent(preferred_day="tuesday", preferred_time="2pm"), NOW)

    assert slot.start.astimezone(UTC) == datetime(2026, 10, 20, 18, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_suggest_without_completion_service_is_deterministic():
    recommender = SlotRecommender(timezone="UTC")

    slots = await recommender.suggest(_intent(preferred_day="tuesday"), [], NOW)

    assert len(slots) == 1
    assert slots[0].start == datetime(2026, 10, 20, 14, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_suggest_filters_past_and_conflicting_completion_slots():
    existing = [
        Booking(
            user_id="user-123",
            title="Standup",
            start_time=datetime(2026, 10, 19, 10, 0, tzinfo=UTC),
            end_time=datetime(2026, 10, 19, 10, 30, tzinfo=UTC),
        )
    ]
    service = FakeCompletionService(
        {
            "time_slots": [
                # in the past
                {"start": "2026-10-16T10:00:00Z", "end": "2026-10-16T11:00:00Z", "label": "a"},
                # inside the 15 minute buffer after the standup
                {"start": "2026-10-19T10:40:00Z", "end": "2026-10-19T11:40:00Z", "label": "b"},
                {"start": "not a date", "end": "2026-10-19T11:40:00Z", "label": "c"},
                {"start": "2026-10-19T13:00:00Z", "end": "2026-10-19T14:00:00Z", "label": "d"},
                {"start": "2026-10-20T09:00:00Z", "end": "2026-10-20T10:00:00Z", "label": "e"},
            ]
        }
    )
    recommender = SlotRecommender(service, timezone="UTC")

    slots = await recommender.suggest(_intent(preferred_day="monday"), existing, NOW)

    assert [slot.label for slot in slots] == ["d", "e"]
    assert "Standup" in service.prompts[0][1]


@pytest.mark.asyncio
async def test_suggest_caps_completion_slots_at_three():
    start = NOW + timedelta(days=2)
    service = FakeCompletionService(
        {
            "timeSlots": [
                {
                    "start": (start + timedelta(hours=i)).isoformat(),
                    "end": (start + timedelta(hours=i, minutes=30)).isoformat(),
                    "label": str(i),
                }
                for i in range(5)
            ]
        }
    )
    recommender = SlotRecommender(service, timezone="UTC")

    slots = await recommender.suggest(_intent(), [], NOW)

    assert len(slots) == 3


@pytest.mark.asyncio
async def test_suggest_falls_back_when_completion_fails():
    service = FakeCompletionService(CompletionServiceError("timeout", recoverable=True))
    recommender = SlotRecommender(service, timezone="UTC")

    slots = await recommender.suggest(_intent(preferred_day="tuesday"), [], NOW)

    assert len(slots) == 1
    assert slots[0].start == datetime(2026, 10, 20, 14, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_suggest_falls_back_when_no_completion_slot_is_usable():
    service = FakeCompletionService({"time_slots": []})
    recommender = SlotRecommender(service, timezone="UTC")

    slots = await recommender.suggest(_intent(), [], NOW)

    assert len(slots) == 1
    assert slots[0].start > NOW


@pytest.mark.asyncio
async def test_explicit_time_skips_completion_service():
    service = FakeCompletionService()
    recommender = SlotRecommender(service, timezone="UTC")

    slots = await recommender.suggest(
        _intent(preferred_day="tuesday", preferred_time="2pm", duration_minutes=30), [], NOW
    )

    assert service.prompts == []
    assert slots[0].end == datetime(2026, 10, 20, 14, 30, tzinfo=UTC)
