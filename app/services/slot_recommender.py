"""
Slot Recommender
Turns a BookingIntent plus the user's existing commitments into candidate time
slots. The completion service proposes 2-3 conflict-free slots when the request
leaves the time open; a deterministic parser covers explicit times and any
completion failure.

The deterministic path does not check conflicts against existing commitments.
Callers must not assume its single slot is free.
"""

import json
import re
from collections.abc import Sequence
from datetime import date, datetime, time, timedelta
from difflib import get_close_matches
from typing import Any, Protocol
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.booking_domain import BookingIntent, TimeSlot
from app.models.domain.calendar_domain import as_utc
from app.services.openai_service import CompletionService, CompletionServiceError

logger = get_logger(__name__)

DEFAULT_HOUR = 14
DEFAULT_MINUTE = 0
BUSINESS_HOURS_START = 9
BUSINESS_HOURS_END = 18
CONFLICT_BUFFER = timedelta(minutes=15)
MAX_SUGGESTIONS = 3
SUGGESTION_TEMPERATURE = 0.3

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
WEEKDAY_ALIASES = {
    "mon": 0,
    "tue": 1,
    "tues": 1,
    "wed": 2,
    "thu": 3,
    "thur": 3,
    "thurs": 3,
    "fri": 4,
    "sat": 5,
    "sun": 6,
}
# High enough that only near-misses like "tusday" or "fridya" resolve
WEEKDAY_MATCH_CUTOFF = 0.8

_TWELVE_HOUR_PATTERN = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*([ap])\.?\s*m\b\.?")
_TWENTY_FOUR_HOUR_PATTERN = re.compile(r"\b([01]?\d|2[0-3]):([0-5]\d)\b")
_WORD_PATTERN = re.compile(r"[a-z]+")

SYSTEM_PROMPT = (
    "You are a smart scheduling assistant that suggests optimal meeting times based on "
    "preferences and availability."
)

USER_PROMPT_TEMPLATE = """Based on the booking intent and existing calendar data, suggest 2-3 optimal time slots.

Current time: {now}
Timezone: {timezone}
Booking Intent: {intent}
Existing Bookings: {bookings}

Consider:
- The preferred day/time mentioned; stay as close to it as possible
- Avoiding conflicts with existing bookings
- Standard business hours ({start_hour}:00 - {end_hour}:00)
- Buffer time between meetings ({buffer} minutes)
- Every slot must be in the future and last {duration} minutes

Return JSON with suggested time slots (ISO 8601 with offset):
{{
  "time_slots": [
    {{
      "start": "2026-01-15T10:30:00+00:00",
      "end": "2026-01-15T11:30:00+00:00",
      "label": "Thursday, Jan 15 at 10:30 AM"
    }}
  ]
}}"""


class Commitment(Protocol):
    """Anything occupying time on the user's calendar (local booking or provider event)."""

    title: str
    start_time: datetime
    end_time: datetime


class SlotRecommender:
    """
    Suggest candidate slots for a booking intent.

    Args:
        completion_service: LLM-backed suggester, or None to always use the
            deterministic path
        timezone: IANA name used to interpret stated days and times
    """

    def __init__(
        self,
        completion_service: CompletionService | None = None,
        timezone: str | None = None,
    ):
        self.completion_service = completion_service
        self.tz = ZoneInfo(timezone or settings.DEFAULT_TIMEZONE)

    async def suggest(
        self,
        intent: BookingIntent,
        existing_bookings: Sequence[Commitment],
        now: datetime | None = None,
    ) -> list[TimeSlot]:
        now_local = self._localize_now(now)

        if self.completion_service is not None and not intent.preferred_time:
            try:
                slots = await self._suggest_with_completion(intent, existing_bookings, now_local)
            except CompletionServiceError as e:
                logger.warning("Slot suggestion call failed, using fallback", error=str(e))
                slots = []

            if slots:
                logger.info("Slots suggested", path="completion", slot_count=len(slots))
                return slots

        slot = self.deterministic_slot(intent, now_local)
        logger.info("Slots suggested", path="deterministic", slot_count=1)
        return [slot]

    # =================================================================
    # DETERMINISTIC PATH
    # =================================================================

    def deterministic_slot(self, intent: BookingIntent, now: datetime | None = None) -> TimeSlot:
        """Build the single fallback slot from the intent's stated day and time."""
        now_local = self._localize_now(now)
        hour, minute = parse_preferred_time(intent.preferred_time)
        day = resolve_preferred_day(intent.preferred_day, now_local, hour, minute)

        start = datetime.combine(day, time(hour, minute), tzinfo=self.tz)
        end = start + timedelta(minutes=intent.duration_minutes)
        return TimeSlot(start=start, end=end, label=format_slot_label(start))

    # =================================================================
    # COMPLETION PATH
    # =================================================================

    async def _suggest_with_completion(
        self,
        intent: BookingIntent,
        existing_bookings: Sequence[Commitment],
        now: datetime,
    ) -> list[TimeSlot]:
        bookings_payload = [
            {
                "title": booking.title,
                "start": as_utc(booking.start_time).isoformat(),
                "end": as_utc(booking.end_time).isoformat(),
            }
            for booking in existing_bookings
        ]
        prompt = USER_PROMPT_TEMPLATE.format(
            now=now.isoformat(),
            timezone=self.tz.key,
            intent=intent.model_dump_json(),
            bookings=json.dumps(bookings_payload),
            start_hour=BUSINESS_HOURS_START,
            end_hour=BUSINESS_HOURS_END,
            buffer=int(CONFLICT_BUFFER.total_seconds() // 60),
            duration=intent.duration_minutes,
        )

        raw = await self.completion_service.complete_json(
            SYSTEM_PROMPT, prompt, temperature=SUGGESTION_TEMPERATURE
        )
        return self._accept_slots(raw, existing_bookings, now)

    def _accept_slots(
        self,
        raw: dict[str, Any],
        existing_bookings: Sequence[Commitment],
        now: datetime,
    ) -> list[TimeSlot]:
        """Keep only future, well-formed slots that clear existing commitments."""
        candidates = raw.get("time_slots", raw.get("timeSlots"))
        if not isinstance(candidates, list):
            logger.warning("Slot suggestion missing time_slots list", keys=sorted(raw.keys()))
            return []

        accepted: list[TimeSlot] = []
        rejected = 0
        for candidate in candidates:
            try:
                slot = TimeSlot.model_validate(candidate)
            except ValidationError:
                rejected += 1
                continue

            slot = TimeSlot(
                start=self._localize(slot.start),
                end=self._localize(slot.end),
                label=slot.label,
            )
            if slot.start <= now or _conflicts(slot, existing_bookings):
                rejected += 1
                continue

            accepted.append(slot)
            if len(accepted) == MAX_SUGGESTIONS:
                break

        if rejected:
            logger.info("Dropped unusable suggested slots", rejected=rejected)
        return accepted

    def _localize(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)

    def _localize_now(self, now: datetime | None) -> datetime:
        if now is None:
            return datetime.now(self.tz)
        return self._localize(now)


def _conflicts(slot: TimeSlot, existing_bookings: Sequence[Commitment]) -> bool:
    for booking in existing_bookings:
        busy_start = as_utc(booking.start_time) - CONFLICT_BUFFER
        busy_end = as_utc(booking.end_time) + CONFLICT_BUFFER
        if as_utc(slot.start) < busy_end and as_utc(slot.end) > busy_start:
            return True
    return False


def parse_preferred_time(text: str | None) -> tuple[int, int]:
    """
    Parse a stated time into (hour, minute).

    Understands "2pm", "2:30 pm", "10:30 a.m.", "14:30", "noon" and "midnight";
    anything else yields 14:00.
    """
    if not text:
        return DEFAULT_HOUR, DEFAULT_MINUTE

    normalized = text.strip().lower()

    match = _TWELVE_HOUR_PATTERN.search(normalized)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        if 1 <= hour <= 12 and minute < 60:
            hour = hour % 12
            if match.group(3) == "p":
                hour += 12
            return hour, minute

    match = _TWENTY_FOUR_HOUR_PATTERN.search(normalized)
    if match:
        return int(match.group(1)), int(match.group(2))

    if "noon" in normalized or "midday" in normalized:
        return 12, 0
    if "midnight" in normalized:
        return 0, 0

    return DEFAULT_HOUR, DEFAULT_MINUTE


def resolve_preferred_day(text: str | None, now: datetime, hour: int, minute: int) -> date:
    """
    Resolve a stated day to a calendar date strictly after ``now`` at hour:minute.

    A weekday name means its next occurrence, always one to seven days ahead.
    "today" is honored only while the time is still ahead. Unknown or missing
    days fall back to tomorrow.
    """
    today = now.date()
    tomorrow = today + timedelta(days=1)
    if not text:
        return tomorrow

    words = _WORD_PATTERN.findall(text.lower())

    if "today" in words or "tonight" in words:
        candidate = datetime.combine(today, time(hour, minute), tzinfo=now.tzinfo)
        return today if candidate > now else tomorrow
    if "tomorrow" in words:
        return tomorrow

    target = _match_weekday(words)
    if target is None:
        return tomorrow

    days_ahead = (target - today.weekday()) % 7 or 7
    return today + timedelta(days=days_ahead)


def _match_weekday(words: list[str]) -> int | None:
    for word in words:
        if word in WEEKDAYS:
            return WEEKDAYS.index(word)
        if word in WEEKDAY_ALIASES:
            return WEEKDAY_ALIASES[word]

    for word in words:
        if len(word) < 5:
            continue
        matches = get_close_matches(word, WEEKDAYS, n=1, cutoff=WEEKDAY_MATCH_CUTOFF)
        if matches:
            return WEEKDAYS.index(matches[0])
    return None


def format_slot_label(start: datetime) -> str:
    """Format like "Tuesday, Oct 20 at 2:00 PM"."""
    hour_12 = start.hour % 12 or 12
    meridiem = "AM" if start.hour < 12 else "PM"
    return f"{start:%A}, {start:%b} {start.day} at {hour_12}:{start.minute:02d} {meridiem}"
