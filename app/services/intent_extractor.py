"""
Intent extraction: free-text booking request -> validated BookingIntent.
"""

from pydantic import ValidationError

from app.infrastructure.observability.logging import get_logger
from app.models.domain.booking_domain import BookingIntent
from app.services.openai_service import CompletionService, CompletionServiceError

logger = get_logger(__name__)

REPHRASE_MESSAGE = "Failed to parse booking request. Please try rephrasing your message."

SYSTEM_PROMPT = (
    "You are a scheduling assistant that extracts booking information from natural "
    "language and returns valid JSON."
)

USER_PROMPT_TEMPLATE = """You are a personal AI scheduling assistant. Parse the following booking request and return structured JSON data.

User message: "{message}"

Extract the following information and return it as JSON:
- event_type: What type of event/meeting (e.g., "meeting", "lunch", "call", "appointment")
- preferred_day: The day mentioned (e.g., "Monday", "next Tuesday", "tomorrow")
- preferred_time: Specific time mentioned (e.g., "10:30 AM", "afternoon")
- time_window: Time range or window (e.g., "after 2pm", "morning", "evening")
- location: Location mentioned (e.g., "conference room", "Zoom", "coffee shop")
- duration_minutes: Estimated duration in minutes (default 60 if not specified)
- invitees: Array of people mentioned by name
- notes: Any additional context or requirements

Return only valid JSON in this exact format:
{{
  "event_type": "string",
  "preferred_day": "string or null",
  "preferred_time": "string or null",
  "time_window": "string or null",
  "location": "string or null",
  "duration_minutes": number,
  "invitees": ["string array"],
  "notes": "string or null"
}}"""

EXTRACTION_TEMPERATURE = 0.1
MAX_MESSAGE_LENGTH = 2000


class IntentParseError(Exception):
    """The request could not be turned into a BookingIntent; the user should rephrase."""

    def __init__(self, message: str = REPHRASE_MESSAGE, reason: str | None = None):
        super().__init__(message)
        self.reason = reason


class IntentExtractor:
    """Single completion call plus schema validation. No retries."""

    def __init__(self, completion_service: CompletionService | None):
        self.completion_service = completion_service

    async def extract(self, message: str) -> BookingIntent:
        """
        Parse a booking request.

        Args:
            message: The user's free-text request

        Returns:
            BookingIntent: Validated intent

        Raises:
            IntentParseError: If the message is empty, the completion service is
                unavailable or fails, or its output does not match the schema
        """
        text = (message or "").strip()
        if not text:
            raise IntentParseError(reason="empty_message")
        if self.completion_service is None:
            raise IntentParseError(reason="completion_service_not_configured")

        try:
            raw = await self.completion_service.complete_json(
                SYSTEM_PROMPT,
                USER_PROMPT_TEMPLATE.format(message=text[:MAX_MESSAGE_LENGTH]),
                temperature=EXTRACTION_TEMPERATURE,
            )
        except CompletionServiceError as e:
            logger.warning("Intent extraction call failed", error=str(e))
            raise IntentParseError(reason="completion_failed") from e

        try:
            intent = BookingIntent.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                "Intent extraction returned invalid schema",
                error_count=e.error_count(),
                fields=sorted(raw.keys()),
            )
            raise IntentParseError(reason="schema_mismatch") from e

        logger.info(
            "Booking intent extracted",
            event_type=intent.event_type,
            has_day=intent.preferred_day is not None,
            has_time=intent.preferred_time is not None,
            invitee_count=len(intent.invitees),
        )
        return intent
