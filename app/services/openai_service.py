# app/services/openai_service.py
"""
OpenAI completion service.
One call type: send a system and user prompt, get back a strict JSON object.
Used by the intent extractor and the slot recommender.
"""

import json
from functools import lru_cache
from typing import Any, Protocol

import openai
from openai import AsyncOpenAI

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class CompletionServiceError(Exception):
    """Completion call failed or returned something other than a JSON object."""

    def __init__(self, message: str, api_error: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.api_error = api_error
        self.recoverable = recoverable


class CompletionService(Protocol):
    async def complete_json(
        self, system_prompt: str, user_prompt: str, temperature: float = 0.3
    ) -> dict[str, Any]: ...


class OpenAICompletionService:
    """
    JSON-mode chat completions over the OpenAI async client.

    No retries: a failed call surfaces immediately so callers can fall back
    (slot recommender) or ask the user to rephrase (intent extractor).
    """

    def __init__(self, api_key: str | None = None, model: str | None = None, client=None):
        api_key = api_key or settings.OPENAI_API_KEY
        if client is None and not api_key:
            raise CompletionServiceError("OPENAI_API_KEY not configured", recoverable=False)

        self.model = model or settings.OPENAI_MODEL
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            timeout=settings.OPENAI_TIMEOUT_SECONDS,
        )
        logger.info(
            "OpenAI client initialized",
            model=self.model,
            timeout=settings.OPENAI_TIMEOUT_SECONDS,
        )

    async def complete_json(
        self, system_prompt: str, user_prompt: str, temperature: float = 0.3
    ) -> dict[str, Any]:
        """
        Run one completion and decode its JSON object.

        Args:
            system_prompt: Instruction template
            user_prompt: User-specific content
            temperature: Sampling temperature

        Returns:
            dict: Decoded JSON object

        Raises:
            CompletionServiceError: On API failure, empty output, or non-object JSON
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                response_format={"type": "json_object"},
            )
        except openai.APIError as e:
            logger.warning(
                "OpenAI API call failed",
                error=str(e),
                error_type=type(e).__name__,
                status_code=getattr(e, "status_code", None),
            )
            raise CompletionServiceError("Completion request failed", api_error=str(e)) from e

        if not response.choices or not response.choices[0].message.content:
            raise CompletionServiceError("Empty response from completion service")

        raw = response.choices[0].message.content.strip()
        logger.debug(
            "OpenAI API call successful",
            response_length=len(raw),
            usage_tokens=response.usage.total_tokens if response.usage else 0,
        )

        try:
            result = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Completion returned invalid JSON", raw_result=raw[:200])
            raise CompletionServiceError("Completion returned invalid JSON") from e

        if not isinstance(result, dict):
            raise CompletionServiceError("Completion returned JSON that is not an object")
        return result


@lru_cache
def get_completion_service() -> CompletionService | None:
    """Shared completion service, or None when no API key is configured."""
    if not settings.OPENAI_API_KEY:
        logger.info("OpenAI not configured; LLM-backed features use fallbacks")
        return None
    return OpenAICompletionService()
