"""LLM-backed lesson content generation."""

import json
import re
from collections.abc import Sequence
from typing import Any

import openai
import structlog
from openai import AsyncOpenAI

from spanish_tutor.errors import ParseFailure, UpstreamFailure
from spanish_tutor.lessons.prompt_engine import PromptEngine, get_prompt_engine

logger = structlog.get_logger()

_CODE_FENCE = re.compile(r"```(?:json)?\n?")


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences the model may wrap around its JSON."""
    return _CODE_FENCE.sub("", text).strip()


def parse_lesson_text(text: str) -> Any:
    """Parse generated text as JSON. No repair is attempted.

    Raises:
        ParseFailure: The cleaned text is not valid JSON.
    """
    cleaned = strip_code_fences(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning("lesson_parse_failed", error=str(e), text=cleaned[:500])
        raise ParseFailure(f"Failed to generate lesson: AI returned invalid JSON ({e})") from e


class LessonGenerator:
    """Generates stage-shaped lesson JSON through an OpenAI-compatible API.

    Args:
        api_key: API key for the generation endpoint.
        model: Model identifier.
        base_url: Optional OpenAI-compatible endpoint (e.g. Gemini's).
        temperature: Sampling temperature.
        max_tokens: Response token cap.
        timeout: Request timeout in seconds.
        max_retries: SDK-level retries; 0 disables them.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        *,
        base_url: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 2048,
        timeout: float = 60.0,
        max_retries: int = 0,
        prompt_engine: PromptEngine | None = None,
    ):
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.prompt_engine = prompt_engine or get_prompt_engine()

    async def close(self) -> None:
        await self.client.close()

    async def generate(
        self,
        stage: int,
        words_learned: Sequence[str] = (),
        mistakes: Sequence[str] = (),
    ) -> Any:
        """Generate lesson content for ``stage``.

        The parsed JSON is returned as-is; its shape is not checked.

        Raises:
            UpstreamFailure: The API call failed or returned no text.
            ParseFailure: The returned text is not valid JSON.
        """
        prompt = self.prompt_engine.build_prompt(stage, words_learned, mistakes)
        logger.info("lesson_generation_started", stage=stage, model=self.model)

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.APIStatusError as e:
            logger.error("lesson_generation_upstream_error", status=e.status_code, error=str(e))
            raise UpstreamFailure(
                f"Failed to generate lesson from AI: {e.status_code} - {e.message}"
            ) from e
        except openai.APIError as e:
            logger.error("lesson_generation_upstream_error", error=str(e))
            raise UpstreamFailure(f"Failed to generate lesson from AI: {e}") from e

        try:
            text = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError):
            text = None
        if not text:
            logger.error("lesson_generation_empty_response", stage=stage)
            raise UpstreamFailure("Invalid response from AI")

        content = parse_lesson_text(text)
        logger.info("lesson_generation_complete", stage=stage)
        return content
