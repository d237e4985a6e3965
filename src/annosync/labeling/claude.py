"""Labeling backend on the Claude API."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, cast

import anthropic

from annosync.errors import LabelingError
from annosync.labeling.parse import parse_labeling_response
from annosync.labeling.prompt import build_labeling_prompt

if TYPE_CHECKING:
    from annosync.config import LlmConfig
    from annosync.labeling.base import LabelingResult
    from annosync.models.labels import LabelCatalog

logger = logging.getLogger(__name__)


class ClaudeLabeler:
    """Labels text by asking Claude for highlights in JSON.

    Uses the async Anthropic client for non-blocking API calls.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-sonnet-4-20250514",
        max_tokens: int = 4096,
        temperature: float = 0.3,
    ) -> None:
        """Initialize the labeler.

        Args:
            api_key: Anthropic API key. If not provided, reads from ANTHROPIC_API_KEY.
            model: Model identifier to use.
            max_tokens: Upper bound on the response length.
            temperature: Sampling temperature.

        Raises:
            ValueError: If no API key is available.
        """
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise ValueError("API key required. Set ANTHROPIC_API_KEY or pass api_key.")

        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = anthropic.AsyncAnthropic(api_key=self.api_key)

    @classmethod
    def from_config(cls, config: LlmConfig) -> ClaudeLabeler:
        return cls(
            api_key=config.api_key.get_secret_value() or None,
            model=config.model,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
        )

    async def label(self, text: str, catalog: LabelCatalog) -> LabelingResult:
        """Label ``text`` against ``catalog``.

        Raises:
            LabelingError: On API errors or an empty, non-text or
                unparsable response.
        """
        prompt = build_labeling_prompt(text, catalog)
        try:
            response = await self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as exc:
            msg = f"Claude API error: {exc}"
            raise LabelingError(msg) from exc

        if not response.content:
            raise LabelingError("Empty response from Claude API")

        first_block = response.content[0]
        if not isinstance(first_block, anthropic.types.TextBlock):
            raise LabelingError(f"Unexpected response type: {first_block.type}")

        # Type guard: we've verified it's a text block above
        response_text = cast("str", first_block.text)
        logger.debug("Labeling response: %d chars", len(response_text))
        return parse_labeling_response(response_text, catalog)
