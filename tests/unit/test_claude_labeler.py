"""Tests for the Claude labeling backend."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import pytest
from anthropic.types import TextBlock, ToolUseBlock

from annosync.config import LlmConfig
from annosync.errors import LabelingError
from annosync.labeling.claude import ClaudeLabeler
from annosync.models.labels import LabelCatalog

ANSWER = json.dumps(
    {
        "highlights": [{"id": "1", "labelType": "claim", "text": "Cats are mammals"}],
        "relationships": [],
    }
)


def _response(*blocks: object) -> MagicMock:
    response = MagicMock()
    response.content = list(blocks)
    return response


class TestClaudeLabelerInit:
    """Construction and API key handling."""

    def test_init_with_api_key(self) -> None:
        labeler = ClaudeLabeler(api_key="test-key")
        assert labeler.api_key == "test-key"

    def test_init_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")
        assert ClaudeLabeler().api_key == "env-key"

    def test_init_no_key_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(ValueError, match="API key"):
            ClaudeLabeler()

    def test_from_config(self) -> None:
        config = LlmConfig(api_key="cfg-key", model="claude-test", temperature=0.1)
        labeler = ClaudeLabeler.from_config(config)
        assert labeler.api_key == "cfg-key"
        assert labeler.model == "claude-test"
        assert labeler.temperature == 0.1
        assert labeler.max_tokens == 4096


class TestLabel:
    """Calls to the messages API and handling of its answers."""

    @pytest.fixture
    def create(self):
        """Mock for ``AsyncAnthropic().messages.create``."""
        with patch("annosync.labeling.claude.anthropic.AsyncAnthropic") as client:
            client.return_value.messages.create = AsyncMock()
            yield client.return_value.messages.create

    @pytest.mark.asyncio
    async def test_label_returns_parsed_highlights(
        self, create: AsyncMock, catalog: LabelCatalog
    ) -> None:
        create.return_value = _response(TextBlock(type="text", text=ANSWER))
        labeler = ClaudeLabeler(api_key="test-key", model="claude-test")

        result = await labeler.label("Cats are mammals.", catalog)

        assert [h.text for h in result.highlights] == ["Cats are mammals"]
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["max_tokens"] == 4096
        assert kwargs["temperature"] == 0.3
        assert "Cats are mammals." in kwargs["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_api_error_wrapped(
        self, create: AsyncMock, catalog: LabelCatalog
    ) -> None:
        create.side_effect = anthropic.APIConnectionError(request=MagicMock())
        labeler = ClaudeLabeler(api_key="test-key")
        with pytest.raises(LabelingError, match="Claude API error"):
            await labeler.label("x", catalog)

    @pytest.mark.asyncio
    async def test_empty_response_raises(
        self, create: AsyncMock, catalog: LabelCatalog
    ) -> None:
        create.return_value = _response()
        labeler = ClaudeLabeler(api_key="test-key")
        with pytest.raises(LabelingError, match="Empty response"):
            await labeler.label("x", catalog)

    @pytest.mark.asyncio
    async def test_non_text_block_raises(
        self, create: AsyncMock, catalog: LabelCatalog
    ) -> None:
        create.return_value = _response(
            ToolUseBlock(type="tool_use", id="toolu_1", name="f", input={})
        )
        labeler = ClaudeLabeler(api_key="test-key")
        with pytest.raises(LabelingError, match="Unexpected response type"):
            await labeler.label("x", catalog)

    @pytest.mark.asyncio
    async def test_unparsable_text_raises(
        self, create: AsyncMock, catalog: LabelCatalog
    ) -> None:
        create.return_value = _response(TextBlock(type="text", text="no idea"))
        labeler = ClaudeLabeler(api_key="test-key")
        with pytest.raises(LabelingError):
            await labeler.label("x", catalog)
