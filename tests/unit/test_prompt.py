"""Tests for labeling prompt assembly."""

from __future__ import annotations

from annosync.labeling.prompt import build_labeling_prompt, substitute_text
from annosync.models.labels import LabelCatalog, LabelConfig


class TestSubstituteText:
    def test_placeholder_replaced(self) -> None:
        assert substitute_text("Read: {{text}}!", "hello") == "Read: hello!"

    def test_case_insensitive(self) -> None:
        assert substitute_text("{{TEXT}} / {{Text}}", "x") == "x / x"

    def test_backslashes_kept_literally(self) -> None:
        assert substitute_text("{{text}}", r"a\1b") == r"a\1b"


class TestBuildLabelingPrompt:
    def test_contains_text_and_labels(self, catalog: LabelCatalog) -> None:
        prompt = build_labeling_prompt("Cats are mammals.", catalog)

        assert "Cats are mammals." in prompt
        assert "{{text}}" not in prompt
        for label in catalog:
            assert f"- {label.id} ({label.name})" in prompt
        assert '"sourceHighlightId"' in prompt

    def test_custom_catalog(self) -> None:
        catalog = LabelCatalog(
            [LabelConfig(id="premise", name="Premise", color="#112233")]
        )
        prompt = build_labeling_prompt("x", catalog)
        assert "- premise (Premise)" in prompt
        assert "- claim" not in prompt

    def test_braces_in_text_survive(self, catalog: LabelCatalog) -> None:
        prompt = build_labeling_prompt('{"a": 1} {{text}}', catalog)
        assert '{"a": 1}' in prompt
