"""Tests for DocumentAnnotator."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from annosync.engine.annotator import DocumentAnnotator
from annosync.engine.extractor import MarkExtractor
from annosync.models.annotation import Highlight, LocatedHighlight
from annosync.models.document import EntityMark, document_from_text
from tests.helpers.documents import block_runs, bold, doc, entity, paragraph, text

if TYPE_CHECKING:
    import pytest

    from annosync.engine.registry import HighlightRegistry


class TestOverlap:
    def test_overlapping_highlights_split_runs(self) -> None:
        """Overlaps produce one node per constant set of active highlights."""
        document = document_from_text("Evidence supports claims.")
        result = DocumentAnnotator().apply(
            document,
            [
                Highlight("a", "evidence", "Evidence supports"),
                Highlight("b", "claim", "supports claims"),
            ],
        )
        assert block_runs(result, 0) == [
            ("Evidence ", {"a"}),
            ("supports", {"a", "b"}),
            (" claims", {"b"}),
            (".", set()),
        ]

    def test_marks_ordered_by_start(self) -> None:
        document = document_from_text("Evidence supports claims.")
        result = DocumentAnnotator().apply(
            document,
            [
                Highlight("b", "claim", "supports claims"),
                Highlight("a", "evidence", "Evidence supports"),
            ],
        )
        middle = result.content[0].content[1]  # type: ignore[index]
        assert middle.marks == [EntityMark("a", "evidence"), EntityMark("b", "claim")]

    def test_nested_highlight(self) -> None:
        document = document_from_text("The quick brown fox")
        result = DocumentAnnotator().apply(
            document,
            [
                Highlight("outer", "claim", "The quick brown fox"),
                Highlight("inner", "evidence", "quick"),
            ],
        )
        assert block_runs(result, 0) == [
            ("The ", {"outer"}),
            ("quick", {"outer", "inner"}),
            (" brown fox", {"outer"}),
        ]


class TestApply:
    def test_cats_scenario(self, registry: HighlightRegistry) -> None:
        """A backend highlight is marked and extracted back unchanged."""
        document = document_from_text("Cats are mammals. They have fur.")
        highlight = Highlight("h1", "claim", "Cats are mammals")

        result = DocumentAnnotator().apply(document, [highlight])

        first = result.content[0].content[0]  # type: ignore[index]
        assert first.text == "Cats are mammals"
        assert first.marks == [EntityMark("h1", "claim")]
        extracted = MarkExtractor(registry).extract(result)
        assert [h.highlight for h in extracted] == [highlight]

    def test_round_trip_across_paragraphs(self, registry: HighlightRegistry) -> None:
        document = document_from_text(
            "Cats are mammals. They have fur.\nDogs bark loudly. Birds can fly."
        )
        highlights = [
            Highlight("h1", "claim", "Cats are mammals"),
            Highlight("h2", "evidence", "They have fur"),
            Highlight("h3", "question", "Birds can fly"),
        ]

        result = DocumentAnnotator().apply(document, highlights)

        assert block_runs(result, 0) == [
            ("Cats are mammals", {"h1"}),
            (". ", set()),
            ("They have fur", {"h2"}),
            (".", set()),
        ]
        assert block_runs(result, 1) == [
            ("Dogs bark loudly. ", set()),
            ("Birds can fly", {"h3"}),
            (".", set()),
        ]
        extracted = MarkExtractor(registry).extract(result)
        assert [h.highlight for h in extracted] == highlights

    def test_idempotent(self) -> None:
        annotator = DocumentAnnotator()
        highlights = [
            Highlight("a", "evidence", "Evidence supports"),
            Highlight("b", "claim", "supports claims"),
        ]
        document = document_from_text("Evidence supports claims.")
        once = annotator.apply(document, highlights)
        twice = annotator.apply(once, highlights)
        assert twice == once

    def test_input_not_mutated(self) -> None:
        document = document_from_text("Cats are mammals.")
        before = document.to_json()
        DocumentAnnotator().apply(document, [Highlight("h1", "claim", "Cats")])
        assert document.to_json() == before

    def test_other_marks_preserved(self) -> None:
        document = doc(paragraph(text("Cats are mammals", bold())))
        result = DocumentAnnotator().apply(document, [Highlight("h1", "claim", "are")])
        assert [n.marks for n in result.content[0].content] == [  # type: ignore[index]
            [bold()],
            [bold(), EntityMark("h1", "claim")],
            [bold()],
        ]

    def test_unmanaged_entity_marks_untouched(self) -> None:
        document = doc(
            paragraph(text("Cats", entity("other", "question")), text(" purr"))
        )
        result = DocumentAnnotator().apply(document, [Highlight("h1", "claim", "purr")])
        assert block_runs(result, 0) == [
            ("Cats", {"other"}),
            (" ", set()),
            ("purr", {"h1"}),
        ]

    def test_existing_mark_range_wins_over_text(self) -> None:
        """A highlight keeps the range its id already covers."""
        document = doc(paragraph(text("cat "), text("cat", entity("h1", "claim"))))
        highlight = Highlight("h1", "evidence", "cat")
        result = DocumentAnnotator().apply(document, [highlight])
        assert block_runs(result, 0) == [
            ("cat ", set()),
            ("cat", {"h1"}),
        ]
        marked = result.content[0].content[1]  # type: ignore[index]
        assert marked.marks == [EntityMark("h1", "evidence")]

    def test_position_hint_used_when_text_agrees(self) -> None:
        document = document_from_text("cat and cat")
        hint = LocatedHighlight(Highlight("h1", "claim", "cat"), 8, 11)
        result = DocumentAnnotator().apply(document, [hint])
        assert block_runs(result, 0) == [
            ("cat and ", set()),
            ("cat", {"h1"}),
        ]

    def test_stale_hint_falls_back_to_locator(self) -> None:
        document = document_from_text("cat and cat")
        hint = LocatedHighlight(Highlight("h1", "claim", "cat"), 2, 5)
        result = DocumentAnnotator().apply(document, [hint])
        assert block_runs(result, 0)[0] == ("cat", {"h1"})

    def test_highlight_placed_in_matching_block(self) -> None:
        document = document_from_text("Dogs bark.\nCats purr.")
        highlight = Highlight("h1", "claim", "Cats purr")
        result = DocumentAnnotator().apply(document, [highlight])
        assert block_runs(result, 0) == [("Dogs bark.", set())]
        assert block_runs(result, 1) == [
            ("Cats purr", {"h1"}),
            (".", set()),
        ]

    def test_unlocatable_highlight_skipped(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        document = document_from_text("Cats are mammals.")
        with caplog.at_level(logging.WARNING, logger="annosync.engine.annotator"):
            result = DocumentAnnotator().apply(
                document,
                [
                    Highlight("gone", "claim", "zebras"),
                    Highlight("h1", "claim", "Cats"),
                ],
            )
        assert block_runs(result, 0)[0] == ("Cats", {"h1"})
        assert "gone" in caplog.text

    def test_strip_marks(self) -> None:
        document = doc(
            paragraph(
                text("Cats", entity("a")),
                text(" are", entity("b")),
                text(" here"),
            )
        )
        result = DocumentAnnotator().strip_marks(document, ["a"])
        assert block_runs(result, 0) == [
            ("Cats", set()),
            (" are", {"b"}),
            (" here", set()),
        ]

    def test_cross_block_mark_truncated_to_first_block(self) -> None:
        document = doc(
            paragraph(text("One", entity("a"))),
            paragraph(text("Two", entity("a"))),
        )
        result = DocumentAnnotator().apply(document, [Highlight("a", "claim", "One")])
        assert block_runs(result, 0) == [("One", {"a"})]
        assert block_runs(result, 1) == [("Two", set())]
