"""Tests for highlights, relationships and the session record."""

from __future__ import annotations

import pytest

from annosync.models.annotation import (
    Highlight,
    LocatedHighlight,
    Relationship,
    SyncRecord,
    merge_highlights,
    parse_highlights,
    prune_relationships,
)


class TestHighlight:
    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-empty"):
            Highlight("", "claim", "text")

    def test_json_shape(self) -> None:
        assert Highlight("h1", "claim", "Cats").to_json() == {
            "id": "h1",
            "labelType": "claim",
            "text": "Cats",
        }

    def test_from_json_accepts_legacy_attrs(self) -> None:
        """Older payloads carry the label under attrs."""
        highlight = Highlight.from_json(
            {"id": "h1", "text": "Cats", "attrs": {"type": "evidence"}}
        )
        assert highlight.label_type == "evidence"

    def test_located_highlight_exposes_positions(self) -> None:
        located = LocatedHighlight(Highlight("h1", "claim", "Cats"), 0, 4)
        assert located.to_json()["startIndex"] == 0
        assert located.to_json()["endIndex"] == 4
        assert located.id == "h1"


class TestParseHighlights:
    def test_drops_missing_ids_and_duplicates(self) -> None:
        items = [
            {"id": "a", "labelType": "claim", "text": "x"},
            {"labelType": "claim", "text": "no id"},
            {"id": "a", "labelType": "evidence", "text": "dup"},
        ]
        assert parse_highlights(items) == [Highlight("a", "claim", "x")]

    def test_positions_kept_only_on_request(self) -> None:
        items = [
            {
                "id": "a",
                "labelType": "claim",
                "text": "x",
                "startIndex": 3,
                "endIndex": 4,
            }
        ]
        assert parse_highlights(items) == [Highlight("a", "claim", "x")]
        assert parse_highlights(items, keep_positions=True) == [
            LocatedHighlight(Highlight("a", "claim", "x"), 3, 4)
        ]


class TestMergeHighlights:
    """Merging by id keeps order and only overwrites with non-empty values."""

    def test_known_id_takes_new_label(self) -> None:
        existing = [Highlight("a", "claim", "Cats")]
        merged = merge_highlights(existing, [Highlight("a", "evidence", "Cats")])
        assert merged == [Highlight("a", "evidence", "Cats")]

    def test_empty_incoming_label_keeps_old(self) -> None:
        existing = [Highlight("a", "claim", "Cats")]
        merged = merge_highlights(existing, [Highlight("a", "", "Cats!")])
        assert merged == [Highlight("a", "claim", "Cats!")]

    def test_new_ids_appended_in_order(self) -> None:
        existing = [Highlight("b", "claim", "B")]
        merged = merge_highlights(
            existing, [Highlight("c", "claim", "C"), Highlight("a", "claim", "A")]
        )
        assert [h.id for h in merged] == ["b", "c", "a"]


class TestRelationships:
    def test_prune_drops_dangling_self_loops_and_duplicates(self) -> None:
        rels = [
            Relationship("a", "b"),
            Relationship("a", "missing"),
            Relationship("b", "b"),
            Relationship("a", "b"),
            Relationship("b", "a"),
        ]
        assert prune_relationships(rels, ["a", "b"]) == [
            Relationship("a", "b"),
            Relationship("b", "a"),
        ]

    def test_json_round_trip(self) -> None:
        rel = Relationship("a", "b")
        assert rel.to_json() == {"sourceHighlightId": "a", "targetHighlightId": "b"}
        assert Relationship.from_json(rel.to_json()) == rel


class TestSyncRecord:
    def test_without_highlight_cascades_relationships(self) -> None:
        """Deleting a highlight removes every relationship touching it."""
        record = SyncRecord(
            highlights=[
                Highlight("a", "claim", "A"),
                Highlight("b", "evidence", "B"),
                Highlight("c", "question", "C"),
            ],
            relationships=[
                Relationship("a", "b"),
                Relationship("b", "c"),
                Relationship("c", "a"),
            ],
        )
        result = record.without_highlight("b")
        assert result.highlight_ids() == ["a", "c"]
        assert result.relationships == [Relationship("c", "a")]
        # the original record is left alone
        assert len(record.highlights) == 3

    def test_json_round_trip(self) -> None:
        record = SyncRecord(
            highlights=[Highlight("a", "claim", "A")],
            relationships=[],
            id="rec-1",
        )
        assert SyncRecord.from_json(record.to_json()) == record
