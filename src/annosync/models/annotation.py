"""Highlights, relationships and the persisted sync record."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from annosync.models.document import Node, empty_document, parse_document

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Highlight:
    """A labeled span identified by id and text, with no position."""

    id: str
    label_type: str
    text: str

    def __post_init__(self) -> None:
        if not self.id:
            msg = "Highlight id must be a non-empty string"
            raise ValueError(msg)

    def with_label(self, label_type: str) -> Highlight:
        return replace(self, label_type=label_type)

    def to_json(self) -> dict[str, Any]:
        return {"id": self.id, "labelType": self.label_type, "text": self.text}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Highlight:
        """Read a highlight, accepting legacy ``attrs.labelType``/``attrs.type``."""
        attrs = data.get("attrs") or {}
        label = data.get("labelType") or attrs.get("labelType") or attrs.get("type")
        return cls(
            id=str(data.get("id") or attrs.get("id") or ""),
            label_type=label or "",
            text=data.get("text") or "",
        )


@dataclass(frozen=True)
class LocatedHighlight:
    """A highlight plus verified offsets into the current full text.

    Offsets are only meaningful for the document they were computed
    against and are never stored as ground truth.
    """

    highlight: Highlight
    start: int
    end: int

    @property
    def id(self) -> str:
        return self.highlight.id

    @property
    def label_type(self) -> str:
        return self.highlight.label_type

    @property
    def text(self) -> str:
        return self.highlight.text

    def to_json(self) -> dict[str, Any]:
        return {
            **self.highlight.to_json(),
            "startIndex": self.start,
            "endIndex": self.end,
        }


type AnyHighlight = Highlight | LocatedHighlight


def as_highlight(item: AnyHighlight) -> Highlight:
    return item.highlight if isinstance(item, LocatedHighlight) else item


@dataclass(frozen=True)
class Relationship:
    """Directed edge between two highlight ids."""

    source_highlight_id: str
    target_highlight_id: str

    @property
    def is_self_loop(self) -> bool:
        return self.source_highlight_id == self.target_highlight_id

    def touches(self, highlight_id: str) -> bool:
        return highlight_id in (self.source_highlight_id, self.target_highlight_id)

    def to_json(self) -> dict[str, str]:
        return {
            "sourceHighlightId": self.source_highlight_id,
            "targetHighlightId": self.target_highlight_id,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Relationship:
        return cls(
            source_highlight_id=str(data.get("sourceHighlightId") or ""),
            target_highlight_id=str(data.get("targetHighlightId") or ""),
        )


def parse_highlights(
    items: Iterable[dict[str, Any]], *, keep_positions: bool = False
) -> list[AnyHighlight]:
    """Parse a JSON highlight list, dropping entries without an id.

    With ``keep_positions``, entries carrying integer ``startIndex`` and
    ``endIndex`` come back as ``LocatedHighlight`` hints.
    """
    result: list[AnyHighlight] = []
    seen: set[str] = set()
    for item in items:
        try:
            highlight = Highlight.from_json(item)
        except ValueError:
            logger.warning("Dropping highlight without id: %r", item)
            continue
        if highlight.id in seen:
            logger.debug("Dropping duplicate highlight id %s", highlight.id)
            continue
        seen.add(highlight.id)
        start, end = item.get("startIndex"), item.get("endIndex")
        if keep_positions and isinstance(start, int) and isinstance(end, int):
            result.append(LocatedHighlight(highlight, start, end))
        else:
            result.append(highlight)
    return result


def merge_highlights(
    existing: Sequence[Highlight], incoming: Iterable[Highlight]
) -> list[Highlight]:
    """Merge two highlight lists by id.

    Existing order is kept. An incoming entry replaces the label and text
    of a known id only where its own values are non-empty; unknown ids are
    appended in arrival order.
    """
    merged = {h.id: h for h in existing}
    order = [h.id for h in existing]
    for new in incoming:
        old = merged.get(new.id)
        if old is None:
            merged[new.id] = new
            order.append(new.id)
            continue
        merged[new.id] = Highlight(
            id=old.id,
            label_type=new.label_type or old.label_type,
            text=new.text or old.text,
        )
    return [merged[i] for i in order]


def prune_relationships(
    relationships: Iterable[Relationship], highlight_ids: Iterable[str]
) -> list[Relationship]:
    """Drop dangling edges, self-loops and duplicates, keeping order."""
    known = set(highlight_ids)
    seen: set[Relationship] = set()
    result: list[Relationship] = []
    for rel in relationships:
        if rel.is_self_loop or rel in seen:
            continue
        if rel.source_highlight_id not in known or rel.target_highlight_id not in known:
            continue
        seen.add(rel)
        result.append(rel)
    return result


@dataclass
class SyncRecord:
    """The single persisted record of a session."""

    content: Node = field(default_factory=empty_document)
    highlights: list[Highlight] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)
    id: str | None = None
    updated_at: datetime | None = None

    def highlight_ids(self) -> list[str]:
        return [h.id for h in self.highlights]

    def get_highlight(self, highlight_id: str) -> Highlight | None:
        return next((h for h in self.highlights if h.id == highlight_id), None)

    def without_highlight(self, highlight_id: str) -> SyncRecord:
        """Remove one highlight and every relationship touching it."""
        return replace(
            self,
            highlights=[h for h in self.highlights if h.id != highlight_id],
            relationships=[
                r for r in self.relationships if not r.touches(highlight_id)
            ],
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content.to_json(),
            "highlights": [h.to_json() for h in self.highlights],
            "relationships": [r.to_json() for r in self.relationships],
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> SyncRecord:
        updated_at = data.get("updatedAt")
        return cls(
            id=data.get("id"),
            content=parse_document(data.get("content")),
            highlights=[
                as_highlight(h) for h in parse_highlights(data.get("highlights") or [])
            ],
            relationships=[
                Relationship.from_json(r) for r in data.get("relationships") or []
            ],
            updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
        )
