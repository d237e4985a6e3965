"""Rich-text document tree.

The tree mirrors the editor's JSON shape: ``{type, text?, marks?, content?,
attrs?}``. Marks are normalized on ingestion into two kinds: ``EntityMark``
for annotation marks and ``Mark`` for everything else (bold, links, ...),
which is carried opaquely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

ENTITY_MARK_TYPE = "entity-reference"

# Inline leaf nodes that are not text. hardBreak renders as a newline,
# the rest occupy one object-replacement character in the flat text.
HARD_BREAK_TYPES = frozenset({"hardBreak", "hard_break"})
INLINE_ATOM_TYPES = frozenset({"image", "mention", "emoji"}) | HARD_BREAK_TYPES

type JsonDict = dict[str, Any]


@dataclass(frozen=True)
class Mark:
    """A non-annotation mark, e.g. ``bold`` or ``link``."""

    type: str
    attrs: JsonDict | None = None

    def to_json(self) -> JsonDict:
        data: JsonDict = {"type": self.type}
        if self.attrs is not None:
            data["attrs"] = dict(self.attrs)
        return data


@dataclass(frozen=True)
class EntityMark:
    """Annotation mark linking a text run to a highlight id.

    ``label_type`` is read from ``attrs.labelType`` and falls back to the
    legacy ``attrs.type``. It is ``None`` when neither is present, in which
    case the extractor resolves a label some other way.
    """

    id: str
    label_type: str | None = None

    @classmethod
    def from_json(cls, data: JsonDict) -> EntityMark:
        attrs = data.get("attrs") or {}
        label = attrs.get("labelType") or attrs.get("type") or None
        return cls(id=str(attrs.get("id") or ""), label_type=label)

    def to_json(self) -> JsonDict:
        return {
            "type": ENTITY_MARK_TYPE,
            "attrs": {
                "id": self.id,
                "labelType": self.label_type,
                "type": self.label_type,
            },
        }


type AnyMark = Mark | EntityMark


def parse_mark(data: JsonDict) -> AnyMark:
    mark_type = data.get("type", "")
    if mark_type == ENTITY_MARK_TYPE:
        return EntityMark.from_json(data)
    attrs = data.get("attrs")
    return Mark(type=mark_type, attrs=dict(attrs) if attrs is not None else None)


@dataclass
class Node:
    """One node of the document tree.

    Absent keys stay ``None`` so that ``Node.from_json(data).to_json()``
    gives back the same keys it was given.
    """

    type: str
    text: str | None = None
    marks: list[AnyMark] | None = None
    content: list[Node] | None = None
    attrs: JsonDict | None = field(default=None)

    @property
    def is_text(self) -> bool:
        return self.type == "text"

    @property
    def is_inline(self) -> bool:
        return self.is_text or self.type in INLINE_ATOM_TYPES

    def entity_marks(self) -> list[EntityMark]:
        return [m for m in self.marks or [] if isinstance(m, EntityMark)]

    @classmethod
    def from_json(cls, data: JsonDict) -> Node:
        if not isinstance(data, dict) or "type" not in data:
            msg = f"Document node must be an object with a 'type': {data!r}"
            raise ValueError(msg)
        marks = data.get("marks")
        content = data.get("content")
        attrs = data.get("attrs")
        return cls(
            type=data["type"],
            text=data.get("text"),
            marks=[parse_mark(m) for m in marks] if marks is not None else None,
            content=[cls.from_json(c) for c in content]
            if content is not None
            else None,
            attrs=dict(attrs) if attrs is not None else None,
        )

    def to_json(self) -> JsonDict:
        data: JsonDict = {"type": self.type}
        if self.attrs is not None:
            data["attrs"] = dict(self.attrs)
        if self.content is not None:
            data["content"] = [c.to_json() for c in self.content]
        if self.text is not None:
            data["text"] = self.text
        if self.marks is not None:
            data["marks"] = [m.to_json() for m in self.marks]
        return data


def parse_document(data: JsonDict | None) -> Node:
    """Parse editor JSON, treating ``None`` as an empty document."""
    if data is None:
        return empty_document()
    return Node.from_json(data)


def empty_document() -> Node:
    return Node(type="doc", content=[Node(type="paragraph")])


def document_from_text(text: str) -> Node:
    """Build a document with one paragraph per line of ``text``."""
    paragraphs = [
        Node(type="paragraph", content=[Node(type="text", text=line)])
        if line
        else Node(type="paragraph")
        for line in text.split("\n")
    ]
    return Node(type="doc", content=paragraphs)
