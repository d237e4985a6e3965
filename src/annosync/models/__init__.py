"""Data models for documents, highlights and labels."""

from annosync.models.annotation import (
    AnyHighlight,
    Highlight,
    LocatedHighlight,
    Relationship,
    SyncRecord,
    as_highlight,
    merge_highlights,
    parse_highlights,
    prune_relationships,
)
from annosync.models.document import (
    ENTITY_MARK_TYPE,
    EntityMark,
    Mark,
    Node,
    document_from_text,
    empty_document,
    parse_document,
)
from annosync.models.labels import (
    DEFAULT_LABELS,
    LabelCatalog,
    LabelConfig,
    load_label_catalog,
)

__all__ = [
    "DEFAULT_LABELS",
    "ENTITY_MARK_TYPE",
    "AnyHighlight",
    "EntityMark",
    "Highlight",
    "LabelCatalog",
    "LabelConfig",
    "LocatedHighlight",
    "Mark",
    "Node",
    "Relationship",
    "SyncRecord",
    "as_highlight",
    "document_from_text",
    "empty_document",
    "load_label_catalog",
    "merge_highlights",
    "parse_document",
    "parse_highlights",
    "prune_relationships",
]
