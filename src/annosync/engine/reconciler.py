"""Reconciliation of document marks, highlight list and relationships.

The reconciler owns the in-memory copy of the session record and is the
only component that writes it. Every change event or explicit action
goes through it, and it persists the result through a ``SyncStateStore``.

Removal policy: a highlight leaves the list only through
``remove_highlight`` or a change carrying ``removed_ids``. A highlight
that extraction fails to find is treated as an extraction miss and kept.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from uuid import uuid4

from annosync.config import SyncConfig
from annosync.engine.annotator import DocumentAnnotator
from annosync.engine.extractor import MarkExtractor
from annosync.engine.guards import Clock, ModificationGate, RecentlyRemoved
from annosync.engine.registry import HighlightRegistry
from annosync.errors import PersistenceError, RecordNotFoundError
from annosync.models.annotation import (
    AnyHighlight,
    Highlight,
    LocatedHighlight,
    Relationship,
    SyncRecord,
    as_highlight,
    prune_relationships,
)
from annosync.models.annotation import merge_highlights as merge_by_id
from annosync.models.document import Node
from annosync.models.labels import LabelCatalog
from annosync.store.base import SyncStateStore

logger = logging.getLogger(__name__)


class SyncState(StrEnum):
    CLEAN = "clean"
    EDITING = "editing"
    RECONCILING = "reconciling"


class ReconcileOutcome(StrEnum):
    """What ``handle_change`` did with an event."""

    NOOP = "noop"
    DEFERRED = "deferred"
    TRUSTED = "trusted"
    EXTRACTED = "extracted"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class DocumentChange:
    """A document change event from the editor.

    Attributes:
        document: The document after the change.
        doc_changed: False for selection-only updates.
        highlights: An explicit highlight list to trust instead of
            extracting one from the document's marks.
        removed_ids: Ids the caller removed on purpose in this change.
    """

    document: Node
    doc_changed: bool = True
    highlights: Sequence[AnyHighlight] | None = None
    removed_ids: frozenset[str] = frozenset()


class AnnotationReconciler:
    """Keeps one session's document, highlights and relationships consistent."""

    def __init__(
        self,
        store: SyncStateStore,
        registry: HighlightRegistry | None = None,
        catalog: LabelCatalog | None = None,
        config: SyncConfig | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        config = config or SyncConfig()
        self.store = store
        self.registry = registry if registry is not None else HighlightRegistry()
        self.catalog = catalog if catalog is not None else LabelCatalog()
        self.extractor = MarkExtractor(
            self.registry, self.catalog, config.fallback_label
        )
        self.annotator = DocumentAnnotator()
        self.removed = RecentlyRemoved(config.removal_grace_seconds, clock)
        self.gate = ModificationGate(config.modification_timeout_seconds, clock)
        self.record = SyncRecord()
        self.state = SyncState.CLEAN
        self.dirty = False
        self._deferred: DocumentChange | None = None

    @property
    def document(self) -> Node:
        return self.record.content

    @property
    def has_deferred(self) -> bool:
        return self._deferred is not None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    async def load(self) -> SyncRecord:
        """Read the current record and seed the registry from it.

        Relationships pointing at missing highlights are dropped here so a
        stale edge never blocks loading. Only this record's ids are written
        to the registry; entries for other sessions are left alone.
        """
        record = await self.store.get_current()
        if record is None:
            logger.info("No stored record, starting empty session")
            record = SyncRecord()

        kept = prune_relationships(record.relationships, record.highlight_ids())
        if len(kept) != len(record.relationships):
            logger.debug(
                "Filtered %d stale relationships on load",
                len(record.relationships) - len(kept),
            )
        record.relationships = kept

        for highlight in record.highlights:
            if highlight.label_type:
                self.registry.set(highlight.id, highlight.label_type)

        self.record = record
        self.state = SyncState.CLEAN
        self.dirty = False
        return record

    # ------------------------------------------------------------------
    # Change events
    # ------------------------------------------------------------------
    async def handle_change(self, change: DocumentChange) -> ReconcileOutcome:
        if not change.doc_changed:
            logger.debug("Selection-only change, nothing to reconcile")
            return ReconcileOutcome.NOOP

        if self.gate.active:
            logger.debug("Modification in progress, deferring change")
            self._deferred = change
            self.state = SyncState.EDITING
            return ReconcileOutcome.DEFERRED

        self.state = SyncState.RECONCILING
        for highlight_id in change.removed_ids:
            self.removed.add(highlight_id)
            self.registry.delete(highlight_id)

        if change.highlights is not None:
            document = change.document
            highlights = self._trusted(change.highlights)
            outcome = ReconcileOutcome.TRUSTED
        else:
            document, highlights, outcome = self._from_marks(change)

        relationships = prune_relationships(
            self.record.relationships, [h.id for h in highlights]
        )
        await self._persist(
            SyncRecord(
                content=document,
                highlights=highlights,
                relationships=relationships,
                id=self.record.id,
                updated_at=self.record.updated_at,
            )
        )
        logger.info(
            "Reconciled change (%s): %d highlights, %d relationships",
            outcome,
            len(highlights),
            len(relationships),
        )
        return outcome

    async def resume(self) -> ReconcileOutcome | None:
        """Replay the change deferred while the gate was held, if any."""
        change, self._deferred = self._deferred, None
        if change is None:
            return None
        return await self.handle_change(change)

    def _trusted(self, items: Sequence[AnyHighlight]) -> list[Highlight]:
        removed = self.removed.active()
        seen: set[str] = set()
        result: list[Highlight] = []
        for item in items:
            highlight = as_highlight(item)
            if highlight.id in removed or highlight.id in seen:
                continue
            seen.add(highlight.id)
            result.append(self._with_resolved_label(highlight))
        return result

    def _from_marks(
        self, change: DocumentChange
    ) -> tuple[Node, list[Highlight], ReconcileOutcome]:
        exclude = self.removed.active() | change.removed_ids
        prior = [h for h in self.record.highlights if h.id not in exclude]
        failed = False
        try:
            extracted = self.extractor.extract(
                change.document,
                exclude=exclude,
                known={h.id: h.label_type for h in self.record.highlights},
            )
        except Exception:
            logger.exception(
                "Mark extraction failed, keeping %d known highlights", len(prior)
            )
            extracted = []
            failed = True

        found = {h.id for h in extracted}
        missing = [h.id for h in prior if h.id not in found]
        if missing:
            logger.warning(
                "Extraction missed %d known highlights, keeping them: %s",
                len(missing),
                ", ".join(missing),
            )
        outcome = (
            ReconcileOutcome.FALLBACK
            if failed or missing
            else ReconcileOutcome.EXTRACTED
        )

        highlights = merge_by_id(prior, [h.highlight for h in extracted])
        document = self.annotator.apply(
            change.document, _with_hints(highlights, extracted), strip_ids=exclude
        )
        return document, highlights, outcome

    # ------------------------------------------------------------------
    # Explicit actions
    # ------------------------------------------------------------------
    async def remove_highlight(self, highlight_id: str) -> bool:
        """Delete a highlight, its marks and every relationship touching it.

        Returns:
            True if the highlight was in the list.
        """
        if not highlight_id:
            msg = "Highlight id must be a non-empty string"
            raise ValueError(msg)

        with self.gate:
            self.registry.delete(highlight_id)
            self.removed.add(highlight_id)
            known = self.record.get_highlight(highlight_id) is not None
            record = self.record.without_highlight(highlight_id)
            record.content = self.annotator.strip_marks(
                self.record.content, [highlight_id]
            )
            await self._persist(record)

        logger.info("Removed highlight %s (known=%s)", highlight_id, known)
        return known

    async def merge_highlights(
        self,
        incoming: Sequence[AnyHighlight],
        relationships: Iterable[Relationship] = (),
    ) -> list[Highlight]:
        """Merge new highlights into the current record and mark them.

        Used for labeling-backend results and toolbar actions. Marks are
        applied to the current document, not to the one the caller saw.
        """
        removed = self.removed.active()
        fresh = [
            self._with_resolved_label(as_highlight(h))
            for h in incoming
            if as_highlight(h).id not in removed
        ]
        highlights = merge_by_id(self.record.highlights, fresh)
        edges = prune_relationships(
            [*self.record.relationships, *relationships], [h.id for h in highlights]
        )
        hints = [h for h in incoming if isinstance(h, LocatedHighlight)]

        with self.gate:
            document = self.annotator.apply(
                self.record.content,
                _with_hints(highlights, hints),
                strip_ids=removed,
            )
            await self._persist(
                SyncRecord(
                    content=document,
                    highlights=highlights,
                    relationships=edges,
                    id=self.record.id,
                    updated_at=self.record.updated_at,
                )
            )
        return highlights

    async def add_highlight(
        self, label_type: str, text: str, start: int | None = None
    ) -> Highlight:
        """Create a highlight for ``text`` with a fresh id."""
        if not text.strip():
            msg = "Cannot highlight empty text"
            raise ValueError(msg)
        highlight = Highlight(str(uuid4()), label_type, text)
        item: AnyHighlight = highlight
        if start is not None:
            item = LocatedHighlight(highlight, start, start + len(text))
        await self.merge_highlights([item])
        return highlight

    async def relabel_highlight(self, highlight_id: str, label_type: str) -> Highlight:
        current = self.record.get_highlight(highlight_id)
        if current is None:
            msg = f"Unknown highlight id: {highlight_id}"
            raise ValueError(msg)
        if label_type not in self.catalog:
            msg = f"Unknown label: {label_type}"
            raise ValueError(msg)
        updated = current.with_label(label_type)
        self.registry.set(highlight_id, label_type)
        highlights = [
            updated if h.id == highlight_id else h for h in self.record.highlights
        ]
        with self.gate:
            document = self.annotator.apply(self.record.content, highlights)
            await self._persist(
                SyncRecord(
                    content=document,
                    highlights=highlights,
                    relationships=list(self.record.relationships),
                    id=self.record.id,
                    updated_at=self.record.updated_at,
                )
            )
        return updated

    async def add_relationship(self, source_id: str, target_id: str) -> Relationship:
        ids = set(self.record.highlight_ids())
        for highlight_id in (source_id, target_id):
            if highlight_id not in ids:
                msg = f"Unknown highlight id: {highlight_id}"
                raise ValueError(msg)
        relationship = Relationship(source_id, target_id)
        if relationship.is_self_loop:
            msg = "A highlight cannot relate to itself"
            raise ValueError(msg)
        if relationship in self.record.relationships:
            return relationship
        await self._persist_relationships([*self.record.relationships, relationship])
        return relationship

    async def remove_relationship(self, source_id: str, target_id: str) -> bool:
        relationship = Relationship(source_id, target_id)
        if relationship not in self.record.relationships:
            return False
        await self._persist_relationships(
            [r for r in self.record.relationships if r != relationship]
        )
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _with_resolved_label(self, highlight: Highlight) -> Highlight:
        existing = self.record.get_highlight(highlight.id)
        label = self.extractor.resolve_label(
            highlight.id,
            highlight.label_type or None,
            existing.label_type if existing is not None else None,
        )
        if label == highlight.label_type:
            return highlight
        return highlight.with_label(label)

    async def _persist_relationships(self, relationships: list[Relationship]) -> None:
        record = SyncRecord(
            content=self.record.content,
            highlights=list(self.record.highlights),
            relationships=relationships,
            id=self.record.id,
            updated_at=self.record.updated_at,
        )
        await self._persist(record, content=False)

    async def _persist(self, record: SyncRecord, *, content: bool = True) -> None:
        """Adopt ``record`` in memory, then write it to the store.

        On failure the in-memory record is kept and ``dirty`` stays set
        until a later write succeeds.
        """
        self.record = record
        self.dirty = True
        try:
            if record.id is None:
                stored = await self.store.save(record)
            else:
                try:
                    stored = await self.store.update(
                        record.id,
                        content=record.content if content else None,
                        highlights=record.highlights,
                        relationships=record.relationships,
                    )
                except RecordNotFoundError:
                    logger.warning("Record %s vanished, saving anew", record.id)
                    stored = await self.store.save(record)
        except PersistenceError:
            self.state = SyncState.EDITING
            logger.warning("Persisting session record failed", exc_info=True)
            raise
        record.id = stored.id
        record.updated_at = stored.updated_at
        self.dirty = False
        self.state = SyncState.CLEAN


def _with_hints(
    highlights: Sequence[Highlight], located: Iterable[LocatedHighlight]
) -> list[AnyHighlight]:
    """Pair highlights with position hints whose text still agrees."""
    hints = {h.id: h for h in located}
    result: list[AnyHighlight] = []
    for highlight in highlights:
        hint = hints.get(highlight.id)
        if hint is not None and hint.text == highlight.text:
            result.append(LocatedHighlight(highlight, hint.start, hint.end))
        else:
            result.append(highlight)
    return result
