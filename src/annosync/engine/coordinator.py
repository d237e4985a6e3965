"""Event-driven front end for one session's reconciler.

Every mutation runs under a single ``asyncio.Lock``, so the reconciler
sees one operation at a time. Document edits are debounced: each new
change replaces the pending one and restarts the timer, so a pass that
would reconcile a superseded document never runs.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from annosync.engine.flatten import document_text
from annosync.errors import LabelingError, PersistenceError

if TYPE_CHECKING:
    from annosync.engine.reconciler import (
        AnnotationReconciler,
        DocumentChange,
        ReconcileOutcome,
    )
    from annosync.labeling.base import LabelingBackend
    from annosync.models.annotation import Highlight, Relationship

logger = logging.getLogger(__name__)


class SyncCoordinator:
    """Serializes edits, explicit actions and labeling results.

    Attributes:
        debounce_seconds: Quiet period before a pending change is reconciled.
    """

    def __init__(
        self, reconciler: AnnotationReconciler, debounce_seconds: float = 0.3
    ) -> None:
        self.reconciler = reconciler
        self.debounce_seconds = debounce_seconds
        self._lock = asyncio.Lock()
        self._pending: DocumentChange | None = None
        self._debounce_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[object]] = set()

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def submit(self, change: DocumentChange) -> None:
        """Queue a change event, restarting the debounce timer."""
        if not change.doc_changed:
            logger.debug("Dropping selection-only change")
            return
        self._pending = change
        self._schedule_debounced()

    def _schedule_debounced(self) -> None:
        self._cancel_debounce()

        async def debounced() -> None:
            await asyncio.sleep(self.debounce_seconds)
            # past the sleep: no longer cancellable by a newer submit
            self._debounce_task = None
            await self._run_pending()

        self._debounce_task = asyncio.create_task(debounced())
        self._track(self._debounce_task)

    def _cancel_debounce(self) -> None:
        task, self._debounce_task = self._debounce_task, None
        if task and not task.done():
            task.cancel()

    def _track(self, task: asyncio.Task[object]) -> None:
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _run_pending(self) -> ReconcileOutcome | None:
        async with self._lock:
            change, self._pending = self._pending, None
            if change is None:
                return None
            try:
                return await self.reconciler.handle_change(change)
            except PersistenceError:
                logger.exception("Failed to persist change, will retry on next edit")
                return None

    async def flush(self) -> ReconcileOutcome | None:
        """Reconcile the pending change now (e.g. on blur or shutdown)."""
        self._cancel_debounce()
        return await self._run_pending()

    async def remove_highlight(self, highlight_id: str) -> bool:
        async with self._lock:
            removed = await self.reconciler.remove_highlight(highlight_id)
            if self._pending is not None:
                # the queued snapshot predates the removal
                self._pending = replace(
                    self._pending,
                    document=self.reconciler.annotator.strip_marks(
                        self._pending.document, [highlight_id]
                    ),
                    removed_ids=self._pending.removed_ids | {highlight_id},
                )
            await self._replay_deferred()
        return removed

    async def add_highlight(
        self, label_type: str, text: str, start: int | None = None
    ) -> Highlight:
        async with self._lock:
            highlight = await self.reconciler.add_highlight(label_type, text, start)
            await self._replay_deferred()
        return highlight

    async def relabel_highlight(self, highlight_id: str, label_type: str) -> Highlight:
        async with self._lock:
            highlight = await self.reconciler.relabel_highlight(
                highlight_id, label_type
            )
            await self._replay_deferred()
        return highlight

    async def add_relationship(self, source_id: str, target_id: str) -> Relationship:
        async with self._lock:
            return await self.reconciler.add_relationship(source_id, target_id)

    async def remove_relationship(self, source_id: str, target_id: str) -> bool:
        async with self._lock:
            return await self.reconciler.remove_relationship(source_id, target_id)

    async def _replay_deferred(self) -> None:
        if self.reconciler.has_deferred:
            await self.reconciler.resume()

    def request_labels(
        self, backend: LabelingBackend
    ) -> asyncio.Task[list[Highlight] | None]:
        """Ask ``backend`` to label the current text in an independent task.

        The result is merged into whatever the record holds when it
        arrives. Backend and persistence failures are logged and leave the
        session untouched.
        """
        text = document_text(self.reconciler.document)
        task = asyncio.create_task(self._label(backend, text))
        self._track(task)
        return task

    async def _label(
        self, backend: LabelingBackend, text: str
    ) -> list[Highlight] | None:
        try:
            result = await backend.label(text, self.reconciler.catalog)
        except LabelingError:
            logger.exception("Labeling backend failed")
            return None

        async with self._lock:
            try:
                return await self.reconciler.merge_highlights(
                    result.highlights, result.relationships
                )
            except PersistenceError:
                logger.exception("Failed to persist labeling result")
                return None

    async def close(self) -> None:
        """Flush pending work and wait for outstanding labeling tasks."""
        await self.flush()
        pending = [t for t in self._background if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Coordinator closed")
