"""Protocol defining the sync-state store interface.

InMemoryStore, SqlSyncStore and CrdtSyncStore implement this protocol,
so the reconciler can run against any of them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from annosync.models.annotation import Highlight, Relationship, SyncRecord
    from annosync.models.document import Node


class SyncStateStore(Protocol):
    """Durable home of the one logical record of a session.

    Implementations raise ``PersistenceError`` when a read or write fails.
    """

    async def get_current(self) -> SyncRecord | None:
        """Return the current record, or None if nothing was saved yet."""
        ...

    async def save(self, record: SyncRecord) -> SyncRecord:
        """Create the record.

        Returns:
            The stored record, with ``id`` and ``updated_at`` assigned.
        """
        ...

    async def update(
        self,
        record_id: str,
        *,
        content: Node | None = None,
        highlights: list[Highlight] | None = None,
        relationships: list[Relationship] | None = None,
    ) -> SyncRecord:
        """Replace the given fields of an existing record.

        Fields left as None are not touched.

        Raises:
            RecordNotFoundError: If ``record_id`` is unknown.
        """
        ...
