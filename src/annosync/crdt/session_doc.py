"""CRDT-backed sync-state store for collaborative sessions.

The session record lives in a pycrdt ``Doc`` so that every peer holding
a replica converges on the same document, highlight list and
relationship list. Values are stored as JSON strings; a ``seq`` field
keeps list order, since Maps are unordered.
"""

from __future__ import annotations

import json
import logging
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from pycrdt import Doc, Map, TransactionEvent

from annosync.errors import RecordNotFoundError
from annosync.models.annotation import SyncRecord

if TYPE_CHECKING:
    from collections.abc import Callable

    from annosync.models.annotation import Highlight, Relationship
    from annosync.models.document import Node

logger = logging.getLogger(__name__)

# Async-safe storage for the origin client ID during updates.
_origin_var: ContextVar[str | None] = ContextVar("session_origin", default=None)


def _edge_key(rel: Relationship) -> str:
    return f"{rel.source_highlight_id}->{rel.target_highlight_id}"


class CrdtSyncStore:
    """Session record replicated through a pycrdt document.

    Attributes:
        doc_id: Unique identifier for this session document.
        doc: The pycrdt Doc instance.
        client_id: Origin tag attached to updates made through this replica.
    """

    def __init__(self, doc_id: str, client_id: str | None = None) -> None:
        self.doc_id = doc_id
        self.client_id = client_id
        self.doc = Doc()

        # Root-level Maps
        self.doc["meta"] = Map()  # {record_id, content, updated_at}
        self.doc["highlights"] = Map()  # {highlight_id: json}
        self.doc["relationships"] = Map()  # {"src->tgt": json}

        self._broadcast_callback: Callable[[bytes, str | None], None] | None = None
        self.doc.observe(self._on_update)

    @property
    def meta(self) -> Map:
        return self.doc["meta"]

    @property
    def highlights(self) -> Map:
        return self.doc["highlights"]

    @property
    def relationships(self) -> Map:
        return self.doc["relationships"]

    def set_broadcast_callback(
        self, callback: Callable[[bytes, str | None], None] | None
    ) -> None:
        """Set the callback for broadcasting updates to peers.

        Args:
            callback: Function that takes (update_bytes, origin_client_id).
        """
        self._broadcast_callback = callback

    def _on_update(self, event: TransactionEvent) -> None:
        if self._broadcast_callback is not None:
            origin = _origin_var.get()
            self._broadcast_callback(event.update, origin)

    def get_full_state(self) -> bytes:
        """Get the full document state as an update for new peers."""
        return self.doc.get_update()

    def apply_update(self, update: bytes, origin_client_id: str | None = None) -> None:
        """Apply an update received from a peer.

        Args:
            update: Binary update from another replica.
            origin_client_id: Peer the update came from (for echo prevention).
        """
        token = _origin_var.set(origin_client_id)
        try:
            self.doc.apply_update(update)
        finally:
            _origin_var.reset(token)

    # --- SyncStateStore ---

    async def get_current(self) -> SyncRecord | None:
        if "record_id" not in self.meta:
            return None
        return SyncRecord.from_json(
            {
                "id": self.meta.get("record_id"),
                "content": json.loads(self.meta.get("content") or "null"),
                "highlights": self._ordered(self.highlights),
                "relationships": self._ordered(self.relationships),
                "updatedAt": self.meta.get("updated_at"),
            }
        )

    async def save(self, record: SyncRecord) -> SyncRecord:
        record_id = record.id or str(uuid4())
        self._write(
            record_id,
            content=record.content,
            highlights=record.highlights,
            relationships=record.relationships,
        )
        logger.info("Saved session %s into CRDT doc %s", record_id, self.doc_id)
        stored = await self.get_current()
        assert stored is not None  # written above
        return stored

    async def update(
        self,
        record_id: str,
        *,
        content: Node | None = None,
        highlights: list[Highlight] | None = None,
        relationships: list[Relationship] | None = None,
    ) -> SyncRecord:
        if self.meta.get("record_id") != record_id:
            msg = f"No record {record_id} in CRDT doc {self.doc_id}"
            raise RecordNotFoundError(msg)
        self._write(
            record_id,
            content=content,
            highlights=highlights,
            relationships=relationships,
        )
        stored = await self.get_current()
        assert stored is not None  # written above
        return stored

    def _write(
        self,
        record_id: str,
        *,
        content: Node | None,
        highlights: list[Highlight] | None,
        relationships: list[Relationship] | None,
    ) -> None:
        token = _origin_var.set(self.client_id)
        try:
            with self.doc.transaction():
                self.meta["record_id"] = record_id
                self.meta["updated_at"] = datetime.now(UTC).isoformat()
                if content is not None:
                    self.meta["content"] = json.dumps(content.to_json())
                if highlights is not None:
                    self._replace(
                        self.highlights,
                        {h.id: h.to_json() for h in highlights},
                    )
                if relationships is not None:
                    self._replace(
                        self.relationships,
                        {_edge_key(r): r.to_json() for r in relationships},
                    )
        finally:
            _origin_var.reset(token)

    @staticmethod
    def _replace(target: Map, items: dict[str, dict[str, Any]]) -> None:
        for key in list(target.keys()):
            if key not in items:
                target.pop(key)
        for seq, (key, value) in enumerate(items.items()):
            encoded = json.dumps({**value, "seq": seq})
            if target.get(key) != encoded:
                target[key] = encoded

    @staticmethod
    def _ordered(source: Map) -> list[dict[str, Any]]:
        values = [json.loads(v) for v in source.values()]
        return sorted(values, key=lambda v: v.get("seq", 0))
