"""Sync-state store backed by the ``analysed_content`` table."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from annosync.db.engine import get_session
from annosync.db.models import AnalysedContent
from annosync.errors import PersistenceError, RecordNotFoundError
from annosync.models.annotation import SyncRecord

if TYPE_CHECKING:
    from annosync.models.annotation import Highlight, Relationship
    from annosync.models.document import Node

logger = logging.getLogger(__name__)


def _to_record(row: AnalysedContent) -> SyncRecord:
    return SyncRecord.from_json(
        {
            "id": str(row.id),
            "content": row.content or None,
            "highlights": row.highlights,
            "relationships": row.relationships,
            "updatedAt": row.updated_at.isoformat(),
        }
    )


class SqlSyncStore:
    """One row per ``session_id``; writes go through ``get_session``."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id

    async def get_current(self) -> SyncRecord | None:
        try:
            async with get_session() as session:
                result = await session.exec(
                    select(AnalysedContent).where(
                        AnalysedContent.session_id == self.session_id
                    )
                )
                row = result.first()
        except SQLAlchemyError as exc:
            msg = f"Failed to load session {self.session_id}"
            raise PersistenceError(msg) from exc
        return _to_record(row) if row is not None else None

    async def save(self, record: SyncRecord) -> SyncRecord:
        data = record.to_json()
        try:
            async with get_session() as session:
                row = AnalysedContent(
                    session_id=self.session_id,
                    content=data["content"],
                    highlights=data["highlights"],
                    relationships=data["relationships"],
                    highlight_count=len(record.highlights),
                )
                session.add(row)
                await session.flush()
                await session.refresh(row)
                stored = _to_record(row)
        except SQLAlchemyError as exc:
            msg = f"Failed to save session {self.session_id}"
            raise PersistenceError(msg) from exc
        logger.info(
            "Saved session %s (%d highlights)", self.session_id, len(record.highlights)
        )
        return stored

    async def update(
        self,
        record_id: str,
        *,
        content: Node | None = None,
        highlights: list[Highlight] | None = None,
        relationships: list[Relationship] | None = None,
    ) -> SyncRecord:
        try:
            async with get_session() as session:
                result = await session.exec(
                    select(AnalysedContent).where(
                        AnalysedContent.session_id == self.session_id
                    )
                )
                row = result.first()
                if row is None or str(row.id) != record_id:
                    msg = f"No record {record_id} for session {self.session_id}"
                    raise RecordNotFoundError(msg)
                if content is not None:
                    row.content = content.to_json()
                if highlights is not None:
                    row.highlights = [h.to_json() for h in highlights]
                    row.highlight_count = len(highlights)
                if relationships is not None:
                    row.relationships = [r.to_json() for r in relationships]
                row.updated_at = datetime.now(UTC)
                session.add(row)
                await session.flush()
                await session.refresh(row)
                stored = _to_record(row)
        except SQLAlchemyError as exc:
            msg = f"Failed to update session {self.session_id}"
            raise PersistenceError(msg) from exc
        return stored
