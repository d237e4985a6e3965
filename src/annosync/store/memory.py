"""In-process store holding JSON snapshots of the record."""

from __future__ import annotations

import copy
import logging
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from annosync.errors import PersistenceError, RecordNotFoundError
from annosync.models.annotation import Highlight, Relationship, SyncRecord
from annosync.models.document import Node

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Keeps the record as serialized JSON, like a real store would.

    ``fail_next`` makes the next N writes raise ``PersistenceError``,
    which tests use to exercise the recovery path.
    """

    def __init__(self, initial: SyncRecord | None = None) -> None:
        self._data: dict[str, Any] | None = None
        self.fail_next = 0
        self.writes = 0
        if initial is not None:
            self._data = self._stamp(initial.to_json())

    @staticmethod
    def _stamp(data: dict[str, Any]) -> dict[str, Any]:
        data["id"] = data.get("id") or str(uuid4())
        data["updatedAt"] = datetime.now(UTC).isoformat()
        return data

    def _check_failure(self) -> None:
        if self.fail_next > 0:
            self.fail_next -= 1
            msg = "Injected store failure"
            raise PersistenceError(msg)

    async def get_current(self) -> SyncRecord | None:
        if self._data is None:
            return None
        return SyncRecord.from_json(copy.deepcopy(self._data))

    async def save(self, record: SyncRecord) -> SyncRecord:
        self._check_failure()
        self._data = self._stamp(record.to_json())
        self.writes += 1
        logger.debug("Saved record %s", self._data["id"])
        return SyncRecord.from_json(copy.deepcopy(self._data))

    async def update(
        self,
        record_id: str,
        *,
        content: Node | None = None,
        highlights: list[Highlight] | None = None,
        relationships: list[Relationship] | None = None,
    ) -> SyncRecord:
        self._check_failure()
        if self._data is None or self._data["id"] != record_id:
            msg = f"No record with id {record_id}"
            raise RecordNotFoundError(msg)
        if content is not None:
            self._data["content"] = content.to_json()
        if highlights is not None:
            self._data["highlights"] = [h.to_json() for h in highlights]
        if relationships is not None:
            self._data["relationships"] = [r.to_json() for r in relationships]
        self._stamp(self._data)
        self.writes += 1
        return SyncRecord.from_json(copy.deepcopy(self._data))
