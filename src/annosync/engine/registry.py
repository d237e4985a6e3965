"""Id -> label lookup used when a mark carries no label of its own."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class HighlightRegistry:
    """Process-local map of highlight id to label type.

    Last write wins. Empty ids are rejected and empty labels ignored,
    both with a warning, so a malformed mark never poisons the lookup.
    """

    def __init__(self) -> None:
        self._labels: dict[str, str] = {}

    def set(self, highlight_id: str, label_type: str) -> None:
        if not highlight_id:
            logger.warning("Registry set called with empty id (label=%r)", label_type)
            return
        if not label_type:
            logger.warning("Registry set called with empty label for %s", highlight_id)
            return
        self._labels[highlight_id] = label_type

    def get(self, highlight_id: str) -> str | None:
        if not highlight_id:
            logger.warning("Registry get called with empty id")
            return None
        return self._labels.get(highlight_id)

    def delete(self, highlight_id: str) -> bool:
        if not highlight_id:
            logger.warning("Registry delete called with empty id")
            return False
        return self._labels.pop(highlight_id, None) is not None

    def clear(self) -> None:
        self._labels.clear()

    def all(self) -> list[tuple[str, str]]:
        return list(self._labels.items())

    def __len__(self) -> int:
        return len(self._labels)

    def __contains__(self, highlight_id: object) -> bool:
        return highlight_id in self._labels
