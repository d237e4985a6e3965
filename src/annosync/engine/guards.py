"""Time-based guards against stale document snapshots.

``RecentlyRemoved`` keeps tombstones for ids deleted by an explicit
action, so a change event built from a snapshot taken before the delete
cannot resurrect them. ``ModificationGate`` marks a programmatic
document update in flight; change events arriving meanwhile are
deferred. The gate clears itself after a timeout if ``end`` is never
called.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from types import TracebackType

logger = logging.getLogger(__name__)

type Clock = Callable[[], float]


class RecentlyRemoved:
    """Tombstones that expire ``grace_seconds`` after being added."""

    def __init__(self, grace_seconds: float, clock: Clock = time.monotonic) -> None:
        self.grace_seconds = grace_seconds
        self._clock = clock
        self._expiry: dict[str, float] = {}

    def add(self, highlight_id: str) -> None:
        self._expiry[highlight_id] = self._clock() + self.grace_seconds

    def discard(self, highlight_id: str) -> None:
        self._expiry.pop(highlight_id, None)

    def _purge(self) -> None:
        now = self._clock()
        for highlight_id in [i for i, t in self._expiry.items() if t <= now]:
            del self._expiry[highlight_id]

    def __contains__(self, highlight_id: object) -> bool:
        self._purge()
        return highlight_id in self._expiry

    def active(self) -> frozenset[str]:
        self._purge()
        return frozenset(self._expiry)


class ModificationGate:
    """Flag for "a programmatic document update is in flight"."""

    def __init__(self, timeout_seconds: float, clock: Clock = time.monotonic) -> None:
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._opened_at: float | None = None

    def begin(self) -> None:
        self._opened_at = self._clock()

    def end(self) -> None:
        self._opened_at = None

    @property
    def active(self) -> bool:
        if self._opened_at is None:
            return False
        if self._clock() - self._opened_at >= self.timeout_seconds:
            logger.warning(
                "Modification gate held longer than %.2fs, clearing",
                self.timeout_seconds,
            )
            self._opened_at = None
            return False
        return True

    def __enter__(self) -> ModificationGate:
        self.begin()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.end()
