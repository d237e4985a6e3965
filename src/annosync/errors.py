"""Exception types raised across component boundaries."""

from __future__ import annotations


class AnnosyncError(Exception):
    """Base class for annosync errors."""


class PersistenceError(AnnosyncError):
    """The sync-state store rejected a read or write.

    Recoverable: in-memory state is kept and the next user-triggered
    save retries the write.
    """


class RecordNotFoundError(PersistenceError):
    """``update`` was called for a record id the store does not hold."""


class LabelingError(AnnosyncError):
    """A labeling backend failed or returned an unusable response."""
