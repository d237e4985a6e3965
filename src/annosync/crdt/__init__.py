"""CRDT-based replication of session records."""

from annosync.crdt.session_doc import CrdtSyncStore

__all__ = ["CrdtSyncStore"]
