"""Reconciliation engine: extraction, annotation, location and coordination."""

from annosync.engine.annotator import DocumentAnnotator
from annosync.engine.coordinator import SyncCoordinator
from annosync.engine.extractor import MarkExtractor
from annosync.engine.flatten import FlatDocument, document_text, flatten_document
from annosync.engine.guards import ModificationGate, RecentlyRemoved
from annosync.engine.locator import MatchType, SpanLocator, SpanMatch, locate
from annosync.engine.reconciler import (
    AnnotationReconciler,
    DocumentChange,
    ReconcileOutcome,
    SyncState,
)
from annosync.engine.registry import HighlightRegistry

__all__ = [
    "AnnotationReconciler",
    "DocumentAnnotator",
    "DocumentChange",
    "FlatDocument",
    "HighlightRegistry",
    "MarkExtractor",
    "MatchType",
    "ModificationGate",
    "RecentlyRemoved",
    "ReconcileOutcome",
    "SpanLocator",
    "SpanMatch",
    "SyncCoordinator",
    "SyncState",
    "document_text",
    "flatten_document",
    "locate",
]
