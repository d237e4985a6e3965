"""Shared fixtures for unit tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from annosync.engine.reconciler import AnnotationReconciler
from annosync.store.memory import InMemoryStore
from tests.helpers.sync import SYNC_CONFIG

if TYPE_CHECKING:
    from annosync.engine.registry import HighlightRegistry
    from annosync.models.labels import LabelCatalog
    from tests.conftest import FakeClock


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def reconciler(
    store: InMemoryStore,
    registry: HighlightRegistry,
    catalog: LabelCatalog,
    clock: FakeClock,
) -> AnnotationReconciler:
    """Reconciler over an empty in-memory store with a manual clock."""
    return AnnotationReconciler(
        store, registry=registry, catalog=catalog, config=SYNC_CONFIG, clock=clock
    )
