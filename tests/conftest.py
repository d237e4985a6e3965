"""Shared pytest fixtures for annosync tests."""

from __future__ import annotations

import pytest
from dotenv import load_dotenv

from annosync.config import get_settings
from annosync.engine.registry import HighlightRegistry
from annosync.models.labels import LabelCatalog

load_dotenv()


class FakeClock:
    """Manually advanced monotonic clock for time-based guards."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog() -> LabelCatalog:
    """The built-in five-label catalog."""
    return LabelCatalog()


@pytest.fixture
def registry() -> HighlightRegistry:
    return HighlightRegistry()


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Each test sees settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
