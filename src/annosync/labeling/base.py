"""Protocol and result type for labeling backends.

A backend turns plain text into candidate highlights. The engine only
ever treats its output as new highlight entries, never as document
structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from annosync.models.annotation import Highlight, Relationship
    from annosync.models.labels import LabelCatalog


@dataclass
class LabelingResult:
    """Highlights and relationships proposed by a backend."""

    highlights: list[Highlight] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)


class LabelingBackend(Protocol):
    """Anything that can label text against a catalog."""

    async def label(self, text: str, catalog: LabelCatalog) -> LabelingResult:
        """Label ``text``.

        Raises:
            LabelingError: If the backend fails or its answer is unusable.
        """
        ...
