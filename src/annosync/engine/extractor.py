"""Recover the highlight list from entity marks in a document."""

from __future__ import annotations

import logging
from collections.abc import Collection, Mapping

from annosync.engine.flatten import FlatBlock, flatten_document
from annosync.engine.registry import HighlightRegistry
from annosync.models.annotation import Highlight, LocatedHighlight
from annosync.models.document import Node
from annosync.models.labels import LabelCatalog

logger = logging.getLogger(__name__)


class MarkExtractor:
    """Walks a document and yields one ``LocatedHighlight`` per mark id.

    An id is taken from the first block (document order) that carries it;
    its span is the smallest range covering every run marked with that id
    in that block. Labels are resolved from the mark itself, then the
    registry, then the stored label passed in ``known``, then
    ``fallback_label``, and every resolution is written back
    to the registry.
    """

    def __init__(
        self,
        registry: HighlightRegistry,
        catalog: LabelCatalog | None = None,
        fallback_label: str = "claim",
    ) -> None:
        self.registry = registry
        self.catalog = catalog
        self.fallback_label = fallback_label

    def extract(
        self,
        document: Node,
        *,
        exclude: Collection[str] = (),
        known: Mapping[str, str] | None = None,
    ) -> list[LocatedHighlight]:
        """Return highlights for every marked id not in ``exclude``.

        ``known`` maps ids to their stored labels; a mark that has lost its
        label keeps the stored one instead of falling back.
        """
        known = known or {}
        flat = flatten_document(document)
        seen: set[str] = set()
        results: list[LocatedHighlight] = []

        for block in flat.blocks:
            spans, labels = self._collect_block(block, seen, exclude)
            for highlight_id, (start, end) in spans.items():
                seen.add(highlight_id)
                label = self.resolve_label(
                    highlight_id, labels[highlight_id], known.get(highlight_id)
                )
                results.append(
                    LocatedHighlight(
                        Highlight(highlight_id, label, flat.text[start:end]),
                        start,
                        end,
                    )
                )

        logger.debug("Extracted %d highlights from document marks", len(results))
        return results

    def _collect_block(
        self,
        block: FlatBlock,
        seen: set[str],
        exclude: Collection[str],
    ) -> tuple[dict[str, tuple[int, int]], dict[str, str | None]]:
        spans: dict[str, tuple[int, int]] = {}
        labels: dict[str, str | None] = {}
        for run in block.runs:
            for mark in run.node.entity_marks():
                if not mark.id:
                    logger.warning("Skipping entity mark without id at %d", run.start)
                    continue
                if mark.id in seen or mark.id in exclude:
                    continue
                span = spans.get(mark.id)
                if span is None:
                    spans[mark.id] = (run.start, run.end)
                    labels[mark.id] = mark.label_type
                    continue
                spans[mark.id] = (min(span[0], run.start), max(span[1], run.end))
                if labels[mark.id] is None:
                    labels[mark.id] = mark.label_type
        return spans, labels

    def resolve_label(
        self,
        highlight_id: str,
        candidate: str | None,
        known: str | None = None,
    ) -> str:
        """Pick a label for ``highlight_id`` and record it in the registry.

        The order is ``candidate`` (from the mark or incoming highlight),
        then the registry, then ``known`` (the label already stored for the
        id), then the fallback.
        """
        for source, value in (
            ("mark", candidate),
            ("registry", self.registry.get(highlight_id)),
            ("record", known),
        ):
            if not value:
                continue
            if self.catalog is not None and value not in self.catalog:
                logger.warning(
                    "Ignoring unknown label %r from %s for %s",
                    value,
                    source,
                    highlight_id,
                )
                continue
            self.registry.set(highlight_id, value)
            return value

        logger.info(
            "No label for %s, using fallback %r", highlight_id, self.fallback_label
        )
        self.registry.set(highlight_id, self.fallback_label)
        return self.fallback_label
