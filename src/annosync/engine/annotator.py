"""Write a highlight list back into a document as entity marks.

Placement of each highlight, first hit wins:

1. the range its id already covers in the document (first block only);
2. the offsets of a ``LocatedHighlight`` hint, if they still slice its text
   and stay within one block;
3. ``SpanLocator`` over every block, best tier wins.

Each affected block is then rebuilt: an event sweep turns the placements
into regions with a constant active set, text runs are split at region
edges, and each piece gets the entity marks of the highlights covering it.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Collection, Sequence
from dataclasses import dataclass

from annosync.engine.flatten import FlatBlock, FlatDocument, flatten_document
from annosync.engine.locator import SpanLocator
from annosync.models.annotation import AnyHighlight, LocatedHighlight, as_highlight
from annosync.models.document import AnyMark, EntityMark, Node

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Placement:
    start: int
    end: int
    order: int
    mark: EntityMark


class _Region:
    """A character range with a constant set of active placements."""

    __slots__ = ("active", "end", "start")

    def __init__(self, start: int, end: int, active: frozenset[int]) -> None:
        self.start = start
        self.end = end
        self.active = active


def _compute_regions(placements: Sequence[_Placement]) -> list[_Region]:
    """Sweep start/end events into regions where the active set is constant."""
    events: list[tuple[int, int, str]] = []
    for idx, placement in enumerate(placements):
        events.append((placement.start, idx, "start"))
        events.append((placement.end, idx, "end"))

    # "start" before "end" at the same position so touching spans leave no gap
    events.sort(key=lambda e: (e[0], 0 if e[2] == "start" else 1))

    active: set[int] = set()
    regions: list[_Region] = []
    prev_pos: int | None = None
    for pos, idx, kind in events:
        if prev_pos is not None and pos > prev_pos and active:
            regions.append(_Region(prev_pos, pos, frozenset(active)))
        if kind == "start":
            active.add(idx)
        else:
            active.discard(idx)
        prev_pos = pos
    return regions


def _existing_spans(flat: FlatDocument) -> dict[str, tuple[int, int, int]]:
    """Map mark id -> (block index, start, end) in the first block carrying it."""
    spans: dict[str, tuple[int, int, int]] = {}
    for block_idx, block in enumerate(flat.blocks):
        local: dict[str, tuple[int, int]] = {}
        for run in block.runs:
            for mark in run.node.entity_marks():
                if not mark.id or mark.id in spans:
                    continue
                lo, hi = local.get(mark.id, (run.start, run.end))
                local[mark.id] = (min(lo, run.start), max(hi, run.end))
        for mark_id, (start, end) in local.items():
            spans[mark_id] = (block_idx, start, end)
    return spans


def _merge_adjacent(nodes: list[Node]) -> list[Node]:
    merged: list[Node] = []
    for node in nodes:
        prev = merged[-1] if merged else None
        if (
            prev is not None
            and prev.is_text
            and node.is_text
            and prev.marks == node.marks
            and prev.attrs == node.attrs
        ):
            merged[-1] = Node(
                type="text",
                text=(prev.text or "") + (node.text or ""),
                marks=prev.marks,
                attrs=prev.attrs,
            )
        else:
            merged.append(node)
    return merged


class DocumentAnnotator:
    """Applies entity marks for a highlight list to a document copy."""

    def __init__(self, locator: SpanLocator | None = None) -> None:
        self.locator = locator or SpanLocator()

    def apply(
        self,
        document: Node,
        highlights: Sequence[AnyHighlight],
        *,
        strip_ids: Collection[str] = (),
    ) -> Node:
        """Return a new document carrying marks for ``highlights``.

        Marks for ids in ``highlights`` or ``strip_ids`` are removed
        everywhere they are not placed; entity marks for any other id are
        left alone. The input document is not modified.
        """
        result = copy.deepcopy(document)
        flat = flatten_document(result)
        strip = set(strip_ids)
        managed = strip | {as_highlight(h).id for h in highlights}

        per_block: dict[int, list[_Placement]] = {}
        existing = _existing_spans(flat)
        placed: set[str] = set()
        for order, item in enumerate(highlights):
            highlight = as_highlight(item)
            if highlight.id in strip or highlight.id in placed:
                continue
            found = self._place(flat, item, existing)
            if found is None:
                logger.warning(
                    "Could not locate highlight %s (%r); skipping mark",
                    highlight.id,
                    highlight.text,
                )
                continue
            block_idx, start, end = found
            placed.add(highlight.id)
            per_block.setdefault(block_idx, []).append(
                _Placement(
                    start, end, order, EntityMark(highlight.id, highlight.label_type)
                )
            )

        for block_idx, block in enumerate(flat.blocks):
            placements = per_block.get(block_idx, [])
            if not placements and not _carries_any(block, managed):
                continue
            placements.sort(key=lambda p: (p.start, p.order))
            block.node.content = self._rebuild_runs(block, placements, managed)

        return result

    def strip_marks(self, document: Node, ids: Collection[str]) -> Node:
        """Return a copy of ``document`` without entity marks for ``ids``."""
        return self.apply(document, [], strip_ids=ids)

    def _place(
        self,
        flat: FlatDocument,
        item: AnyHighlight,
        existing: dict[str, tuple[int, int, int]],
    ) -> tuple[int, int, int] | None:
        highlight = as_highlight(item)
        if highlight.id in existing:
            logger.debug("Highlight %s kept at its marked range", highlight.id)
            return existing[highlight.id]

        if isinstance(item, LocatedHighlight) and item.start < item.end:
            block = flat.block_at(item.start)
            if (
                block is not None
                and item.end <= block.end
                and flat.text[item.start : item.end] == highlight.text
            ):
                return flat.blocks.index(block), item.start, item.end

        block_idx, match = self.locator.locate_in_blocks(
            highlight.text, [b.text for b in flat.blocks]
        )
        if block_idx < 0 or match.length == 0:
            return None
        logger.debug(
            "Highlight %s located by %s match", highlight.id, match.match_type
        )
        start = flat.blocks[block_idx].start + match.index
        return block_idx, start, start + match.length

    def _rebuild_runs(
        self,
        block: FlatBlock,
        placements: list[_Placement],
        managed: set[str],
    ) -> list[Node]:
        regions = _compute_regions(placements)
        nodes: list[Node] = []
        for run in block.runs:
            base = _unmanaged_marks(run.node, managed)
            cuts = sorted(
                {run.start, run.end}
                | {
                    edge
                    for region in regions
                    for edge in (region.start, region.end)
                    if run.start < edge < run.end
                }
            )
            if not run.node.is_text:
                cuts = [run.start, run.end]
            for seg_start, seg_end in zip(cuts, cuts[1:], strict=False):
                marks = base + _active_marks(regions, placements, seg_start)
                if run.node.is_text:
                    offset = seg_start - run.start
                    nodes.append(
                        Node(
                            type="text",
                            text=(run.node.text or "")[
                                offset : offset + seg_end - seg_start
                            ],
                            marks=marks or None,
                            attrs=copy.deepcopy(run.node.attrs),
                        )
                    )
                else:
                    run.node.marks = marks or None
                    nodes.append(run.node)
        return _merge_adjacent(nodes)


def _carries_any(block: FlatBlock, ids: set[str]) -> bool:
    return any(
        mark.id in ids for run in block.runs for mark in run.node.entity_marks()
    )


def _unmanaged_marks(node: Node, managed: set[str]) -> list[AnyMark]:
    return [
        m
        for m in node.marks or []
        if not (isinstance(m, EntityMark) and m.id in managed)
    ]


def _active_marks(
    regions: list[_Region], placements: list[_Placement], position: int
) -> list[AnyMark]:
    for region in regions:
        if region.start <= position < region.end:
            # placements are sorted by (start, order), so index order is mark order
            return [placements[i].mark for i in sorted(region.active)]
    return []
