"""Find a highlight's text inside a haystack string.

Three tiers are tried in order, the first hit wins:

1. exact substring;
2. normalized: case-folded, trimmed, whitespace runs collapsed;
3. partial: the longest contiguous run of the needle's words.

Normalized and partial hits are mapped back to offsets in the original
haystack, so the returned span always slices the real text.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class MatchType(StrEnum):
    EXACT = "exact"
    NORMALIZED = "normalized"
    PARTIAL = "partial"
    NONE = "none"


_TIER_RANK = {
    MatchType.EXACT: 0,
    MatchType.NORMALIZED: 1,
    MatchType.PARTIAL: 2,
    MatchType.NONE: 3,
}


@dataclass(frozen=True)
class SpanMatch:
    """Result of a lookup. ``index`` is -1 when nothing matched."""

    index: int
    length: int
    match_type: MatchType

    @property
    def found(self) -> bool:
        return self.match_type is not MatchType.NONE

    @property
    def end(self) -> int:
        return self.index + self.length


NO_MATCH = SpanMatch(-1, 0, MatchType.NONE)


def _normalize_with_map(text: str) -> tuple[str, list[int]]:
    """Collapse whitespace runs to one space and case-fold.

    Returns the normalized string and, for every normalized character,
    the index of the original character it came from. Leading and
    trailing whitespace is dropped.
    """
    chars: list[str] = []
    positions: list[int] = []
    pending_space = -1
    for i, ch in enumerate(text):
        if ch.isspace():
            if chars and pending_space < 0:
                pending_space = i
            continue
        if pending_space >= 0:
            chars.append(" ")
            positions.append(pending_space)
            pending_space = -1
        folded = ch.casefold()
        # casefold can expand one char (e.g. sharp s); every piece maps back
        # to the same original index
        chars.extend(folded)
        positions.extend([i] * len(folded))
    return "".join(chars), positions


def _normalize(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip().casefold()


def _find_normalized(needle: str, haystack: str) -> tuple[int, int] | None:
    norm_needle = _normalize(needle)
    if not norm_needle:
        return None
    norm_hay, positions = _normalize_with_map(haystack)
    at = norm_hay.find(norm_needle)
    if at < 0:
        return None
    start = positions[at]
    end = positions[at + len(norm_needle) - 1] + 1
    return start, end


def _find_partial(needle: str, haystack: str) -> tuple[int, int] | None:
    words = _normalize(needle).split(" ")
    # the full word run is the normalized tier; start one word shorter
    for size in range(len(words) - 1, 0, -1):
        for first in range(len(words) - size + 1):
            found = _find_normalized(" ".join(words[first : first + size]), haystack)
            if found is not None:
                return found
    return None


def locate(needle: str, haystack: str) -> SpanMatch:
    """Locate ``needle`` in ``haystack`` using the tiered strategy."""
    if not needle or not needle.strip():
        return NO_MATCH

    index = haystack.find(needle)
    if index >= 0:
        return SpanMatch(index, len(needle), MatchType.EXACT)

    found = _find_normalized(needle, haystack)
    if found is not None:
        start, end = found
        return SpanMatch(start, end - start, MatchType.NORMALIZED)

    found = _find_partial(needle, haystack)
    if found is not None:
        start, end = found
        logger.debug("Partial match for %r at %d:%d", needle, start, end)
        return SpanMatch(start, end - start, MatchType.PARTIAL)

    return NO_MATCH


class SpanLocator:
    """Locator over one or many candidate texts."""

    def locate(self, needle: str, haystack: str) -> SpanMatch:
        return locate(needle, haystack)

    def locate_in_blocks(
        self, needle: str, texts: Sequence[str]
    ) -> tuple[int, SpanMatch]:
        """Return ``(text_index, match)`` for the best match across ``texts``.

        Better tiers win; among partial matches the longer one wins; ties
        go to the earlier text. ``(-1, NO_MATCH)`` when nothing matched.
        """
        best_index, best = -1, NO_MATCH
        for i, text in enumerate(texts):
            match = locate(needle, text)
            if not match.found:
                continue
            if best_index < 0 or _better(match, best):
                best_index, best = i, match
                if match.match_type is MatchType.EXACT:
                    break
        return best_index, best


def _better(candidate: SpanMatch, current: SpanMatch) -> bool:
    rank_new = _TIER_RANK[candidate.match_type]
    rank_old = _TIER_RANK[current.match_type]
    if rank_new != rank_old:
        return rank_new < rank_old
    if candidate.match_type is MatchType.PARTIAL:
        return candidate.length > current.length
    return False
