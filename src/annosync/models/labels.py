"""Label catalog: the fixed set of semantic tags a highlight can carry.

The catalog is loaded once at startup and never mutated afterwards.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Iterator
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

logger = logging.getLogger(__name__)

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


class LabelConfig(BaseModel):
    """Display and prompt metadata for one label id."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str
    color: str
    description: str = ""

    @field_validator("color")
    @classmethod
    def _hex_color(cls, value: str) -> str:
        if not _HEX_COLOR.match(value):
            msg = f"Label color must be #RRGGBB, got {value!r}"
            raise ValueError(msg)
        return value


DEFAULT_LABELS: tuple[LabelConfig, ...] = (
    LabelConfig(
        id="claim",
        name="Claim",
        color="#FFE25B",
        description="A statement the author asserts to be true.",
    ),
    LabelConfig(
        id="evidence",
        name="Evidence",
        color="#1BE2C9",
        description="Facts, data or examples offered in support of a claim.",
    ),
    LabelConfig(
        id="question",
        name="Question",
        color="#78DEFF",
        description="An open question or point that needs investigation.",
    ),
    LabelConfig(
        id="counterargument",
        name="Counter Argument",
        color="#ff8a65",
        description="A point that challenges or opposes a claim.",
    ),
    LabelConfig(
        id="implication",
        name="Implication",
        color="#FF8B38",
        description="A consequence that follows from a claim or evidence.",
    ),
)

_LABEL_LIST = TypeAdapter(list[LabelConfig])


class LabelCatalog:
    """Ordered, read-only collection of label configs keyed by id."""

    def __init__(self, labels: Iterable[LabelConfig] = DEFAULT_LABELS) -> None:
        self._labels: dict[str, LabelConfig] = {}
        for label in labels:
            if label.id in self._labels:
                msg = f"Duplicate label id in catalog: {label.id}"
                raise ValueError(msg)
            self._labels[label.id] = label

    def __contains__(self, label_id: object) -> bool:
        return label_id in self._labels

    def __iter__(self) -> Iterator[LabelConfig]:
        return iter(self._labels.values())

    def __len__(self) -> int:
        return len(self._labels)

    def ids(self) -> list[str]:
        return list(self._labels)

    def get(self, label_id: str) -> LabelConfig | None:
        return self._labels.get(label_id)

    def resolve(self, raw: str | None) -> str | None:
        """Map a free-form label from an external source to a catalog id.

        Tries an exact id or display-name match (case-insensitive, spaces
        ignored), then the first id that contains or is contained in the
        raw value. Returns ``None`` when nothing matches.
        """
        if not raw:
            return None
        wanted = raw.strip().lower()
        compact = wanted.replace(" ", "").replace("_", "").replace("-", "")
        for label in self:
            if wanted == label.id.lower() or compact == label.name.lower().replace(
                " ", ""
            ):
                return label.id
        if not compact:
            return None
        for label in self:
            lid = label.id.lower()
            if lid in compact or compact in lid:
                logger.debug("Resolved label %r to similar id %s", raw, label.id)
                return label.id
        return None


def load_label_catalog(path: Path | None = None) -> LabelCatalog:
    """Load a catalog from a JSON list, or the built-in one when ``path`` is None."""
    if path is None:
        return LabelCatalog()
    data = json.loads(path.read_text(encoding="utf-8"))
    labels = _LABEL_LIST.validate_python(data)
    logger.info("Loaded %d labels from %s", len(labels), path)
    return LabelCatalog(labels)
