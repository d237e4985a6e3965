"""Parse a labeling backend's JSON answer into highlights.

Backend ids are never trusted: every highlight is re-keyed to a fresh
uuid4 and relationships are remapped onto the new ids.
"""

from __future__ import annotations

import json
import logging
import re
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from annosync.errors import LabelingError
from annosync.labeling.base import LabelingResult
from annosync.models.annotation import Highlight, Relationship
from annosync.models.labels import LabelCatalog

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


class _RawHighlight(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | int | None = None
    label_type: str | None = Field(default=None, alias="labelType")
    type: str | None = None
    text: str = ""


class _RawRelationship(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    source_highlight_id: str | int = Field(alias="sourceHighlightId")
    target_highlight_id: str | int = Field(alias="targetHighlightId")


class _RawResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    highlights: list[_RawHighlight] = Field(default_factory=list)
    relationships: list[_RawRelationship] = Field(default_factory=list)


def _json_payload(raw: str) -> str:
    """Strip code fences and surrounding prose down to the JSON object."""
    fenced = _FENCE.search(raw)
    if fenced:
        raw = fenced.group(1)
    start, end = raw.find("{"), raw.rfind("}")
    if start < 0 or end < start:
        msg = "No JSON object in labeling response"
        raise LabelingError(msg)
    return raw[start : end + 1]


def parse_labeling_response(raw: str, catalog: LabelCatalog) -> LabelingResult:
    """Validate and normalize a backend answer.

    Highlights with blank text or a label the catalog cannot resolve are
    dropped with a warning. Relationships whose endpoints were dropped, or
    that point at themselves, are dropped too.

    Raises:
        LabelingError: If the answer is not valid JSON of the expected shape.
    """
    try:
        response = _RawResponse.model_validate(json.loads(_json_payload(raw)))
    except (json.JSONDecodeError, ValidationError) as exc:
        msg = f"Failed to parse labeling response: {exc}"
        raise LabelingError(msg) from exc

    id_map: dict[str, str] = {}
    highlights: list[Highlight] = []
    for item in response.highlights:
        text = item.text.strip()
        if not text:
            logger.warning("Dropping labeled highlight with empty text")
            continue
        label = catalog.resolve(item.label_type or item.type)
        if label is None:
            logger.warning(
                "Dropping highlight with unknown label %r: %r",
                item.label_type or item.type,
                text,
            )
            continue
        new_id = str(uuid4())
        if item.id is not None:
            id_map.setdefault(str(item.id), new_id)
        highlights.append(Highlight(new_id, label, text))

    relationships: list[Relationship] = []
    for rel in response.relationships:
        source = id_map.get(str(rel.source_highlight_id))
        target = id_map.get(str(rel.target_highlight_id))
        if source is None or target is None or source == target:
            logger.debug(
                "Dropping relationship %s -> %s",
                rel.source_highlight_id,
                rel.target_highlight_id,
            )
            continue
        relationship = Relationship(source, target)
        if relationship not in relationships:
            relationships.append(relationship)

    logger.info(
        "Parsed %d highlights and %d relationships from labeling response",
        len(highlights),
        len(relationships),
    )
    return LabelingResult(highlights=highlights, relationships=relationships)
