"""Prompt assembly for the labeling backend."""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from annosync.models.labels import LabelCatalog

PROMPT_TEMPLATE = """\
Analyze the following text and identify key components of the argument. \
Label parts of the text using these labels:
{labels}

Also identify relationships between the labeled components. A relationship \
is directional, showing how one part of the text connects to or supports \
another.

Every "text" value must be copied exactly from the input.

Text to analyze:
{{{{text}}}}

Return only JSON in the following format:
{example}"""

_EXAMPLE = {
    "highlights": [
        {"id": "1", "labelType": "claim", "text": "exact text from the input"},
        {"id": "2", "labelType": "evidence", "text": "more exact text"},
    ],
    "relationships": [{"sourceHighlightId": "2", "targetHighlightId": "1"}],
}


def substitute_text(template: str, text: str) -> str:
    """Replace the ``{{text}}`` placeholder (case-insensitive)."""
    return re.sub(r"\{\{text\}\}", lambda _: text, template, flags=re.IGNORECASE)


def build_labeling_prompt(text: str, catalog: LabelCatalog) -> str:
    """Build the labeling prompt for ``text`` from the catalog.

    Args:
        text: Plain text of the document.
        catalog: Labels the backend may use.

    Returns:
        The complete prompt.
    """
    labels = "\n".join(
        f"- {label.id} ({label.name}): {label.description}".rstrip(": ")
        for label in catalog
    )
    template = PROMPT_TEMPLATE.format(
        labels=labels, example=json.dumps(_EXAMPLE, indent=4)
    )
    return substitute_text(template, text)
