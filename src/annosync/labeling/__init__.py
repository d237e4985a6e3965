"""Labeling backends that propose highlights for plain text."""

from annosync.labeling.base import LabelingBackend, LabelingResult
from annosync.labeling.parse import parse_labeling_response
from annosync.labeling.prompt import build_labeling_prompt

__all__ = [
    "LabelingBackend",
    "LabelingResult",
    "build_labeling_prompt",
    "parse_labeling_response",
]
