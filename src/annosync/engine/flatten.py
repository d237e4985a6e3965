"""Canonical flattening of a document tree into one plain-text string.

Every component that talks about character positions goes through
``flatten_document``. The convention:

- blocks are the textblocks met in a depth-first walk: non-inline nodes
  whose children are all inline, or that have no children at all;
- a text node contributes its text, a hard break contributes ``"\\n"``
  and any other inline atom contributes one U+FFFC;
- block texts are joined by a single ``"\\n"``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from annosync.models.document import HARD_BREAK_TYPES, Node

OBJECT_REPLACEMENT = "\ufffc"


@dataclass(frozen=True)
class InlineRun:
    """One inline child of a block with its absolute full-text span."""

    index: int
    start: int
    end: int
    node: Node


@dataclass
class FlatBlock:
    """A textblock, its location in the tree and its slice of the full text."""

    path: tuple[int, ...]
    node: Node
    start: int
    text: str
    runs: list[InlineRun] = field(default_factory=list)

    @property
    def end(self) -> int:
        return self.start + len(self.text)


@dataclass
class FlatDocument:
    text: str
    blocks: list[FlatBlock]

    def block_at(self, offset: int) -> FlatBlock | None:
        """Return the block whose span contains ``offset``."""
        for block in self.blocks:
            if block.start <= offset <= block.end:
                return block
        return None


def _inline_text(node: Node) -> str:
    if node.is_text:
        return node.text or ""
    if node.type in HARD_BREAK_TYPES:
        return "\n"
    return OBJECT_REPLACEMENT


def is_textblock(node: Node) -> bool:
    if node.is_inline:
        return False
    return not node.content or all(child.is_inline for child in node.content)


@dataclass
class _WalkState:
    """Mutable state threaded through the flattening walk."""

    offset: int = 0
    blocks: list[FlatBlock] = field(default_factory=list)


def _flatten_block(node: Node, path: tuple[int, ...], state: _WalkState) -> None:
    if state.blocks:
        state.offset += 1  # "\n" separator
    block = FlatBlock(path=path, node=node, start=state.offset, text="")
    pieces: list[str] = []
    for i, child in enumerate(node.content or []):
        piece = _inline_text(child)
        block.runs.append(
            InlineRun(
                index=i,
                start=state.offset,
                end=state.offset + len(piece),
                node=child,
            )
        )
        pieces.append(piece)
        state.offset += len(piece)
    block.text = "".join(pieces)
    state.blocks.append(block)


def _walk(node: Node, path: tuple[int, ...], state: _WalkState) -> None:
    for i, child in enumerate(node.content or []):
        if child.is_inline:
            continue
        child_path = (*path, i)
        if is_textblock(child):
            _flatten_block(child, child_path, state)
        else:
            _walk(child, child_path, state)


def flatten_document(doc: Node) -> FlatDocument:
    """Flatten ``doc`` into its full text and textblock list."""
    state = _WalkState()
    if doc.content and all(child.is_inline for child in doc.content):
        # a bare textblock was passed as the root
        _flatten_block(doc, (), state)
    else:
        _walk(doc, (), state)
    text = "\n".join(block.text for block in state.blocks)
    return FlatDocument(text=text, blocks=state.blocks)


def document_text(doc: Node) -> str:
    return flatten_document(doc).text
