"""Map selection boundaries inside the content container to character offsets.

A boundary follows the DOM range convention: on a text node the offset counts
characters, on an element it counts child nodes.  Offsets are the number of
text characters that precede the boundary across every text node of the
container, in document order.
"""

from __future__ import annotations

from dataclasses import dataclass

from bs4.element import NavigableString, PageElement, Tag

from .content import container_text, contains, text_nodes


class SelectionRejected(ValueError):
    """Raised for selections that cannot become an annotation."""


@dataclass(frozen=True, eq=False)
class Boundary:
    node: PageElement
    offset: int


@dataclass(frozen=True, eq=False)
class Selection:
    start: Boundary
    end: Boundary

    @property
    def is_collapsed(self) -> bool:
        return self.start.node is self.end.node and self.start.offset == self.end.offset


def _chars_before(container: Tag, target: PageElement) -> int:
    if target is container:
        return 0
    total = 0
    texts = {id(node) for node in text_nodes(container)}
    for node in container.descendants:
        if node is target:
            return total
        if id(node) in texts:
            total += len(node)
    return total


def _chars_within(container: Tag, element: Tag) -> int:
    return sum(len(node) for node in text_nodes(container) if contains(element, node))


def text_offset(container: Tag, node: PageElement, offset: int) -> int:
    """Characters in all text nodes preceding ``(node, offset)``."""

    if not contains(container, node):
        return len(container_text(container))
    if isinstance(node, NavigableString):
        return _chars_before(container, node) + max(0, min(offset, len(node)))
    assert isinstance(node, Tag)
    children = node.contents
    if offset < len(children):
        return _chars_before(container, children[offset])
    return _chars_before(container, node) + _chars_within(container, node)


def _is_anchor(container: Tag, node: PageElement) -> bool:
    if isinstance(node, NavigableString):
        return any(node is text for text in text_nodes(container))
    return contains(container, node)


def resolve_selection(container: Tag, selection: Selection | None) -> tuple[int, int]:
    """Return ``(start, end)`` offsets, rejecting collapsed or foreign selections.

    Text boundaries must sit on a highlightable text node; text inside the
    empty-book placeholder is treated as outside the content.
    """

    if selection is None or selection.is_collapsed:
        raise SelectionRejected("Selection is empty")
    if not _is_anchor(container, selection.start.node) or not _is_anchor(
        container, selection.end.node
    ):
        raise SelectionRejected("Selection falls outside the book content")
    start = text_offset(container, selection.start.node, selection.start.offset)
    end = text_offset(container, selection.end.node, selection.end.offset)
    if start > end:
        start, end = end, start
    if start == end:
        raise SelectionRejected("Selection is empty")
    return start, end


def locate(container: Tag, char_offset: int, *, prefer_end: bool = False) -> Boundary:
    """Reverse map a character offset onto a text-node boundary.

    An offset on the seam between two text nodes resolves to the start of the
    later node, or to the end of the earlier one when ``prefer_end`` is set.
    """

    if char_offset < 0:
        raise ValueError(f"Offset {char_offset} is negative")
    total = 0
    last: NavigableString | None = None
    for node in text_nodes(container):
        length = len(node)
        if char_offset < total + length or (prefer_end and char_offset == total + length):
            return Boundary(node, char_offset - total)
        total += length
        last = node
    if last is not None and char_offset == total:
        return Boundary(last, len(last))
    raise ValueError(f"Offset {char_offset} is outside the content ({total} characters)")


def select_range(container: Tag, start: int, end: int) -> Selection:
    """Build the selection covering ``container_text[start:end]``."""

    return Selection(locate(container, start), locate(container, end, prefer_end=True))


def trim_selection(container: Tag, selection: Selection | None) -> Selection:
    """Move both boundaries inwards past surrounding whitespace."""

    start, end = resolve_selection(container, selection)
    text = container_text(container)
    end = min(end, len(text))
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    if start >= end:
        raise SelectionRejected("Selection contains only whitespace")
    return select_range(container, start, end)


def selected_text(container: Tag, selection: Selection | None) -> str:
    start, end = resolve_selection(container, selection)
    return container_text(container)[start:end]


__all__ = [
    "Boundary",
    "Selection",
    "SelectionRejected",
    "locate",
    "resolve_selection",
    "select_range",
    "selected_text",
    "text_offset",
    "trim_selection",
]
