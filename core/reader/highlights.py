"""Highlight markers inside the rendered book content."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

import structlog
from bs4.element import NavigableString, Tag

from .content import soup_of, text_nodes
from .offsets import Selection, resolve_selection

log = structlog.get_logger(__name__)

MARKER_CLASS = "highlight"
ID_ATTR = "data-annotation-id"
TOOLTIP = "Click to view note"


class Highlightable(Protocol):
    id: str
    text: str


def _is_marker(node: object) -> bool:
    return (
        isinstance(node, Tag)
        and node.name == "span"
        and node.has_attr(ID_ATTR)
        and MARKER_CLASS in node.get_attribute_list("class")
    )


def find_markers(container: Tag, annotation_id: str | None = None) -> list[Tag]:
    markers = [tag for tag in container.find_all("span") if _is_marker(tag)]
    if annotation_id is None:
        return markers
    wanted = str(annotation_id)
    return [tag for tag in markers if tag.get(ID_ATTR) == wanted]


def has_marker(container: Tag, annotation_id: str) -> bool:
    return bool(find_markers(container, annotation_id))


def _inside_marker(node: NavigableString, container: Tag) -> bool:
    for parent in node.parents:
        if parent is container:
            return False
        if _is_marker(parent):
            return True
    return False


def _wrap_span(node: NavigableString, start: int, end: int, annotation_id: str) -> Tag:
    value = str(node)
    marker = soup_of(node).new_tag(
        "span",
        attrs={"class": MARKER_CLASS, ID_ATTR: str(annotation_id), "title": TOOLTIP},
    )
    marker.string = value[start:end]
    pieces: list[NavigableString | Tag] = []
    if value[:start]:
        pieces.append(NavigableString(value[:start]))
    pieces.append(marker)
    if value[end:]:
        pieces.append(NavigableString(value[end:]))
    node.replace_with(*pieces)
    return marker


def wrap_selection(container: Tag, selection: Selection, annotation_id: str) -> list[Tag]:
    """Wrap the selected range, one marker segment per text node it touches."""

    start, end = resolve_selection(container, selection)
    targets: list[tuple[NavigableString, int, int]] = []
    position = 0
    for node in text_nodes(container):
        node_start, node_end = position, position + len(node)
        position = node_end
        local_start = max(start, node_start) - node_start
        local_end = min(end, node_end) - node_start
        if local_start < local_end:
            targets.append((node, local_start, local_end))
        if node_end >= end:
            break
    return [_wrap_span(node, lo, hi, annotation_id) for node, lo, hi in targets]


def apply_highlights(container: Tag, annotations: Iterable[Highlightable]) -> int:
    """Re-wrap the literal text of each annotation; returns how many were applied.

    Longer texts go first so a shorter annotation contained in a longer one
    cannot split it.  Text already inside a marker is never searched, which makes
    repeated calls a no-op.
    """

    applied = 0
    ordered = sorted(annotations, key=lambda item: len(item.text), reverse=True)
    for annotation in ordered:
        annotation_id = str(annotation.id)
        if not annotation.text or has_marker(container, annotation_id):
            continue
        for node in list(text_nodes(container)):
            if _inside_marker(node, container):
                continue
            index = str(node).find(annotation.text)
            if index < 0:
                continue
            _wrap_span(node, index, index + len(annotation.text), annotation_id)
            applied += 1
            break
        else:
            log.debug("highlights.text_not_found", annotation_id=annotation_id)
    return applied


def unwrap_highlight(container: Tag, annotation_id: str) -> bool:
    """Replace every segment of the marker with its plain text."""

    markers = find_markers(container, annotation_id)
    if not markers:
        return False
    parents: list[Tag] = []
    for marker in markers:
        parent = marker.parent
        marker.unwrap()
        if parent is not None and all(parent is not seen for seen in parents):
            parents.append(parent)
    for parent in parents:
        parent.smooth()
    return True


__all__ = [
    "ID_ATTR",
    "MARKER_CLASS",
    "TOOLTIP",
    "apply_highlights",
    "find_markers",
    "has_marker",
    "unwrap_highlight",
    "wrap_selection",
]
