from __future__ import annotations

import pytest

from core.reader.content import container_text, render_book_content, text_nodes
from core.reader.highlights import apply_highlights, wrap_selection
from core.reader.offsets import (
    Boundary,
    Selection,
    SelectionRejected,
    locate,
    resolve_selection,
    select_range,
    selected_text,
    text_offset,
    trim_selection,
)


class _Note:
    def __init__(self, annotation_id: str, text: str) -> None:
        self.id = annotation_id
        self.text = text


def test_render_splits_lines_into_paragraphs():
    container = render_book_content("First line\n\n  Second line  \n")

    paragraphs = container.find_all("p")
    assert [p.get_text() for p in paragraphs] == ["First line", "Second line"]
    assert container_text(container) == "First lineSecond line"


def test_empty_book_renders_placeholder_without_text():
    container = render_book_content("   \n")

    assert container.find("p", attrs={"data-placeholder": "true"}) is not None
    assert container_text(container) == ""


def test_offset_counts_characters_across_paragraphs():
    container = render_book_content("Hello\nWorld")
    world = list(text_nodes(container))[1]

    assert text_offset(container, world, 2) == 7


def test_element_boundary_counts_child_nodes():
    container = render_book_content("Hello\nWorld")
    first, second = container.find_all("p")

    assert text_offset(container, container, 1) == 5
    assert text_offset(container, second, 0) == 5
    assert text_offset(container, first, 1) == 5
    assert text_offset(container, container, 2) == 10


def test_offsets_ignore_existing_markup():
    container = render_book_content("Hello brave new world")
    wrap_selection(container, select_range(container, 6, 11), "a1")
    nodes = list(text_nodes(container))

    assert [str(node) for node in nodes] == ["Hello ", "brave", " new world"]
    assert text_offset(container, nodes[2], 1) == 12


def test_reversed_selection_is_normalized():
    container = render_book_content("abcdefgh")
    node = next(text_nodes(container))
    selection = Selection(Boundary(node, 6), Boundary(node, 2))

    assert resolve_selection(container, selection) == (2, 6)


def test_collapsed_selection_is_rejected():
    container = render_book_content("abcdefgh")
    node = next(text_nodes(container))

    with pytest.raises(SelectionRejected):
        resolve_selection(container, Selection(Boundary(node, 3), Boundary(node, 3)))
    with pytest.raises(SelectionRejected):
        resolve_selection(container, None)


def test_selection_outside_container_is_rejected():
    container = render_book_content("abcdefgh")
    other = render_book_content("abcdefgh")
    foreign = next(text_nodes(other))

    with pytest.raises(SelectionRejected):
        resolve_selection(container, Selection(Boundary(foreign, 0), Boundary(foreign, 4)))


def test_placeholder_text_is_not_selectable():
    container = render_book_content("")
    placeholder = container.find("p", attrs={"data-placeholder": "true"})
    node = placeholder.contents[0]
    selection = Selection(Boundary(node, 3), Boundary(node, 10))

    with pytest.raises(SelectionRejected):
        resolve_selection(container, selection)
    with pytest.raises(SelectionRejected):
        trim_selection(container, selection)
    with pytest.raises(SelectionRejected):
        resolve_selection(container, Selection(Boundary(placeholder, 0), Boundary(placeholder, 1)))


def test_trim_selection_drops_surrounding_whitespace():
    container = render_book_content("one   two   three")
    node = next(text_nodes(container))
    selection = Selection(Boundary(node, 3), Boundary(node, 12))

    trimmed = trim_selection(container, selection)

    assert selected_text(container, trimmed) == "two"
    assert resolve_selection(container, trimmed) == (6, 9)


def test_whitespace_only_selection_is_rejected():
    container = render_book_content("one   two")
    node = next(text_nodes(container))

    with pytest.raises(SelectionRejected):
        trim_selection(container, Selection(Boundary(node, 3), Boundary(node, 6)))


def test_locate_is_inverse_of_text_offset():
    container = render_book_content("Hello\nWorld")

    boundary = locate(container, 7)
    assert str(boundary.node) == "World"
    assert boundary.offset == 2
    assert text_offset(container, boundary.node, boundary.offset) == 7

    seam = locate(container, 5, prefer_end=True)
    assert str(seam.node) == "Hello"
    assert seam.offset == 5

    with pytest.raises(ValueError):
        locate(container, 11)


def test_offsets_survive_reapplied_highlights():
    text = "It was the best of times, it was the worst of times."
    container = render_book_content(text)
    apply_highlights(container, [_Note("n1", "best of times")])
    nodes = list(text_nodes(container))
    tail = nodes[-1]

    start = text_offset(container, tail, 0)
    assert text[start:].startswith(str(tail))
    assert container_text(container) == text
