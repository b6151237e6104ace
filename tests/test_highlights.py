from __future__ import annotations

from core.reader.content import container_text, render_book_content
from core.reader.highlights import (
    ID_ATTR,
    TOOLTIP,
    apply_highlights,
    find_markers,
    unwrap_highlight,
    wrap_selection,
)
from core.reader.offsets import select_range


class _Note:
    def __init__(self, annotation_id: str, text: str) -> None:
        self.id = annotation_id
        self.text = text


def test_apply_wraps_first_occurrence_with_marker():
    container = render_book_content("The cat sat on the mat. The cat slept.")

    applied = apply_highlights(container, [_Note("7", "The cat")])

    markers = find_markers(container)
    assert applied == 1
    assert len(markers) == 1
    assert markers[0].get_text() == "The cat"
    assert markers[0][ID_ATTR] == "7"
    assert markers[0]["title"] == TOOLTIP
    assert "highlight" in markers[0].get_attribute_list("class")
    assert container_text(container) == "The cat sat on the mat. The cat slept."


def test_apply_is_idempotent():
    container = render_book_content("alpha beta gamma")
    notes = [_Note("1", "beta"), _Note("2", "gamma")]

    apply_highlights(container, notes)
    first = str(container)
    applied_again = apply_highlights(container, notes)

    assert applied_again == 0
    assert str(container) == first
    assert len(find_markers(container)) == 2


def test_longer_annotation_is_applied_before_contained_one():
    container = render_book_content("the cat and another cat")

    apply_highlights(container, [_Note("short", "cat"), _Note("long", "the cat")])

    long_marker = find_markers(container, "long")
    short_marker = find_markers(container, "short")
    assert [m.get_text() for m in long_marker] == ["the cat"]
    assert [m.get_text() for m in short_marker] == ["cat"]
    assert short_marker[0].parent is not long_marker[0]
    assert short_marker[0].find_parent("span") is None


def test_missing_text_is_skipped():
    container = render_book_content("nothing to see here")

    assert apply_highlights(container, [_Note("x", "absent phrase"), _Note("y", "")]) == 0
    assert find_markers(container) == []


def test_wrap_selection_across_paragraphs_creates_one_segment_per_node():
    container = render_book_content("first para\nsecond para")

    markers = wrap_selection(container, select_range(container, 6, 16), "9")

    assert [m.get_text() for m in markers] == ["para", "second"]
    assert all(m[ID_ATTR] == "9" for m in markers)
    assert container_text(container) == "first parasecond para"


def test_unwrap_restores_plain_text_and_other_markers():
    container = render_book_content("one two three four")
    apply_highlights(container, [_Note("a", "two"), _Note("b", "four")])

    assert unwrap_highlight(container, "a") is True

    assert [m.get_text() for m in find_markers(container)] == ["four"]
    paragraph = container.find("p")
    assert paragraph.contents[0] == "one two three "
    assert container_text(container) == "one two three four"


def test_unwrap_unknown_id_is_noop():
    container = render_book_content("one two")
    apply_highlights(container, [_Note("a", "two")])
    before = str(container)

    assert unwrap_highlight(container, "missing") is False
    assert str(container) == before


def test_unwrap_multi_segment_highlight():
    container = render_book_content("first para\nsecond para")
    wrap_selection(container, select_range(container, 6, 16), "9")

    assert unwrap_highlight(container, "9") is True

    assert find_markers(container) == []
    assert [p.get_text() for p in container.find_all("p")] == ["first para", "second para"]
    assert all(len(p.contents) == 1 for p in container.find_all("p"))
