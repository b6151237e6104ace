"""Render book text into the reader's content container."""

from __future__ import annotations

from collections.abc import Iterator

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PageElement, PreformattedString, Tag

CONTAINER_ID = "book-content-display"
PLACEHOLDER_ATTR = "data-placeholder"
EMPTY_BOOK_MESSAGE = "No book content available. Please upload a .txt or .pdf file."


def render_book_content(book_text: str | None) -> Tag:
    """Build ``<div id="book-content-display">`` with one paragraph per non-blank line."""

    soup = BeautifulSoup("", "html.parser")
    container = soup.new_tag("div", attrs={"id": CONTAINER_ID})
    soup.append(container)
    lines = [line.strip() for line in (book_text or "").split("\n")]
    paragraphs = [line for line in lines if line]
    if not paragraphs:
        placeholder = soup.new_tag("p", attrs={"class": "placeholder", PLACEHOLDER_ATTR: "true"})
        placeholder.string = EMPTY_BOOK_MESSAGE
        container.append(placeholder)
        return container
    for line in paragraphs:
        paragraph = soup.new_tag("p")
        paragraph.string = line
        container.append(paragraph)
    return container


def contains(container: Tag, node: PageElement | None) -> bool:
    """Identity-based containment; equal strings elsewhere do not count."""

    if node is None:
        return False
    if node is container:
        return True
    return any(parent is container for parent in node.parents)


def _in_placeholder(node: PageElement, container: Tag) -> bool:
    for parent in node.parents:
        if parent is container:
            return False
        if isinstance(parent, Tag) and parent.has_attr(PLACEHOLDER_ATTR):
            return True
    return False


def text_nodes(container: Tag) -> Iterator[NavigableString]:
    """Yield the text-bearing descendants of ``container`` in document order."""

    for node in container.descendants:
        if not isinstance(node, NavigableString) or isinstance(node, PreformattedString):
            continue
        if _in_placeholder(node, container):
            continue
        yield node


def container_text(container: Tag) -> str:
    return "".join(str(node) for node in text_nodes(container))


def soup_of(node: PageElement) -> BeautifulSoup:
    """Return the document owning ``node`` (used as the tag factory)."""

    if isinstance(node, BeautifulSoup):
        return node
    for parent in node.parents:
        if isinstance(parent, BeautifulSoup):
            return parent
    return BeautifulSoup("", "html.parser")


__all__ = [
    "CONTAINER_ID",
    "EMPTY_BOOK_MESSAGE",
    "container_text",
    "contains",
    "render_book_content",
    "soup_of",
    "text_nodes",
]
