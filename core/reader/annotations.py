"""Annotation Controller: keeps highlights in sync with the Annotation Store."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import structlog
from bs4.element import Tag

from .client import Annotation, AnnotationNotFound, AnnotationStore, StoreError
from .content import contains, render_book_content
from .highlights import apply_highlights, find_markers, unwrap_highlight, wrap_selection
from .offsets import (
    Selection,
    SelectionRejected,
    resolve_selection,
    select_range,
    selected_text,
    trim_selection,
)

log = structlog.get_logger(__name__)

PULSE_SECONDS = 2.0
PULSE_STYLE = "box-shadow: 0 0 10px rgba(251, 191, 36, 0.8)"
TOOLBAR_HALF_WIDTH = 100
TOOLBAR_RISE = 60
SIDE_LIST_TEXT_LIMIT = 100
SIDE_LIST_DATE_FORMAT = "%m/%d/%Y"
NO_HIGHLIGHTS = "No highlights yet"


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float


@dataclass
class Toolbar:
    visible: bool = False
    x: float = 0.0
    y: float = 0.0
    selection: Selection | None = None

    def show(self, rect: Rect, selection: Selection) -> None:
        self.x = rect.left + rect.width / 2 - TOOLBAR_HALF_WIDTH
        self.y = rect.top - TOOLBAR_RISE
        self.selection = selection
        self.visible = True

    def hide(self) -> None:
        self.visible = False
        self.selection = None


@dataclass(frozen=True)
class StatusMessage:
    text: str
    kind: str = "info"


@dataclass(frozen=True)
class SideListEntry:
    annotation_id: str
    text: str
    date: str


@dataclass(frozen=True)
class SideList:
    entries: list[SideListEntry]
    placeholder: str | None = None


@dataclass
class AnnotationState:
    """Everything the controller knows about the open book."""

    book_id: str
    book_text: str
    container: Tag
    annotations: list[Annotation] = field(default_factory=list)
    toolbar: Toolbar = field(default_factory=Toolbar)
    status: StatusMessage | None = None
    focused: str | None = None
    pulsing: dict[str, asyncio.TimerHandle] = field(default_factory=dict)


def _truncate(text: str, limit: int = SIDE_LIST_TEXT_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class AnnotationController:
    """Owns the highlight state of one open book at a time."""

    def __init__(self, store: AnnotationStore, *, pulse_seconds: float = PULSE_SECONDS) -> None:
        self.store = store
        self.pulse_seconds = pulse_seconds
        self._state: AnnotationState | None = None

    @property
    def state(self) -> AnnotationState:
        if self._state is None:
            raise RuntimeError("No book is open")
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is not None

    def open_book(self, book_id: str, book_text: str) -> AnnotationState:
        self.close()
        self._state = AnnotationState(
            book_id=str(book_id),
            book_text=book_text,
            container=render_book_content(book_text),
        )
        return self._state

    def close(self) -> None:
        state = self._state
        if state is None:
            return
        for handle in state.pulsing.values():
            handle.cancel()
        state.pulsing.clear()
        self._state = None

    async def load(self) -> list[Annotation]:
        """Replace the in-memory list from the store, then re-apply highlights."""

        state = self.state
        try:
            annotations = await self.store.list_annotations(state.book_id)
        except StoreError as exc:
            log.warning("annotations.load_failed", book_id=state.book_id, error=str(exc))
            annotations = []
            if self._state is state:
                state.status = StatusMessage(f"Failed to load highlights: {exc}", "error")
        if self._state is not state:
            return annotations
        state.annotations = list(annotations)
        apply_highlights(state.container, state.annotations)
        log.info("annotations.loaded", book_id=state.book_id, count=len(state.annotations))
        return state.annotations

    def render(self, book_text: str | None = None) -> Tag:
        """Re-render the content from plain text and re-apply highlights."""

        state = self.state
        if book_text is not None:
            state.book_text = book_text
        state.toolbar.hide()
        state.container = render_book_content(state.book_text)
        apply_highlights(state.container, state.annotations)
        return state.container

    def apply(self) -> int:
        return apply_highlights(self.state.container, self.state.annotations)

    # selection toolbar

    def _inside(self, selection: Selection) -> bool:
        container = self.state.container
        return contains(container, selection.start.node) and contains(
            container, selection.end.node
        )

    def on_selection_change(self, selection: Selection | None, rect: Rect | None = None) -> bool:
        """Show the toolbar for a usable selection; returns whether it is visible."""

        toolbar = self.state.toolbar
        if selection is None or selection.is_collapsed or not self._inside(selection):
            toolbar.hide()
            return False
        try:
            text = selected_text(self.state.container, selection).strip()
        except SelectionRejected:
            text = ""
        if not text:
            toolbar.hide()
            return False
        toolbar.show(rect or Rect(0.0, 0.0, 0.0, 0.0), selection)
        return True

    def on_click_elsewhere(self, *, on_toolbar: bool = False) -> None:
        if not on_toolbar:
            self.state.toolbar.hide()

    def highlighted_context(self, selection: Selection | None) -> str | None:
        """Trimmed selected text for the chat prompt, or ``None``."""

        if selection is None or not self.is_open or not self._inside(selection):
            return None
        try:
            text = selected_text(self.state.container, selection).strip()
        except SelectionRejected:
            return None
        return text or None

    # create / delete

    async def create_highlight(self, selection: Selection | None = None) -> Annotation | None:
        state = self.state
        selection = selection if selection is not None else state.toolbar.selection
        state.toolbar.hide()
        container = state.container
        try:
            trimmed = trim_selection(container, selection)
            start, end = resolve_selection(container, trimmed)
        except SelectionRejected as exc:
            log.info("annotations.selection_rejected", book_id=state.book_id, reason=str(exc))
            return None
        text = selected_text(container, trimmed)

        try:
            annotation = await self.store.create_annotation(state.book_id, text, start, end)
        except StoreError as exc:
            log.warning("annotations.create_failed", book_id=state.book_id, error=str(exc))
            if self._state is state:
                state.status = StatusMessage(f"Failed to save highlight: {exc}", "error")
            return None

        if self._state is not state:
            return annotation
        if state.container is container:
            wrap_selection(container, select_range(container, start, end), annotation.id)
            state.annotations.append(annotation)
        else:
            state.annotations.append(annotation)
            apply_highlights(state.container, state.annotations)
        state.status = None
        log.info(
            "annotations.create",
            book_id=state.book_id,
            annotation_id=annotation.id,
            start=start,
            end=end,
        )
        return annotation

    async def delete_highlight(self, annotation_id: str) -> bool:
        state = self.state
        annotation_id = str(annotation_id)
        try:
            await self.store.delete_annotation(annotation_id)
        except AnnotationNotFound:
            log.info("annotations.delete_not_found", annotation_id=annotation_id)
            if self._state is state:
                state.status = StatusMessage("Highlight not found. It may already be deleted.")
            return False
        except StoreError as exc:
            log.warning("annotations.delete_failed", annotation_id=annotation_id, error=str(exc))
            if self._state is state:
                state.status = StatusMessage(f"Failed to delete highlight: {exc}", "error")
            return False

        if self._state is not state:
            return True
        handle = state.pulsing.pop(annotation_id, None)
        if handle is not None:
            handle.cancel()
        unwrap_highlight(state.container, annotation_id)
        state.annotations = [item for item in state.annotations if item.id != annotation_id]
        if state.focused == annotation_id:
            state.focused = None
        state.status = None
        log.info("annotations.delete", book_id=state.book_id, annotation_id=annotation_id)
        return True

    # side list

    def side_list(self) -> SideList:
        annotations = sorted(
            self.state.annotations, key=lambda item: item.timestamp, reverse=True
        )
        if not annotations:
            return SideList(entries=[], placeholder=NO_HIGHLIGHTS)
        entries = [
            SideListEntry(
                annotation_id=item.id,
                text=_truncate(item.text),
                date=item.timestamp.strftime(SIDE_LIST_DATE_FORMAT),
            )
            for item in annotations
        ]
        return SideList(entries=entries)

    def focus(self, annotation_id: str) -> bool:
        """Scroll the highlight into view and pulse it for ``pulse_seconds``."""

        state = self.state
        annotation_id = str(annotation_id)
        markers = find_markers(state.container, annotation_id)
        if not markers:
            return False
        state.focused = annotation_id
        for marker in markers:
            marker["style"] = PULSE_STYLE
        previous = state.pulsing.pop(annotation_id, None)
        if previous is not None:
            previous.cancel()
        loop = asyncio.get_running_loop()
        state.pulsing[annotation_id] = loop.call_later(
            self.pulse_seconds, self._clear_pulse, state, annotation_id
        )
        return True

    def is_pulsing(self, annotation_id: str) -> bool:
        return str(annotation_id) in self.state.pulsing

    def _clear_pulse(self, state: AnnotationState, annotation_id: str) -> None:
        state.pulsing.pop(annotation_id, None)
        for marker in find_markers(state.container, annotation_id):
            if marker.get("style") == PULSE_STYLE:
                del marker["style"]


__all__ = [
    "AnnotationController",
    "AnnotationState",
    "NO_HIGHLIGHTS",
    "PULSE_SECONDS",
    "Rect",
    "SideList",
    "SideListEntry",
    "StatusMessage",
    "Toolbar",
]
