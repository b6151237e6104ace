"""Reader-side core: highlights, annotations and speech playback."""

from .annotations import AnnotationController, AnnotationState, Rect, SideList, StatusMessage
from .client import (
    Annotation,
    AnnotationNotFound,
    AnnotationStore,
    BookChatClient,
    BookContent,
    SpeechClip,
    StoreError,
)
from .content import container_text, render_book_content
from .highlights import apply_highlights, find_markers, unwrap_highlight, wrap_selection
from .offsets import Boundary, Selection, SelectionRejected, resolve_selection, text_offset
from .playback import (
    AudioPlayer,
    PlaybackState,
    PlaybackStatus,
    PlaybackTransitionError,
    SoundDeviceOutput,
)
from .preferences import ClientPreferences
from .voice import VoiceController

__all__ = [
    "Annotation",
    "AnnotationController",
    "AnnotationNotFound",
    "AnnotationState",
    "AnnotationStore",
    "AudioPlayer",
    "BookChatClient",
    "BookContent",
    "Boundary",
    "ClientPreferences",
    "PlaybackState",
    "PlaybackStatus",
    "PlaybackTransitionError",
    "Rect",
    "Selection",
    "SelectionRejected",
    "SideList",
    "SoundDeviceOutput",
    "SpeechClip",
    "StatusMessage",
    "StoreError",
    "VoiceController",
    "apply_highlights",
    "container_text",
    "find_markers",
    "render_book_content",
    "resolve_selection",
    "text_offset",
    "unwrap_highlight",
    "wrap_selection",
]
