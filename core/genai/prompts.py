"""Prompt templates for the book assistant."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from string import Template
from typing import Any

from core.config import settings

_GREETING_TEMPLATE = Template(
    "You are an AI assistant specialized in analyzing books. The user has just uploaded "
    'a book titled "$title". Briefly acknowledge the book upload and ask a general question '
    'to start a conversation about it, like "What aspect of the book would you like to '
    'explore first?" or "How can I help you understand this book better?". Keep your '
    "greeting concise and encouraging. \n\nBook Content Excerpt (first $limit characters "
    "for context): $excerpt..."
)

_CONTEXT_TEMPLATE = Template(
    '${highlight}The following text is from the book titled "$title" you are discussing. '
    "Please use this as context for our conversation. Book excerpt (first $limit "
    "characters): $excerpt"
)

_ACK_TEMPLATE = Template(
    'Understood. I will use the book "$title" as the primary context for our discussion.'
)

Content = dict[str, Any]


def default_greeting(title: str) -> str:
    return f'Hello! I\'ve analyzed "{title}". What would you like to discuss?'


def greeting_prompt(title: str, book_text: str) -> str:
    limit = int(settings.greeting_excerpt_chars)
    return _GREETING_TEMPLATE.substitute(title=title, limit=limit, excerpt=book_text[:limit])


def _text_part(role: str, text: str) -> Content:
    return {"role": role, "parts": [{"text": text}]}


def _normalize_history(history: Sequence[Mapping[str, Any]] | None) -> list[Content]:
    normalized: list[Content] = []
    for item in history or ():
        role = item.get("role")
        if role not in {"user", "model"}:
            continue
        parts = item.get("parts")
        if isinstance(parts, list) and parts:
            normalized.append({"role": role, "parts": [dict(part) for part in parts]})
            continue
        text = item.get("text")
        if isinstance(text, str) and text:
            normalized.append(_text_part(role, text))
    return normalized


def chat_contents(
    *,
    title: str,
    book_text: str,
    user_message: str,
    history: Sequence[Mapping[str, Any]] | None = None,
    highlighted_text: str | None = None,
) -> list[Content]:
    """Build the ``contents`` list for a chat turn primed with the book text."""

    limit = int(settings.chat_context_chars)
    highlight = ""
    if highlighted_text:
        highlight = f'The user highlighted this text from the book: "{highlighted_text}". '
    contents = [
        _text_part(
            "user",
            _CONTEXT_TEMPLATE.substitute(
                highlight=highlight,
                title=title,
                limit=limit,
                excerpt=book_text[:limit],
            ),
        ),
        _text_part("model", _ACK_TEMPLATE.substitute(title=title)),
    ]
    contents.extend(_normalize_history(history))
    contents.append(_text_part("user", user_message))
    return contents


__all__ = ["chat_contents", "default_greeting", "greeting_prompt"]
