"""Shared FastAPI dependencies and request helpers."""

from __future__ import annotations

from contextlib import suppress
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, status

from core.config import settings
from core.genai import GenAI, get_genai

_backend: GenAI | None = None
_backend_key: tuple[str, str] | None = None


def genai_backend() -> GenAI:
    """Return the configured backend, rebuilt when its settings change."""

    global _backend, _backend_key
    key = (settings.genai_backend, settings.gemini_api_key)
    if _backend is None or key != _backend_key:
        _backend = get_genai()
        _backend_key = key
    return _backend


def parse_identifier(value: Any, *, not_found: str) -> int:
    """Parse a path or body identifier; malformed ids cannot name a row."""

    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            with suppress(ValueError):
                return int(stripped)
    raise HTTPException(status.HTTP_404_NOT_FOUND, detail=not_found)


def owner_id(current_user: dict[str, Any]) -> int:
    value = current_user.get("id")
    if not isinstance(value, int):
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Invalid user profile")
    return value


def as_utc(timestamp: datetime) -> datetime:
    # SQLite drops the offset on the way back
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp


def isoformat(timestamp: datetime | None) -> str | None:
    if timestamp is None:
        return None
    return as_utc(timestamp).isoformat()


__all__ = ["as_utc", "genai_backend", "isoformat", "owner_id", "parse_identifier"]
