"""API routers."""

from . import annotations, auth, books, chat

__all__ = ["annotations", "auth", "books", "chat"]
