"""Database models and owner-scoped repositories for the book chat API."""

from . import init, models, repositories, session

__all__ = ["init", "models", "repositories", "session"]
