"""Repository helpers scoped to an owner."""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from . import models


class _BaseRepository:
    """Base repository that enforces owner-level isolation."""

    model: type[Any]

    def __init__(self, session: Session, owner_id: int) -> None:
        self.session = session
        self.owner_id = owner_id

    def _all(self, stmt) -> list[Any]:
        return list(self.session.scalars(stmt))

    def _one(self, stmt) -> Any | None:
        return self.session.scalar(stmt)


class UserRepository:
    """Simple repository for user management."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int) -> models.User | None:
        return self.session.get(models.User, user_id)

    def get_by_email(self, email: str) -> models.User | None:
        stmt = select(models.User).where(models.User.email == email.strip().lower())
        return self.session.scalar(stmt)

    def find_existing(self, *, email: str, username: str | None) -> models.User | None:
        conditions = [models.User.email == email.strip().lower()]
        if username:
            conditions.append(models.User.username == username.strip())
        stmt = select(models.User).where(or_(*conditions))
        return self.session.scalar(stmt)

    def create(
        self,
        *,
        email: str,
        name: str | None = None,
        username: str | None = None,
        hashed_password: str | None = None,
    ) -> models.User:
        user = models.User(
            email=email.strip().lower(),
            name=name,
            username=username.strip() if username else None,
            hashed_password=hashed_password,
        )
        self.session.add(user)
        self.session.flush()
        return user


class BookRepository(_BaseRepository):
    model = models.Book

    def list(self) -> list[models.Book]:
        stmt = (
            select(models.Book)
            .where(models.Book.owner_id == self.owner_id)
            .order_by(models.Book.uploaded_at.desc(), models.Book.id.desc())
        )
        return self._all(stmt)

    def count(self) -> int:
        stmt = select(func.count()).select_from(models.Book).where(
            models.Book.owner_id == self.owner_id
        )
        return int(self.session.scalar(stmt) or 0)

    def get(self, book_id: int) -> models.Book | None:
        stmt = select(models.Book).where(
            models.Book.id == book_id, models.Book.owner_id == self.owner_id
        )
        return self._one(stmt)

    def create(
        self,
        *,
        title: str,
        content: str,
        initial_greeting: str | None = None,
    ) -> models.Book:
        book = models.Book(
            title=title,
            content=content,
            initial_greeting=initial_greeting,
            owner_id=self.owner_id,
        )
        self.session.add(book)
        self.session.flush()
        return book

    def set_greeting(self, book_id: int, greeting: str) -> models.Book | None:
        book = self.get(book_id)
        if book is None:
            return None
        book.initial_greeting = greeting
        self.session.add(book)
        return book

    def delete(self, book_id: int) -> bool:
        """Delete a book together with its annotations and chat history."""

        book = self.get(book_id)
        if book is None:
            return False
        self.session.execute(
            delete(models.Annotation)
            .where(
                models.Annotation.book_id == book.id,
                models.Annotation.owner_id == self.owner_id,
            )
            .execution_options(synchronize_session=False)
        )
        self.session.execute(
            delete(models.ChatMessage)
            .where(
                models.ChatMessage.book_id == book.id,
                models.ChatMessage.owner_id == self.owner_id,
            )
            .execution_options(synchronize_session=False)
        )
        self.session.expire(book, ["annotations", "messages"])
        self.session.delete(book)
        self.session.flush()
        return True


class ChatMessageRepository(_BaseRepository):
    model = models.ChatMessage

    def list_for_book(self, book_id: int) -> list[models.ChatMessage]:
        stmt = (
            select(models.ChatMessage)
            .where(
                models.ChatMessage.owner_id == self.owner_id,
                models.ChatMessage.book_id == book_id,
            )
            .order_by(models.ChatMessage.timestamp.asc(), models.ChatMessage.id.asc())
        )
        return self._all(stmt)

    def create(self, *, book_id: int, sender: str, text: str) -> models.ChatMessage:
        if sender not in {"user", "ai"}:
            raise ValueError("sender must be 'user' or 'ai'")
        book = BookRepository(self.session, self.owner_id).get(book_id)
        if book is None:
            raise ValueError("Book not found or not owned by this user")
        message = models.ChatMessage(
            book_id=book.id,
            owner_id=self.owner_id,
            sender=sender,
            text=text,
        )
        self.session.add(message)
        self.session.flush()
        return message


class AnnotationRepository(_BaseRepository):
    model = models.Annotation

    def list_for_book(self, book_id: int) -> list[models.Annotation]:
        stmt = (
            select(models.Annotation)
            .where(
                models.Annotation.owner_id == self.owner_id,
                models.Annotation.book_id == book_id,
            )
            .order_by(models.Annotation.timestamp.desc(), models.Annotation.id.desc())
        )
        return self._all(stmt)

    def get(self, annotation_id: int) -> models.Annotation | None:
        stmt = select(models.Annotation).where(
            models.Annotation.id == annotation_id,
            models.Annotation.owner_id == self.owner_id,
        )
        return self._one(stmt)

    def create(
        self,
        *,
        book_id: int,
        text: str,
        start_offset: int,
        end_offset: int,
    ) -> models.Annotation:
        cleaned = text.strip()
        if not cleaned:
            raise ValueError("Annotation text must not be empty")
        if start_offset < 0 or start_offset >= end_offset:
            raise ValueError("startOffset must be non-negative and less than endOffset")
        book = BookRepository(self.session, self.owner_id).get(book_id)
        if book is None:
            raise LookupError("Book not found or not owned by this user")
        annotation = models.Annotation(
            owner_id=self.owner_id,
            book_id=book.id,
            text=cleaned,
            start_offset=start_offset,
            end_offset=end_offset,
        )
        self.session.add(annotation)
        self.session.flush()
        return annotation

    def delete(self, annotation_id: int) -> bool:
        annotation = self.get(annotation_id)
        if annotation is None:
            return False
        self.session.delete(annotation)
        self.session.flush()
        return True


__all__ = [
    "AnnotationRepository",
    "BookRepository",
    "ChatMessageRepository",
    "UserRepository",
]
