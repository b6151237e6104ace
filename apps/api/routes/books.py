"""Router exposing book upload, listing and reading endpoints."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from apps.api.auth import get_current_user
from apps.api.db import models, repositories
from apps.api.db.session import session_scope
from apps.api.dependencies import genai_backend, isoformat, owner_id, parse_identifier
from apps.api.schemas import DeleteBookRequest
from apps.api.services.books import (
    BookExtractionError,
    discard_tempfile,
    extract_book,
    write_upload_to_tempfile,
)
from core.config import settings
from core.genai import GenAI, GenAIError
from core.genai.prompts import default_greeting, greeting_prompt

router = APIRouter(tags=["books"])

log = structlog.get_logger(__name__)

BOOK_NOT_FOUND = "Book not found or unauthorized access"


def _serialize_book(record: models.Book) -> dict[str, Any]:
    return {
        "_id": str(record.id),
        "title": record.title,
        "uploadedAt": isoformat(record.uploaded_at),
    }


def _serialize_message(message: models.ChatMessage) -> dict[str, Any]:
    return {
        "_id": str(message.id),
        "bookId": str(message.book_id),
        "userId": str(message.owner_id),
        "sender": message.sender,
        "text": message.text,
        "timestamp": isoformat(message.timestamp),
    }


def _chat_redirect(book_id: int) -> str:
    return f"/chat-app?bookId={book_id}"


@router.post("/upload-book")
async def upload_book(
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
    genai: Annotated[GenAI, Depends(genai_backend)],
    book: Annotated[UploadFile | None, File()] = None,
) -> dict[str, Any]:
    user_id = owner_id(current_user)
    limit = int(settings.max_books_per_user)
    with session_scope() as db_session:
        if repositories.BookRepository(db_session, user_id).count() >= limit:
            raise HTTPException(
                status.HTTP_400_BAD_REQUEST,
                detail=(
                    f"You have reached the limit of {limit} books. "
                    "Please delete an existing book to upload a new one."
                ),
            )
    if book is None or not book.filename:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="No files were uploaded.")

    filename = Path(book.filename).name
    tmp_path = await write_upload_to_tempfile(book)
    try:
        extracted = await run_in_threadpool(
            extract_book, tmp_path, filename=filename, content_type=book.content_type
        )
    except BookExtractionError as exc:
        log.warning("books.extract_failed", filename=filename, error=str(exc))
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=(
                f"Failed to parse PDF file: {exc}. Please ensure the file is not corrupted, "
                "password-protected, or a scanned image."
            ),
        ) from exc
    finally:
        discard_tempfile(tmp_path)

    with session_scope() as db_session:
        record = repositories.BookRepository(db_session, user_id).create(
            title=extracted.title, content=extracted.text
        )
        book_id = record.id
    log.info("books.upload", book_id=book_id, supported=extracted.supported, chars=len(extracted.text))

    if not extracted.supported:
        return {
            "message": (
                f'File "{extracted.title}" uploaded, but its format is unsupported for '
                "analysis. Please upload a .txt or .pdf file."
            ),
            "bookId": str(book_id),
            "redirectTo": _chat_redirect(book_id),
        }

    try:
        greeting = await run_in_threadpool(
            genai.generate_text, greeting_prompt(extracted.title, extracted.text)
        )
    except GenAIError as exc:
        log.warning("books.greeting_failed", book_id=book_id, error=str(exc))
    else:
        with session_scope() as db_session:
            repositories.BookRepository(db_session, user_id).set_greeting(book_id, greeting)

    return {
        "message": "Book uploaded and analyzed successfully!",
        "bookId": str(book_id),
        "redirectTo": _chat_redirect(book_id),
    }


@router.get("/user-books")
def user_books(
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
) -> dict[str, Any]:
    with session_scope() as db_session:
        records = repositories.BookRepository(db_session, owner_id(current_user)).list()
        return {"books": [_serialize_book(record) for record in records]}


@router.post("/delete-book")
def delete_book(
    payload: DeleteBookRequest,
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
) -> dict[str, str]:
    not_found = "Book not found or you do not have permission to delete it."
    book_id = parse_identifier(payload.book_id, not_found=not_found)
    with session_scope() as db_session:
        deleted = repositories.BookRepository(db_session, owner_id(current_user)).delete(book_id)
    if not deleted:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=not_found)
    log.info("books.delete", book_id=book_id)
    return {"message": "Book deleted successfully."}


@router.get("/get-book-content/{book_id}")
def get_book_content(
    book_id: str,
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
) -> dict[str, Any]:
    identifier = parse_identifier(book_id, not_found=BOOK_NOT_FOUND)
    with session_scope() as db_session:
        record = repositories.BookRepository(db_session, owner_id(current_user)).get(identifier)
        if record is None:
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail=BOOK_NOT_FOUND)
        return {
            "bookTitle": record.title,
            "bookText": record.content,
            "initialGreeting": record.initial_greeting or default_greeting(record.title),
        }


@router.get("/get-chat-history/{book_id}")
def get_chat_history(
    book_id: str,
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
) -> dict[str, Any]:
    identifier = parse_identifier(book_id, not_found=BOOK_NOT_FOUND)
    user_id = owner_id(current_user)
    with session_scope() as db_session:
        if repositories.BookRepository(db_session, user_id).get(identifier) is None:
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail=BOOK_NOT_FOUND)
        messages = repositories.ChatMessageRepository(db_session, user_id).list_for_book(identifier)
        return {"chatHistory": [_serialize_message(message) for message in messages]}
