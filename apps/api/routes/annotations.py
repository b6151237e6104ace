"""Annotation Store endpoints."""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from apps.api.auth import get_current_user
from apps.api.db import models, repositories
from apps.api.db.session import session_scope
from apps.api.dependencies import as_utc, owner_id, parse_identifier
from apps.api.schemas import AnnotationCreate, AnnotationOut

router = APIRouter(prefix="/api/annotations", tags=["annotations"])

log = structlog.get_logger(__name__)

ANNOTATION_NOT_FOUND = "Annotation not found"
BOOK_NOT_FOUND = "Book not found"


def serialize_annotation(record: models.Annotation) -> dict[str, Any]:
    return AnnotationOut(
        id=str(record.id),
        user_id=str(record.owner_id),
        book_id=str(record.book_id),
        text=record.text,
        start_offset=record.start_offset,
        end_offset=record.end_offset,
        timestamp=as_utc(record.timestamp),
    ).as_wire()


@router.get("/{book_id}")
def list_annotations(
    book_id: str,
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
) -> list[dict[str, Any]]:
    identifier = parse_identifier(book_id, not_found=BOOK_NOT_FOUND)
    with session_scope() as db_session:
        repo = repositories.AnnotationRepository(db_session, owner_id(current_user))
        return [serialize_annotation(record) for record in repo.list_for_book(identifier)]


@router.post("")
def create_annotation(
    payload: AnnotationCreate,
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
) -> dict[str, Any]:
    book_id = parse_identifier(payload.book_id, not_found=BOOK_NOT_FOUND)
    with session_scope() as db_session:
        repo = repositories.AnnotationRepository(db_session, owner_id(current_user))
        try:
            record = repo.create(
                book_id=book_id,
                text=payload.text,
                start_offset=payload.start_offset,
                end_offset=payload.end_offset,
            )
        except LookupError as exc:
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail=BOOK_NOT_FOUND) from exc
        except ValueError as exc:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        body = serialize_annotation(record)
    log.info(
        "annotations.create",
        annotation_id=body["_id"],
        book_id=book_id,
        start=payload.start_offset,
        end=payload.end_offset,
    )
    return body


@router.delete("/{annotation_id}")
def delete_annotation(
    annotation_id: str,
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
) -> dict[str, str]:
    identifier = parse_identifier(annotation_id, not_found=ANNOTATION_NOT_FOUND)
    with session_scope() as db_session:
        deleted = repositories.AnnotationRepository(db_session, owner_id(current_user)).delete(
            identifier
        )
    if not deleted:
        raise HTTPException(status.HTTP_404_NOT_FOUND, detail=ANNOTATION_NOT_FOUND)
    log.info("annotations.delete", annotation_id=identifier)
    return {"message": "Annotation deleted successfully"}
