"""Chat and speech synthesis endpoints."""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from apps.api.auth import get_current_user
from apps.api.db import repositories
from apps.api.db.session import session_scope
from apps.api.dependencies import genai_backend, owner_id, parse_identifier
from apps.api.schemas import ChatRequest, SpeechRequest
from core.genai import GenAI
from core.genai.prompts import chat_contents

router = APIRouter(tags=["chat"])

log = structlog.get_logger(__name__)

_CHAT_BOOK_NOT_FOUND = (
    "Selected book not found or you do not have permission to access it."
)


@router.post("/chat")
async def chat(
    req: ChatRequest,
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
    genai: Annotated[GenAI, Depends(genai_backend)],
) -> dict[str, str]:
    if req.book_id is None or req.book_id == "":
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST,
            detail="No book selected for chat. Please select a book from your library.",
        )
    book_id = parse_identifier(req.book_id, not_found=_CHAT_BOOK_NOT_FOUND)
    user_id = owner_id(current_user)
    with session_scope() as db_session:
        book = repositories.BookRepository(db_session, user_id).get(book_id)
        if book is None:
            raise HTTPException(status.HTTP_404_NOT_FOUND, detail=_CHAT_BOOK_NOT_FOUND)
        title, content = book.title, book.content
        repositories.ChatMessageRepository(db_session, user_id).create(
            book_id=book_id, sender="user", text=req.user_message
        )

    contents = chat_contents(
        title=title,
        book_text=content,
        user_message=req.user_message,
        history=req.conversation_history,
        highlighted_text=req.highlighted_text,
    )
    reply = await run_in_threadpool(genai.generate, contents)

    with session_scope() as db_session:
        repositories.ChatMessageRepository(db_session, user_id).create(
            book_id=book_id, sender="ai", text=reply
        )
    log.info(
        "chat.reply",
        book_id=book_id,
        history=len(req.conversation_history),
        highlighted=bool(req.highlighted_text),
    )
    return {"aiResponse": reply}


@router.post("/synthesize-speech")
async def synthesize_speech(
    req: SpeechRequest,
    _user: Annotated[dict[str, Any], Depends(get_current_user)],
    genai: Annotated[GenAI, Depends(genai_backend)],
) -> dict[str, str]:
    if not req.text.strip():
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST, detail="Text is required for speech synthesis."
        )
    audio_data, mime_type = await run_in_threadpool(genai.synthesize_speech, req.text)
    log.info("speech.synthesize", chars=len(req.text), mime_type=mime_type)
    return {"audioData": audio_data, "mimeType": mime_type}
