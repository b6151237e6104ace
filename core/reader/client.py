"""Async HTTP client for the book chat server."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import httpx
import structlog

log = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8000"
_MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


class StoreError(RuntimeError):
    """Raised when the server rejects a request or cannot be reached."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AnnotationNotFound(StoreError):
    """Raised when deleting an annotation that is missing or owned by someone else."""


def _parse_timestamp(value: Any) -> datetime:
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Annotation:
    id: str
    user_id: str
    book_id: str
    text: str
    start_offset: int
    end_offset: int
    timestamp: datetime

    @classmethod
    def from_wire(cls, payload: Mapping[str, Any]) -> Annotation:
        try:
            return cls(
                id=str(payload["_id"]),
                user_id=str(payload["userId"]),
                book_id=str(payload["bookId"]),
                text=str(payload["text"]),
                start_offset=int(payload["startOffset"]),
                end_offset=int(payload["endOffset"]),
                timestamp=_parse_timestamp(payload["timestamp"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise StoreError(f"Malformed annotation payload: {exc}") from exc


@dataclass(frozen=True)
class BookContent:
    title: str
    text: str
    initial_greeting: str


@dataclass(frozen=True)
class SpeechClip:
    audio_data: str
    mime_type: str


class AnnotationStore(Protocol):
    async def list_annotations(self, book_id: str) -> list[Annotation]: ...

    async def create_annotation(
        self, book_id: str, text: str, start_offset: int, end_offset: int
    ) -> Annotation: ...

    async def delete_annotation(self, annotation_id: str) -> None: ...


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, Mapping):
        detail = body.get("detail")
        if isinstance(detail, str):
            return detail
        error = body.get("error")
        if isinstance(error, Mapping) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
    return response.text or response.reason_phrase


class BookChatClient:
    """Annotation Store plus the other endpoints the reader page talks to."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_client = client is None
        self._csrf_token: str | None = None

    async def __aenter__(self) -> BookChatClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if method in _MUTATING_METHODS and self._csrf_token:
            headers.setdefault("x-csrf-token", self._csrf_token)
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            log.warning("client.request_failed", method=method, path=path, error=str(exc))
            raise StoreError(f"Request to {path} failed: {exc}") from exc
        if response.status_code >= 400:
            message = _error_message(response)
            log.info(
                "client.request_rejected",
                method=method,
                path=path,
                status=response.status_code,
                error=message,
            )
            raise StoreError(message, status_code=response.status_code)
        return response

    async def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._send(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError(f"Invalid JSON from {path}") from exc

    # auth

    async def signup(self, username: str, email: str, password: str) -> dict[str, Any]:
        return await self._json(
            "POST", "/signup", json={"username": username, "email": email, "password": password}
        )

    async def login(self, email: str, password: str) -> dict[str, Any]:
        response = await self._send("POST", "/login", json={"email": email, "password": password})
        self._csrf_token = response.headers.get("x-csrf-token") or None
        return response.json()

    async def logout(self) -> None:
        await self._send("GET", "/logout")
        self._csrf_token = None

    async def check_auth(self) -> dict[str, Any]:
        return await self._json("GET", "/check-auth")

    # books

    async def upload_book(
        self, filename: str, data: bytes, content_type: str = "text/plain"
    ) -> dict[str, Any]:
        files = {"book": (filename, data, content_type)}
        return await self._json("POST", "/upload-book", files=files)

    async def upload_book_file(self, path: Path, content_type: str | None = None) -> dict[str, Any]:
        if content_type is None:
            content_type = "application/pdf" if path.suffix.lower() == ".pdf" else "text/plain"
        return await self.upload_book(path.name, path.read_bytes(), content_type)

    async def list_books(self) -> list[dict[str, Any]]:
        payload = await self._json("GET", "/user-books")
        return list(payload.get("books", []))

    async def delete_book(self, book_id: str) -> None:
        await self._send("POST", "/delete-book", json={"bookId": book_id})

    async def get_book_content(self, book_id: str) -> BookContent:
        payload = await self._json("GET", f"/get-book-content/{book_id}")
        return BookContent(
            title=str(payload.get("bookTitle", "")),
            text=str(payload.get("bookText") or ""),
            initial_greeting=str(payload.get("initialGreeting", "")),
        )

    async def chat_history(self, book_id: str) -> list[dict[str, Any]]:
        payload = await self._json("GET", f"/get-chat-history/{book_id}")
        return list(payload.get("chatHistory", []))

    async def chat(
        self,
        book_id: str,
        message: str,
        *,
        history: Sequence[Mapping[str, Any]] = (),
        highlighted_text: str | None = None,
    ) -> str:
        body: dict[str, Any] = {
            "bookId": book_id,
            "userMessage": message,
            "conversationHistory": [dict(item) for item in history],
        }
        if highlighted_text:
            body["highlightedText"] = highlighted_text
        payload = await self._json("POST", "/chat", json=body)
        return str(payload["aiResponse"])

    async def synthesize_speech(self, text: str) -> SpeechClip:
        payload = await self._json("POST", "/synthesize-speech", json={"text": text})
        audio = payload.get("audioData")
        mime = payload.get("mimeType")
        if not audio or not mime:
            raise StoreError("No audio data received from AI for speaking.")
        return SpeechClip(audio_data=str(audio), mime_type=str(mime))

    # annotation store

    async def list_annotations(self, book_id: str) -> list[Annotation]:
        payload = await self._json("GET", f"/api/annotations/{book_id}")
        if not isinstance(payload, list):
            raise StoreError("Unexpected annotation list payload")
        return [Annotation.from_wire(item) for item in payload]

    async def create_annotation(
        self, book_id: str, text: str, start_offset: int, end_offset: int
    ) -> Annotation:
        payload = await self._json(
            "POST",
            "/api/annotations",
            json={
                "bookId": book_id,
                "text": text,
                "startOffset": start_offset,
                "endOffset": end_offset,
            },
        )
        return Annotation.from_wire(payload)

    async def delete_annotation(self, annotation_id: str) -> None:
        try:
            await self._send("DELETE", f"/api/annotations/{annotation_id}")
        except StoreError as exc:
            if exc.status_code == 404:
                raise AnnotationNotFound(exc.message, status_code=404) from exc
            raise


__all__ = [
    "Annotation",
    "AnnotationNotFound",
    "AnnotationStore",
    "BookChatClient",
    "BookContent",
    "SpeechClip",
    "StoreError",
]
