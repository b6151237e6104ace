"""Helpers shared across book-related API endpoints."""

from __future__ import annotations

import inspect
import re
import tempfile
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path

import structlog
from fastapi import HTTPException, UploadFile, status
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from core.config import settings

log = structlog.get_logger(__name__)

_TITLE_EXTENSION_RE = re.compile(
    r"\.(pdf|txt|docx|doc|epub|rtf|odt|md|pptx|ppt|xlsx|xls)$", re.IGNORECASE
)

PDF_TYPES = {"application/pdf"}
TEXT_TYPES = {"text/plain"}


class BookExtractionError(ValueError):
    """Raised when a supported file yields no usable text."""


@dataclass(frozen=True)
class ExtractedBook:
    title: str
    text: str
    supported: bool = True


def _ensure_upload_root() -> Path:
    upload_dir = settings.upload_dir
    if not upload_dir:
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Upload directory not configured",
        )
    root = Path(upload_dir).expanduser()
    root.mkdir(parents=True, exist_ok=True)
    return root.resolve()


async def write_upload_to_tempfile(file: UploadFile) -> Path:
    """Spool an upload into the upload directory, enforcing the size cap."""

    suffix = Path(file.filename or "").suffix
    data = await file.read()
    close = getattr(file, "close", None)
    if close:
        result = close()
        if inspect.isawaitable(result):
            await result
    limit = int(settings.max_upload_bytes)
    if limit and len(data) > limit:
        raise HTTPException(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds the {limit} byte upload limit.",
        )
    with tempfile.NamedTemporaryFile(
        delete=False, suffix=suffix, dir=_ensure_upload_root()
    ) as tmp:
        tmp.write(data)
    return Path(tmp.name)


def discard_tempfile(path: Path) -> None:
    with suppress(FileNotFoundError):
        path.unlink()


def title_from_filename(filename: str) -> str:
    """Strip a known document extension; fall back to the bare file name."""

    title = _TITLE_EXTENSION_RE.sub("", filename).strip()
    return title or Path(filename).name


def _detect_kind(filename: str, content_type: str | None) -> str:
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    if mime in PDF_TYPES:
        return "pdf"
    if mime in TEXT_TYPES:
        return "text"
    suffix = Path(filename).suffix.lower()
    if mime in {"", "application/octet-stream"}:
        if suffix == ".pdf":
            return "pdf"
        if suffix == ".txt":
            return "text"
    return "unsupported"


def extract_pdf(path: Path) -> tuple[str | None, str]:
    """Return ``(metadata title, full text)`` for a PDF file."""

    try:
        reader = PdfReader(str(path))
        metadata = reader.metadata
        meta_title = None
        if metadata is not None and isinstance(metadata.title, str):
            meta_title = metadata.title.strip() or None
        pages = [(page.extract_text() or "") for page in reader.pages]
    except (PyPdfError, OSError, KeyError, TypeError, ValueError) as exc:
        raise BookExtractionError(str(exc)) from exc
    text = "\n".join(pages).strip()
    if not text:
        raise BookExtractionError("No text could be extracted from the PDF")
    return meta_title, text


def extract_book(path: Path, *, filename: str, content_type: str | None = None) -> ExtractedBook:
    """Read the plain text of an uploaded book."""

    title = title_from_filename(filename)
    kind = _detect_kind(filename, content_type)
    if kind == "pdf":
        meta_title, text = extract_pdf(path)
        log.info("books.extract", kind=kind, chars=len(text))
        return ExtractedBook(title=meta_title or title, text=text)
    if kind == "text":
        text = path.read_bytes().decode("utf-8", errors="replace")
        log.info("books.extract", kind=kind, chars=len(text))
        return ExtractedBook(title=title, text=text)
    log.info("books.extract_unsupported", filename=filename, content_type=content_type)
    return ExtractedBook(title=title, text="", supported=False)


__all__ = [
    "BookExtractionError",
    "ExtractedBook",
    "discard_tempfile",
    "extract_book",
    "extract_pdf",
    "title_from_filename",
    "write_upload_to_tempfile",
]
