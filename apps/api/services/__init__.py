"""Service helpers package for API business logic."""

from .books import (
    BookExtractionError,
    ExtractedBook,
    discard_tempfile,
    extract_book,
    extract_pdf,
    title_from_filename,
    write_upload_to_tempfile,
)

__all__ = [
    "BookExtractionError",
    "ExtractedBook",
    "discard_tempfile",
    "extract_book",
    "extract_pdf",
    "title_from_filename",
    "write_upload_to_tempfile",
]
