"""Translate generative-AI failures into JSON error responses."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse

from core.config import settings
from core.genai import (
    GenAIAuthError,
    GenAIConfigError,
    GenAIEmptyResponseError,
    GenAIError,
    GenAIQuotaError,
    GenAITimeoutError,
)

log = structlog.get_logger(__name__)

_GENERIC_MESSAGE = "An unexpected error occurred with the AI service."


def genai_error_payload(exc: GenAIError) -> tuple[int, dict[str, Any]]:
    if isinstance(exc, GenAITimeoutError):
        code, kind = status.HTTP_504_GATEWAY_TIMEOUT, "timeout"
    elif isinstance(exc, GenAIQuotaError):
        code, kind = status.HTTP_502_BAD_GATEWAY, "quota"
    elif isinstance(exc, (GenAIAuthError, GenAIConfigError)):
        code, kind = status.HTTP_500_INTERNAL_SERVER_ERROR, "configuration"
    elif isinstance(exc, GenAIEmptyResponseError):
        code, kind = status.HTTP_500_INTERNAL_SERVER_ERROR, "empty_response"
    else:
        code, kind = status.HTTP_502_BAD_GATEWAY, "genai_error"
    message = _GENERIC_MESSAGE if settings.is_production else str(exc)
    return code, {"error": {"type": kind, "message": message}}


async def genai_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, GenAIError)
    status_code, payload = genai_error_payload(exc)
    log.warning(
        "genai.request_failed",
        path=request.url.path,
        status=status_code,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return JSONResponse(status_code=status_code, content=payload)


__all__ = ["genai_error_handler", "genai_error_payload"]
