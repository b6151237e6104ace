"""Generative-AI integration for chat replies and speech."""

from .client import (
    GenAI,
    GenAIAuthError,
    GenAIConfigError,
    GenAIEmptyResponseError,
    GenAIError,
    GenAIQuotaError,
    GenAIServiceError,
    GenAITimeoutError,
    GeminiClient,
    MockGenAI,
    get_genai,
)

__all__ = [
    "GenAI",
    "GenAIAuthError",
    "GenAIConfigError",
    "GenAIEmptyResponseError",
    "GenAIError",
    "GenAIQuotaError",
    "GenAIServiceError",
    "GenAITimeoutError",
    "GeminiClient",
    "MockGenAI",
    "get_genai",
]
