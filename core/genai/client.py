"""Generative-AI backends used for chat replies and speech synthesis."""

from __future__ import annotations

import base64
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import httpx
import structlog

from core import config
from core.audio import DEFAULT_SAMPLE_RATE

log = structlog.get_logger(__name__)

Content = Mapping[str, Any]


class GenAIError(RuntimeError):
    """Base exception for generative-AI failures."""


class GenAITimeoutError(GenAIError):
    """Raised when the backend does not respond in time."""


class GenAIServiceError(GenAIError):
    """Raised when the backend returns an unexpected error."""


class GenAIAuthError(GenAIError):
    """Raised on an invalid API key or missing permissions."""


class GenAIConfigError(GenAIError):
    """Raised when the request is rejected because of its configuration."""


class GenAIQuotaError(GenAIError):
    """Raised once every model has been rate limited through all retries."""


class GenAIEmptyResponseError(GenAIServiceError):
    """Raised when a successful response carries no usable text or audio."""


class _RateLimited(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, Mapping):
        error = body.get("error")
        if isinstance(error, Mapping) and isinstance(error.get("message"), str):
            return error["message"]
    return response.text


def _first_part(payload: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    candidates = payload.get("candidates") or []
    if not candidates:
        return []
    content = candidates[0].get("content") or {}
    parts = content.get("parts") or []
    return [part for part in parts if isinstance(part, Mapping)]


class GenAI(ABC):
    """Text generation plus speech synthesis."""

    @abstractmethod
    def generate(self, contents: Sequence[Content]) -> str:
        """Return the model reply for a ``contents`` conversation."""

    @abstractmethod
    def synthesize_speech(self, text: str) -> tuple[str, str]:
        """Return ``(base64 audio, mime type)`` for ``text``."""

    def generate_text(self, prompt: str) -> str:
        return self.generate([{"role": "user", "parts": [{"text": prompt}]}])


class MockGenAI(GenAI):
    """Offline backend producing deterministic replies and silent audio."""

    clip_seconds = 0.5

    def generate(self, contents: Sequence[Content]) -> str:
        last_text = ""
        for item in reversed(contents):
            if item.get("role") != "user":
                continue
            for part in item.get("parts", []):
                text = part.get("text")
                if isinstance(text, str) and text.strip():
                    last_text = text.strip()
                    break
            if last_text:
                break
        if not last_text:
            return "Mock response generated for testing."
        return f"Mock response generated for testing. You said: {last_text[:200]}"

    def synthesize_speech(self, text: str) -> tuple[str, str]:
        frames = int(DEFAULT_SAMPLE_RATE * self.clip_seconds)
        pcm = b"\x00\x00" * frames
        mime = f"audio/L16;codec=pcm;rate={DEFAULT_SAMPLE_RATE}"
        return base64.b64encode(pcm).decode("ascii"), mime


class GeminiClient(GenAI):
    """Client for the Generative Language REST API with retry and model fallback."""

    _timeout_errors = (
        httpx.TimeoutException,
        httpx.ConnectTimeout,
        httpx.ReadTimeout,
        httpx.WriteTimeout,
        httpx.PoolTimeout,
    )

    def __init__(
        self,
        *,
        api_key: str | None = None,
        text_models: Sequence[str] | None = None,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        settings = config.settings
        self._api_key = api_key if api_key is not None else settings.gemini_api_key
        if not self._api_key:
            raise GenAIConfigError(
                "GEMINI_API_KEY is not configured. Set it or use GENAI_BACKEND=mock."
            )
        self._base_url = settings.genai_base_url.rstrip("/")
        self._text_models = list(text_models or settings.genai_text_models)
        if not self._text_models:
            raise GenAIConfigError("GENAI_TEXT_MODELS must name at least one model")
        self._tts_model = settings.genai_tts_model
        self._tts_voice = settings.genai_tts_voice
        self._max_retries = max(1, int(settings.genai_max_retries))
        self._backoff = float(settings.genai_backoff_seconds)
        self._backoff_cap = float(settings.genai_backoff_cap_seconds)
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(float(settings.genai_request_timeout)), trust_env=False
        )
        self._sleep = sleep

    def close(self) -> None:
        self._client.close()

    def _endpoint(self, model: str) -> str:
        return f"{self._base_url}/models/{model}:generateContent"

    def _post(self, model: str, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        try:
            response = self._client.post(
                self._endpoint(model), params={"key": self._api_key}, json=dict(payload)
            )
        except self._timeout_errors as exc:
            raise GenAITimeoutError(f"Timed out waiting for {model}") from exc
        except httpx.HTTPError as exc:
            raise GenAIServiceError(f"Failed to contact {model}: {exc}") from exc

        status = response.status_code
        if status == 429:
            raise _RateLimited(_error_message(response))
        if status == 403:
            raise GenAIAuthError(
                "Authentication Error: Invalid API Key or insufficient permissions."
            )
        if status == 400 and "safety_settings" in response.text:
            raise GenAIConfigError(
                "API Configuration Error: Safety settings are too permissive."
            )
        if status >= 400:
            raise GenAIServiceError(f"API Error: {status} - {_error_message(response)}")
        data = response.json()
        if not isinstance(data, Mapping):
            raise GenAIServiceError("Unexpected response payload")
        return data

    def _with_retry(self, model: str, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        delay = self._backoff
        last_message = ""
        for attempt in range(1, self._max_retries + 1):
            try:
                return self._post(model, payload)
            except _RateLimited as exc:
                last_message = exc.message
                if attempt == self._max_retries:
                    break
                log.warning("genai.retry", model=model, attempt=attempt, delay=delay)
                self._sleep(delay)
                delay = min(delay * 2, self._backoff_cap)
        raise GenAIQuotaError(f"Rate limit exhausted for {model}: {last_message}")

    def generate(self, contents: Sequence[Content]) -> str:
        payload = {"contents": [dict(item) for item in contents]}
        last_error: GenAIQuotaError | None = None
        for model in self._text_models:
            try:
                data = self._with_retry(model, payload)
            except GenAIQuotaError as exc:
                log.warning("genai.model_fallback", model=model, error=str(exc))
                last_error = exc
                continue
            texts = [part["text"] for part in _first_part(data) if isinstance(part.get("text"), str)]
            if not texts:
                raise GenAIEmptyResponseError(f"{model} returned no text")
            return "".join(texts)
        raise GenAIQuotaError(
            "Max retries and model fallbacks exhausted for API request."
        ) from last_error

    def synthesize_speech(self, text: str) -> tuple[str, str]:
        payload = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": self._tts_voice}}
                },
            },
            "model": self._tts_model,
        }
        data = self._with_retry(self._tts_model, payload)
        for part in _first_part(data):
            inline = part.get("inlineData")
            if isinstance(inline, Mapping) and inline.get("data") and inline.get("mimeType"):
                return str(inline["data"]), str(inline["mimeType"])
        raise GenAIEmptyResponseError("Failed to synthesize speech: No audio data returned.")


def get_genai() -> GenAI:
    """Instantiate the configured generative-AI backend."""

    backend = (config.settings.genai_backend or "mock").strip().lower()
    if backend == "mock":
        return MockGenAI()
    if backend == "gemini":
        return GeminiClient()
    raise ValueError(f"Unsupported GENAI_BACKEND: {backend}")


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
