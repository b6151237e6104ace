from __future__ import annotations

import json

import httpx
import pytest

from core.genai import (
    GenAIAuthError,
    GenAIConfigError,
    GenAIEmptyResponseError,
    GenAIQuotaError,
    GeminiClient,
    MockGenAI,
    get_genai,
)
from core.genai.prompts import chat_contents, greeting_prompt


def _reply(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _client(handler, *, sleeps: list[float] | None = None, models=("primary", "fallback")):
    transport = httpx.MockTransport(handler)
    recorded = sleeps if sleeps is not None else []
    return GeminiClient(
        api_key="test-key",
        text_models=list(models),
        client=httpx.Client(transport=transport),
        sleep=recorded.append,
    )


def test_generate_returns_joined_text():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["key"] == "test-key"
        assert request.url.path.endswith("/models/primary:generateContent")
        return httpx.Response(200, json=_reply("Hello reader"))

    assert _client(handler).generate_text("hi") == "Hello reader"


def test_rate_limit_retries_with_backoff_then_falls_back(monkeypatch):
    monkeypatch.setenv("GENAI_MAX_RETRIES", "3")
    monkeypatch.setenv("GENAI_BACKOFF_SECONDS", "1")
    monkeypatch.setenv("GENAI_BACKOFF_CAP_SECONDS", "16")
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        model = request.url.path.rsplit("/", 1)[-1].split(":", 1)[0]
        calls.append(model)
        if model == "primary":
            return httpx.Response(429, json={"error": {"message": "quota"}})
        return httpx.Response(200, json=_reply("from fallback"))

    sleeps: list[float] = []
    assert _client(handler, sleeps=sleeps).generate_text("hi") == "from fallback"
    assert calls == ["primary", "primary", "primary", "fallback"]
    assert sleeps == [1.0, 2.0]


def test_all_models_exhausted_raises_quota_error(monkeypatch):
    monkeypatch.setenv("GENAI_MAX_RETRIES", "2")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"message": "quota"}})

    with pytest.raises(GenAIQuotaError):
        _client(handler).generate_text("hi")


def test_forbidden_maps_to_auth_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"error": {"message": "denied"}})

    with pytest.raises(GenAIAuthError):
        _client(handler).generate_text("hi")


def test_empty_candidates_raise_empty_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"candidates": []})

    with pytest.raises(GenAIEmptyResponseError):
        _client(handler).generate_text("hi")


def test_speech_requests_audio_with_configured_voice():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.content))
        part = {"inlineData": {"data": "AAAA", "mimeType": "audio/L16;codec=pcm;rate=24000"}}
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [part]}}]})

    audio, mime = _client(handler).synthesize_speech("Read this")

    assert (audio, mime) == ("AAAA", "audio/L16;codec=pcm;rate=24000")
    config = seen["generationConfig"]
    assert config["responseModalities"] == ["AUDIO"]
    voice = config["speechConfig"]["voiceConfig"]["prebuiltVoiceConfig"]["voiceName"]
    assert voice == "Kore"


def test_missing_key_is_a_configuration_error(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    with pytest.raises(GenAIConfigError):
        GeminiClient()


def test_factory_defaults_to_mock(monkeypatch):
    monkeypatch.setenv("GENAI_BACKEND", "mock")

    backend = get_genai()

    assert isinstance(backend, MockGenAI)
    assert "hello" in backend.generate_text("hello")


def test_chat_contents_prime_the_conversation():
    contents = chat_contents(
        title="Moby Dick",
        book_text="Q" * 20000,
        user_message="Who is Ahab?",
        history=[{"role": "user", "text": "hi"}, {"role": "model", "text": "hello"}],
        highlighted_text="Call me Ishmael",
    )

    assert [item["role"] for item in contents] == ["user", "model", "user", "model", "user"]
    primer = contents[0]["parts"][0]["text"]
    assert "Call me Ishmael" in primer
    assert "Moby Dick" in primer
    assert primer.count("Q") == 10000
    assert contents[-1]["parts"][0]["text"] == "Who is Ahab?"


def test_greeting_prompt_uses_short_excerpt():
    prompt = greeting_prompt("Dune", "Q" * 5000)

    assert "Dune" in prompt
    assert prompt.count("Q") == 1000
