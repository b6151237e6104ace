from __future__ import annotations

import os
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="", case_sensitive=False)

    app_env: str = "development"  # development | production

    database_url: str = "sqlite:///./data/bookchat.db"
    upload_dir: str = "./tmp_uploads"
    max_books_per_user: int = 5
    max_upload_bytes: int = 100 * 1024 * 1024

    genai_backend: str = "mock"  # mock | gemini
    gemini_api_key: str = ""
    genai_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    genai_text_models: list[str] = [
        "gemini-2.5-flash-preview-05-20",
        "gemini-1.5-flash-latest",
    ]
    genai_tts_model: str = "gemini-2.5-flash-preview-tts"
    genai_tts_voice: str = "Kore"
    genai_max_retries: int = 5
    genai_backoff_seconds: float = 1.0
    genai_backoff_cap_seconds: float = 16.0
    genai_request_timeout: float = 60.0

    chat_context_chars: int = 10000
    greeting_excerpt_chars: int = 1000

    rate_limit_qps: float | None = None
    cors_allow_origins: list[str] = ["*"]

    auth_required: bool = False
    jwt_secret: str = "change-me"
    jwt_expiration_seconds: int = 24 * 60 * 60

    log_level: str = "INFO"
    log_file: str | None = None
    log_redact_fields: str = ""  # comma separated, added to the built-in keys

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"


_CACHE_KEYS = tuple(name.upper() for name in Settings.model_fields)
_cached_settings: Settings | None = None
_cached_signature: tuple[tuple[str, str | None], ...] | None = None


def _build_signature() -> tuple[tuple[str, str | None], ...]:
    return tuple((key, os.getenv(key)) for key in _CACHE_KEYS)


def _load_settings(force: bool = False) -> Settings:
    global _cached_settings, _cached_signature
    signature = _build_signature()
    if force or _cached_settings is None or signature != _cached_signature:
        _cached_settings = Settings()
        _cached_signature = signature
    return _cached_settings


def get_settings(*, reload: bool = False) -> Settings:
    """Return current settings, reloading when environment changes."""

    return _load_settings(force=reload)


def reload_settings() -> Settings:
    """Force settings reload from environment."""

    return _load_settings(force=True)


class _SettingsProxy:
    """Lightweight proxy exposing the current settings instance."""

    def __getattr__(self, item: str) -> Any:
        return getattr(get_settings(), item)

    def __setattr__(self, key: str, value: Any) -> None:
        setattr(get_settings(), key, value)

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return repr(get_settings())

    def model_dump(self, *args: Any, **kwargs: Any) -> dict[str, Any]:
        return get_settings().model_dump(*args, **kwargs)


settings = _SettingsProxy()

__all__ = ["Settings", "settings", "get_settings", "reload_settings"]
