"""Per-user reader preferences kept in a small JSON file."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

log = structlog.get_logger(__name__)

THEME_KEY = "theme"
THEMES = ("light", "dark")
DEFAULT_THEME = "dark"


def progress_key(book_id: str) -> str:
    return f"reading-progress-{book_id}"


class ClientPreferences:
    """Key/value store that mirrors browser local storage."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._data: dict[str, Any] = self._read()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            log.warning("preferences.read_failed", path=str(self.path), error=str(exc))
            return {}
        return payload if isinstance(payload, dict) else {}

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self.path)

    def get_progress(self, book_id: str) -> float:
        value = self._data.get(progress_key(book_id), 0)
        try:
            return min(100.0, max(0.0, float(value)))
        except (TypeError, ValueError):
            return 0.0

    def set_progress(self, book_id: str, percent: float) -> float:
        clamped = min(100.0, max(0.0, float(percent)))
        self._data[progress_key(book_id)] = clamped
        self._write()
        return clamped

    def clear_progress(self, book_id: str) -> None:
        if self._data.pop(progress_key(book_id), None) is not None:
            self._write()

    @property
    def theme(self) -> str:
        value = self._data.get(THEME_KEY)
        return value if value in THEMES else DEFAULT_THEME

    @theme.setter
    def theme(self, value: str) -> None:
        if value not in THEMES:
            raise ValueError(f"Unknown theme {value!r}; expected one of {', '.join(THEMES)}")
        self._data[THEME_KEY] = value
        self._write()

    def toggle_theme(self) -> str:
        self.theme = "light" if self.theme == "dark" else "dark"
        return self.theme


__all__ = ["ClientPreferences", "DEFAULT_THEME", "THEMES", "progress_key"]
