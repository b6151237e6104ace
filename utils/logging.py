"""structlog setup shared by the API and the CLI.

Events are rendered as one JSON object per line on stderr, and additionally
appended to ``LOG_FILE`` when it is set.  Values of sensitive keys (auth
tokens, passwords, raw speech payloads) never reach the output.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, MutableMapping
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.contextvars import merge_contextvars

from core.config import Settings, get_settings

REDACTED = "***REDACTED***"
SENSITIVE_KEYS = frozenset(
    {"authorization", "access_token", "password", "cookie", "x-csrf-token", "audio_data"}
)

_LOG_FILE_MAX_BYTES = 10_000_000
_LOG_FILE_BACKUPS = 5


class Redactor:
    """structlog processor masking the values of sensitive keys."""

    def __init__(self, extra_keys: Iterable[str] = ()) -> None:
        self.keys = SENSITIVE_KEYS | {key.strip().lower() for key in extra_keys if key.strip()}

    def __call__(
        self, _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        for key in event_dict:
            if isinstance(key, str) and key.lower() in self.keys:
                event_dict[key] = REDACTED
        return event_dict


def _level(name: str) -> int:
    level = logging.getLevelName(name.strip().upper() or "INFO")
    return level if isinstance(level, int) else logging.INFO


def _handlers(config: Settings, level: int) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file:
        path = Path(config.log_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                RotatingFileHandler(
                    path,
                    maxBytes=_LOG_FILE_MAX_BYTES,
                    backupCount=_LOG_FILE_BACKUPS,
                    encoding="utf-8",
                )
            )
        except OSError as exc:
            logging.getLogger(__name__).warning("log file %s unavailable: %s", path, exc)
    formatter = logging.Formatter("%(message)s")
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def configure_logging(config: Settings | None = None) -> None:
    config = config or get_settings()
    level = _level(config.log_level)
    logging.basicConfig(level=level, handlers=_handlers(config, level), force=True)

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            Redactor(config.log_redact_fields.split(",")),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


__all__ = ["REDACTED", "Redactor", "SENSITIVE_KEYS", "configure_logging"]
