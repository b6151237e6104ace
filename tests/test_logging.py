from __future__ import annotations

import json
import logging

import structlog

from utils.logging import REDACTED, Redactor, configure_logging


def test_sensitive_fields_are_redacted(monkeypatch, capsys):
    monkeypatch.setenv("LOG_REDACT_FIELDS", "api_key")
    monkeypatch.delenv("LOG_FILE", raising=False)
    configure_logging()

    structlog.get_logger("test").info(
        "auth.login", password="hunter2", api_key="abc", access_token="t", user_id=3
    )

    line = capsys.readouterr().err.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["event"] == "auth.login"
    assert payload["password"] == "***REDACTED***"
    assert payload["api_key"] == "***REDACTED***"
    assert payload["access_token"] == "***REDACTED***"
    assert payload["user_id"] == 3
    assert payload["level"] == "info"
    assert "timestamp" in payload


def test_redactor_matches_keys_case_insensitively():
    redactor = Redactor([" Api_Key ", ""])

    event = redactor(None, "info", {"Authorization": "Bearer x", "API_KEY": "k", "book_id": 4})

    assert event == {"Authorization": REDACTED, "API_KEY": REDACTED, "book_id": 4}


def test_log_file_destination(monkeypatch, tmp_path):
    target = tmp_path / "logs" / "app.log"
    monkeypatch.setenv("LOG_FILE", str(target))
    configure_logging()

    structlog.get_logger("test").warning("books.extract_failed", filename="x.pdf")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert target.exists()
    assert "books.extract_failed" in target.read_text(encoding="utf-8")
    monkeypatch.delenv("LOG_FILE")
    configure_logging()


def test_request_id_header_round_trip(client):
    response = client.get("/health", headers={"X-Request-ID": "abc-123"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "abc-123"

    generated = client.get("/health")
    assert len(generated.headers["X-Request-ID"]) == 32
