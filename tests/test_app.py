from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

os.environ.setdefault("SUBWATCH_CONFIG", str(Path(__file__).resolve().parents[1] / "config.json"))

from subwatch import app  # noqa: E402


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord("subwatch.test", logging.ERROR, __file__, 1, message, None, None)


def test_smtp_credentials_are_masked_without_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SMTP_USER", "mailer")
    monkeypatch.setenv("SMTP_PASSWORD", "hunter2-secret")

    secrets = app._secret_values({})
    assert secrets == ["hunter2-secret", "mailer"]

    text = app._SecretMaskingFormatter(secrets).format(_record("login mailer/hunter2-secret refused"))
    assert "hunter2-secret" not in text
    assert text.endswith("login ***/*** refused")


def test_extra_variables_are_masked(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SMTP_USER", raising=False)
    monkeypatch.delenv("SMTP_PASSWORD", raising=False)
    monkeypatch.setenv("RELAY_TOKEN", "tok-123")

    assert app._secret_values({"patterns": ["RELAY_TOKEN"]}) == ["tok-123"]
    assert app._secret_values({"enabled": False, "patterns": ["RELAY_TOKEN"]}) == []
