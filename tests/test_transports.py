from __future__ import annotations

import asyncio
import io
import smtplib

import pytest
from rich.console import Console

from subwatch.adapters.console_transport import ConsoleTransport
from subwatch.adapters.smtp_transport import SMTPTransport, TransportError
from subwatch.core.models import MailAddress

TO = MailAddress("watcher@example.org", "Watcher")
SENDER = MailAddress("wiki@example.org", "Wiki mail")
REPLY_TO = MailAddress("noreply@example.org")


def test_build_message_headers() -> None:
    msg = SMTPTransport.build_message(TO, SENDER, REPLY_TO, "Page changed", "Body text")

    assert msg["To"] == "Watcher <watcher@example.org>"
    assert msg["From"] == "Wiki mail <wiki@example.org>"
    assert msg["Reply-To"] == "noreply@example.org"
    assert msg["Subject"] == "Page changed"
    assert msg["Auto-Submitted"] == "auto-generated"
    assert msg["Message-ID"]
    assert msg.get_payload(decode=True).decode("utf-8") == "Body text"


def test_build_message_without_reply_to() -> None:
    msg = SMTPTransport.build_message(TO, SENDER, None, "Page changed", "Body")
    assert msg["Reply-To"] is None


def test_send_hands_message_to_relay(monkeypatch: pytest.MonkeyPatch) -> None:
    transport = SMTPTransport("smtp.example.org")
    delivered = []
    monkeypatch.setattr(transport, "_deliver", delivered.append)

    asyncio.run(transport.send(TO, SENDER, None, "Subject", "Body"))

    assert len(delivered) == 1
    assert delivered[0]["To"] == "Watcher <watcher@example.org>"


def test_send_wraps_smtp_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    transport = SMTPTransport("smtp.example.org")

    def _refuse(msg) -> None:
        raise smtplib.SMTPException("relay refused")

    monkeypatch.setattr(transport, "_deliver", _refuse)

    with pytest.raises(TransportError, match="watcher@example.org"):
        asyncio.run(transport.send(TO, SENDER, None, "Subject", "Body"))


def test_from_env_reads_smtp_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SMTP_HOST", "smtp.example.org")
    monkeypatch.setenv("SMTP_PORT", "2525")
    monkeypatch.setenv("SMTP_STARTTLS", "0")

    transport = SMTPTransport.from_env()

    assert transport._host == "smtp.example.org"
    assert transport._port == 2525
    assert transport._starttls is False


def test_console_transport_prints_mail() -> None:
    buffer = io.StringIO()
    transport = ConsoleTransport(Console(file=buffer, width=100))

    asyncio.run(transport.send(TO, SENDER, REPLY_TO, "Page changed", "Dear Watcher,"))

    output = buffer.getvalue()
    assert "Subject: Page changed" in output
    assert "Dear Watcher," in output
    assert transport.sent == [(TO, "Page changed")]
