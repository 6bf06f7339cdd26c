"""SMTP mail transport.

Sends plain text notifications through an SMTP relay. The blocking smtplib
call runs in a worker thread so the dispatcher's event loop stays free.
"""

from __future__ import annotations

import asyncio
import logging
import os
import smtplib
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import Optional

from dotenv import load_dotenv

from subwatch.core.models import MailAddress

LOGGER = logging.getLogger(__name__)

# Environment variables holding credentials; log output masks their values.
SECRET_ENV_VARS = ("SMTP_USER", "SMTP_PASSWORD")


class TransportError(RuntimeError):
    """A message could not be handed to the mail relay."""


class SMTPTransport:
    """Transport port implementation backed by smtplib."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        starttls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._starttls = starttls
        self._timeout = timeout

    @classmethod
    def from_env(cls) -> "SMTPTransport":
        """Build a transport from SMTP_* environment variables.

        SMTP_HOST is required; SMTP_PORT defaults to 587. Credentials are
        optional for relays that accept unauthenticated local mail.
        """

        load_dotenv()
        host = os.getenv("SMTP_HOST")
        if not host:
            raise RuntimeError("Missing SMTP_HOST in environment")
        return cls(
            host=host,
            port=int(os.getenv("SMTP_PORT", "587")),
            user=os.getenv("SMTP_USER"),
            password=os.getenv("SMTP_PASSWORD"),
            starttls=os.getenv("SMTP_STARTTLS", "1") not in {"0", "false", "no"},
        )

    @staticmethod
    def build_message(
        to: MailAddress,
        sender: MailAddress,
        reply_to: Optional[MailAddress],
        subject: str,
        body: str,
    ) -> MIMEText:
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = str(sender)
        msg["To"] = str(to)
        if reply_to is not None:
            msg["Reply-To"] = str(reply_to)
        msg["Date"] = formatdate(localtime=False)
        msg["Message-ID"] = make_msgid()
        msg["Auto-Submitted"] = "auto-generated"
        return msg

    def _deliver(self, msg: MIMEText) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._starttls:
                server.starttls()
            if self._user and self._password:
                server.login(self._user, self._password)
            server.send_message(msg)

    async def send(
        self,
        to: MailAddress,
        sender: MailAddress,
        reply_to: Optional[MailAddress],
        subject: str,
        body: str,
    ) -> None:
        """Send one message, raising TransportError if the relay refuses it."""

        msg = self.build_message(to, sender, reply_to, subject, body)
        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise TransportError(f"SMTP delivery to {to.address} failed: {exc}") from exc
        LOGGER.info("Mail sent to %s", to.address)
