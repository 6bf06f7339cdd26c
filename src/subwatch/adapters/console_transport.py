"""Console transport for dry runs: prints mails instead of sending them."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from subwatch.core.models import MailAddress


class ConsoleTransport:
    """Transport port implementation that renders each mail as a panel."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self._console = console or Console()
        self.sent: list[tuple[MailAddress, str]] = []

    async def send(
        self,
        to: MailAddress,
        sender: MailAddress,
        reply_to: Optional[MailAddress],
        subject: str,
        body: str,
    ) -> None:
        header = Text()
        header.append("From: ", style="bold")
        header.append(f"{sender}\n")
        header.append("To: ", style="bold")
        header.append(f"{to}\n")
        if reply_to is not None:
            header.append("Reply-To: ", style="bold")
            header.append(f"{reply_to}\n")
        header.append("Subject: ", style="bold")
        header.append(subject)

        self._console.print(Panel(Text.assemble(header, "\n\n", body), title="mail", expand=False))
        self.sent.append((to, subject))
