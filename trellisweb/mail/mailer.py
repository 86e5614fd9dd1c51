"""Sending messages through a configured SMTP server."""

from __future__ import annotations

import smtplib
from dataclasses import dataclass

from .connection import send, transport
from .message import Message


@dataclass
class Sender:
    """Default From and Reply-To for messages that do not set their own."""

    from_addr: str = ""
    reply_to: str = ""


@dataclass
class Mailer:
    """An SMTP server with credentials and an optional default sender."""

    server: str
    port: int
    username: str = ""
    password: str = ""
    host: str = ""
    sender: Sender | None = None

    def send_message(self, *args: Message) -> None:
        """Open a connection, send every message over it, then quit."""
        with transport(self.server, self.port, self.host, self.username, self.password) as client:
            self.send_with(client, *args)

    def send_with(self, client: smtplib.SMTP, *args: Message) -> None:
        """Send every message over an already open connection."""
        for message in args:
            self.fill_default(message)
            send(client, message)

    def fill_default(self, message: Message) -> None:
        """Fill in From and Reply-To from the default sender where they are empty."""
        if self.sender is None:
            return
        if not message.from_addr:
            message.from_addr = self.sender.from_addr
        if not message.reply_to:
            message.reply_to = self.sender.reply_to