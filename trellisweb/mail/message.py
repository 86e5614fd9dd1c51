"""E-mail messages rendered as the DATA of an SMTP transaction."""

from __future__ import annotations

import base64
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone

NEWLINE = "\r\n"

_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_SINGLE_CONTENT_TYPE = '\nContent-Type: {}; charset="UTF-8";\nContent-Transfer-Encoding: 8bit\n\n'
_MULTIPART_START = '\nContent-Type: multipart/alternative; charset="UTF-8"; boundary="{}"\n'
_MULTIPART_PART = "\n\n--{}\nContent-Type: {}; charset=UTF-8;\nContent-Transfer-Encoding: 8bit\n\n"
_MULTIPART_END = "\n--{}--\n\n"


def _format_date(date: datetime) -> str:
    """Format as "Mon, 02 Jan 2006 15:04:05 GMT"; naive datetimes are taken as UTC."""
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)
    date = date.astimezone(timezone.utc)
    return (
        f"{_DAYS[date.weekday()]}, {date.day:02d} {_MONTHS[date.month - 1]} "
        f"{date.year:04d} {date:%H:%M:%S} GMT"
    )


@dataclass
class Message:
    """An e-mail with a plain-text body, an HTML body, or both."""

    from_addr: str = ""
    reply_to: str = ""
    to: list[str] = field(default_factory=list)
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)
    subject: str = ""
    plain_body: str | None = None
    html_body: str | None = None
    date: datetime | None = None
    message_id: str = ""

    def recipient_headers(self) -> str:
        """Return the From, Reply-To, To, Cc and Subject header lines that are set."""
        lines = []
        if self.from_addr:
            lines.append(f"From: {self.from_addr} {NEWLINE}")
        if self.reply_to:
            lines.append(f"Reply-To: {self.reply_to} {NEWLINE}")
        if self.to:
            lines.append(f"To: {', '.join(self.to)} {NEWLINE}")
        if self.cc:
            lines.append(f"Cc: {', '.join(self.cc)} {NEWLINE}")
        if self.subject:
            if self.subject.isascii():
                lines.append(f"Subject: {self.subject} {NEWLINE}")
            else:
                encoded = base64.b64encode(self.subject.encode("utf-8")).decode("ascii")
                lines.append(f"Subject: =?UTF-8?B?{encoded}?= {NEWLINE}")
        return "".join(lines)

    def render_data(self) -> bytes:
        """Render headers and body; raises ValueError when there is no body at all."""
        if self.html_body is None and self.plain_body is None:
            raise ValueError("html_body and plain_body can not both be blank")
        if not self.html_body:
            return self._render_single("text/plain", self.plain_body or "")
        if not self.plain_body:
            return self._render_single("text/html", self.html_body)
        return self._render_alternative(self.plain_body, self.html_body)

    def _preamble(self) -> str:
        parts = [self.recipient_headers()]
        if self.message_id:
            parts.append(f"Message-Id: <{self.message_id}>\n")
        if self.date is None:
            self.date = datetime.now(timezone.utc)
        parts.append(f"Date: {_format_date(self.date)}\n")
        parts.append("MIME-Version: 1.0")
        return "".join(parts)

    def _render_single(self, content_type: str, body: str) -> bytes:
        text = self._preamble() + _SINGLE_CONTENT_TYPE.format(content_type) + body
        return text.encode("utf-8")

    def _render_alternative(self, plain_body: str, html_body: str) -> bytes:
        boundary = secrets.token_hex(30)
        text = "".join(
            (
                self._preamble(),
                _MULTIPART_START.format(boundary),
                _MULTIPART_PART.format(boundary, "text/plain"),
                plain_body,
                _MULTIPART_PART.format(boundary, "text/html"),
                html_body,
                _MULTIPART_END.format(boundary),
            )
        )
        return text.encode("utf-8")


def text_message(to: list[str], subject: str, body: str) -> Message:
    """Create a plain-text message."""
    return Message(to=list(to), subject=subject, plain_body=body)


def html_message(to: list[str], subject: str, body: str) -> Message:
    """Create an HTML message."""
    return Message(to=list(to), subject=subject, html_body=body)


def text_and_html_message(
    to: list[str], subject: str, plain_body: str, html_body: str
) -> Message:
    """Create a message carrying both a plain-text and an HTML version."""
    return Message(to=list(to), subject=subject, plain_body=plain_body, html_body=html_body)