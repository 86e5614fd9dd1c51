"""Opening SMTP connections and sending messages over them."""

from __future__ import annotations

import re
import smtplib
import ssl

from .message import Message

_LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


def transport(
    address: str, port: int, host: str, username: str, password: str
) -> smtplib.SMTP:
    """Connect to an SMTP server, trying implicit TLS first, then plain TCP.

    The connection is upgraded with STARTTLS when offered, and authenticated
    with PLAIN when credentials are given and the server supports AUTH.
    """
    local_hostname = host or "localhost"
    try:
        client: smtplib.SMTP = smtplib.SMTP_SSL(
            address, port, local_hostname=local_hostname, context=ssl.create_default_context()
        )
    except (OSError, smtplib.SMTPException):
        client = smtplib.SMTP(address, port, local_hostname=local_hostname)
    try:
        client.ehlo_or_helo_if_needed()
        if client.has_extn("starttls"):
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
            client.starttls(context=context)
            client.ehlo_or_helo_if_needed()
        if username and client.has_extn("auth"):
            if not isinstance(client.sock, ssl.SSLSocket) and address not in _LOCAL_HOSTS:
                raise smtplib.SMTPException("unencrypted connection")
            credentials = f"{username}\0{username}\0{password}"
            client.auth("PLAIN", lambda challenge=None: credentials)
    except BaseException:
        client.close()
        raise
    return client


def _dot_encode(data: bytes) -> bytes:
    encoded = re.sub(rb"\r?\n", b"\r\n", data)
    encoded = re.sub(rb"(?m)^\.", b"..", encoded)
    if encoded and not encoded.endswith(b"\r\n"):
        encoded += b"\r\n"
    return encoded + b".\r\n"


def send(client: smtplib.SMTP, message: Message) -> None:
    """Send one message over an open connection, raising on any refusal."""
    data = message.render_data()
    client.ehlo_or_helo_if_needed()

    code, reply = client.docmd("RSET")
    if code != 250:
        raise smtplib.SMTPResponseException(code, reply)

    options = " BODY=8BITMIME" if client.has_extn("8bitmime") else ""
    code, reply = client.docmd("MAIL", f"FROM:<{message.from_addr}>{options}")
    if code != 250:
        raise smtplib.SMTPSenderRefused(code, reply, message.from_addr)

    for address in (*message.to, *message.cc, *message.bcc):
        code, reply = client.docmd("RCPT", f"TO:<{address}>")
        if code // 10 != 25:
            raise smtplib.SMTPRecipientsRefused({address: (code, reply)})

    code, reply = client.docmd("DATA")
    if code != 354:
        raise smtplib.SMTPDataError(code, reply)
    client.send(_dot_encode(data))
    code, reply = client.getreply()
    if code != 250:
        raise smtplib.SMTPDataError(code, reply)