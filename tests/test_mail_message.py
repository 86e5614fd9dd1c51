import re
from datetime import datetime, timezone

import pytest

from trellisweb.mail.message import (
    Message,
    html_message,
    text_and_html_message,
    text_message,
)

TEST_DATE = datetime(2014, 2, 23, tzinfo=timezone.utc)


def test_render_recipient():
    message = Message(
        from_addr="from@example.com",
        to=["one@example.com", "two@example.com"],
        reply_to="reply@example.com",
        subject="from message1, single connection",
        plain_body="<h2>你好 from message1, should show in plain text</h2>",
    )
    recipient = message.recipient_headers()
    assert "From: from@example.com" in recipient
    assert "Reply-To: reply@example.com" in recipient
    assert "To: one@example.com, two@example.com" in recipient
    assert "Subject: from message1" in recipient


def test_render_recipient_no_reply():
    message = Message(
        from_addr="from@example.com",
        to=["one@example.com", "two@example.com"],
        subject="这个是第11封from message1, single connection",
        plain_body="<h2>你好 from message1, should show in plain text</h2>",
    )
    recipient = message.recipient_headers()
    assert "Reply-To" not in recipient
    assert "这个是第11封from message1, single connection" not in recipient
    assert "Subject: =?UTF-8?B?" in recipient


def test_render_plain_and_html_text():
    plain_body = "你好 from message1, should show in plain text"
    html_body = "<h2>你好 from message1, should show in html text</h2>"
    message = Message(
        from_addr="from@example.com",
        to=["one@example.com", "two@example.com"],
        subject="这个是第11封from message1, single connection",
        plain_body=plain_body,
        html_body=html_body,
        date=TEST_DATE,
        message_id="id@example.com",
    )
    rendered = message.render_data().decode("utf-8")
    assert plain_body in rendered
    assert html_body in rendered
    assert "Date: Sun, 23 Feb 2014 00:00:00 GMT" in rendered
    assert "Message-Id: <id@example.com>" in rendered


def test_multipart_boundary_is_consistent():
    message = text_and_html_message(["to@example.com"], "Hi", "plain", "<p>html</p>")
    rendered = message.render_data().decode("utf-8")
    match = re.search(r'boundary="([0-9a-f]+)"', rendered)
    assert match is not None
    boundary = match.group(1)
    assert rendered.count(f"\n--{boundary}\n") == 2
    assert rendered.endswith(f"\n--{boundary}--\n\n")
    assert rendered.index("text/plain") < rendered.index("text/html")


def test_single_part_html_exact():
    message = html_message(["to@example.com"], "Hello", "<h1>hi</h1>")
    message.date = TEST_DATE
    message.message_id = "id@example.com"
    assert message.render_data() == (
        "To: to@example.com \r\n"
        "Subject: Hello \r\n"
        "Message-Id: <id@example.com>\n"
        "Date: Sun, 23 Feb 2014 00:00:00 GMT\n"
        "MIME-Version: 1.0\n"
        'Content-Type: text/html; charset="UTF-8";\n'
        "Content-Transfer-Encoding: 8bit\n\n"
        "<h1>hi</h1>"
    ).encode("utf-8")


def test_text_message_is_plain():
    message = text_message(["to@example.com"], "Hello", "body text")
    rendered = message.render_data().decode("utf-8")
    assert 'Content-Type: text/plain; charset="UTF-8";' in rendered
    assert rendered.endswith("\n\nbody text")


def test_empty_html_falls_back_to_plain():
    message = Message(to=["to@example.com"], plain_body="only plain", html_body="")
    rendered = message.render_data().decode("utf-8")
    assert "text/plain" in rendered
    assert "multipart" not in rendered


def test_no_body_raises():
    with pytest.raises(ValueError):
        Message(to=["to@example.com"], subject="empty").render_data()


def test_missing_date_is_filled_in():
    message = text_message(["to@example.com"], "Hello", "body")
    assert message.date is None
    rendered = message.render_data().decode("utf-8")
    assert message.date is not None
    assert re.search(r"Date: \w{3}, \d{2} \w{3} \d{4} \d{2}:\d{2}:\d{2} GMT\n", rendered)


def test_no_message_id_header_when_unset():
    message = text_message(["to@example.com"], "Hello", "body")
    message.date = TEST_DATE
    assert b"Message-Id" not in message.render_data()