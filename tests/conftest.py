"""Shared fixtures for relay tests."""

from __future__ import annotations

from email.message import EmailMessage

import pytest

from mailersend_relay.attachments import AttachmentStore
from mailersend_relay.relay_config import AttachmentConfig, DeliveryConfig, RelayConfig, SmtpConfig

API_URL = "https://api.mailersend.test/v1"


def _build_message(
    sender: str | None = "a@x.com",
    to: tuple[str, ...] = ("b@y.com",),
    subject: str | None = "Hi",
    text: str | None = "hello",
    html: str | None = None,
    cc: tuple[str, ...] = (),
    bcc: tuple[str, ...] = (),
    reply_to: tuple[str, ...] = (),
    attachments: tuple[tuple[str, bytes, str], ...] = (),
) -> bytes:
    """Build a raw RFC 5322 message.

    Attachments are ``(filename, content, "maintype/subtype")`` tuples.
    """
    msg = EmailMessage()
    if sender:
        msg["From"] = sender
    if to:
        msg["To"] = ", ".join(to)
    if cc:
        msg["Cc"] = ", ".join(cc)
    if bcc:
        msg["Bcc"] = ", ".join(bcc)
    if reply_to:
        msg["Reply-To"] = ", ".join(reply_to)
    if subject is not None:
        msg["Subject"] = subject

    if text is not None:
        msg.set_content(text)
        if html is not None:
            msg.add_alternative(html, subtype="html")
    elif html is not None:
        msg.set_content(html, subtype="html")

    for filename, content, mime in attachments:
        maintype, subtype = mime.split("/", 1)
        msg.add_attachment(content, maintype=maintype, subtype=subtype, filename=filename)

    return msg.as_bytes()


@pytest.fixture
def build_message():
    return _build_message


@pytest.fixture
def attachment_dir(tmp_path):
    path = tmp_path / "attachments"
    path.mkdir()
    return path


@pytest.fixture
def store(attachment_dir):
    return AttachmentStore(attachment_dir)


@pytest.fixture
def api_url():
    return API_URL


@pytest.fixture
def relay_config(tmp_path):
    return RelayConfig(
        smtp=SmtpConfig(port=0),
        delivery=DeliveryConfig(api_key="test-api-key", api_url=API_URL, timeout=5),
        attachments=AttachmentConfig(directory=tmp_path / "attachments"),
    )
