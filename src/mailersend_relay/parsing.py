# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""MIME decoding of raw submissions into ParsedMessage values.

Decoding itself is delegated to the standard library ``email`` package
(``BytesParser`` with ``policy.default``); this module only walks the
resulting message tree and picks out addresses, subject, bodies and
attachments.
"""

from __future__ import annotations

from collections.abc import Iterator
from email import policy
from email.errors import MessageError
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import getaddresses

from .errors import ParseError
from .logger import get_logger
from .models import Address, AttachmentDescriptor, ParsedMessage

FORWARDED_FILENAME = "message.eml"

logger = get_logger("MessageParser")


def parse_addresses(values: list[str] | None) -> tuple[Address, ...]:
    """Turn raw header values into addresses, dropping entries without an address."""
    if not values:
        return ()
    result: list[Address] = []
    for name, email in getaddresses([str(v) for v in values]):
        email = email.strip()
        if not email or "@" not in email:
            continue
        result.append(Address(email=email, name=name.strip() or None))
    return tuple(result)


def _decode_text(part: EmailMessage) -> str | None:
    try:
        return part.get_content()
    except (LookupError, UnicodeError, KeyError) as e:
        # Unknown or lying charset; fall back to a lossy decode.
        logger.warning(f"Failed to decode {part.get_content_type()} part with get_content(): {e}")
        payload = part.get_payload(decode=True)
        if payload is None:
            return None
        return payload.decode("utf-8", errors="replace")


def _is_attached_message(part: EmailMessage) -> bool:
    if part.get_content_type() != "message/rfc822":
        return False
    return part.get_content_disposition() == "attachment" or bool(part.get_filename())


def _is_attachment(part: EmailMessage) -> bool:
    if part.is_multipart():
        return False
    disposition = part.get_content_disposition()
    if disposition == "attachment":
        return True
    # Inline parts with a filename (e.g. embedded images) travel as attachments too.
    if part.get_filename():
        return disposition == "inline" or part.get_content_maintype() not in ("text", "multipart")
    return False


def _iter_parts(part: EmailMessage) -> Iterator[EmailMessage]:
    """Yield leaf parts in order; attached messages are yielded whole."""
    if _is_attached_message(part):
        yield part
    elif part.is_multipart():
        for sub in part.get_payload():
            yield from _iter_parts(sub)
    else:
        yield part


def _attached_message(part: EmailMessage) -> AttachmentDescriptor:
    inner = part.get_payload()[0]
    return AttachmentDescriptor(
        filename=part.get_filename() or FORWARDED_FILENAME,
        content_type=part.get_content_type(),
        content=inner.as_bytes(),
    )


def _collect_parts(
    msg: EmailMessage,
) -> tuple[str | None, str | None, list[AttachmentDescriptor]]:
    html_parts: list[str] = []
    text_parts: list[str] = []
    attachments: list[AttachmentDescriptor] = []

    for part in _iter_parts(msg):
        content_type = part.get_content_type()

        if _is_attached_message(part):
            attachments.append(_attached_message(part))
        elif _is_attachment(part):
            content = part.get_payload(decode=True) or b""
            attachments.append(
                AttachmentDescriptor(
                    filename=part.get_filename() or "",
                    content_type=content_type,
                    content=content,
                )
            )
        elif content_type in ("text/plain", "text/html"):
            body = _decode_text(part)
            if body:
                (text_parts if content_type == "text/plain" else html_parts).append(body)

    # Several inline bodies of one type (e.g. text around an embedded image) are joined.
    html = "\n".join(html_parts) if html_parts else None
    text = "\n".join(text_parts) if text_parts else None
    return html, text, attachments


def parse_message(raw: bytes) -> ParsedMessage:
    """Parse a complete raw RFC 5322 message.

    Args:
        raw: Message bytes as received in the DATA transaction.

    Returns:
        The structured message.

    Raises:
        ParseError: If the buffer is empty or cannot be decoded as MIME.
    """
    if not raw or not raw.strip():
        raise ParseError("Empty message")

    try:
        msg = BytesParser(policy=policy.default).parsebytes(raw)
        if not msg.keys():
            raise ParseError("Message has no headers")

        senders = parse_addresses(msg.get_all("From"))
        html, text, attachments = _collect_parts(msg)
        subject = msg.get("Subject")
        message_id = msg.get("Message-ID")

        parsed = ParsedMessage(
            sender=senders[0] if senders else None,
            to=parse_addresses(msg.get_all("To")),
            cc=parse_addresses(msg.get_all("Cc")),
            bcc=parse_addresses(msg.get_all("Bcc")),
            reply_to=parse_addresses(msg.get_all("Reply-To")),
            subject=str(subject) if subject else None,
            html=html,
            text=text,
            attachments=tuple(attachments),
            message_id=str(message_id) if message_id else None,
        )
    except ParseError:
        raise
    except (MessageError, ValueError, TypeError, IndexError) as e:
        raise ParseError(f"Malformed message: {e}") from e

    if not parsed.has_body and not parsed.attachments:
        logger.debug("Parsed message has neither a body nor attachments")
    return parsed
