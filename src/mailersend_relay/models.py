# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Data models for the relay pipeline.

Two families of types live here:

- Plain dataclasses describing what the relay received: ``Address``,
  ``AttachmentDescriptor``, ``ParsedMessage`` and the ``AttachmentHandle``
  returned by the attachment store, plus the ``DeliveryOutcome`` of a send.
- Pydantic models describing what the relay sends: ``SendRequest`` with its
  ``Recipient`` and ``SendAttachment`` parts. Their field names follow the
  MailerSend ``/v1/email`` JSON body so ``SendRequest.to_payload()`` can be
  posted as is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

NO_SUBJECT = "(No Subject)"
"""Subject used when the submitted message has none."""


@dataclass(frozen=True)
class Address:
    """An email address with an optional display name."""

    email: str
    name: str | None = None

    def __post_init__(self) -> None:
        if not self.email:
            raise ValueError("Address email must not be empty")

    def __str__(self) -> str:
        if self.name:
            return f"{self.name} <{self.email}>"
        return self.email


@dataclass(frozen=True)
class AttachmentDescriptor:
    """One attachment found in a parsed message.

    Attributes:
        filename: Filename declared by the sender.
        content_type: MIME type of the part (e.g. "application/pdf").
        content: Decoded attachment bytes.
    """

    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class ParsedMessage:
    """Structured, immutable view of one submitted message."""

    sender: Address | None
    to: tuple[Address, ...] = ()
    cc: tuple[Address, ...] = ()
    bcc: tuple[Address, ...] = ()
    reply_to: tuple[Address, ...] = ()
    subject: str | None = None
    html: str | None = None
    text: str | None = None
    attachments: tuple[AttachmentDescriptor, ...] = ()
    message_id: str | None = None

    @property
    def has_body(self) -> bool:
        return bool(self.html or self.text)


@dataclass(frozen=True)
class AttachmentHandle:
    """Result of persisting one attachment.

    Attributes:
        filename: Unique name the file was stored under.
        original_filename: Filename declared by the sender.
        path: Absolute path of the stored file.
        content: Bytes that were written.
        content_type: MIME type of the attachment.
    """

    filename: str
    original_filename: str
    path: Path
    content: bytes
    content_type: str


@dataclass
class DeliveryOutcome:
    """Successful provider response for one send request.

    The payload is kept opaque: it is logged, never interpreted.
    """

    accepted: bool
    status: int
    message_id: str | None = None
    payload: Any = None
    headers: dict[str, str] = field(default_factory=dict)


class Recipient(BaseModel):
    """Address entry of an outbound request (sender, to, cc, bcc, reply_to)."""

    model_config = ConfigDict(extra="forbid")

    email: Annotated[str, Field(min_length=1, description="Email address")]
    name: Annotated[
        str | None,
        Field(default=None, description="Display name"),
    ]

    @classmethod
    def from_address(cls, address: Address) -> Recipient:
        return cls(email=address.email, name=address.name or None)


class SendAttachment(BaseModel):
    """Attachment entry of an outbound request."""

    model_config = ConfigDict(extra="forbid")

    content: Annotated[str, Field(description="Base64 encoded file content")]
    filename: Annotated[str, Field(min_length=1, description="Filename shown to recipients")]
    disposition: Annotated[
        Literal["attachment", "inline"],
        Field(default="attachment", description="Content disposition"),
    ]


class SendRequest(BaseModel):
    """Provider-agnostic outbound email, shaped like the MailerSend email body.

    Optional fields left as None are omitted from the payload entirely, so an
    absent Cc list is never sent as an empty list.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    sender: Annotated[Recipient, Field(alias="from", description="Sender address")]
    to: Annotated[list[Recipient], Field(description="Primary recipients")]
    subject: Annotated[str, Field(default=NO_SUBJECT, description="Subject line")]
    html: Annotated[str | None, Field(default=None, description="HTML body")]
    text: Annotated[str | None, Field(default=None, description="Plain text body")]
    cc: Annotated[list[Recipient] | None, Field(default=None, description="Cc recipients")]
    bcc: Annotated[list[Recipient] | None, Field(default=None, description="Bcc recipients")]
    reply_to: Annotated[Recipient | None, Field(default=None, description="Reply-To address")]
    attachments: Annotated[
        list[SendAttachment] | None,
        Field(default=None, description="Base64 encoded attachments"),
    ]

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON body for the delivery API."""
        return self.model_dump(by_alias=True, exclude_none=True)


__all__ = [
    "NO_SUBJECT",
    "Address",
    "AttachmentDescriptor",
    "AttachmentHandle",
    "DeliveryOutcome",
    "ParsedMessage",
    "Recipient",
    "SendAttachment",
    "SendRequest",
]
