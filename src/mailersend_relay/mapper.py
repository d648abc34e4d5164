# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Mapping of parsed messages to outbound send requests."""

from __future__ import annotations

import base64

from .attachments import DEFAULT_FILENAME, AttachmentStore
from .errors import MappingError, StorageError
from .logger import get_logger
from .models import (
    NO_SUBJECT,
    AttachmentHandle,
    ParsedMessage,
    Recipient,
    SendAttachment,
    SendRequest,
)


class MessageMapper:
    """Builds one SendRequest per ParsedMessage.

    Attachments are persisted through the attachment store while the
    request is built; their stored bytes are what ends up base64 encoded in
    the request.
    """

    def __init__(self, store: AttachmentStore, logger=None):
        self.store = store
        self.logger = logger or get_logger("MessageMapper")

    async def map(self, msg: ParsedMessage) -> SendRequest:
        """Translate ``msg`` into a SendRequest.

        Raises:
            MappingError: If the message has no sender, or an attachment
                could not be persisted. Attachments already written for
                this message are removed before raising.
        """
        if msg.sender is None:
            raise MappingError("Message has no sender address")

        request = SendRequest(
            sender=Recipient.from_address(msg.sender),
            to=[Recipient.from_address(a) for a in msg.to],
            subject=msg.subject or NO_SUBJECT,
        )

        if msg.html:
            request.html = msg.html
        if msg.text:
            request.text = msg.text

        if msg.cc:
            request.cc = [Recipient.from_address(a) for a in msg.cc]
        if msg.bcc:
            request.bcc = [Recipient.from_address(a) for a in msg.bcc]

        # The provider accepts a single reply-to address.
        if msg.reply_to:
            request.reply_to = Recipient.from_address(msg.reply_to[0])

        if msg.attachments:
            request.attachments = await self._persist_attachments(msg)

        return request

    async def _persist_attachments(self, msg: ParsedMessage) -> list[SendAttachment]:
        handles: list[AttachmentHandle] = []
        encoded: list[SendAttachment] = []

        for attachment in msg.attachments:
            try:
                handle = await self.store.persist(
                    attachment.filename, attachment.content, attachment.content_type
                )
            except StorageError as e:
                await self.store.discard(handles)
                raise MappingError(
                    f"Could not persist attachment {attachment.filename!r}: {e}"
                ) from e

            handles.append(handle)
            encoded.append(
                SendAttachment(
                    content=base64.b64encode(handle.content).decode("ascii"),
                    filename=handle.original_filename or DEFAULT_FILENAME,
                    disposition="attachment",
                )
            )
            self.logger.info(f"Saved attachment {handle.original_filename!r} to {handle.path}")

        return encoded
