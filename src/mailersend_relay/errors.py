# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exception hierarchy for the relay pipeline.

Every error raised while a message travels through the pipeline derives
from :class:`RelayError` and records the pipeline ``stage`` it belongs to.
The session coordinator is the single place where these errors are caught
and turned into an SMTP rejection.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class RelayError(Exception):
    """Base class for all pipeline errors."""

    stage = "relay"


class ParseError(RelayError):
    """Raised when the raw submission cannot be decoded as a MIME message."""

    stage = "parsing"


class StorageError(RelayError):
    """Raised when an attachment cannot be written to the attachment directory."""

    stage = "storage"

    def __init__(self, message: str, path: Path | str | None = None):
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class MappingError(RelayError):
    """Raised when a parsed message cannot be turned into a send request.

    Happens when the message has no identifiable sender, or when one of its
    attachments could not be persisted (the ``StorageError`` is chained as
    ``__cause__``).
    """

    stage = "mapping"


class DeliveryError(RelayError):
    """Raised when the delivery provider rejects the request or is unreachable.

    Attributes:
        status: HTTP status returned by the provider, or None when the
            request never got a response.
        payload: Diagnostic body returned by the provider (decoded JSON when
            possible, otherwise text).
    """

    stage = "delivery"

    def __init__(self, message: str, status: int | None = None, payload: Any = None):
        super().__init__(message)
        self.status = status
        self.payload = payload

    def __str__(self) -> str:
        base = super().__str__()
        if self.status is None:
            return base
        return f"{base} (status={self.status})"


__all__ = [
    "DeliveryError",
    "MappingError",
    "ParseError",
    "RelayError",
    "StorageError",
]
