# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Filesystem persistence for message attachments.

Each attachment is written as a standalone file in the configured
directory. Stored names combine a nanosecond timestamp, a random token and
the sanitized original filename, e.g.::

    1760800000123456789-3f9a1c2e-report.pdf

so two sessions submitting identically named files at the same instant
never collide. Files are opened in exclusive-create mode: an existing file
is never overwritten.
"""

from __future__ import annotations

import asyncio
import re
import secrets
import time
from collections.abc import Iterable
from pathlib import Path

from .errors import StorageError
from .logger import get_logger
from .models import AttachmentHandle

DEFAULT_FILENAME = "attachment.bin"
MAX_FILENAME_LENGTH = 150

_UNSAFE_CHARS = re.compile(r'[/\\:*?"<>|]')
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

logger = get_logger("AttachmentStore")


def sanitize_filename(filename: str | None) -> str:
    """Make a sender-supplied filename safe to use inside the attachment directory.

    Path separators and reserved characters become underscores, control
    characters are dropped and leading dots are stripped so the result can
    neither escape the directory nor become a hidden file.
    """
    if not filename:
        return DEFAULT_FILENAME

    result = _CONTROL_CHARS.sub("", filename)
    result = _UNSAFE_CHARS.sub("_", result)
    result = result.strip().lstrip(".")

    if len(result) > MAX_FILENAME_LENGTH:
        stem, dot, suffix = result.rpartition(".")
        if dot and len(suffix) < 16:
            result = stem[: MAX_FILENAME_LENGTH - len(suffix) - 1] + "." + suffix
        else:
            result = result[:MAX_FILENAME_LENGTH]

    return result or DEFAULT_FILENAME


class AttachmentStore:
    """Writes attachment bytes into a directory and returns handles to them.

    Attributes:
        directory: Absolute path of the attachment directory.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory).expanduser().resolve()

    def ensure_directory(self) -> Path:
        """Create the attachment directory (and parents) if missing.

        Idempotent; meant to run once at process start.

        Raises:
            StorageError: If the directory cannot be created.
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Cannot create attachment directory {self.directory}: {e}", self.directory
            ) from e
        return self.directory

    def unique_name(self, filename: str | None) -> str:
        """Build a collision-resistant stored name for ``filename``."""
        return f"{time.time_ns()}-{secrets.token_hex(4)}-{sanitize_filename(filename)}"

    async def persist(
        self,
        filename: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> AttachmentHandle:
        """Write one attachment to disk.

        Args:
            filename: Original filename declared by the sender.
            content: Attachment bytes.
            content_type: MIME type of the attachment.

        Returns:
            Handle describing the stored file.

        Raises:
            StorageError: If the directory is unwritable or the write fails.
        """
        stored_name = self.unique_name(filename)
        path = self.directory / stored_name

        try:
            await asyncio.to_thread(self._write_exclusive, path, content)
        except OSError as e:
            raise StorageError(f"Failed to write attachment {filename!r} to {path}: {e}", path) from e

        logger.debug(f"Stored attachment {filename!r} as {path} ({len(content):,} bytes)")
        return AttachmentHandle(
            filename=stored_name,
            original_filename=filename,
            path=path,
            content=content,
            content_type=content_type,
        )

    async def discard(self, handles: Iterable[AttachmentHandle]) -> None:
        """Remove files written for a message whose mapping was aborted."""
        for handle in handles:
            try:
                await asyncio.to_thread(handle.path.unlink, missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not remove attachment {handle.path}: {e}")

    @staticmethod
    def _write_exclusive(path: Path, content: bytes) -> None:
        with path.open("xb") as fh:
            try:
                fh.write(content)
            except OSError:
                # Never leave a truncated file behind.
                path.unlink(missing_ok=True)
                raise
