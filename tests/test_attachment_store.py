"""Tests for attachment persistence."""

import pytest

from mailersend_relay.attachments import DEFAULT_FILENAME, AttachmentStore, sanitize_filename
from mailersend_relay.errors import StorageError


class TestSanitizeFilename:
    """Tests for filename sanitization."""

    def test_plain_name_unchanged(self):
        assert sanitize_filename("report.pdf") == "report.pdf"

    def test_path_separators_replaced(self):
        assert "/" not in sanitize_filename("../../etc/passwd")
        assert "\\" not in sanitize_filename("..\\windows\\system.ini")

    def test_leading_dots_stripped(self):
        assert sanitize_filename(".bashrc") == "bashrc"

    def test_control_characters_removed(self):
        assert sanitize_filename("na\x00me\x1f.txt") == "name.txt"

    def test_empty_name_gets_default(self):
        assert sanitize_filename("") == DEFAULT_FILENAME
        assert sanitize_filename(None) == DEFAULT_FILENAME
        assert sanitize_filename("...") == DEFAULT_FILENAME

    def test_long_name_keeps_extension(self):
        result = sanitize_filename("x" * 400 + ".pdf")
        assert len(result) <= 150
        assert result.endswith(".pdf")


class TestEnsureDirectory:
    """Tests for attachment directory setup."""

    def test_creates_nested_directory(self, tmp_path):
        target = tmp_path / "a" / "b" / "c"
        store = AttachmentStore(target)

        assert store.ensure_directory() == target.resolve()
        assert target.is_dir()

    def test_is_idempotent(self, tmp_path):
        store = AttachmentStore(tmp_path / "attachments")
        store.ensure_directory()
        (tmp_path / "attachments" / "keep.txt").write_text("keep")

        store.ensure_directory()

        assert (tmp_path / "attachments" / "keep.txt").read_text() == "keep"

    def test_fails_when_path_is_a_file(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = AttachmentStore(blocker / "attachments")

        with pytest.raises(StorageError):
            store.ensure_directory()


class TestPersist:
    """Tests for writing attachments."""

    @pytest.mark.asyncio
    async def test_content_is_byte_identical(self, store):
        content = bytes(range(256)) * 10

        handle = await store.persist("blob.bin", content, "application/octet-stream")

        assert handle.path.read_bytes() == content
        assert handle.content == content
        assert handle.original_filename == "blob.bin"
        assert handle.content_type == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_handle_path_is_absolute_and_inside_directory(self, store, attachment_dir):
        handle = await store.persist("note.txt", b"abc", "text/plain")

        assert handle.path.is_absolute()
        assert handle.path.parent == attachment_dir.resolve()
        assert handle.path.name == handle.filename
        assert handle.filename.endswith("-note.txt")

    @pytest.mark.asyncio
    async def test_same_filename_gets_unique_names(self, store):
        first = await store.persist("note.txt", b"first", "text/plain")
        second = await store.persist("note.txt", b"second", "text/plain")

        assert first.filename != second.filename
        assert first.path.read_bytes() == b"first"
        assert second.path.read_bytes() == b"second"

    @pytest.mark.asyncio
    async def test_traversal_name_stays_in_directory(self, store, attachment_dir):
        handle = await store.persist("../../escape.txt", b"x", "text/plain")

        assert handle.path.parent == attachment_dir.resolve()
        assert handle.original_filename == "../../escape.txt"

    @pytest.mark.asyncio
    async def test_unwritable_directory_raises_storage_error(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = AttachmentStore(blocker)

        with pytest.raises(StorageError) as exc_info:
            await store.persist("note.txt", b"abc", "text/plain")

        assert exc_info.value.path is not None
        assert exc_info.value.stage == "storage"

    @pytest.mark.asyncio
    async def test_discard_removes_files(self, store, attachment_dir):
        handles = [
            await store.persist("a.txt", b"a", "text/plain"),
            await store.persist("b.txt", b"b", "text/plain"),
        ]

        await store.discard(handles)

        assert list(attachment_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_discard_ignores_missing_files(self, store):
        handle = await store.persist("a.txt", b"a", "text/plain")
        handle.path.unlink()

        await store.discard([handle])
