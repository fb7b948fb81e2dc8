"""Tests for file_handler module: path validation and encoding-aware read/write."""

from pathlib import Path

import pytest

from git_doc_sync.core.errors import FileIOError
from git_doc_sync.file_handler import (
    decode_bytes,
    read_text,
    read_text_async,
    read_text_with_encoding,
    validate_file_path,
    write_text,
    write_text_async,
)

# =============================================================================
# validate_file_path
# =============================================================================


class TestValidateFilePath:
    """Tests for validate_file_path(path_str)."""

    def test_valid_absolute_path(self, tmp_path):
        """Valid absolute path to existing file returns resolved Path."""
        f = tmp_path / "draft.md"
        f.write_text("hello")
        result = validate_file_path(str(f))
        assert isinstance(result, Path)
        assert result == f.resolve()

    def test_empty_path_raises(self):
        with pytest.raises(ValueError, match="required"):
            validate_file_path("")

    def test_relative_path_raises(self):
        with pytest.raises(ValueError, match="must be absolute"):
            validate_file_path("notes/draft.md")

    def test_nonexistent_file_raises(self, tmp_path):
        with pytest.raises(ValueError, match="not found"):
            validate_file_path(str(tmp_path / "missing.md"))

    def test_directory_raises(self, tmp_path):
        with pytest.raises(ValueError, match="not a file"):
            validate_file_path(str(tmp_path))


# =============================================================================
# decode / read / write
# =============================================================================


class TestDecodeBytes:
    def test_empty(self):
        assert decode_bytes(b"") == ("", "utf-8")

    def test_utf8(self):
        assert decode_bytes("café".encode()) == ("café", "utf-8")

    def test_non_utf8_detected(self):
        raw = (
            "Le café était fermé, déjà très "
            "tôt ce matin.\n"
        ).encode("latin-1") * 5
        content, encoding = decode_bytes(raw)

        assert encoding != "utf-8"
        assert "café" in content


class TestReadWrite:
    def test_round_trip(self, tmp_path):
        path = tmp_path / "draft.md"
        written = write_text(path, "Before\nlöcal\nAfter")

        assert written == len("Before\nlöcal\nAfter".encode())
        assert read_text(path) == "Before\nlöcal\nAfter"

    def test_read_missing_raises_file_io_error(self, tmp_path):
        with pytest.raises(FileIOError, match="Cannot read"):
            read_text(tmp_path / "missing.md")

    def test_write_into_missing_directory_raises(self, tmp_path):
        with pytest.raises(FileIOError, match="Cannot write"):
            write_text(tmp_path / "nope" / "draft.md", "x")

    def test_reports_detected_encoding(self, tmp_path):
        path = tmp_path / "draft.md"
        path.write_bytes(
            ("Le café était fermé, déjà très tôt.\n" * 5).encode("latin-1")
        )

        content, encoding = read_text_with_encoding(path)

        assert encoding != "utf-8"
        assert write_text(tmp_path / "copy.md", content, encoding) == len(
            path.read_bytes()
        )
        assert (tmp_path / "copy.md").read_bytes() == path.read_bytes()

    def test_ascii_reported_as_utf8(self, tmp_path):
        path = tmp_path / "draft.md"
        path.write_bytes(b"plain")
        assert read_text_with_encoding(path) == ("plain", "utf-8")

    def test_unencodable_content_raises_file_io_error(self, tmp_path):
        with pytest.raises(FileIOError, match="Cannot encode"):
            write_text(tmp_path / "draft.md", "snow \u2603", "latin-1")

    def test_preserves_line_endings(self, tmp_path):
        path = tmp_path / "crlf.md"
        path.write_bytes(b"a\r\nb\r\n")
        assert read_text(path) == "a\r\nb\r\n"


async def test_async_wrappers(tmp_path):
    path = tmp_path / "draft.md"
    await write_text_async(path, "async text")
    assert await read_text_async(path) == "async text"
