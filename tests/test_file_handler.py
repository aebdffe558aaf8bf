"""Tests for envzip.file_handler -- encoding-aware read and atomic write."""

import os

from envzip.file_handler import read_file_with_encoding, write_file

# ---------------------------------------------------------------------------
# read_file_with_encoding
# ---------------------------------------------------------------------------


class TestReadFileWithEncoding:
    """Tests for read_file_with_encoding()."""

    def test_utf8_file(self, tmp_path):
        f = tmp_path / ".env"
        f.write_text("NAME=José\n", encoding="utf-8")
        content, encoding = read_file_with_encoding(f)
        assert content == "NAME=José\n"
        assert encoding == "utf-8"

    def test_empty_file(self, tmp_path):
        f = tmp_path / ".env"
        f.write_bytes(b"")
        assert read_file_with_encoding(f) == ("", "utf-8")

    def test_non_utf8_file(self, tmp_path):
        f = tmp_path / ".env"
        text = "GREETING=café crème brûlée pour tout le monde\n"
        f.write_bytes(text.encode("latin-1"))
        content, encoding = read_file_with_encoding(f)
        assert content.startswith("GREETING=caf")
        assert isinstance(encoding, str)


# ---------------------------------------------------------------------------
# write_file
# ---------------------------------------------------------------------------


class TestWriteFile:
    """Tests for write_file()."""

    def test_write_basic(self, tmp_path):
        f = tmp_path / ".env"
        written = write_file(f, "A=1\n")
        assert f.read_text() == "A=1\n"
        assert written == 4

    def test_creates_parent_directories(self, tmp_path):
        f = tmp_path / "deep" / "dir" / ".env"
        write_file(f, "A=1\n")
        assert f.exists()

    def test_replaces_existing_content(self, tmp_path):
        f = tmp_path / ".env"
        f.write_text("OLD=1\n")
        write_file(f, "NEW=2\n")
        assert f.read_text() == "NEW=2\n"

    def test_keeps_file_mode(self, tmp_path):
        f = tmp_path / ".env"
        f.write_text("A=1\n")
        os.chmod(f, 0o600)
        write_file(f, "A=2\n")
        assert f.stat().st_mode & 0o777 == 0o600

    def test_no_temp_files_left_behind(self, tmp_path):
        f = tmp_path / ".env"
        write_file(f, "A=1\n")
        assert [p.name for p in tmp_path.iterdir()] == [".env"]
