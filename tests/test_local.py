"""Tests for the local document store: vault confinement and encodings."""

from pathlib import Path

import pytest

from git_publisher.core.local import (
    LocalDocumentStore,
    read_file_with_encoding,
    write_file,
)

# =============================================================================
# read_file_with_encoding / write_file
# =============================================================================


class TestReadWrite:
    """Encoding-aware file helpers."""

    def test_utf8_roundtrip(self, tmp_path: Path):
        path = tmp_path / "a.md"
        text = "# Überschrift\n\nGrüße aus Köln, schöne Straße, naïve café.\n"
        write_file(path, text)
        content, _ = read_file_with_encoding(path)
        assert content == text

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "empty.md"
        path.write_bytes(b"")
        assert read_file_with_encoding(path) == ("", "utf-8")

    def test_ascii_reported_as_utf8(self, tmp_path: Path):
        path = tmp_path / "plain.md"
        path.write_bytes(b"plain ascii text only\n")
        _, encoding = read_file_with_encoding(path)
        assert encoding == "utf-8"

    def test_write_creates_parents_and_returns_size(self, tmp_path: Path):
        path = tmp_path / "deep" / "dir" / "a.md"
        assert write_file(path, "é") == 2
        assert path.exists()


# =============================================================================
# LocalDocumentStore
# =============================================================================


class TestLocalDocumentStore:
    """Vault-relative addressing."""

    def test_write_read_exists(self, vault: LocalDocumentStore):
        assert not vault.exists("notes/a.md")
        vault.write("notes/a.md", "hello")
        assert vault.exists("notes/a.md")
        assert vault.read("notes/a.md") == "hello"

    def test_leading_slash_is_relative_to_vault(
        self, vault: LocalDocumentStore
    ):
        vault.write("/notes/a.md", "x")
        assert (vault.root / "notes" / "a.md").exists()

    def test_escape_rejected(self, vault: LocalDocumentStore):
        with pytest.raises(ValueError, match="outside the vault"):
            vault.resolve("../outside.md")
        assert vault.exists("../outside.md") is False

    def test_empty_path_rejected(self, vault: LocalDocumentStore):
        with pytest.raises(ValueError, match="empty"):
            vault.resolve("")

    def test_directory_is_not_a_document(self, vault: LocalDocumentStore):
        (vault.root / "notes").mkdir()
        assert vault.exists("notes") is False
