"""Local document store: vault-confined, encoding-aware read/write.

Documents are addressed by vault-relative paths (``notes/a.md``). Every
path is resolved against the vault root and rejected if it escapes it.
"""

from pathlib import Path

from charset_normalizer import from_bytes

# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # ascii is a strict subset of utf-8
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def write_file(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Write content to a file, creating parent directories as needed.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode(encoding)
    path.write_bytes(encoded)
    return len(encoded)


# =============================================================================
# Store
# =============================================================================


class LocalDocumentStore:
    """Read and write documents under a vault root directory.

    Args:
        root: Vault root; document paths are relative to it.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()

    def resolve(self, path: str) -> Path:
        """Return the absolute path of document *path*.

        Raises:
            ValueError: If *path* is empty or resolves outside the root.
        """
        if not path or not path.strip():
            raise ValueError("Document path cannot be empty")
        resolved = (self.root / path.lstrip("/\\")).resolve()
        if not resolved.is_relative_to(self.root):
            raise ValueError(
                f"Document path is outside the vault: {path} not under "
                f"{self.root}"
            )
        return resolved

    def exists(self, path: str) -> bool:
        try:
            return self.resolve(path).is_file()
        except ValueError:
            return False

    def read(self, path: str) -> str:
        content, _ = read_file_with_encoding(self.resolve(path))
        return content

    def write(self, path: str, content: str) -> None:
        write_file(self.resolve(path), content)
