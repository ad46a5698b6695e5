"""Local-path to remote-path normalization.

``normalize()`` turns a local document path into a canonical repository
path under a ``PathMappingPolicy``. Rules, in order:

1. Strip leading/trailing separators (``/`` and ``\\``).
2. Collapse repeated separators.
3. Remove characters illegal in the remote store (``< > : " | ? * \\``).
4. Convert ideographic and run-on whitespace to single hyphens.
5. Flatten to the filename unless ``keep_file_structure`` is set.
6. Append the required extension if absent.
7. Prefix with the explicit directory, else ``default_directory``.

Normalization never raises. Empty input yields ``""``, which callers must
reject before issuing remote operations. The result is idempotent: a
path that already carries the directory prefix is not prefixed again.
"""

from __future__ import annotations

import re

from git_publisher.publish.models import PathMappingPolicy

_SEPARATORS = re.compile(r"[\\/]+")
# \s covers U+3000 (ideographic space) for str patterns
_WHITESPACE = re.compile(r"\s+")


def split_segments(raw: str, forbidden: str) -> list[str]:
    """Apply rules 1-4 and return the cleaned, non-empty path segments.

    ``.`` and ``..`` segments are dropped so a normalized path can never
    climb out of the repository root.
    """
    segments: list[str] = []
    for segment in _SEPARATORS.split(raw):
        segment = "".join(ch for ch in segment if ch not in forbidden)
        segment = _WHITESPACE.sub("-", segment.strip())
        if segment in ("", ".", ".."):
            continue
        segments.append(segment)
    return segments


def normalize(
    raw_path: str,
    policy: PathMappingPolicy,
    directory: str | None = None,
) -> str:
    """Map *raw_path* to a remote storage path.

    Args:
        raw_path: Local document path (e.g. ``"notes/a.md"``).
        policy: Path mapping policy in effect.
        directory: Caller-chosen target directory. ``None`` falls back to
            ``policy.default_directory``; ``""`` means the repository root.

    Returns:
        Slash-separated remote path, or ``""`` when nothing remains.

    Examples:
        >>> policy = PathMappingPolicy(keep_file_structure=False,
        ...                            default_directory="guide")
        >>> normalize("notes/a.md", policy)
        'guide/a.md'
        >>> normalize("notes/a", PathMappingPolicy())
        'notes/a.md'
    """
    forbidden = policy.forbidden_characters
    segments = split_segments(raw_path, forbidden)
    if not segments:
        return ""

    if not policy.keep_file_structure:
        segments = segments[-1:]

    extension = policy.required_extension
    filename = segments[-1]
    if extension and not filename.lower().endswith(extension.lower()):
        segments[-1] = filename + extension

    prefix_source = (
        directory if directory is not None else policy.default_directory
    )
    prefix = split_segments(prefix_source or "", forbidden)
    if prefix and segments[: len(prefix)] != prefix:
        segments = prefix + segments

    return "/".join(segments)
