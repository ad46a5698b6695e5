"""Publish history and directory tree formatting.

- ``format_dashboard`` -- recent publishes grouped by outcome.
- ``format_tree`` -- indented directory listing.
- ``records_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Sequence

if TYPE_CHECKING:
    from .models import DirectoryNode, PublishRecord

_TIME_FORMAT = "%Y-%m-%d %H:%M"

# ------------------------------------------------------------------
# Human-readable dashboard
# ------------------------------------------------------------------


def _record_line(record: PublishRecord) -> str:
    when = record.last_published_at.strftime(_TIME_FORMAT)
    return (
        f"  {record.local_path} -> {record.remote_path} "
        f"[{record.target}] {when}"
    )


def format_dashboard(records: Sequence[PublishRecord]) -> str:
    """Format publish records as a human-readable history.

    Failed attempts are listed first since they need attention; sections
    are only included when non-empty.

    Args:
        records: Records to show, typically newest first.

    Returns:
        Multi-line formatted string.
    """
    if not records:
        return "No publish history."

    failed = [r for r in records if not r.succeeded]
    published = [r for r in records if r.succeeded]

    lines: list[str] = []
    targets = sorted({r.target for r in records})
    lines.append(
        f"{len(records)} documents on {len(targets)} targets "
        f"({', '.join(targets)}): "
        f"{len(published)} published, {len(failed)} failed"
    )
    lines.append("")

    if failed:
        lines.append("Failed:")
        for r in failed:
            lines.append(_record_line(r))
        lines.append("")

    if published:
        lines.append("Published:")
        for r in published:
            lines.append(_record_line(r))
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Directory tree
# ------------------------------------------------------------------


def format_tree(nodes: Iterable[DirectoryNode], indent: str = "  ") -> str:
    """Render nodes and any expanded descendants as an indented list.

    Directories end with ``/``; unexpanded directories that are known to
    have children are marked with ``+``.
    """
    lines: list[str] = []

    def _walk(level: Iterable[DirectoryNode], depth: int) -> None:
        for node in level:
            if node.is_directory:
                marker = (
                    " +"
                    if node.has_expandable_children and not node.is_expanded
                    else ""
                )
                lines.append(f"{indent * depth}{node.name}/{marker}")
                _walk(node.children, depth + 1)
            else:
                lines.append(f"{indent * depth}{node.name}")

    _walk(nodes, 0)
    return "\n".join(lines) if lines else "(empty)"


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def records_to_json(records: Sequence[PublishRecord]) -> dict:
    """Convert publish records to a structured dict for JSON output."""
    return {
        "counts": {
            "total": len(records),
            "published": sum(1 for r in records if r.succeeded),
            "failed": sum(1 for r in records if not r.succeeded),
        },
        "records": [r.model_dump(mode="json") for r in records],
    }
