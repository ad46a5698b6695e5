"""Lazily-expanded, time-boxed cache of the remote directory tree.

``DirectoryTreeCache`` owns a single ``DirectoryCacheEntry``. The entry
serves ``get_top_level()`` while it is younger than the TTL and belongs to
the requested target; otherwise the root is listed again and the tree is
rebuilt from scratch. Subtrees are fetched on demand by ``expand()``,
which attaches children to the node in place and never re-fetches an
expanded node while the tree it belongs to is alive.

Listing failures at the root degrade to the previous (possibly expired)
tree for the same target. The cache is a read-through accelerator, not a
source of truth: concurrent rebuilds for one target simply let the last
writer win.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Mapping

from git_publisher.core.async_utils import gather_limited
from git_publisher.core.remote import (
    NodeKind,
    RemoteEntry,
    RemoteRepositoryService,
)
from git_publisher.errors import (
    NotConfigured,
    NotFound,
    PublisherError,
    RemoteUnavailable,
)
from git_publisher.publish.models import (
    DirectoryCacheEntry,
    DirectoryNode,
    ExpansionState,
)

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0


def _sort_key(node: DirectoryNode) -> tuple[int, str]:
    # Directories first, then case-insensitive by name
    return (0 if node.is_directory else 1, node.name.casefold())


def build_tree(
    entries: Iterable[RemoteEntry],
    root: str = "",
    base_depth: int = 0,
) -> list[DirectoryNode]:
    """Group a flat listing into a tree of ``DirectoryNode``.

    Entries may come from a single-level listing or from a recursive one
    (several levels at once). Parent/child relationships are derived from
    shared path prefixes; intermediate directories missing from the
    listing are synthesised. Depth is ``base_depth`` plus the number of
    segments below *root*, minus one.

    Directories whose children appear in the listing are marked expanded.
    Entries outside *root* are ignored.

    Args:
        entries: Flat listing entries with repository-relative paths.
        root: Path the listing was taken at (``""`` for repository root).
        base_depth: Depth assigned to direct children of *root*.

    Returns:
        Top-level nodes (direct children of *root*), sorted with
        directories first.
    """
    root = root.strip("/")
    prefix = f"{root}/" if root else ""
    nodes: dict[str, DirectoryNode] = {}
    top_level: list[DirectoryNode] = []

    def _ensure(path: str, kind: NodeKind) -> DirectoryNode:
        existing = nodes.get(path)
        if existing is not None:
            if kind == NodeKind.DIRECTORY and not existing.is_directory:
                existing.kind = NodeKind.DIRECTORY
            return existing

        relative = path[len(prefix) :]
        segments = relative.split("/")
        node = DirectoryNode(
            path=path,
            name=segments[-1],
            kind=kind,
            depth=base_depth + len(segments) - 1,
        )
        nodes[path] = node

        if len(segments) == 1:
            top_level.append(node)
        else:
            parent_path = path.rsplit("/", 1)[0]
            parent = _ensure(parent_path, NodeKind.DIRECTORY)
            parent.children.append(node)
            parent.has_expandable_children = True
            parent.expansion_state = ExpansionState.EXPANDED
        return node

    for entry in entries:
        path = entry.path.strip("/")
        if not path or path == root:
            continue
        if prefix and not path.startswith(prefix):
            logger.debug(
                "Ignoring entry %s outside listing root %s", path, root
            )
            continue
        _ensure(path, entry.kind)

    for node in nodes.values():
        node.children.sort(key=_sort_key)
    top_level.sort(key=_sort_key)
    return top_level


class DirectoryTreeCache:
    """Single-entry cache of the remote directory tree.

    Args:
        remote: Remote repository service used for listings.
        roots: Listing root per target (``""`` when absent).
        ttl: Seconds a cached tree stays valid.
        probe_children: Probe each top-level or newly expanded directory
            for entries to set ``has_expandable_children`` (one concurrent
            call per directory).
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        remote: RemoteRepositoryService,
        roots: Mapping[str, str] | None = None,
        ttl: float = DEFAULT_TTL_SECONDS,
        probe_children: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.remote = remote
        self.roots = dict(roots or {})
        self.ttl = ttl
        self.probe_children = probe_children
        self._clock = clock
        self._entry: DirectoryCacheEntry | None = None

    @property
    def entry(self) -> DirectoryCacheEntry | None:
        """The current cache entry, valid or not."""
        return self._entry

    def root_for(self, target: str) -> str:
        return self.roots.get(target, "").strip("/")

    def is_valid(self, target: str) -> bool:
        """Return ``True`` if the cached tree can serve *target* now."""
        return self._entry is not None and self._entry.is_valid_for(
            target, self._clock(), self.ttl
        )

    def invalidate(self) -> None:
        """Discard the cached tree unconditionally."""
        if self._entry is not None:
            logger.debug(
                "Invalidating directory cache for target %s",
                self._entry.target,
            )
        self._entry = None

    # ------------------------------------------------------------------
    # Top level
    # ------------------------------------------------------------------

    async def get_top_level(self, target: str) -> list[DirectoryNode]:
        """Return the top-level nodes for *target*, listing if needed.

        Raises:
            RemoteUnavailable: Listing failed and no previous tree exists
                for *target*.
        """
        if self.is_valid(target):
            logger.debug("Directory cache hit for target %s", target)
            return self._entry.root_nodes  # type: ignore[union-attr]

        root = self.root_for(target)
        try:
            entries = await self._list_root(root, target)
        except RemoteUnavailable as exc:
            stale = self._entry
            if stale is not None and stale.target == target:
                logger.warning(
                    "Listing %s failed (%s); serving cached tree from "
                    "%.0fs ago",
                    root or "/",
                    exc,
                    self._clock() - stale.captured_at,
                )
                return stale.root_nodes
            raise

        nodes = build_tree(entries, root=root)
        if self.probe_children:
            await self._probe(nodes, target)

        self._entry = DirectoryCacheEntry(
            root_nodes=nodes,
            captured_at=self._clock(),
            target=target,
        )
        logger.info(
            "Cached %d top-level entries for target %s",
            len(nodes),
            target,
        )
        return nodes

    async def _list_root(
        self, root: str, target: str
    ) -> list[RemoteEntry]:
        try:
            return await self.remote.list_contents(root, target)
        except NotFound:
            # Root directory not created yet: nothing published there
            logger.info(
                "Root %s does not exist on target %s", root or "/", target
            )
            return []

    async def _probe(
        self, nodes: list[DirectoryNode], target: str
    ) -> None:
        """Set ``has_expandable_children`` on unexpanded directories."""
        pending = [
            n for n in nodes if n.is_directory and not n.is_expanded
        ]
        if not pending:
            return

        results = await gather_limited(
            [self.remote.list_contents(n.path, target) for n in pending],
            return_exceptions=True,
        )
        for node, result in zip(pending, results):
            if isinstance(result, PublisherError):
                logger.warning(
                    "Probe of %s failed: %s", node.path, result
                )
                node.has_expandable_children = False
            elif isinstance(result, BaseException):
                raise result
            else:
                node.has_expandable_children = bool(result)

    # ------------------------------------------------------------------
    # Lazy expansion
    # ------------------------------------------------------------------

    async def expand(
        self, node: DirectoryNode, target: str | None = None
    ) -> list[DirectoryNode]:
        """Fetch and attach the children of *node*.

        Already-expanded nodes return their children without a network
        call. Files have no children. New child directories are probed
        like the top level when ``probe_children`` is set.

        Args:
            node: Directory node to expand.
            target: Target to list against; defaults to the target of the
                current cache entry.

        Raises:
            NotConfigured: No target given and nothing cached.
        """
        if node.is_expanded:
            return node.children
        if not node.is_directory:
            return []

        target = target or (self._entry.target if self._entry else None)
        if target is None:
            raise NotConfigured(
                f"Cannot expand '{node.path}': no target selected"
            )

        node.expansion_state = ExpansionState.EXPANDING
        try:
            entries = await self.remote.list_contents(node.path, target)
            children = build_tree(
                entries, root=node.path, base_depth=node.depth + 1
            )
            if self.probe_children:
                await self._probe(children, target)
        except BaseException:
            node.expansion_state = ExpansionState.UNEXPANDED
            raise

        node.children = children
        node.has_expandable_children = bool(children)
        node.expansion_state = ExpansionState.EXPANDED
        logger.debug(
            "Expanded %s: %d children", node.path, len(children)
        )
        return children
