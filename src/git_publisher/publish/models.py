"""Pydantic models for the publication engine.

Defines the data contracts shared by the publish modules:

- ``PathMappingPolicy``: How local paths map to remote storage paths.
- ``DirectoryNode``: One entry of the lazily-expanded remote tree.
- ``DirectoryCacheEntry``: The cached tree for one target.
- ``PublishRecord``: Durable publication state of one (document, target).
- ``PublishStatus``, ``ExpansionState``, ``PublicationState``: Enums.

Records and policies are frozen. Directory nodes are mutable because
children are attached in place when a subtree is expanded.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from git_publisher.core.remote import NodeKind

DEFAULT_FORBIDDEN_CHARACTERS = '<>:"|?*\\'


class PublishStatus(str, Enum):
    """Outcome of the most recent publish attempt."""

    SUCCESS = "success"
    FAILED = "failed"


class ExpansionState(str, Enum):
    """Lazy-expansion state of a directory node."""

    UNEXPANDED = "unexpanded"
    EXPANDING = "expanding"
    EXPANDED = "expanded"


class PublicationState(str, Enum):
    """Per-document, per-target publication state."""

    UNPUBLISHED = "unpublished"
    PUBLISHING = "publishing"
    PUBLISHED = "published"
    PUBLISH_FAILED = "publish-failed"


class PathMappingPolicy(BaseModel):
    """Rules for turning a local document path into a remote path.

    Attributes:
        keep_file_structure: Preserve the local relative path under the
            remote root; if ``False``, flatten to the filename only.
        default_directory: Directory prefix applied when the caller does
            not choose one explicitly.
        required_extension: Appended when the filename lacks it.
        forbidden_characters: Stripped before building the remote path;
            ``-`` is not allowed since it replaces whitespace.
    """

    keep_file_structure: bool = True
    default_directory: str = ""
    required_extension: str = ".md"
    forbidden_characters: str = DEFAULT_FORBIDDEN_CHARACTERS

    model_config = {"frozen": True}

    @field_validator("forbidden_characters")
    @classmethod
    def _hyphen_allowed(cls, value: str) -> str:
        # Whitespace is rewritten to "-", which must survive a second pass
        if "-" in value:
            raise ValueError(
                "forbidden_characters cannot contain '-'; it replaces "
                "whitespace in remote paths"
            )
        return value


class DirectoryNode(BaseModel):
    """One file or folder in the remote tree.

    ``children`` stays empty until the node is expanded; ``path`` is the
    parent's path plus ``"/" + name`` except for top-level nodes.
    """

    path: str
    name: str
    kind: NodeKind
    depth: int = 0
    has_expandable_children: bool = False
    children: list[DirectoryNode] = Field(default_factory=list)
    expansion_state: ExpansionState = ExpansionState.UNEXPANDED

    @property
    def is_directory(self) -> bool:
        return self.kind == NodeKind.DIRECTORY

    @property
    def is_expanded(self) -> bool:
        return self.expansion_state == ExpansionState.EXPANDED


DirectoryNode.model_rebuild()


class DirectoryCacheEntry(BaseModel):
    """Cached top-level tree for one target.

    Attributes:
        root_nodes: Top-level nodes under the target's configured root.
        captured_at: Clock reading (seconds) when the tree was listed.
        target: Target that produced this tree.
    """

    root_nodes: list[DirectoryNode]
    captured_at: float
    target: str

    def is_valid_for(self, target: str, now: float, ttl: float) -> bool:
        """Return ``True`` if the entry is fresh and belongs to *target*."""
        return self.target == target and (now - self.captured_at) < ttl


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PublishRecord(BaseModel):
    """Durable state of one (local document, target) pair.

    Attributes:
        local_path: Local document path (vault-relative).
        remote_path: Repository path the document was written to.
        target: Name of the configured remote target.
        last_published_at: When the attempt finished (UTC).
        status: ``success`` or ``failed``.
        version_tag: Token returned by the last successful write, used as
            the optimistic-concurrency precondition of the next write.
        content_hash: Normalised SHA-256 of the published content.
    """

    local_path: str
    remote_path: str
    target: str
    last_published_at: datetime = Field(default_factory=_utcnow)
    status: PublishStatus = PublishStatus.SUCCESS
    version_tag: str | None = None
    content_hash: str | None = None

    model_config = {"frozen": True}

    @property
    def key(self) -> str:
        return record_key(self.local_path, self.target)

    @property
    def succeeded(self) -> bool:
        return self.status == PublishStatus.SUCCESS


def record_key(local_path: str, target: str) -> str:
    """Storage key for a (local path, target) pair: ``"{path}:{target}"``."""
    return f"{local_path}:{target}"
