"""Remote publication engine.

Public API for publishing local text documents to remote git-backed
repositories and tracking their publication state per target.

Architecture
------------
A publish request flows through the ``PublicationCoordinator``: the
normalizer maps the local path to a remote path, the remote service
writes the content and returns a version tag, and the record store
persists the outcome. The version tag of the last successful write is
sent as an optimistic-concurrency precondition on the next one, so a
remote edit made in between surfaces as a ``Conflict`` instead of being
overwritten.

Modules:

- ``coordinator`` -- ``PublicationCoordinator``: publish/pull/delete.
- ``records``     -- ``PublishRecordStore``: durable JSON publish history.
- ``tree``        -- ``DirectoryTreeCache``: lazily-expanded remote tree.
- ``normalizer``  -- ``normalize()``: local path to remote path mapping.
- ``models``      -- ``PublishRecord``, ``DirectoryNode``,
  ``PathMappingPolicy`` and state enums.
- ``reporter``    -- Human-readable and JSON formatting.

Usage example
-------------
::

    from pathlib import Path
    from git_publisher.core.local import LocalDocumentStore
    from git_publisher.core.router import RepositoryRouter
    from git_publisher.publish import (
        PathMappingPolicy,
        PublicationCoordinator,
        PublishRecordStore,
    )

    router = RepositoryRouter(config.targets)
    coordinator = PublicationCoordinator(
        remote=router,
        store=PublishRecordStore(Path(".git_publisher")),
        policy=PathMappingPolicy(keep_file_structure=False,
                                 default_directory="guide"),
        active_target="blog",
        local=LocalDocumentStore(Path("vault")),
    )

    record = await coordinator.quick_publish("notes/a.md")
    print(record.remote_path)   # guide/a.md
"""

from .coordinator import PublicationCoordinator
from .models import (
    DirectoryNode,
    ExpansionState,
    PathMappingPolicy,
    PublicationState,
    PublishRecord,
    PublishStatus,
)
from .normalizer import normalize
from .records import PublishRecordStore
from .reporter import format_dashboard, format_tree, records_to_json
from .tree import DirectoryTreeCache, build_tree

__all__ = [
    "DirectoryNode",
    "DirectoryTreeCache",
    "ExpansionState",
    "PathMappingPolicy",
    "PublicationCoordinator",
    "PublicationState",
    "PublishRecord",
    "PublishRecordStore",
    "PublishStatus",
    "build_tree",
    "format_dashboard",
    "format_tree",
    "normalize",
    "records_to_json",
]
