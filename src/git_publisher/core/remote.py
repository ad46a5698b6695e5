"""Remote Repository Service contract.

The publication core depends only on this contract. Concrete adapters
(``GitHubService``, ``GitLabService``) are synchronous ``requests``
clients; ``RepositoryRouter`` exposes them through this async interface,
one backend per configured target.

All paths are repository-relative, slash-separated, and carry no leading
or trailing slash.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class NodeKind(str, Enum):
    """Kind of entry in a remote directory listing."""

    FILE = "file"
    DIRECTORY = "directory"


class RemoteEntry(BaseModel):
    """One entry returned by a directory listing.

    Attributes:
        name: Last path segment.
        path: Full repository-relative path.
        kind: File or directory.
    """

    name: str
    path: str
    kind: NodeKind

    model_config = {"frozen": True}


class WriteResult(BaseModel):
    """Outcome of a successful write.

    Attributes:
        version_tag: Opaque token identifying the remote object state
            after the write (GitHub blob SHA, GitLab last commit id).
    """

    version_tag: str | None = None

    model_config = {"frozen": True}


@runtime_checkable
class RemoteRepositoryService(Protocol):
    """Capability contract for a remote git-backed document store.

    Implementations raise ``NotFound``, ``Conflict``, ``NotConfigured``
    or ``RemoteUnavailable`` from ``git_publisher.errors``; they never
    retry.
    """

    async def list_contents(
        self, path: str, target: str
    ) -> list[RemoteEntry]: ...

    async def read_contents(self, path: str, target: str) -> str: ...

    async def write(
        self,
        path: str,
        content: str,
        commit_message: str,
        target: str,
        expected_version_tag: str | None = None,
    ) -> WriteResult: ...

    async def delete(
        self, path: str, commit_message: str, target: str
    ) -> None: ...
