"""Shared pytest fixtures for git-publisher tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from git_publisher.core.local import LocalDocumentStore
from git_publisher.core.remote import NodeKind, RemoteEntry, WriteResult
from git_publisher.errors import Conflict, NotFound
from git_publisher.publish.coordinator import PublicationCoordinator
from git_publisher.publish.models import PathMappingPolicy
from git_publisher.publish.records import PublishRecordStore
from git_publisher.publish.tree import DirectoryTreeCache


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live GitHub repository",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live repository"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


class FakeRemote:
    """In-memory ``RemoteRepositoryService`` with call recording.

    Files are stored per target as ``path -> (content, version_tag)``.
    Directories are implied by file paths, plus any added with
    ``add_dir``. Writes with a stale ``expected_version_tag`` raise
    ``Conflict``. ``fail`` queues an exception for the next call of an
    operation.
    """

    def __init__(self) -> None:
        self.files: dict[str, dict[str, tuple[str, str]]] = {}
        self.dirs: dict[str, set[str]] = {}
        self.calls: list[tuple[str, str, str]] = []
        self._failures: dict[str, list[BaseException]] = {}
        self._counter = 0

    # -- setup helpers -------------------------------------------------

    def _next_tag(self) -> str:
        self._counter += 1
        return f"v{self._counter}"

    def add_file(self, target: str, path: str, content: str = "") -> str:
        tag = self._next_tag()
        self.files.setdefault(target, {})[path] = (content, tag)
        return tag

    def add_dir(self, target: str, path: str) -> None:
        self.dirs.setdefault(target, set()).add(path)

    def fail(self, op: str, exc: BaseException) -> None:
        self._failures.setdefault(op, []).append(exc)

    def tag_of(self, target: str, path: str) -> str | None:
        entry = self.files.get(target, {}).get(path)
        return entry[1] if entry else None

    def count(self, op: str) -> int:
        return sum(1 for call in self.calls if call[0] == op)

    def _record(self, op: str, path: str, target: str) -> None:
        self.calls.append((op, path, target))
        queued = self._failures.get(op)
        if queued:
            raise queued.pop(0)

    def _all_dirs(self, target: str) -> set[str]:
        dirs = set(self.dirs.get(target, set()))
        for path in self.files.get(target, {}):
            parts = path.split("/")[:-1]
            for i in range(1, len(parts) + 1):
                dirs.add("/".join(parts[:i]))
        return dirs

    # -- contract ------------------------------------------------------

    async def list_contents(self, path: str, target: str) -> list[RemoteEntry]:
        self._record("list", path, target)
        dirs = self._all_dirs(target)
        if path and path not in dirs:
            raise NotFound(f"{path} not found")

        prefix = f"{path}/" if path else ""
        entries: dict[str, RemoteEntry] = {}
        for d in dirs:
            if d.startswith(prefix) and "/" not in d[len(prefix) :]:
                entries[d] = RemoteEntry(
                    name=d.rsplit("/", 1)[-1], path=d, kind=NodeKind.DIRECTORY
                )
        for f in self.files.get(target, {}):
            if f.startswith(prefix) and "/" not in f[len(prefix) :]:
                entries[f] = RemoteEntry(
                    name=f.rsplit("/", 1)[-1], path=f, kind=NodeKind.FILE
                )
        return list(entries.values())

    async def read_contents(self, path: str, target: str) -> str:
        self._record("read", path, target)
        entry = self.files.get(target, {}).get(path)
        if entry is None:
            raise NotFound(f"{path} not found")
        return entry[0]

    async def write(
        self,
        path: str,
        content: str,
        commit_message: str,
        target: str,
        expected_version_tag: str | None = None,
    ) -> WriteResult:
        self._record("write", path, target)
        current = self.tag_of(target, path)
        if expected_version_tag is not None and current != expected_version_tag:
            raise Conflict(f"{path} does not match {expected_version_tag}")
        tag = self.add_file(target, path, content)
        return WriteResult(version_tag=tag)

    async def delete(self, path: str, commit_message: str, target: str) -> None:
        self._record("delete", path, target)
        if self.files.get(target, {}).pop(path, None) is None:
            raise NotFound(f"{path} not found")


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path) -> PublishRecordStore:
    return PublishRecordStore(tmp_path / ".git_publisher")


@pytest.fixture
def vault(tmp_path: Path) -> LocalDocumentStore:
    root = tmp_path / "vault"
    root.mkdir()
    return LocalDocumentStore(root)


@pytest.fixture
def make_coordinator(remote, store, vault, clock):
    """Factory for coordinators sharing the fake remote and stores."""

    def _make(
        policy: PathMappingPolicy | None = None,
        active_target: str | None = "blog",
    ) -> PublicationCoordinator:
        cache = DirectoryTreeCache(remote, ttl=300, clock=clock)
        return PublicationCoordinator(
            remote=remote,
            store=store,
            policy=policy,
            active_target=active_target,
            local=vault,
            tree_cache=cache,
        )

    return _make
