"""Publication coordinator: publish, pull and delete documents per target.

The ``PublicationCoordinator`` ties together the path normalizer, the
remote repository service, the directory tree cache and the publish
record store. For each (document, target) pair it drives the state
machine::

    unpublished -> publishing -> published
                              -> publish-failed

Behaviour:

1. The mapping policy and active target are captured at the start of
   every operation; later configuration changes do not affect it.
2. Writes pass the last-good version tag as an optimistic-concurrency
   precondition. A ``Conflict`` leaves the stored record untouched.
3. Other remote failures record a ``failed`` attempt that keeps the
   last-good version tag, so the next publish still detects conflicts.
   A failed write to a new remote path leaves a record that still tracks
   an object at its old path untouched.
4. Nothing is retried. Every failure is reported once to the caller.
5. Operations on the same key are serialized with a per-key lock that
   is released once no operation on the key is pending.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from git_publisher.core.async_utils import run_sync
from git_publisher.core.local import LocalDocumentStore
from git_publisher.core.remote import RemoteRepositoryService
from git_publisher.errors import (
    Conflict,
    LocalMissing,
    NotConfigured,
    NotFound,
    PublisherError,
)
from git_publisher.publish.models import (
    DirectoryNode,
    PathMappingPolicy,
    PublicationState,
    PublishRecord,
    PublishStatus,
)
from git_publisher.publish.normalizer import normalize
from git_publisher.publish.records import PublishRecordStore
from git_publisher.publish.tree import DirectoryTreeCache

logger = logging.getLogger(__name__)


class PublicationCoordinator:
    """Orchestrate publication operations for local documents.

    Args:
        remote: Remote repository service (usually a ``RepositoryRouter``).
        store: Durable publish record store.
        policy: Path mapping policy applied to new publishes.
        active_target: Target used when an operation names none.
        local: Local document store; required by operations that read or
            write local files and by reconciliation.
        tree_cache: Directory tree cache; built from *remote* if omitted.
    """

    def __init__(
        self,
        remote: RemoteRepositoryService,
        store: PublishRecordStore,
        policy: PathMappingPolicy | None = None,
        active_target: str | None = None,
        local: LocalDocumentStore | None = None,
        tree_cache: DirectoryTreeCache | None = None,
    ) -> None:
        self.remote = remote
        self.store = store
        self.policy = policy or PathMappingPolicy()
        self.active_target = active_target
        self.local = local
        self.tree_cache = tree_cache or DirectoryTreeCache(remote)

        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._lock_users: dict[tuple[str, str], int] = {}
        self._in_flight: set[tuple[str, str]] = set()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def switch_target(self, target: str) -> None:
        """Make *target* the active target and drop the directory cache."""
        if target != self.active_target:
            logger.info(
                "Switching active target %s -> %s",
                self.active_target,
                target,
            )
        self.active_target = target
        self.tree_cache.invalidate()

    def _resolve_target(self, target: str | None) -> str:
        resolved = target or self.active_target
        if not resolved:
            raise NotConfigured("No publish target selected")
        return resolved

    def _require_local(self) -> LocalDocumentStore:
        if self.local is None:
            raise NotConfigured(
                "No local document store configured",
                "Set vault_root in the configuration.",
            )
        return self.local

    @asynccontextmanager
    async def _key_lock(
        self, local_path: str, target: str
    ) -> AsyncIterator[None]:
        """Serialize operations on one (document, target) key.

        The lock is dropped once its last user leaves, so only keys with
        an operation in progress hold one.
        """
        key = (local_path, target)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    async def state_of(
        self, local_path: str, target: str | None = None
    ) -> PublicationState:
        """Return the publication state of *local_path* on *target*."""
        target = self._resolve_target(target)
        if (local_path, target) in self._in_flight:
            return PublicationState.PUBLISHING

        record = await run_sync(self.store.find, local_path, target)
        if record is None:
            return PublicationState.UNPUBLISHED
        if record.succeeded:
            return PublicationState.PUBLISHED
        return PublicationState.PUBLISH_FAILED

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    async def publish(
        self,
        local_content: str,
        local_path: str,
        target: str | None = None,
        explicit_directory: str | None = None,
    ) -> PublishRecord:
        """Write *local_content* to the remote path mapped from *local_path*.

        Args:
            local_content: Document text to publish.
            local_path: Local document path (vault-relative).
            target: Target name; defaults to the active target.
            explicit_directory: Remote directory chosen by the caller;
                overrides the policy's default directory.

        Returns:
            The stored success record.

        Raises:
            ValueError: *local_path* normalizes to an empty remote path.
            Conflict: The remote object changed since the last publish.
            PublisherError: Any other remote or store failure.
        """
        policy = self.policy
        target = self._resolve_target(target)
        remote_path = normalize(local_path, policy, explicit_directory)
        if not remote_path:
            raise ValueError(
                f"Cannot publish '{local_path}': it maps to an empty "
                "remote path"
            )

        async with self._key_lock(local_path, target):
            return await self._publish_locked(
                local_content, local_path, target, remote_path
            )

    async def quick_publish(
        self,
        local_path: str,
        target: str | None = None,
        explicit_directory: str | None = None,
    ) -> PublishRecord:
        """Read *local_path* from the local store and publish it."""
        content = await self._read_local(local_path)
        return await self.publish(
            content, local_path, target, explicit_directory
        )

    async def republish(
        self, local_path: str, target: str | None = None
    ) -> PublishRecord:
        """Publish *local_path* again to the remote path it was last sent to.

        Raises:
            NotFound: The document has no record for *target*.
            LocalMissing: The local document no longer exists.
        """
        target = self._resolve_target(target)
        record = await run_sync(self.store.find, local_path, target)
        if record is None:
            raise NotFound(
                f"'{local_path}' has never been published to {target}",
                "Publish the document first.",
            )

        content = await self._read_local(local_path)
        async with self._key_lock(local_path, target):
            return await self._publish_locked(
                content, local_path, target, record.remote_path
            )

    async def _publish_locked(
        self,
        content: str,
        local_path: str,
        target: str,
        remote_path: str,
    ) -> PublishRecord:
        key = (local_path, target)
        previous = await run_sync(self.store.find, local_path, target)
        # A tag is only a valid precondition for the object it came from
        last_good_tag = (
            previous.version_tag
            if previous is not None and previous.remote_path == remote_path
            else None
        )

        self._in_flight.add(key)
        try:
            try:
                result = await self.remote.write(
                    remote_path,
                    content,
                    f"Update {remote_path}",
                    target,
                    expected_version_tag=last_good_tag,
                )
            except Conflict:
                logger.warning(
                    "Conflict publishing %s -> %s on %s (expected %s)",
                    local_path,
                    remote_path,
                    target,
                    last_good_tag,
                )
                raise
            except PublisherError as exc:
                logger.error(
                    "Failed to publish %s -> %s on %s: %s",
                    local_path,
                    remote_path,
                    target,
                    exc,
                )
                if (
                    previous is not None
                    and previous.remote_path != remote_path
                    and (previous.succeeded or previous.version_tag)
                ):
                    # The record still tracks an object at its old path
                    logger.info(
                        "Keeping publish record of %s -> %s on %s",
                        local_path,
                        previous.remote_path,
                        target,
                    )
                    raise
                failed = PublishRecord(
                    local_path=local_path,
                    remote_path=remote_path,
                    target=target,
                    status=PublishStatus.FAILED,
                    version_tag=last_good_tag,
                    content_hash=(
                        previous.content_hash
                        if previous is not None
                        and previous.remote_path == remote_path
                        else None
                    ),
                )
                await run_sync(self.store.upsert, failed)
                raise

            record = PublishRecord(
                local_path=local_path,
                remote_path=remote_path,
                target=target,
                status=PublishStatus.SUCCESS,
                version_tag=result.version_tag,
                content_hash=PublishRecordStore.content_hash(content),
            )
            await run_sync(self.store.upsert, record)
        finally:
            self._in_flight.discard(key)

        logger.info(
            "Published %s -> %s on %s", local_path, remote_path, target
        )
        return record

    # ------------------------------------------------------------------
    # Remote -> local
    # ------------------------------------------------------------------

    async def update_from_remote(
        self, local_path: str, target: str | None = None
    ) -> str:
        """Fetch the current remote content of a published document.

        The record store is not modified.

        Raises:
            NotFound: No record exists, or the remote object is gone.
        """
        target = self._resolve_target(target)
        record = await run_sync(self.store.find, local_path, target)
        if record is None:
            raise NotFound(
                f"'{local_path}' has no publish record for {target}",
                "Publish the document first.",
            )
        return await self.remote.read_contents(record.remote_path, target)

    async def pull_to_local(
        self, local_path: str, target: str | None = None
    ) -> str:
        """Overwrite the local document with its remote content.

        Raises:
            LocalMissing: The local document no longer exists.
        """
        local = self._require_local()
        target = self._resolve_target(target)
        if not await run_sync(local.exists, local_path):
            await self._forget(local_path)
            raise LocalMissing(f"Local document '{local_path}' not found")

        content = await self.update_from_remote(local_path, target)
        await run_sync(local.write, local_path, content)
        logger.info("Updated %s from %s", local_path, target)
        return content

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_remote(
        self, local_path: str, target: str | None = None
    ) -> PublishRecord | None:
        """Delete the published remote object and its record.

        A key with no record is a no-op. A remote object that is already
        gone still has its record removed.

        Returns:
            The removed record, or ``None`` when there was none.
        """
        target = self._resolve_target(target)
        async with self._key_lock(local_path, target):
            record = await run_sync(self.store.find, local_path, target)
            if record is None:
                logger.debug(
                    "Nothing to delete for %s on %s", local_path, target
                )
                return None

            try:
                await self.remote.delete(
                    record.remote_path,
                    f"Delete {record.remote_path}",
                    target,
                )
            except NotFound:
                logger.info(
                    "Remote %s already absent on %s; clearing record",
                    record.remote_path,
                    target,
                )

            await run_sync(self.store.remove, local_path, target)
        logger.info(
            "Deleted %s (%s) from %s",
            record.remote_path,
            local_path,
            target,
        )
        return record

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    async def list_directories(
        self, target: str | None = None
    ) -> list[DirectoryNode]:
        """Return the top level of the remote tree for *target*."""
        return await self.tree_cache.get_top_level(
            self._resolve_target(target)
        )

    async def expand(
        self, node: DirectoryNode, target: str | None = None
    ) -> list[DirectoryNode]:
        """Load one more level below *node*."""
        return await self.tree_cache.expand(
            node, self._resolve_target(target)
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def reconcile(self) -> list[PublishRecord]:
        """Remove records for local documents that no longer exist."""
        local = self._require_local()
        return await run_sync(self.store.reconcile, local.exists)

    async def dashboard(self, limit: int = 10) -> list[PublishRecord]:
        """Return recent publishes after pruning vanished documents."""
        if self.local is not None:
            await self.reconcile()
        return await run_sync(self.store.recent, limit)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _read_local(self, local_path: str) -> str:
        local = self._require_local()
        if not await run_sync(local.exists, local_path):
            await self._forget(local_path)
            raise LocalMissing(f"Local document '{local_path}' not found")
        return await run_sync(local.read, local_path)

    async def _forget(self, local_path: str) -> None:
        """Drop every record of a vanished local document."""
        removed = await run_sync(
            self.store.reconcile, lambda path: path != local_path
        )
        if removed:
            logger.info(
                "Cleared %d publish records for missing %s",
                len(removed),
                local_path,
            )
