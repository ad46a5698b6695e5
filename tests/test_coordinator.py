"""Tests for the publication coordinator.

Covers:
- Path mapping scenarios (flattened and structured)
- Success records carry the new version tag
- Conflicts leave the stored record untouched
- Other failures record a failed attempt keeping the last-good tag
- Empty remote paths and missing targets are rejected before any I/O
- quick_publish / republish / update_from_remote / pull_to_local
- delete_remote, including absent keys and already-deleted objects
- Publication state machine and per-key serialisation
- Target switching and the dashboard
"""

from __future__ import annotations

import asyncio

import pytest

from git_publisher.errors import (
    Conflict,
    LocalMissing,
    NotConfigured,
    NotFound,
    RemoteUnavailable,
)
from git_publisher.publish.models import (
    PathMappingPolicy,
    PublicationState,
    PublishStatus,
)

FLAT_GUIDE = PathMappingPolicy(
    keep_file_structure=False, default_directory="guide"
)

# ---------------------------------------------------------------------------
# publish
# ---------------------------------------------------------------------------


class TestPublish:
    """Tests for PublicationCoordinator.publish()."""

    async def test_flattened_into_default_directory(
        self, make_coordinator, remote, store
    ):
        coordinator = make_coordinator(FLAT_GUIDE)

        record = await coordinator.publish("hello", "notes/a.md")

        assert record.remote_path == "guide/a.md"
        assert remote.files["blog"]["guide/a.md"][0] == "hello"
        stored = store.find("notes/a.md", "blog")
        assert stored.status == PublishStatus.SUCCESS
        assert stored.version_tag == remote.tag_of("blog", "guide/a.md")
        assert stored.content_hash is not None

    async def test_structure_kept_and_extension_added(
        self, make_coordinator, remote
    ):
        coordinator = make_coordinator(
            PathMappingPolicy(keep_file_structure=True)
        )

        record = await coordinator.publish("x", "notes/a")

        assert record.remote_path == "notes/a.md"
        assert "notes/a.md" in remote.files["blog"]

    async def test_explicit_directory(self, make_coordinator):
        coordinator = make_coordinator(FLAT_GUIDE)

        record = await coordinator.publish(
            "x", "notes/a.md", explicit_directory="api"
        )

        assert record.remote_path == "api/a.md"

    async def test_republishing_sends_previous_tag(
        self, make_coordinator, remote, store
    ):
        coordinator = make_coordinator(FLAT_GUIDE)
        first = await coordinator.publish("v1", "notes/a.md")

        second = await coordinator.publish("v2", "notes/a.md")

        assert second.version_tag != first.version_tag
        assert remote.files["blog"]["guide/a.md"][0] == "v2"
        assert store.find("notes/a.md", "blog").version_tag == (
            second.version_tag
        )

    async def test_conflict_keeps_record(
        self, make_coordinator, remote, store
    ):
        coordinator = make_coordinator(FLAT_GUIDE)
        await coordinator.publish("v1", "notes/a.md")
        before = store.find("notes/a.md", "blog")

        # Someone edits the file directly in the repository
        remote.add_file("blog", "guide/a.md", "edited remotely")

        with pytest.raises(Conflict):
            await coordinator.publish("v2", "notes/a.md")

        assert store.find("notes/a.md", "blog") == before
        assert remote.files["blog"]["guide/a.md"][0] == "edited remotely"

    async def test_failure_records_attempt_with_last_good_tag(
        self, make_coordinator, remote, store
    ):
        coordinator = make_coordinator(FLAT_GUIDE)
        good = await coordinator.publish("v1", "notes/a.md")

        remote.fail("write", RemoteUnavailable("503"))
        with pytest.raises(RemoteUnavailable):
            await coordinator.publish("v2", "notes/a.md")

        failed = store.find("notes/a.md", "blog")
        assert failed.status == PublishStatus.FAILED
        assert failed.version_tag == good.version_tag
        assert failed.content_hash == good.content_hash
        assert (
            await coordinator.state_of("notes/a.md")
            == PublicationState.PUBLISH_FAILED
        )

        # The preserved tag still matches, so the retry succeeds
        retried = await coordinator.publish("v2", "notes/a.md")
        assert retried.succeeded

    async def test_first_publish_failure(
        self, make_coordinator, remote, store
    ):
        coordinator = make_coordinator(FLAT_GUIDE)
        remote.fail("write", RemoteUnavailable("offline"))

        with pytest.raises(RemoteUnavailable):
            await coordinator.publish("v1", "notes/a.md")

        failed = store.find("notes/a.md", "blog")
        assert failed.status == PublishStatus.FAILED
        assert failed.version_tag is None

    async def test_empty_remote_path_rejected(
        self, make_coordinator, remote, store
    ):
        coordinator = make_coordinator()

        with pytest.raises(ValueError, match="empty"):
            await coordinator.publish("x", "<>|")

        assert remote.calls == []
        assert store.all() == []

    async def test_no_target_rejected(self, make_coordinator, remote):
        coordinator = make_coordinator(active_target=None)

        with pytest.raises(NotConfigured):
            await coordinator.publish("x", "notes/a.md")

        assert remote.calls == []

    async def test_records_are_per_target(
        self, make_coordinator, store
    ):
        coordinator = make_coordinator(FLAT_GUIDE)

        await coordinator.publish("x", "notes/a.md", target="blog")
        await coordinator.publish("x", "notes/a.md", target="wiki")

        assert len(store.all_for("notes/a.md")) == 2

    async def test_changed_remote_path_sends_no_tag(
        self, make_coordinator, remote
    ):
        coordinator = make_coordinator(FLAT_GUIDE)
        await coordinator.publish("x", "notes/a.md")

        record = await coordinator.publish(
            "x", "notes/a.md", explicit_directory="api"
        )

        assert record.remote_path == "api/a.md"
        assert record.succeeded

    async def test_failed_move_keeps_published_record(
        self, make_coordinator, remote, store
    ):
        coordinator = make_coordinator(FLAT_GUIDE)
        good = await coordinator.publish("x", "notes/a.md")

        remote.fail("write", RemoteUnavailable("503"))
        with pytest.raises(RemoteUnavailable):
            await coordinator.publish(
                "y", "notes/a.md", explicit_directory="api"
            )

        assert store.find("notes/a.md", "blog") == good
        assert (
            await coordinator.state_of("notes/a.md")
            == PublicationState.PUBLISHED
        )

        # The original object is still tracked and can be deleted
        await coordinator.delete_remote("notes/a.md")
        assert "guide/a.md" not in remote.files["blog"]


# ---------------------------------------------------------------------------
# state and serialisation
# ---------------------------------------------------------------------------


class TestState:
    """Tests for state_of() and per-key locking."""

    async def test_unpublished_then_published(self, make_coordinator):
        coordinator = make_coordinator()
        assert (
            await coordinator.state_of("a.md")
            == PublicationState.UNPUBLISHED
        )
        await coordinator.publish("x", "a.md")
        assert (
            await coordinator.state_of("a.md") == PublicationState.PUBLISHED
        )

    async def test_publishing_while_write_in_flight(
        self, make_coordinator, remote
    ):
        coordinator = make_coordinator()
        release = asyncio.Event()
        original = remote.write

        async def slow_write(*args, **kwargs):
            await release.wait()
            return await original(*args, **kwargs)

        remote.write = slow_write
        task = asyncio.create_task(coordinator.publish("x", "a.md"))
        for _ in range(100):
            if await coordinator.state_of("a.md") == (
                PublicationState.PUBLISHING
            ):
                break
            await asyncio.sleep(0.01)

        assert (
            await coordinator.state_of("a.md") == PublicationState.PUBLISHING
        )
        release.set()
        await task
        assert (
            await coordinator.state_of("a.md") == PublicationState.PUBLISHED
        )

    async def test_concurrent_publishes_of_same_key_do_not_conflict(
        self, make_coordinator, remote, store
    ):
        coordinator = make_coordinator()

        first, second = await asyncio.gather(
            coordinator.publish("one", "a.md"),
            coordinator.publish("two", "a.md"),
        )

        assert first.succeeded and second.succeeded
        assert store.find("a.md", "blog").version_tag == remote.tag_of(
            "blog", "a.md"
        )

    async def test_key_locks_released_after_use(
        self, make_coordinator, remote
    ):
        coordinator = make_coordinator()

        await asyncio.gather(
            coordinator.publish("one", "a.md"),
            coordinator.publish("two", "a.md"),
            coordinator.publish("x", "b.md"),
        )
        remote.fail("write", RemoteUnavailable("503"))
        with pytest.raises(RemoteUnavailable):
            await coordinator.publish("y", "c.md")
        await coordinator.delete_remote("a.md")

        assert coordinator._locks == {}
        assert coordinator._lock_users == {}


# ---------------------------------------------------------------------------
# local-file operations
# ---------------------------------------------------------------------------


class TestLocalOperations:
    """Tests for quick_publish, republish, update and pull."""

    async def test_quick_publish_reads_vault(
        self, make_coordinator, vault, remote
    ):
        vault.write("notes/a.md", "from disk")
        coordinator = make_coordinator(FLAT_GUIDE)

        await coordinator.quick_publish("notes/a.md")

        assert remote.files["blog"]["guide/a.md"][0] == "from disk"

    async def test_quick_publish_missing_file_clears_history(
        self, make_coordinator, store, remote
    ):
        coordinator = make_coordinator(FLAT_GUIDE)
        await coordinator.publish("x", "notes/a.md")

        with pytest.raises(LocalMissing):
            await coordinator.quick_publish("notes/a.md")

        assert store.find("notes/a.md", "blog") is None
        assert remote.count("write") == 1

    async def test_republish_uses_recorded_path(
        self, make_coordinator, vault, remote
    ):
        vault.write("notes/a.md", "v1")
        await make_coordinator(FLAT_GUIDE).quick_publish("notes/a.md")

        vault.write("notes/a.md", "v2")
        coordinator = make_coordinator(PathMappingPolicy())
        record = await coordinator.republish("notes/a.md")

        assert record.remote_path == "guide/a.md"
        assert remote.files["blog"]["guide/a.md"][0] == "v2"

    async def test_republish_requires_record(self, make_coordinator, vault):
        vault.write("a.md", "x")
        with pytest.raises(NotFound):
            await make_coordinator().republish("a.md")

    async def test_update_from_remote(
        self, make_coordinator, remote, store
    ):
        coordinator = make_coordinator(FLAT_GUIDE)
        await coordinator.publish("mine", "notes/a.md")
        remote.add_file("blog", "guide/a.md", "theirs")
        before = store.find("notes/a.md", "blog")

        content = await coordinator.update_from_remote("notes/a.md")

        assert content == "theirs"
        assert store.find("notes/a.md", "blog") == before

    async def test_update_from_remote_without_record(
        self, make_coordinator, remote
    ):
        with pytest.raises(NotFound):
            await make_coordinator().update_from_remote("a.md")
        assert remote.calls == []

    async def test_pull_to_local_overwrites_file(
        self, make_coordinator, vault, remote
    ):
        vault.write("notes/a.md", "mine")
        coordinator = make_coordinator(FLAT_GUIDE)
        await coordinator.quick_publish("notes/a.md")
        remote.add_file("blog", "guide/a.md", "theirs")

        await coordinator.pull_to_local("notes/a.md")

        assert vault.read("notes/a.md") == "theirs"

    async def test_pull_to_local_missing_file(
        self, make_coordinator, store
    ):
        coordinator = make_coordinator()
        await coordinator.publish("x", "a.md")

        with pytest.raises(LocalMissing):
            await coordinator.pull_to_local("a.md")
        assert store.find("a.md", "blog") is None


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


class TestDelete:
    """Tests for delete_remote()."""

    async def test_delete_removes_object_and_record(
        self, make_coordinator, remote, store
    ):
        coordinator = make_coordinator(FLAT_GUIDE)
        await coordinator.publish("x", "notes/a.md")

        removed = await coordinator.delete_remote("notes/a.md")

        assert removed.remote_path == "guide/a.md"
        assert "guide/a.md" not in remote.files["blog"]
        assert store.find("notes/a.md", "blog") is None

    async def test_absent_key_is_noop(self, make_coordinator, remote):
        assert await make_coordinator().delete_remote("a.md") is None
        assert remote.calls == []

    async def test_already_deleted_remote_clears_record(
        self, make_coordinator, remote, store
    ):
        coordinator = make_coordinator()
        await coordinator.publish("x", "a.md")
        del remote.files["blog"]["a.md"]

        removed = await coordinator.delete_remote("a.md")

        assert removed is not None
        assert store.find("a.md", "blog") is None

    async def test_delete_failure_keeps_record(
        self, make_coordinator, remote, store
    ):
        coordinator = make_coordinator()
        await coordinator.publish("x", "a.md")
        remote.fail("delete", RemoteUnavailable("offline"))

        with pytest.raises(RemoteUnavailable):
            await coordinator.delete_remote("a.md")
        assert store.find("a.md", "blog") is not None

    async def test_delete_only_affects_one_target(
        self, make_coordinator, store
    ):
        coordinator = make_coordinator()
        await coordinator.publish("x", "a.md", target="blog")
        await coordinator.publish("x", "a.md", target="wiki")

        await coordinator.delete_remote("a.md", target="blog")

        assert [r.target for r in store.all_for("a.md")] == ["wiki"]


# ---------------------------------------------------------------------------
# directories, targets and history
# ---------------------------------------------------------------------------


class TestDirectoriesAndHistory:
    """Tests for tree delegation, target switching and the dashboard."""

    async def test_switch_target_relists(self, make_coordinator, remote):
        remote.add_file("blog", "b.md")
        remote.add_file("wiki", "w.md")
        coordinator = make_coordinator()

        await coordinator.list_directories()
        coordinator.switch_target("wiki")
        nodes = await coordinator.list_directories()

        assert [n.name for n in nodes] == ["w.md"]
        assert remote.count("list") == 2
        assert coordinator.active_target == "wiki"

    async def test_expand_delegates(self, make_coordinator, remote):
        remote.add_file("blog", "guide/a.md")
        coordinator = make_coordinator()
        (guide,) = await coordinator.list_directories()

        children = await coordinator.expand(guide)

        assert [c.path for c in children] == ["guide/a.md"]

    async def test_dashboard_reconciles(
        self, make_coordinator, vault, store
    ):
        vault.write("kept.md", "x")
        coordinator = make_coordinator()
        await coordinator.quick_publish("kept.md")
        await coordinator.publish("y", "gone.md")

        records = await coordinator.dashboard()

        assert [r.local_path for r in records] == ["kept.md"]
        assert store.find("gone.md", "blog") is None
