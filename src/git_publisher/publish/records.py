"""Publish record persistence layer.

Manages the single JSON data file (``data.json`` in the state directory)
that holds the publisher's configuration snapshot and its publish
history. Layout::

    {
      "settings": {...},
      "publish_history": {
        "records": {"notes/a.md:blog": {...}, ...}
      }
    }

Key design choices:

* **Full load-modify-save** -- every mutation re-reads the file, applies
  one change, and writes the whole document back. There is no in-memory
  copy to drift from disk, so callers must serialize mutations.
* **Atomic writes** -- ``_save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Failures surface** -- any read or write problem raises
  ``StoreIOFailure``; a swallowed failure would desynchronize recorded
  and actual publication state.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from git_publisher.errors import StoreIOFailure
from git_publisher.publish.models import PublishRecord, record_key

logger = logging.getLogger(__name__)

DATA_FILENAME = "data.json"


class PublishRecordStore:
    """Durable keyed store of one ``PublishRecord`` per (path, target).

    Args:
        state_dir: Directory holding the data file (typically
            ``.git_publisher/``). Created on first write.
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = Path(state_dir)

    @property
    def data_path(self) -> Path:
        return self._state_dir / DATA_FILENAME

    # ------------------------------------------------------------------
    # Record operations
    # ------------------------------------------------------------------

    def upsert(self, record: PublishRecord) -> None:
        """Insert or replace the record sharing ``(local_path, target)``.

        The data file is saved before this returns.
        """
        data = self._load()
        self._records(data)[record.key] = record.model_dump(mode="json")
        self._save(data)
        logger.debug(
            "Recorded %s publish of %s -> %s on %s",
            record.status.value,
            record.local_path,
            record.remote_path,
            record.target,
        )

    def find(self, local_path: str, target: str) -> PublishRecord | None:
        """Return the record for the key, or ``None`` if absent."""
        raw = self._records(self._load()).get(record_key(local_path, target))
        if raw is None:
            return None
        return self._parse(raw)

    def all_for(self, local_path: str) -> list[PublishRecord]:
        """Return every record for *local_path*, one per target."""
        return [r for r in self.all() if r.local_path == local_path]

    def all(self, recent: bool = False) -> list[PublishRecord]:
        """Return every record.

        Args:
            recent: Order by ``last_published_at``, newest first.
        """
        records = [
            self._parse(raw)
            for raw in self._records(self._load()).values()
        ]
        if recent:
            records.sort(key=lambda r: r.last_published_at, reverse=True)
        return records

    def recent(self, limit: int = 10) -> list[PublishRecord]:
        """Return the *limit* most recently published records."""
        return self.all(recent=True)[:limit]

    def remove(self, local_path: str, target: str) -> None:
        """Delete the record for the key. No-op if not present."""
        data = self._load()
        removed = self._records(data).pop(
            record_key(local_path, target), None
        )
        if removed is None:
            return
        self._save(data)
        logger.debug("Removed record %s:%s", local_path, target)

    def reconcile(
        self, exists: Callable[[str], bool]
    ) -> list[PublishRecord]:
        """Drop records whose local document no longer exists.

        Every record whose ``local_path`` fails *exists* is removed, along
        with its sibling records for other targets. Records for other
        paths are untouched.

        Args:
            exists: Local existence check, called once per distinct path.

        Returns:
            The removed records.
        """
        data = self._load()
        records = self._records(data)

        checked: dict[str, bool] = {}
        for raw in records.values():
            local_path = raw.get("local_path", "")
            if local_path not in checked:
                checked[local_path] = bool(exists(local_path))

        vanished = {path for path, ok in checked.items() if not ok}
        if not vanished:
            return []

        removed: list[PublishRecord] = []
        for key in list(records):
            if records[key].get("local_path", "") in vanished:
                removed.append(self._parse(records.pop(key)))

        self._save(data)
        logger.info(
            "Reconciled publish history: removed %d records for %d "
            "missing documents",
            len(removed),
            len(vanished),
        )
        return removed

    # ------------------------------------------------------------------
    # Settings snapshot
    # ------------------------------------------------------------------

    def load_settings(self) -> dict[str, Any]:
        """Return the stored settings snapshot (empty if never saved)."""
        return dict(self._load().get("settings") or {})

    def save_settings(self, settings: dict[str, Any]) -> None:
        """Replace the settings snapshot, keeping the publish history."""
        data = self._load()
        data["settings"] = settings
        self._save(data)

    # ------------------------------------------------------------------
    # Content hashing
    # ------------------------------------------------------------------

    @staticmethod
    def content_hash(content: str) -> str:
        """Compute a normalised SHA-256 hex digest of *content*.

        Normalisation steps (applied in order):

        1. Strip BOM (``\\ufeff``).
        2. Replace ``\\r\\n`` with ``\\n``.
        3. Right-strip each line.
        4. Strip trailing empty lines.
        """
        text = content.lstrip("\ufeff").replace("\r\n", "\n")
        lines = [line.rstrip() for line in text.split("\n")]
        while lines and lines[-1] == "":
            lines.pop()
        return hashlib.sha256("\n".join(lines).encode("utf-8")).hexdigest()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        path = self.data_path
        if not path.exists():
            return {"settings": {}, "publish_history": {"records": {}}}
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            raise StoreIOFailure(
                f"Cannot read publish history from {path}: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise StoreIOFailure(
                f"Publish history file {path} does not contain an object"
            )
        return data

    def _save(self, data: dict[str, Any]) -> None:
        """Persist *data* atomically via a temp file in the same directory."""
        try:
            self._state_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self._state_dir), suffix=".tmp"
            )
        except OSError as exc:
            raise StoreIOFailure(
                f"Cannot write publish history to {self.data_path}: {exc}"
            ) from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.data_path)
        except BaseException as exc:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            if isinstance(exc, (OSError, TypeError, ValueError)):
                raise StoreIOFailure(
                    f"Cannot write publish history to {self.data_path}: "
                    f"{exc}"
                ) from exc
            raise

    @staticmethod
    def _records(data: dict[str, Any]) -> dict[str, dict[str, Any]]:
        history = data.setdefault("publish_history", {})
        return history.setdefault("records", {})

    @staticmethod
    def _parse(raw: dict[str, Any]) -> PublishRecord:
        try:
            return PublishRecord.model_validate(raw)
        except ValidationError as exc:
            raise StoreIOFailure(f"Corrupt publish record: {exc}") from exc
