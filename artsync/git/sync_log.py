"""Append-only, size-bounded sync history stored as a JSON array."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from filelock import FileLock
from pydantic import ValidationError

from ..models.sync_log import SyncLogEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 200
WRITE_LOCK_TIMEOUT = 30.0


class SyncLog:
    """Newest-first list of sync attempts, capped at ``max_entries``.

    Writes are read-modify-write under a ``FileLock`` on ``<log>.lock``. The
    log file is shared by every working set on the host, and entries are
    appended from code paths that may not hold a sync lock.
    """

    def __init__(self, path: Path, max_entries: int = DEFAULT_MAX_ENTRIES):
        """Initialize with the log file path."""
        self.path = Path(path).expanduser()
        self.max_entries = max_entries
        self._write_lock = FileLock(f"{self.path}.lock", timeout=WRITE_LOCK_TIMEOUT)

    def append(self, entry: SyncLogEntry) -> None:
        """Add an entry at the front, dropping the oldest beyond the cap."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._write_lock:
            entries = self._read_raw()
            entries.insert(0, entry.to_dict())
            self._write_raw(entries[: self.max_entries])

    def entries(self) -> list[SyncLogEntry]:
        """All entries, newest first. Malformed entries are skipped."""
        entries = []
        for raw in self._read_raw():
            try:
                entries.append(SyncLogEntry.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Skipping malformed sync log entry: {e}")
        return entries

    def clear(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._write_lock:
            self._write_raw([])

    def _read_raw(self) -> list[dict]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read sync log {self.path}: {e}")
            return []
        if not isinstance(data, list):
            return []
        return [item for item in data if isinstance(item, dict)]

    def _write_raw(self, entries: list[dict]) -> None:
        """Write atomically so readers never see a half-written file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(entries, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
