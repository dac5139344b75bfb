"""Sync lock: one full sync per working set at a time."""

from __future__ import annotations

import json
import logging
import os
import threading
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

from filelock import FileLock, Timeout

logger = logging.getLogger(__name__)

DEFAULT_STALE_SECONDS = 300.0
GUARD_TIMEOUT_SECONDS = 5.0


@dataclass
class StaleLockInfo:
    """Result of inspecting the on-disk lock markers."""

    is_stale: bool
    lock_file: Path | None = None
    age_ms: int | None = None


def owner_path(marker: Path) -> Path:
    """Sidecar holding the owner and last heartbeat of a lock marker."""
    return marker.parent / f"{marker.name}.owner.json"


class SyncLock:
    """Process-local mutual exclusion backed by an on-disk marker.

    The in-process guard makes concurrent ``acquire`` calls from threads fail
    fast instead of blocking. Across processes, the marker and its owner
    sidecar are only created, re-stamped or removed while holding a short
    ``FileLock`` on ``<marker>.guard``, so checking and taking the marker is
    one atomic step. The sidecar records a per-acquisition token; an instance
    only re-stamps or removes a marker that still carries its own token.

    A holder keeps its marker fresh by calling ``refresh`` between steps.
    A marker whose last stamp is older than ``stale_after`` is abandoned.
    """

    def __init__(
        self,
        lock_path: Path,
        stale_after: float = DEFAULT_STALE_SECONDS,
        watched_markers: list[Path] | None = None,
    ):
        """Initialize the lock.

        Args:
            lock_path: Marker file created while the lock is held
            stale_after: Seconds without a heartbeat after which a marker
                is abandoned
            watched_markers: Other lock files to inspect for staleness
                (e.g. git's ``index.lock``)
        """
        self.lock_path = Path(lock_path)
        self.stale_after = stale_after
        self.watched_markers = [Path(p) for p in watched_markers or []]
        self._file_guard = FileLock(
            str(self.lock_path.parent / f"{self.lock_path.name}.guard"),
            timeout=GUARD_TIMEOUT_SECONDS,
        )
        self._guard = threading.Lock()
        self._held = False
        self._token: str | None = None

    @property
    def is_held(self) -> bool:
        return self._held

    def is_locked(self) -> bool:
        """Whether any sync, here or in another process, holds a live lock."""
        if self._held:
            return True
        if not self.lock_path.exists():
            return False
        return not self._inspect(self.lock_path).is_stale

    def acquire(self) -> bool:
        """Take the lock without waiting for another holder.

        Returns:
            True if the lock is now held by this instance, False if busy.
        """
        with self._guard:
            if self._held:
                return False

            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                with self._file_guard:
                    if self.lock_path.exists():
                        info = self._inspect(self.lock_path)
                        if not info.is_stale:
                            return False
                        logger.warning(
                            f"Removing stale sync lock {self.lock_path} "
                            f"(age {info.age_ms} ms)"
                        )
                        self._remove_marker(self.lock_path)

                    token = uuid.uuid4().hex
                    self.lock_path.touch()
                    self._write_owner(token)
            except Timeout:
                logger.warning(f"Timed out waiting for lock guard of {self.lock_path}")
                return False

            self._token = token
            self._held = True
            return True

    def release(self) -> None:
        """Drop the lock. Safe to call when not held.

        The marker is only removed while it still belongs to this instance;
        a marker taken over by another holder is left alone.
        """
        with self._guard:
            if not self._held:
                return
            try:
                with self._file_guard:
                    if self._owns_marker():
                        self._remove_marker(self.lock_path)
                    else:
                        logger.warning(
                            f"Sync lock {self.lock_path} was taken over by another "
                            f"holder; leaving it in place"
                        )
            except Timeout:
                logger.error(f"Timed out releasing sync lock {self.lock_path}")
            finally:
                self._held = False
                self._token = None

    def refresh(self) -> bool:
        """Re-stamp the owner record so the marker does not go stale.

        Returns:
            True if the marker still belongs to this instance.
        """
        with self._guard:
            if not self._held:
                return False
            try:
                with self._file_guard:
                    if not self._owns_marker():
                        logger.error(
                            f"Sync lock {self.lock_path} is no longer owned by this sync"
                        )
                        return False
                    self._write_owner(self._token)
                    return True
            except Timeout:
                logger.warning(f"Timed out refreshing sync lock {self.lock_path}")
                return False

    def detect_stale(self) -> StaleLockInfo:
        """Inspect lock markers on disk, regardless of who created them.

        The sync marker is skipped while this instance holds it. The first
        stale marker found is reported; otherwise the first existing one.
        """
        candidates = list(self.watched_markers)
        if not self._held:
            candidates.insert(0, self.lock_path)

        first_live: StaleLockInfo | None = None
        for marker in candidates:
            if not marker.exists():
                continue
            info = self._inspect(marker)
            if info.is_stale:
                return info
            if first_live is None:
                first_live = info

        return first_live or StaleLockInfo(is_stale=False)

    def clear_stale(self, info: StaleLockInfo) -> bool:
        """Delete a marker reported stale by ``detect_stale``."""
        if not info.is_stale or info.lock_file is None:
            return False
        try:
            if info.lock_file == self.lock_path:
                with self._file_guard:
                    # Re-check: the holder may have stamped it meanwhile
                    if not self._inspect(self.lock_path).is_stale:
                        return False
                    self._remove_marker(self.lock_path)
            else:
                self._remove_marker(info.lock_file)
        except (OSError, Timeout) as e:
            logger.error(f"Could not remove stale lock {info.lock_file}: {e}")
            return False
        logger.warning(f"Cleared stale lock {info.lock_file} (age {info.age_ms} ms)")
        return True

    def _owns_marker(self) -> bool:
        return (
            self.lock_path.exists()
            and self._read_owner(self.lock_path).get("token") == self._token
        )

    def _write_owner(self, token: str) -> None:
        payload = {"pid": os.getpid(), "timestamp": time.time(), "token": token}
        owner_path(self.lock_path).write_text(json.dumps(payload), encoding="utf-8")

    @staticmethod
    def _read_owner(marker: Path) -> dict:
        try:
            data = json.loads(owner_path(marker).read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _remove_marker(marker: Path) -> None:
        marker.unlink(missing_ok=True)
        owner_path(marker).unlink(missing_ok=True)

    def _inspect(self, marker: Path) -> StaleLockInfo:
        """Age of a marker from its owner record, else its mtime."""
        created = None
        try:
            created = float(self._read_owner(marker).get("timestamp"))
        except (ValueError, TypeError):
            pass

        if created is None:
            try:
                created = marker.stat().st_mtime
            except OSError:
                return StaleLockInfo(is_stale=False)

        age_ms = max(0, int((time.time() - created) * 1000))
        return StaleLockInfo(
            is_stale=age_ms > self.stale_after * 1000,
            lock_file=marker,
            age_ms=age_ms,
        )
