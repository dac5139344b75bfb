"""Tests for the sync lock."""

import json
import os
import threading
import time

from artsync.git import SyncLock


class TestSyncLockExclusivity:
    """Only one holder at a time, and nobody waits."""

    def test_acquire_and_release(self, tmp_path):
        lock = SyncLock(tmp_path / "sync.lock")

        assert lock.acquire() is True
        assert lock.is_held
        assert (tmp_path / "sync.lock").exists()

        lock.release()
        assert not lock.is_held
        assert not (tmp_path / "sync.lock").exists()

    def test_second_acquire_fails_while_held(self, tmp_path):
        lock = SyncLock(tmp_path / "sync.lock")

        assert lock.acquire() is True
        assert lock.acquire() is False

        lock.release()
        assert lock.acquire() is True

    def test_release_when_not_held_is_safe(self, tmp_path):
        lock = SyncLock(tmp_path / "sync.lock")
        lock.release()
        lock.release()
        assert lock.acquire() is True

    def test_concurrent_acquire_exactly_one_wins(self, tmp_path):
        lock = SyncLock(tmp_path / "sync.lock")
        threads_count = 16
        barrier = threading.Barrier(threads_count)
        results = []
        results_lock = threading.Lock()

        def attempt():
            barrier.wait()
            acquired = lock.acquire()
            with results_lock:
                results.append(acquired)

        threads = [threading.Thread(target=attempt) for _ in range(threads_count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert len(results) == threads_count
        assert results.count(True) == 1

    def test_marker_from_other_process_blocks(self, tmp_path):
        """A live marker written by another instance keeps this one out."""
        path = tmp_path / "sync.lock"
        other = SyncLock(path)
        assert other.acquire()

        lock = SyncLock(path)
        assert lock.acquire() is False
        assert lock.is_locked()

        other.release()
        assert lock.acquire() is True

    def test_marker_records_pid_and_timestamp(self, tmp_path):
        lock = SyncLock(tmp_path / "sync.lock")
        lock.acquire()

        data = json.loads((tmp_path / "sync.lock.owner.json").read_text())
        assert data["pid"] == os.getpid()
        assert abs(data["timestamp"] - time.time()) < 60


class TestSyncLockStaleness:
    """Abandoned markers are detected and cleared."""

    def _write_marker(self, path, age_seconds):
        path.write_text("")
        self._write_owner(path, age_seconds)

    def _write_owner(self, path, age_seconds):
        owner = path.parent / f"{path.name}.owner.json"
        owner.write_text(json.dumps({"pid": 1, "timestamp": time.time() - age_seconds}))

    def test_acquire_clears_stale_marker(self, tmp_path):
        path = tmp_path / "sync.lock"
        self._write_marker(path, age_seconds=600)

        lock = SyncLock(path, stale_after=120)
        assert lock.acquire() is True

    def test_acquire_respects_live_marker(self, tmp_path):
        path = tmp_path / "sync.lock"
        self._write_marker(path, age_seconds=5)

        lock = SyncLock(path, stale_after=120)
        assert lock.acquire() is False

    def test_detect_stale_uses_mtime_when_marker_unreadable(self, tmp_path):
        index_lock = tmp_path / "index.lock"
        index_lock.write_text("")
        old = time.time() - 300
        os.utime(index_lock, (old, old))

        lock = SyncLock(tmp_path / "sync.lock", stale_after=120, watched_markers=[index_lock])
        info = lock.detect_stale()

        assert info.is_stale
        assert info.lock_file == index_lock
        assert info.age_ms >= 300_000 - 1000

    def test_detect_stale_reports_live_lock(self, tmp_path):
        index_lock = tmp_path / "index.lock"
        index_lock.write_text("")

        lock = SyncLock(tmp_path / "sync.lock", stale_after=120, watched_markers=[index_lock])
        info = lock.detect_stale()

        assert not info.is_stale
        assert info.lock_file == index_lock
        assert info.age_ms is not None

    def test_detect_stale_with_no_markers(self, tmp_path):
        lock = SyncLock(tmp_path / "sync.lock", watched_markers=[tmp_path / "index.lock"])
        info = lock.detect_stale()

        assert not info.is_stale
        assert info.lock_file is None

    def test_detect_stale_ignores_own_marker_while_held(self, tmp_path):
        path = tmp_path / "sync.lock"
        lock = SyncLock(path, stale_after=0)
        lock.acquire()

        assert lock.detect_stale().is_stale is False

    def test_clear_stale_removes_file(self, tmp_path):
        index_lock = tmp_path / "index.lock"
        index_lock.write_text("")
        old = time.time() - 300
        os.utime(index_lock, (old, old))

        lock = SyncLock(tmp_path / "sync.lock", stale_after=120, watched_markers=[index_lock])
        info = lock.detect_stale()

        assert lock.clear_stale(info) is True
        assert not index_lock.exists()

    def test_clear_stale_refuses_live_lock(self, tmp_path):
        index_lock = tmp_path / "index.lock"
        index_lock.write_text("")

        lock = SyncLock(tmp_path / "sync.lock", watched_markers=[index_lock])
        assert lock.clear_stale(lock.detect_stale()) is False
        assert index_lock.exists()

    def test_refresh_restamps_marker(self, tmp_path):
        path = tmp_path / "sync.lock"
        owner = tmp_path / "sync.lock.owner.json"
        lock = SyncLock(path)
        lock.acquire()
        record = json.loads(owner.read_text())
        record["timestamp"] = time.time() - 600
        owner.write_text(json.dumps(record))

        assert lock.refresh() is True

        data = json.loads((tmp_path / "sync.lock.owner.json").read_text())
        assert time.time() - data["timestamp"] < 60

    def test_release_removes_owner_record(self, tmp_path):
        path = tmp_path / "sync.lock"
        lock = SyncLock(path)
        lock.acquire()
        lock.release()

        assert not (tmp_path / "sync.lock.owner.json").exists()

    def test_clear_stale_sync_marker_removes_owner_record(self, tmp_path):
        path = tmp_path / "sync.lock"
        self._write_marker(path, age_seconds=600)

        lock = SyncLock(path, stale_after=120)
        assert lock.clear_stale(lock.detect_stale()) is True
        assert not path.exists()
        assert not (tmp_path / "sync.lock.owner.json").exists()


class TestSyncLockOwnership:
    """A holder that keeps stamping its marker is never displaced, and a
    displaced holder never removes its successor's marker."""

    def _age_owner_record(self, path, age_seconds):
        owner = path.parent / f"{path.name}.owner.json"
        record = json.loads(owner.read_text())
        record["timestamp"] = time.time() - age_seconds
        owner.write_text(json.dumps(record))

    def test_refreshed_holder_keeps_lock(self, tmp_path):
        path = tmp_path / "sync.lock"
        holder = SyncLock(path, stale_after=120)
        other = SyncLock(path, stale_after=120)
        assert holder.acquire()

        self._age_owner_record(path, age_seconds=100)
        assert holder.refresh() is True
        self._age_owner_record(path, age_seconds=100)

        assert other.acquire() is False
        assert other.is_locked()

    def test_release_after_takeover_leaves_new_holder_marker(self, tmp_path):
        path = tmp_path / "sync.lock"
        owner = tmp_path / "sync.lock.owner.json"
        first = SyncLock(path, stale_after=120)
        second = SyncLock(path, stale_after=120)
        third = SyncLock(path, stale_after=120)

        assert first.acquire()
        self._age_owner_record(path, age_seconds=600)
        assert second.acquire() is True

        first.release()

        assert path.exists()
        assert owner.exists()
        assert third.acquire() is False
        assert second.is_held

        second.release()
        assert not path.exists()
        assert third.acquire() is True

    def test_refresh_after_takeover_reports_lost_ownership(self, tmp_path):
        path = tmp_path / "sync.lock"
        first = SyncLock(path, stale_after=120)
        second = SyncLock(path, stale_after=120)

        assert first.acquire()
        self._age_owner_record(path, age_seconds=600)
        assert second.acquire()

        assert first.refresh() is False
        assert second.refresh() is True

    def test_each_acquisition_gets_a_new_token(self, tmp_path):
        path = tmp_path / "sync.lock"
        owner = tmp_path / "sync.lock.owner.json"
        lock = SyncLock(path)

        lock.acquire()
        first_token = json.loads(owner.read_text())["token"]
        lock.release()
        lock.acquire()

        assert json.loads(owner.read_text())["token"] != first_token
