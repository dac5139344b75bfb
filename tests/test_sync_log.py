"""Tests for the sync history log."""

import json
import threading

from artsync.git import SyncLog
from artsync.models import SyncLogEntry, SyncLogStatus


def entry(message, **kwargs):
    return SyncLogEntry(
        operation="full-sync", status=SyncLogStatus.SUCCESS, message=message, **kwargs
    )


class TestSyncLog:
    """Newest-first, capped, camelCase JSON array."""

    def test_empty_when_missing(self, sync_log):
        assert sync_log.entries() == []

    def test_newest_first(self, sync_log):
        sync_log.append(entry("first"))
        sync_log.append(entry("second"))

        assert [e.message for e in sync_log.entries()] == ["second", "first"]

    def test_capped(self, tmp_path):
        log = SyncLog(tmp_path / "log.json", max_entries=200)
        for i in range(205):
            log.append(entry(f"sync {i}"))

        entries = log.entries()
        assert len(entries) == 200
        assert entries[0].message == "sync 204"
        assert entries[-1].message == "sync 5"

    def test_camel_case_on_disk(self, sync_log):
        sync_log.append(
            entry(
                "resolved",
                has_conflicts=True,
                conflict_type="diverged-history",
                lost_changes=["added: a.jpg"],
                remote_commit="abc123",
            )
        )

        data = json.loads(sync_log.path.read_text())
        assert data[0]["hasConflicts"] is True
        assert data[0]["conflictType"] == "diverged-history"
        assert data[0]["lostChanges"] == ["added: a.jpg"]
        assert data[0]["remoteCommit"] == "abc123"
        assert data[0]["status"] == "success"
        assert data[0]["timestamp"].endswith("Z")

    def test_round_trip_preserves_fields(self, sync_log):
        sync_log.append(entry("ok", remote_changes=["added: b.jpg"], branch="main"))

        loaded = sync_log.entries()[0]
        assert loaded.remote_changes == ["added: b.jpg"]
        assert loaded.branch == "main"
        assert loaded.status is SyncLogStatus.SUCCESS

    def test_clear(self, sync_log):
        sync_log.append(entry("one"))
        sync_log.clear()

        assert sync_log.entries() == []
        assert json.loads(sync_log.path.read_text()) == []

    def test_corrupt_file_treated_as_empty(self, sync_log):
        sync_log.path.write_text("{not json")
        assert sync_log.entries() == []

        sync_log.append(entry("recovered"))
        assert [e.message for e in sync_log.entries()] == ["recovered"]

    def test_malformed_entries_skipped(self, sync_log):
        sync_log.path.write_text(
            json.dumps(
                [
                    {"operation": "full-sync", "status": "success", "message": "good"},
                    {"operation": "full-sync", "status": "bogus", "message": "bad"},
                    "not an entry",
                ]
            )
        )

        assert [e.message for e in sync_log.entries()] == ["good"]

    def test_creates_parent_directory(self, tmp_path):
        log = SyncLog(tmp_path / "nested" / "dir" / "log.json")
        log.append(entry("ok"))
        assert log.path.exists()

    def test_concurrent_writers_keep_every_entry(self, tmp_path):
        """Separate log instances on one file (as separate processes would
        have) never drop each other's entries."""
        path = tmp_path / "logs.json"
        writers = 8
        per_writer = 5
        barrier = threading.Barrier(writers)

        def write(index):
            log = SyncLog(path)
            barrier.wait()
            for n in range(per_writer):
                log.append(entry(f"{index}-{n}"))

        threads = [threading.Thread(target=write, args=(i,)) for i in range(writers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        messages = {entry.message for entry in SyncLog(path).entries()}
        assert len(messages) == writers * per_writer
