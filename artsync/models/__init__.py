"""Pydantic models for artsync."""

from .sync_log import SyncLogEntry, SyncLogStatus, utc_timestamp

__all__ = [
    "SyncLogEntry",
    "SyncLogStatus",
    "utc_timestamp",
]
