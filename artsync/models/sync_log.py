"""Sync log entry model."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SyncLogStatus(str, Enum):
    """Outcome recorded for a sync attempt."""

    SUCCESS = "success"
    FAILURE = "failure"
    WARNING = "warning"
    RECOVERY = "recovery"
    INFO = "info"


def utc_timestamp() -> str:
    """ISO 8601 UTC timestamp with a trailing Z."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SyncLogEntry(BaseModel):
    """Single entry in the sync history log.

    Serialized with camelCase keys (``hasConflicts``, ``lostChanges``...) so the
    log file can be read by any front end.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    timestamp: str = Field(default_factory=utc_timestamp)
    operation: str
    status: SyncLogStatus
    message: str
    error: str | None = None
    has_conflicts: bool = False
    conflict_type: str | None = None
    conflicted_files: list[str] = Field(default_factory=list)
    lost_changes: list[str] = Field(default_factory=list)
    remote_changes: list[str] = Field(default_factory=list)
    branch: str | None = None
    remote_commit: str | None = None

    def to_dict(self) -> dict:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
