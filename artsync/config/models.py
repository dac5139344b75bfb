"""Configuration models for artsync."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class RepoSettings(BaseModel):
    """Working set (git repository) layout."""

    path: str = Field(default=".", description="Path to the local art repository")
    remote: str = Field(default="origin", description="Remote name")
    branch: str = Field(default="main", description="Branch to sync")
    expected_remote: str = Field(
        default="",
        description="Substring the remote URL must contain (empty disables the check)",
    )
    content_dir: str = Field(default="library", description="Directory of image files")
    thumbs_dir: str = Field(default="thumbs", description="Directory of thumbnails")
    thumbnail_prefix: str = Field(default="thumb_")
    metadata_file: str = Field(default="metadata.json")
    require_lfs: bool = Field(default=True, description="Verify Git LFS setup")

    def resolved_path(self) -> Path:
        return Path(self.path).expanduser().resolve()


class SyncSettings(BaseModel):
    """Sync engine policy."""

    stale_lock_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Seconds without a heartbeat after which a lock marker is abandoned",
    )
    retry_attempts: int = Field(default=3, ge=1, description="Total attempts for network calls")
    retry_base_delay: float = Field(default=2.0, ge=0, description="First backoff delay")
    command_timeout: float = Field(default=60.0, gt=0)
    network_timeout: float = Field(default=120.0, gt=0)
    conflict_strategy: Literal["remote_wins", "reject"] = Field(default="remote_wins")
    log_path: str = Field(default="~/.artsync/sync_logs.json")
    max_log_entries: int = Field(default=200, ge=1)
    metadata_diff_context: int = Field(default=10, ge=10)

    def longest_step_seconds(self) -> float:
        """Longest stretch a running sync can go without re-stamping its lock.

        One network attempt, the backoff before the next one, and one local
        command on the same step.
        """
        longest_backoff = self.retry_base_delay * 2 ** max(self.retry_attempts - 2, 0)
        return self.network_timeout + longest_backoff + self.command_timeout

    @model_validator(mode="after")
    def check_stale_threshold(self) -> "SyncSettings":
        if self.stale_lock_seconds <= self.longest_step_seconds():
            raise ValueError(
                f"stale_lock_seconds ({self.stale_lock_seconds}) must exceed "
                f"{self.longest_step_seconds():.0f}s, the longest step of a running sync"
            )
        return self


class ArtSyncConfig(BaseModel):
    """Root configuration model."""

    version: int = Field(default=1)
    repo: RepoSettings = Field(default_factory=RepoSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
