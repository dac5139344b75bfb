"""Resolve divergence between the local working set and the remote."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from .errors import GitError

if TYPE_CHECKING:
    from .repo_manager import GitRepoManager

logger = logging.getLogger(__name__)


class ConflictType(str, Enum):
    """Kind of conflict found while pulling."""

    NONE = "none"
    DIVERGED_HISTORY = "diverged-history"
    MERGE_CONFLICT = "merge-conflict"


class ResolutionStrategy(str, Enum):
    """How a conflict is settled."""

    REMOTE_WINS = "remote_wins"
    REJECT = "reject"


@dataclass
class ConflictInfo:
    """Transient description of a conflict found during a pull."""

    has_conflicts: bool = False
    conflict_type: ConflictType = ConflictType.NONE
    conflicted_files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "hasConflicts": self.has_conflicts,
            "conflictType": self.conflict_type.value,
            "conflictedFiles": list(self.conflicted_files),
        }


@dataclass
class Resolution:
    """Outcome of resolving a conflict."""

    resolved: bool
    conflict: ConflictInfo
    strategy: ResolutionStrategy
    lost_changes: list[str] = field(default_factory=list)
    remote_commit: str | None = None
    error: str | None = None


class ConflictResolver:
    """Base resolver; subclasses implement one strategy."""

    strategy: ResolutionStrategy

    def __init__(self, repo_manager: GitRepoManager):
        """Initialize with repo manager.

        Args:
            repo_manager: GitRepoManager instance
        """
        self._repo_manager = repo_manager

    def resolve(self, conflict: ConflictInfo, lost_changes: list[str]) -> Resolution:
        """Settle the conflict.

        Args:
            conflict: What the pull ran into
            lost_changes: Local changes that resolution may discard, captured
                before the pull was attempted

        Returns:
            Resolution describing what happened.
        """
        raise NotImplementedError


class RemoteWinsResolver(ConflictResolver):
    """Discard local divergent work and match the remote branch tip.

    Local edits are discarded; the caller records ``lost_changes`` so
    the overwrite is visible in the sync log.
    """

    strategy = ResolutionStrategy.REMOTE_WINS

    def resolve(self, conflict: ConflictInfo, lost_changes: list[str]) -> Resolution:
        target = self._repo_manager.tracking_ref
        logger.warning(
            f"Resolving {conflict.conflict_type.value} by resetting to {target}; "
            f"discarding {len(lost_changes)} local change(s)"
        )

        try:
            self._repo_manager.reset(target, mode="hard")
            self._repo_manager.clean()
            remote_commit = self._repo_manager.rev_parse("HEAD")
        except GitError as e:
            logger.error(f"Reset to {target} failed: {e}")
            return Resolution(
                resolved=False,
                conflict=conflict,
                strategy=self.strategy,
                lost_changes=lost_changes,
                error=f"Reset to remote failed: {e}",
            )

        self._repo_manager.lfs_pull()
        return Resolution(
            resolved=True,
            conflict=conflict,
            strategy=self.strategy,
            lost_changes=lost_changes,
            remote_commit=remote_commit,
        )


class RejectResolver(ConflictResolver):
    """Leave the working set untouched and report the conflict."""

    strategy = ResolutionStrategy.REJECT

    def resolve(self, conflict: ConflictInfo, lost_changes: list[str]) -> Resolution:
        files = ", ".join(conflict.conflicted_files) or "diverged history"
        return Resolution(
            resolved=False,
            conflict=conflict,
            strategy=self.strategy,
            error=f"Sync conflict needs manual resolution: {files}",
        )


def create_resolver(
    strategy: ResolutionStrategy | str, repo_manager: GitRepoManager
) -> ConflictResolver:
    """Build the resolver for a configured strategy."""
    strategy = ResolutionStrategy(strategy)
    if strategy == ResolutionStrategy.REJECT:
        return RejectResolver(repo_manager)
    return RemoteWinsResolver(repo_manager)
