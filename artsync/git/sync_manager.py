"""Sync orchestrator: commit, pull, push under the sync lock."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..config import ArtSyncConfig
from ..models.sync_log import SyncLogEntry, SyncLogStatus
from .classifier import ChangeBucket, ChangeClassifier, ChangeDescriptor, RawStatus
from .commit_message import CommitMessageComposer
from .conflict_resolver import (
    ConflictInfo,
    ConflictResolver,
    ConflictType,
    create_resolver,
)
from .errors import (
    GitAuthError,
    GitConflictError,
    GitError,
    GitLockError,
    GitNetworkError,
)
from .lock import StaleLockInfo, SyncLock
from .repo_manager import GitRepoManager, MergeOutcome
from .sync_log import SyncLog
from .upload_validator import UploadValidator

logger = logging.getLogger(__name__)

LOCK_FILENAME = "artsync-sync.lock"

OPERATION_FULL_SYNC = "full-sync"
OPERATION_CHECK_PULL = "check-pull"
OPERATION_RESET = "reset-to-remote"
OPERATION_ABORT_MERGE = "abort-merge"
OPERATION_ABORT_REBASE = "abort-rebase"

BUSY_MESSAGE = "Another sync operation is already in progress. Please wait and try again."
LOCK_LOST_MESSAGE = "Sync lock was taken over by another sync; stopping"


class ErrorKind(str, Enum):
    """Failure categories callers can act on differently."""

    BUSY = "busy"
    VALIDATION = "validation"
    NETWORK = "network"
    CONFLICT = "conflict"
    COMMIT = "commit"
    PULL = "pull"
    PUSH = "push"
    LOCKED = "locked"
    CONFIGURATION = "configuration"
    UNEXPECTED = "unexpected"


def _compact(data: dict) -> dict:
    """Drop optional keys that carry no value."""
    return {key: value for key, value in data.items() if value is not None}


@dataclass
class SyncStatus:
    """Snapshot of pending changes in both directions."""

    upload: ChangeBucket
    download: ChangeBucket
    branch: str | None
    is_main_branch: bool
    conflict: ConflictInfo
    sync_in_progress: bool = False
    last_sync_timestamp: str | None = None
    ahead: int = 0
    behind: int = 0
    fetch_error: str | None = None

    @property
    def has_changes(self) -> bool:
        return self.upload.count > 0 or self.download.count > 0

    def to_dict(self) -> dict:
        return _compact(
            {
                "upload": self.upload.to_dict(),
                "download": self.download.to_dict(),
                "hasChanges": self.has_changes,
                "branch": self.branch,
                "isMainBranch": self.is_main_branch,
                "lastSyncTimestamp": self.last_sync_timestamp,
                "conflict": self.conflict.to_dict(),
                "syncInProgress": self.sync_in_progress,
                "ahead": self.ahead,
                "behind": self.behind,
                "fetchError": self.fetch_error,
            }
        )


@dataclass
class FullSyncResult:
    """Composite outcome of one full sync attempt."""

    success: bool
    busy: bool = False
    committed: bool = False
    auto_resolved_conflict: bool = False
    lost_changes_summary: list[str] = field(default_factory=list)
    remote_changes_summary: list[str] = field(default_factory=list)
    conflict_type: str | None = None
    conflicted_files: list[str] = field(default_factory=list)
    message: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    validation_errors: list[dict] | None = None
    cleaned_up_images: list[str] | None = None
    commit: str | None = None
    lock_age_ms: int | None = None

    def to_dict(self) -> dict:
        return _compact(
            {
                "success": self.success,
                "busy": self.busy or None,
                "committed": self.committed,
                "autoResolvedConflict": self.auto_resolved_conflict,
                "lostChangesSummary": self.lost_changes_summary,
                "remoteChangesSummary": self.remote_changes_summary,
                "conflictType": self.conflict_type,
                "conflictedFiles": self.conflicted_files,
                "message": self.message,
                "error": self.error,
                "errorKind": self.error_kind.value if self.error_kind else None,
                "validationErrors": self.validation_errors,
                "cleanedUpImages": self.cleaned_up_images,
                "commit": self.commit,
                "lockAgeMs": self.lock_age_ms,
            }
        )


@dataclass
class PullCheckResult:
    """Outcome of a passive check-and-pull."""

    success: bool
    synced: bool = False
    pulled_changes: bool = False
    skipped: bool = False
    reason: str | None = None
    uncommitted_files: list[str] | None = None
    commits_received: int | None = None
    message: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    errors: list[str] | None = None

    def to_dict(self) -> dict:
        return _compact(
            {
                "success": self.success,
                "synced": self.synced,
                "pulledChanges": self.pulled_changes,
                "skipped": self.skipped,
                "reason": self.reason,
                "uncommittedFiles": self.uncommitted_files,
                "commitsReceived": self.commits_received,
                "message": self.message,
                "error": self.error,
                "errorKind": self.error_kind.value if self.error_kind else None,
                "errors": self.errors,
            }
        )


@dataclass
class VerificationResult:
    """Outcome of checking the working set's git setup."""

    is_valid: bool
    checks: dict = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"isValid": self.is_valid, "checks": self.checks, "errors": self.errors}


@dataclass
class OperationResult:
    """Outcome of an operator action (reset, abort)."""

    success: bool
    message: str | None = None
    error: str | None = None
    busy: bool = False

    def to_dict(self) -> dict:
        return _compact(
            {
                "success": self.success,
                "busy": self.busy or None,
                "message": self.message,
                "error": self.error,
            }
        )


class _LockLostError(Exception):
    """The sync lock no longer belongs to the running sync."""


@dataclass
class _Attempt:
    """Progress of one full sync, kept across a lock-recovery retry."""

    committed: bool = False
    commit_hash: str | None = None


@dataclass
class _RangeSummary:
    """Changes in one commit range, captured before a merge."""

    changes: list[ChangeDescriptor] = field(default_factory=list)
    clauses: list[str] = field(default_factory=list)

    @property
    def paths(self) -> set[str]:
        return {change.path for change in self.changes}


class SyncManager:
    """Runs sync operations against one working set.

    Every mutation of the working set happens while holding the sync lock.
    ``get_status`` and ``verify_configuration`` only read and never take it.
    """

    def __init__(
        self,
        config: ArtSyncConfig | None = None,
        repo_manager: GitRepoManager | None = None,
        lock: SyncLock | None = None,
        sync_log: SyncLog | None = None,
        resolver: ConflictResolver | None = None,
    ):
        """Initialize the manager.

        Args:
            config: Configuration; defaults are used when omitted
            repo_manager: Git driver (built from config when omitted)
            lock: Sync lock (a marker inside ``.git`` when omitted)
            sync_log: Sync history (``sync.log_path`` when omitted)
            resolver: Conflict resolver (``sync.conflict_strategy`` when omitted)
        """
        self.config = config or ArtSyncConfig()
        repo = self.config.repo
        sync = self.config.sync

        self.repo_manager = repo_manager or GitRepoManager.from_config(self.config)
        self.classifier = ChangeClassifier(
            repo.content_dir, repo.thumbs_dir, repo.metadata_file
        )
        self.composer = CommitMessageComposer(self.classifier)
        self.validator = UploadValidator(
            self.repo_manager.repo_path,
            self.classifier,
            thumbs_dir=repo.thumbs_dir,
            thumbnail_prefix=repo.thumbnail_prefix,
            metadata_file=repo.metadata_file,
            repo_manager=self.repo_manager,
        )
        self.lock = lock or SyncLock(
            self.repo_manager.git_dir / LOCK_FILENAME,
            stale_after=sync.stale_lock_seconds,
            watched_markers=[self.repo_manager.index_lock_path],
        )
        self.sync_log = sync_log or SyncLog(Path(sync.log_path), sync.max_log_entries)
        self.resolver = resolver or create_resolver(
            sync.conflict_strategy, self.repo_manager
        )
        self.repo_manager.before_retry = self._refresh_lock

    @classmethod
    def from_config(cls, config: ArtSyncConfig) -> "SyncManager":
        return cls(config)

    @property
    def metadata_file(self) -> str:
        return self.config.repo.metadata_file

    # ========== Status ==========

    def get_status(self) -> SyncStatus:
        """Pending uploads and downloads.

        A failed fetch is tolerated; the download side then reflects the last
        known state of the tracking branch.
        """
        fetch_error = None
        try:
            self.repo_manager.fetch(retry=False)
        except GitError as e:
            logger.warning(f"Fetch failed while reading status: {e}")
            fetch_error = str(e)

        local_changes = self.repo_manager.status()
        new_paths = self.classifier.new_content_paths(local_changes)
        ahead, behind = self.repo_manager.ahead_behind()
        tracking = self.repo_manager.tracking_ref

        upload = self.classifier.classify(local_changes)
        if ahead:
            unpushed = self.repo_manager.name_status(f"{tracking}...HEAD")
            upload = upload + self.classifier.classify(unpushed, new_paths)

        download = ChangeBucket()
        if behind:
            unpulled = self.repo_manager.name_status(f"HEAD...{tracking}")
            download = self.classifier.classify(unpulled)

        conflicted = [
            change.path
            for change in local_changes
            if change.status == RawStatus.CONFLICTED
        ]
        conflict = ConflictInfo(
            has_conflicts=bool(conflicted),
            conflict_type=(
                ConflictType.MERGE_CONFLICT if conflicted else ConflictType.NONE
            ),
            conflicted_files=conflicted,
        )

        branch = self.repo_manager.get_current_branch()
        commits = self.repo_manager.log(max_count=1)

        return SyncStatus(
            upload=upload,
            download=download,
            branch=branch,
            is_main_branch=branch == self.repo_manager.branch,
            conflict=conflict,
            sync_in_progress=self.lock.is_locked(),
            last_sync_timestamp=commits[0].date if commits else None,
            ahead=ahead,
            behind=behind,
            fetch_error=fetch_error,
        )

    # ========== Full sync ==========

    def perform_full_sync(self) -> FullSyncResult:
        """Commit local changes, pull remote changes, then push.

        Returns:
            FullSyncResult; no GitError escapes this method.
        """
        if not self.lock.acquire():
            logger.info("Sync already in progress, rejecting request")
            return FullSyncResult(
                success=False,
                busy=True,
                error=BUSY_MESSAGE,
                error_kind=ErrorKind.BUSY,
            )

        attempt = _Attempt()
        try:
            try:
                return self._run_full_sync(attempt)
            except GitLockError as e:
                return self._recover_from_lock_error(e, attempt)
        except _LockLostError:
            return self._fail(
                ErrorKind.LOCKED,
                LOCK_LOST_MESSAGE,
                committed=attempt.committed,
                commit=attempt.commit_hash,
            )
        except Exception as e:
            logger.exception("Unexpected error during sync")
            return self._fail(
                ErrorKind.UNEXPECTED,
                f"Unexpected error: {e}",
                committed=attempt.committed,
                commit=attempt.commit_hash,
            )
        finally:
            self.lock.release()

    def _refresh_lock(self) -> None:
        """Keep a held sync lock fresh while a network call is retried."""
        if self.lock.is_held:
            self.lock.refresh()

    def _heartbeat(self) -> None:
        """Re-stamp the sync lock between pipeline steps."""
        if not self.lock.refresh():
            raise _LockLostError(LOCK_LOST_MESSAGE)

    def _run_full_sync(self, attempt: _Attempt) -> FullSyncResult:
        logger.info("Starting full sync")

        # Committing
        try:
            changes = self.repo_manager.status()
        except GitLockError:
            raise
        except GitError as e:
            return self._fail(
                ErrorKind.COMMIT,
                f"Could not read local changes: {e}",
                committed=attempt.committed,
                commit=attempt.commit_hash,
            )

        if changes:
            report = self.validator.validate_and_rollback(changes)
            if not report.is_valid:
                error = f"Upload validation failed: {report.summary()}"
                return self._fail(
                    ErrorKind.VALIDATION,
                    error,
                    committed=attempt.committed,
                    commit=attempt.commit_hash,
                    validation_errors=[e.to_dict() for e in report.errors],
                    cleaned_up_images=report.cleaned_up,
                )

            try:
                self.repo_manager.stage_all()
                staged = self.repo_manager.status()
                if staged:
                    message = self._compose_commit_message(staged)
                    attempt.commit_hash = self.repo_manager.commit(message)
                    attempt.committed = True
            except GitLockError:
                raise
            except GitError as e:
                return self._fail(
                    ErrorKind.COMMIT,
                    f"Commit failed: {e}",
                    committed=attempt.committed,
                    commit=attempt.commit_hash,
                )
        else:
            logger.info("No local changes to commit")

        committed = attempt.committed
        commit_hash = attempt.commit_hash
        self._heartbeat()

        # Pulling
        try:
            self.repo_manager.fetch()
        except GitLockError:
            raise
        except (GitNetworkError, GitAuthError) as e:
            return self._fail(
                ErrorKind.NETWORK,
                f"Fetch failed: {e}",
                committed=committed,
                commit=commit_hash,
            )
        except GitError as e:
            return self._fail(
                ErrorKind.PULL,
                f"Fetch failed: {e}",
                committed=committed,
                commit=commit_hash,
            )

        self._heartbeat()
        tracking = self.repo_manager.tracking_ref
        local = self._summarize_range(f"{tracking}...HEAD")
        remote = self._summarize_range(f"HEAD...{tracking}")

        conflict = ConflictInfo()
        auto_resolved = False
        lost_changes: list[str] = []
        try:
            outcome = self.repo_manager.merge(tracking)
        except GitConflictError as e:
            conflict = ConflictInfo(
                has_conflicts=True,
                conflict_type=ConflictType(e.conflict_type),
                conflicted_files=e.conflicted_files
                or sorted(local.paths & remote.paths),
            )
            logger.warning(
                f"Pull hit {conflict.conflict_type.value}: "
                f"{', '.join(conflict.conflicted_files) or 'no overlapping files'}"
            )
            resolution = self.resolver.resolve(conflict, local.clauses)
            if not resolution.resolved:
                return self._fail(
                    ErrorKind.CONFLICT,
                    resolution.error or str(e),
                    committed=committed,
                    commit=commit_hash,
                    conflict=conflict,
                    remote_changes=remote.clauses,
                )
            auto_resolved = True
            lost_changes = resolution.lost_changes
        except GitLockError:
            raise
        except GitError as e:
            return self._fail(
                ErrorKind.PULL,
                f"Pull failed: {e}",
                committed=committed,
                commit=commit_hash,
                remote_changes=remote.clauses,
            )
        else:
            if outcome == MergeOutcome.UP_TO_DATE:
                remote.clauses = []
            else:
                logger.info(f"Merged {tracking} ({outcome.value})")
                self.repo_manager.lfs_pull()

        self._heartbeat()

        # Pushing
        try:
            self.repo_manager.push()
        except GitLockError:
            raise
        except (GitNetworkError, GitAuthError) as e:
            return self._fail(
                ErrorKind.NETWORK,
                f"Push failed: {e}",
                committed=committed,
                commit=commit_hash,
                conflict=conflict,
                lost_changes=lost_changes,
                remote_changes=remote.clauses,
            )
        except GitError as e:
            return self._fail(
                ErrorKind.PUSH,
                f"Push failed: {e}",
                committed=committed,
                commit=commit_hash,
                conflict=conflict,
                lost_changes=lost_changes,
                remote_changes=remote.clauses,
            )

        # Logging
        if auto_resolved:
            status = SyncLogStatus.WARNING
            message = (
                f"Sync completed after resolving {conflict.conflict_type.value}; "
                f"remote version kept, {len(lost_changes)} local change(s) discarded"
            )
        else:
            status = SyncLogStatus.SUCCESS
            message = "Successfully completed full sync (commit → pull → push)"

        self._record(
            OPERATION_FULL_SYNC,
            status,
            message,
            conflict=conflict,
            lost_changes=lost_changes,
            remote_changes=remote.clauses,
            remote_commit=self._tracking_commit(),
        )
        logger.info(message)

        return FullSyncResult(
            success=True,
            committed=committed,
            auto_resolved_conflict=auto_resolved,
            lost_changes_summary=lost_changes,
            remote_changes_summary=remote.clauses,
            conflict_type=conflict.conflict_type.value if auto_resolved else None,
            conflicted_files=conflict.conflicted_files,
            message=message,
            commit=commit_hash,
        )

    def _recover_from_lock_error(
        self, error: GitLockError, attempt: _Attempt
    ) -> FullSyncResult:
        """Clear a stale lock and retry the pipeline once.

        A commit made before the lock error stays reported on the result,
        even when the retry has nothing left to commit.
        """
        info = self.lock.detect_stale()
        if not info.is_stale:
            lock_file = info.lock_file or error.lock_file
            message = (
                f"Repository is locked by another git process "
                f"({lock_file or 'unknown lock file'}, {self._format_age(info)})"
            )
            result = self._fail(
                ErrorKind.LOCKED,
                message,
                committed=attempt.committed,
                commit=attempt.commit_hash,
            )
            result.lock_age_ms = info.age_ms
            return result

        self.lock.clear_stale(info)
        self._heartbeat()
        self._record(
            OPERATION_FULL_SYNC,
            SyncLogStatus.RECOVERY,
            f"Cleared stale lock {info.lock_file} ({self._format_age(info)}), "
            f"retrying sync",
            error=str(error),
        )

        try:
            return self._run_full_sync(attempt)
        except GitLockError as retry_error:
            return self._fail(
                ErrorKind.LOCKED,
                f"Sync failed again after clearing stale lock: {retry_error}",
                committed=attempt.committed,
                commit=attempt.commit_hash,
            )

    def _compose_commit_message(self, staged: list[ChangeDescriptor]) -> str:
        metadata_diff = None
        if any(
            change.path == self.metadata_file and change.status == RawStatus.MODIFIED
            for change in staged
        ):
            metadata_diff = self.repo_manager.diff(
                [self.metadata_file],
                context_lines=self.config.sync.metadata_diff_context,
                cached=True,
            )
        return self.composer.compose(staged, metadata_diff)

    def _summarize_range(self, rev_range: str) -> _RangeSummary:
        """Describe the changes in a commit range.

        Runs before the merge, so the description survives a conflict and the
        reset that resolves it.
        """
        if not self.repo_manager.has_ref(self.repo_manager.tracking_ref):
            return _RangeSummary()
        try:
            changes = self.repo_manager.name_status(rev_range)
        except GitLockError:
            raise
        except GitError as e:
            logger.warning(f"Could not list changes in {rev_range}: {e}")
            return _RangeSummary()

        clauses = self.composer.describe_file_changes(changes)
        if any(
            change.path == self.metadata_file and change.status == RawStatus.MODIFIED
            for change in changes
        ):
            try:
                diff = self.repo_manager.diff(
                    [self.metadata_file],
                    context_lines=self.config.sync.metadata_diff_context,
                    rev_range=rev_range,
                )
                clauses += self.composer.parse_metadata_diff(diff)
            except GitLockError:
                raise
            except GitError as e:
                logger.warning(f"Could not diff {self.metadata_file}: {e}")
            # Metadata-only edits must still show up as something
            if not clauses:
                clauses = [f"{self.metadata_file}: modified"]
        return _RangeSummary(changes=changes, clauses=clauses)

    def _tracking_commit(self) -> str | None:
        try:
            return self.repo_manager.rev_parse(self.repo_manager.tracking_ref)
        except GitError:
            return None

    @staticmethod
    def _format_age(info: StaleLockInfo) -> str:
        if info.age_ms is None:
            return "age unknown"
        return f"age {info.age_ms / 1000:.0f}s"

    def _fail(
        self,
        kind: ErrorKind,
        error: str,
        committed: bool = False,
        commit: str | None = None,
        conflict: ConflictInfo | None = None,
        lost_changes: list[str] | None = None,
        remote_changes: list[str] | None = None,
        validation_errors: list[dict] | None = None,
        cleaned_up_images: list[str] | None = None,
    ) -> FullSyncResult:
        """Log a failed sync and build its result."""
        logger.error(error)
        conflict = conflict or ConflictInfo()
        self._record(
            OPERATION_FULL_SYNC,
            SyncLogStatus.FAILURE,
            f"Sync failed ({kind.value})",
            error=error,
            conflict=conflict,
            lost_changes=lost_changes,
            remote_changes=remote_changes,
        )
        return FullSyncResult(
            success=False,
            committed=committed,
            lost_changes_summary=lost_changes or [],
            remote_changes_summary=remote_changes or [],
            conflict_type=(
                conflict.conflict_type.value if conflict.has_conflicts else None
            ),
            conflicted_files=conflict.conflicted_files,
            error=error,
            error_kind=kind,
            validation_errors=validation_errors,
            cleaned_up_images=cleaned_up_images,
            commit=commit,
        )

    def _record(
        self,
        operation: str,
        status: SyncLogStatus,
        message: str,
        error: str | None = None,
        conflict: ConflictInfo | None = None,
        lost_changes: list[str] | None = None,
        remote_changes: list[str] | None = None,
        remote_commit: str | None = None,
    ) -> None:
        conflict = conflict or ConflictInfo()
        entry = SyncLogEntry(
            operation=operation,
            status=status,
            message=message,
            error=error,
            has_conflicts=conflict.has_conflicts,
            conflict_type=(
                conflict.conflict_type.value if conflict.has_conflicts else None
            ),
            conflicted_files=conflict.conflicted_files,
            lost_changes=lost_changes or [],
            remote_changes=remote_changes or [],
            branch=self.repo_manager.branch,
            remote_commit=remote_commit,
        )
        try:
            self.sync_log.append(entry)
        except OSError as e:
            logger.error(f"Could not write sync log: {e}")

    # ========== Passive pull ==========

    def check_and_pull_if_behind(self) -> PullCheckResult:
        """Pull only when strictly behind with a clean working set.

        Local changes block the pull and are reported; that skip still counts
        as success.
        """
        verification = self.verify_configuration()
        if not verification.is_valid:
            return PullCheckResult(
                success=False,
                error="Git configuration is invalid",
                error_kind=ErrorKind.CONFIGURATION,
                errors=verification.errors,
            )

        if not self.lock.acquire():
            return PullCheckResult(
                success=True, skipped=True, reason="Sync already in progress"
            )

        try:
            return self._check_and_pull()
        except GitNetworkError as e:
            return self._fail_check(ErrorKind.NETWORK, f"Check failed: {e}")
        except GitError as e:
            return self._fail_check(ErrorKind.PULL, f"Check failed: {e}")
        finally:
            self.lock.release()

    def _check_and_pull(self) -> PullCheckResult:
        changes = self.repo_manager.status()
        if changes:
            uncommitted = [change.path for change in changes]
            logger.info(f"Skipping pull, {len(uncommitted)} uncommitted file(s)")
            return PullCheckResult(
                success=True,
                skipped=True,
                reason="Uncommitted local changes detected",
                uncommitted_files=uncommitted,
            )

        self.repo_manager.fetch()
        ahead, behind = self.repo_manager.ahead_behind()
        if behind == 0:
            return PullCheckResult(
                success=True, synced=True, message="Already up to date"
            )
        if ahead:
            return PullCheckResult(
                success=True,
                skipped=True,
                reason=f"{ahead} local commit(s) not yet pushed; run a full sync",
            )

        tracking = self.repo_manager.tracking_ref
        remote = self._summarize_range(f"HEAD...{tracking}")
        try:
            self.repo_manager.merge(tracking)
        except GitConflictError as e:
            return self._fail_check(ErrorKind.CONFLICT, f"Pull failed: {e}")
        self.repo_manager.lfs_pull()

        message = f"Pulled {behind} commit(s) from remote"
        self._record(
            OPERATION_CHECK_PULL,
            SyncLogStatus.SUCCESS,
            message,
            remote_changes=remote.clauses,
            remote_commit=self._tracking_commit(),
        )
        logger.info(message)
        return PullCheckResult(
            success=True,
            synced=True,
            pulled_changes=True,
            commits_received=behind,
            message=message,
        )

    def _fail_check(self, kind: ErrorKind, error: str) -> PullCheckResult:
        logger.error(error)
        self._record(
            OPERATION_CHECK_PULL,
            SyncLogStatus.FAILURE,
            f"Check-and-pull failed ({kind.value})",
            error=error,
        )
        return PullCheckResult(success=False, error=error, error_kind=kind)

    # ========== Configuration ==========

    def verify_configuration(self) -> VerificationResult:
        """Check the working set is a git repository set up for syncing."""
        repo = self.config.repo
        checks: dict = {}
        errors: list[str] = []

        checks["isGitRepo"] = self.repo_manager.is_repo()
        if not checks["isGitRepo"]:
            errors.append(f"{self.repo_manager.repo_path} is not a Git repository")
            return VerificationResult(is_valid=False, checks=checks, errors=errors)

        remote_url = self.repo_manager.get_remote_url()
        checks["remoteUrl"] = remote_url
        if remote_url is None:
            checks["isCorrectRemote"] = False
            errors.append(f"No '{self.repo_manager.remote}' remote configured")
        else:
            checks["isCorrectRemote"] = (
                not repo.expected_remote or repo.expected_remote in remote_url
            )
            if not checks["isCorrectRemote"]:
                errors.append(
                    f"Remote URL {remote_url} does not match {repo.expected_remote}"
                )

        if repo.require_lfs:
            lfs_version = self.repo_manager.lfs_version()
            has_attributes = (self.repo_manager.repo_path / ".gitattributes").exists()
            checks["lfsVersion"] = lfs_version
            checks["isLFSConfigured"] = bool(lfs_version) and has_attributes
            if not lfs_version:
                errors.append("Git LFS is not installed. Run: git lfs install")
            elif not has_attributes:
                errors.append(".gitattributes not found; LFS may not be configured")

        branch = self.repo_manager.get_current_branch()
        checks["currentBranch"] = branch
        checks["isMainBranch"] = branch == self.repo_manager.branch
        if not checks["isMainBranch"]:
            errors.append(
                f"Not on {self.repo_manager.branch} branch (currently on: {branch})"
            )

        return VerificationResult(is_valid=not errors, checks=checks, errors=errors)

    # ========== Sync log ==========

    def get_sync_logs(self) -> list[SyncLogEntry]:
        return self.sync_log.entries()

    def clear_sync_logs(self) -> None:
        self.sync_log.clear()
        logger.info("Sync logs cleared")

    # ========== Operator actions ==========

    def reset_to_remote(self) -> OperationResult:
        """Discard all local work and match the remote branch tip."""
        if not self.lock.acquire():
            return OperationResult(success=False, busy=True, error=BUSY_MESSAGE)

        tracking = self.repo_manager.tracking_ref
        try:
            lost = self.repo_manager.status()
            self.repo_manager.fetch()
            self.repo_manager.reset(tracking, mode="hard")
            self.repo_manager.clean()
            self.repo_manager.lfs_pull()
        except GitError as e:
            error = f"Reset to {tracking} failed: {e}"
            logger.error(error)
            self._record(
                OPERATION_RESET, SyncLogStatus.FAILURE, "Reset failed", error=error
            )
            return OperationResult(success=False, error=error)
        finally:
            self.lock.release()

        message = f"Reset working set to {tracking}"
        self._record(
            OPERATION_RESET,
            SyncLogStatus.WARNING if lost else SyncLogStatus.INFO,
            message,
            lost_changes=[change.path for change in lost],
            remote_commit=self._tracking_commit(),
        )
        return OperationResult(success=True, message=message)

    def abort_merge(self) -> OperationResult:
        """Abort an in-progress merge, or failing that a rebase."""
        if not self.lock.acquire():
            return OperationResult(success=False, busy=True, error=BUSY_MESSAGE)

        try:
            try:
                self.repo_manager.abort_merge()
                operation, message = OPERATION_ABORT_MERGE, "Merge aborted"
            except GitError:
                self.repo_manager.abort_rebase()
                operation, message = OPERATION_ABORT_REBASE, "Rebase aborted"
        except GitError as e:
            logger.error(f"Nothing to abort: {e}")
            return OperationResult(
                success=False, error="No merge or rebase in progress"
            )
        finally:
            self.lock.release()

        self._record(operation, SyncLogStatus.INFO, message)
        logger.info(message)
        return OperationResult(success=True, message=message)
