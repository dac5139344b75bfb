"""Git-backed sync engine for the art library."""

from .classifier import ChangeBucket, ChangeClassifier, ChangeDescriptor, RawStatus
from .commit_message import CommitMessageComposer, parse_metadata_diff
from .conflict_resolver import (
    ConflictInfo,
    ConflictResolver,
    ConflictType,
    RejectResolver,
    RemoteWinsResolver,
    Resolution,
    ResolutionStrategy,
    create_resolver,
)
from .errors import (
    GitAuthError,
    GitCommandError,
    GitConflictError,
    GitError,
    GitLockError,
    GitNetworkError,
)
from .lock import StaleLockInfo, SyncLock
from .repo_manager import CommitInfo, GitRepoManager, MergeOutcome
from .sync_log import SyncLog
from .sync_manager import (
    ErrorKind,
    FullSyncResult,
    OperationResult,
    PullCheckResult,
    SyncManager,
    SyncStatus,
    VerificationResult,
)
from .upload_validator import UploadValidator, ValidationError, ValidationReport

__all__ = [
    "ChangeBucket",
    "ChangeClassifier",
    "ChangeDescriptor",
    "CommitInfo",
    "CommitMessageComposer",
    "ConflictInfo",
    "ConflictResolver",
    "ConflictType",
    "ErrorKind",
    "FullSyncResult",
    "GitAuthError",
    "GitCommandError",
    "GitConflictError",
    "GitError",
    "GitLockError",
    "GitNetworkError",
    "GitRepoManager",
    "MergeOutcome",
    "OperationResult",
    "PullCheckResult",
    "RawStatus",
    "RejectResolver",
    "RemoteWinsResolver",
    "Resolution",
    "ResolutionStrategy",
    "StaleLockInfo",
    "SyncLock",
    "SyncLog",
    "SyncManager",
    "SyncStatus",
    "UploadValidator",
    "ValidationError",
    "ValidationReport",
    "VerificationResult",
    "create_resolver",
    "parse_metadata_diff",
]
