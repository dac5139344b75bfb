"""Exceptions raised by the git driver."""

from __future__ import annotations

import re
from pathlib import Path

# Patterns in git's stderr that indicate a transient transport failure.
NETWORK_ERROR_PATTERNS = (
    "could not resolve host",
    "could not read from remote repository",
    "connection refused",
    "connection reset",
    "connection timed out",
    "operation timed out",
    "network is unreachable",
    "the remote end hung up unexpectedly",
    "early eof",
    "rpc failed",
    "unable to access",
    "failed to connect",
    "temporary failure in name resolution",
)

AUTH_ERROR_PATTERNS = (
    "authentication failed",
    "permission denied",
    "could not read username",
    "invalid username or password",
    "403",
)

_LOCK_FILE_RE = re.compile(r"Unable to create '([^']+\.lock)'")


class GitError(Exception):
    """Base class for failed git operations."""

    def __init__(self, message: str, command: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.command = command or []


class GitCommandError(GitError):
    """Git exited non-zero for a reason not covered by a subclass."""


class GitNetworkError(GitError):
    """Transient transport failure (retryable)."""


class GitAuthError(GitError):
    """Authentication or permission failure (never retried)."""


class GitLockError(GitError):
    """Git refused to run because a lock file exists."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        lock_file: Path | None = None,
    ):
        super().__init__(message, command)
        self.lock_file = lock_file


class GitConflictError(GitError):
    """A merge stopped on conflicts or divergent history."""

    def __init__(
        self,
        message: str,
        conflict_type: str,
        conflicted_files: list[str] | None = None,
        command: list[str] | None = None,
    ):
        super().__init__(message, command)
        self.conflict_type = conflict_type
        self.conflicted_files = conflicted_files or []


def classify_git_failure(
    command: list[str], output: str, network: bool = False
) -> GitError:
    """Map git's output for a failed command onto an exception.

    Args:
        command: git arguments that were run
        output: combined stdout/stderr
        network: whether the command talks to a remote

    Returns:
        The most specific GitError for the failure.
    """
    message = output.strip() or f"git {' '.join(command)} failed"
    lowered = message.lower()

    if ".lock" in lowered and "file exists" in lowered:
        match = _LOCK_FILE_RE.search(message)
        lock_file = Path(match.group(1)) if match else None
        return GitLockError(message, command, lock_file=lock_file)

    if network:
        if any(pattern in lowered for pattern in AUTH_ERROR_PATTERNS):
            return GitAuthError(message, command)
        if any(pattern in lowered for pattern in NETWORK_ERROR_PATTERNS):
            return GitNetworkError(message, command)

    return GitCommandError(message, command)
