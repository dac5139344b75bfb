"""Git driver for the local art repository."""

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, TypeVar

from .classifier import ChangeDescriptor, RawStatus
from .errors import (
    GitConflictError,
    GitError,
    GitNetworkError,
    classify_git_failure,
)

if TYPE_CHECKING:
    from ..config import ArtSyncConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

DIVERGED_PATTERNS = (
    "not possible to fast-forward",
    "divergent branches",
    "refusing to merge unrelated histories",
)


class MergeOutcome(Enum):
    """Result of a successful merge."""

    UP_TO_DATE = "up_to_date"
    FAST_FORWARD = "fast_forward"
    MERGED = "merged"


@dataclass
class CommitInfo:
    """One entry from ``git log``."""

    hash: str
    author: str
    date: str
    message: str


class GitRepoManager:
    """Runs git commands against one working set.

    Network calls (fetch, pull, push) are retried with exponential backoff on
    transient transport failures. Everything else raises on the first failure.
    """

    def __init__(
        self,
        repo_path: Path | str,
        remote: str = "origin",
        branch: str = "main",
        retry_attempts: int = 3,
        retry_base_delay: float = 2.0,
        command_timeout: float = 60.0,
        network_timeout: float = 120.0,
        sleep: Callable[[float], None] = time.sleep,
        before_retry: Callable[[], object] | None = None,
    ):
        """Initialize the driver.

        Args:
            repo_path: Root of the working set
            remote: Remote name
            branch: Branch to sync
            retry_attempts: Total attempts for network calls
            retry_base_delay: Delay before the second attempt, doubled afterwards
            command_timeout: Timeout for local git commands (seconds)
            network_timeout: Timeout for fetch/push (seconds)
            sleep: Sleep function used between retries
            before_retry: Called after each backoff, right before the next
                attempt (the sync manager uses it to re-stamp its lock)
        """
        self.repo_path = Path(repo_path)
        self.remote = remote
        self.branch = branch
        self.retry_attempts = max(1, retry_attempts)
        self.retry_base_delay = retry_base_delay
        self.command_timeout = command_timeout
        self.network_timeout = network_timeout
        self._sleep = sleep
        self.before_retry = before_retry

    @classmethod
    def from_config(cls, config: ArtSyncConfig) -> "GitRepoManager":
        return cls(
            config.repo.resolved_path(),
            remote=config.repo.remote,
            branch=config.repo.branch,
            retry_attempts=config.sync.retry_attempts,
            retry_base_delay=config.sync.retry_base_delay,
            command_timeout=config.sync.command_timeout,
            network_timeout=config.sync.network_timeout,
        )

    @property
    def tracking_ref(self) -> str:
        return f"{self.remote}/{self.branch}"

    @property
    def git_dir(self) -> Path:
        return self.repo_path / ".git"

    @property
    def index_lock_path(self) -> Path:
        return self.git_dir / "index.lock"

    # ========== Command execution ==========

    def run_git_command(
        self, args: list[str], timeout: float | None = None
    ) -> tuple[bool, str]:
        """Run a git command in the working set.

        Returns:
            (success, output) tuple; stdout on success, stdout and stderr on failure.
        """
        env = os.environ.copy()
        env["LC_ALL"] = "C"
        env["GIT_TERMINAL_PROMPT"] = "0"

        try:
            result = subprocess.run(
                ["git", "-C", str(self.repo_path), *args],
                capture_output=True,
                text=True,
                timeout=timeout or self.command_timeout,
                env=env,
            )
        except FileNotFoundError:
            return False, "git executable not found"
        except subprocess.TimeoutExpired:
            return False, f"git {args[0]}: operation timed out"

        if result.returncode == 0:
            return True, result.stdout
        output = "\n".join(part for part in (result.stdout, result.stderr) if part)
        return False, output

    def _git(self, args: list[str], network: bool = False) -> str:
        """Run a git command, raising a classified GitError on failure."""
        timeout = self.network_timeout if network else self.command_timeout
        success, output = self.run_git_command(args, timeout=timeout)
        if not success:
            raise classify_git_failure(args, output, network=network)
        return output

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Exponential backoff: base * 2**attempt (attempt is 0-based)."""
        return self.retry_base_delay * (2**attempt)

    def _with_retry(self, description: str, operation: Callable[[], T]) -> T:
        """Run a network operation, retrying transient failures."""
        for attempt in range(self.retry_attempts):
            try:
                return operation()
            except GitNetworkError as e:
                if attempt + 1 >= self.retry_attempts:
                    logger.error(
                        f"{description} failed after {self.retry_attempts} attempts: {e}"
                    )
                    raise
                delay = self._calculate_retry_delay(attempt)
                logger.warning(
                    f"{description} failed ({e}), retrying in {delay:.1f}s "
                    f"(attempt {attempt + 2}/{self.retry_attempts})"
                )
                self._sleep(delay)
                if self.before_retry is not None:
                    self.before_retry()
        raise GitNetworkError(f"{description} was not attempted")

    # ========== Status ==========

    def is_repo(self) -> bool:
        if not self.repo_path.exists():
            return False
        success, output = self.run_git_command(["rev-parse", "--is-inside-work-tree"])
        return success and output.strip() == "true"

    def status(self) -> list[ChangeDescriptor]:
        """Get uncommitted changes (staged, unstaged and untracked)."""
        output = self._git(
            ["status", "--porcelain=v1", "-z", "--untracked-files=all"]
        )
        return parse_porcelain_status(output)

    def name_status(self, rev_range: str) -> list[ChangeDescriptor]:
        """Files changed in a commit range, e.g. ``origin/main...HEAD``."""
        output = self._git(["diff", "--name-status", "-M", "-z", rev_range])
        return parse_name_status(output)

    def conflicted_files(self) -> list[str]:
        """Paths with unresolved merge conflicts."""
        success, output = self.run_git_command(
            ["diff", "--name-only", "--diff-filter=U"]
        )
        if not success:
            return []
        return [line for line in output.splitlines() if line.strip()]

    def has_ref(self, ref: str) -> bool:
        success, _ = self.run_git_command(["rev-parse", "--verify", "--quiet", ref])
        return success

    def rev_parse(self, ref: str) -> str:
        return self._git(["rev-parse", ref]).strip()

    def ahead_behind(self) -> tuple[int, int]:
        """Commits ahead of and behind the remote tracking branch."""
        if not self.has_ref(self.tracking_ref):
            return 0, 0
        success, output = self.run_git_command(
            ["rev-list", "--left-right", "--count", f"{self.tracking_ref}...HEAD"]
        )
        if not success:
            return 0, 0
        parts = output.strip().split()
        if len(parts) != 2:
            return 0, 0
        behind, ahead = int(parts[0]), int(parts[1])
        return ahead, behind

    def get_current_branch(self) -> str | None:
        success, output = self.run_git_command(["branch", "--show-current"])
        if success:
            return output.strip() or None
        return None

    def get_remote_url(self, remote: str | None = None) -> str | None:
        success, output = self.run_git_command(
            ["remote", "get-url", remote or self.remote]
        )
        if success:
            return output.strip() or None
        return None

    def log(self, max_count: int = 10, rev_range: str | None = None) -> list[CommitInfo]:
        """Recent commits, newest first. Empty for a repository with no commits."""
        args = ["log", f"--max-count={max_count}", "--format=%H%x1f%an%x1f%aI%x1f%s%x1e"]
        if rev_range:
            args.append(rev_range)
        success, output = self.run_git_command(args)
        if not success:
            return []

        commits = []
        for record in output.split("\x1e"):
            fields = record.strip().split("\x1f")
            if len(fields) == 4:
                commits.append(CommitInfo(*fields))
        return commits

    def diff(
        self,
        paths: list[str] | None = None,
        context_lines: int = 3,
        cached: bool = False,
        rev_range: str | None = None,
    ) -> str:
        """Unified diff for the given paths."""
        args = ["diff", f"-U{context_lines}"]
        if cached:
            args.append("--cached")
        if rev_range:
            args.append(rev_range)
        if paths:
            args += ["--", *paths]
        return self._git(args)

    # ========== Local mutations ==========

    def stage_all(self) -> None:
        self._git(["add", "-A"])

    def unstage(self, paths: list[str]) -> None:
        """Remove newly added paths from the index (the files stay on disk)."""
        if paths:
            self._git(["rm", "--cached", "-q", "--ignore-unmatch", "--", *paths])

    def commit(self, message: str) -> str:
        """Commit staged changes.

        Returns:
            Hash of the new commit.
        """
        self._git(["commit", "-m", message])
        commit = self.rev_parse("HEAD")
        logger.info(f"Committed {commit[:7]}: {message}")
        return commit

    def move(self, source: str, destination: str) -> None:
        self._git(["mv", source, destination])

    def reset(self, ref: str, mode: str = "hard") -> None:
        self._git(["reset", f"--{mode}", ref])
        logger.info(f"Reset ({mode}) to {ref}")

    def clean(self) -> None:
        """Remove untracked files and directories."""
        self._git(["clean", "-fd"])

    def abort_merge(self) -> None:
        self._git(["merge", "--abort"])

    def abort_rebase(self) -> None:
        self._git(["rebase", "--abort"])

    # ========== Remote operations ==========

    def fetch(
        self,
        remote: str | None = None,
        branch: str | None = None,
        retry: bool = True,
    ) -> None:
        """Fetch the branch from the remote, updating the tracking ref."""
        args = ["fetch", remote or self.remote, branch or self.branch]
        if retry:
            self._with_retry("Fetch", lambda: self._git(args, network=True))
        else:
            self._git(args, network=True)
        logger.debug(f"Fetched {args[1]}/{args[2]}")

    def merge(self, ref: str | None = None) -> MergeOutcome:
        """Merge a ref (default: the remote tracking branch) into HEAD.

        A conflicted merge is aborted before raising, so the working set is
        never left half-merged.

        Raises:
            GitConflictError: on merge conflicts or divergent history.
        """
        target = ref or self.tracking_ref
        args = ["merge", "--no-edit", target]
        success, output = self.run_git_command(args)
        lowered = output.lower()

        if success:
            if "already up" in lowered:
                return MergeOutcome.UP_TO_DATE
            if "fast-forward" in lowered:
                return MergeOutcome.FAST_FORWARD
            return MergeOutcome.MERGED

        if "conflict" in lowered:
            files = self.conflicted_files()
            try:
                self.abort_merge()
            except GitError as e:
                logger.warning(f"Could not abort conflicted merge: {e}")
            raise GitConflictError(
                f"Merge conflict while merging {target}",
                "merge-conflict",
                files,
                args,
            )

        if any(pattern in lowered for pattern in DIVERGED_PATTERNS):
            raise GitConflictError(
                f"Local and {target} have diverged", "diverged-history", [], args
            )

        raise classify_git_failure(args, output)

    def pull(self, remote: str | None = None, branch: str | None = None) -> MergeOutcome:
        """Fetch then merge the remote tracking branch."""
        self.fetch(remote, branch)
        target = f"{remote or self.remote}/{branch or self.branch}"
        outcome = self.merge(target)
        if outcome != MergeOutcome.UP_TO_DATE:
            self.lfs_pull()
        return outcome

    def push(self, remote: str | None = None, branch: str | None = None) -> None:
        args = ["push", remote or self.remote, branch or self.branch]
        self._with_retry("Push", lambda: self._git(args, network=True))
        logger.info(f"Pushed to {args[1]}/{args[2]}")

    # ========== Git LFS ==========

    def lfs_version(self) -> str | None:
        success, output = self.run_git_command(["lfs", "version"])
        if success:
            return output.strip()
        return None

    def lfs_configured(self) -> bool:
        """Whether ``.gitattributes`` routes any path through LFS."""
        attributes = self.repo_path / ".gitattributes"
        if not attributes.exists():
            return False
        try:
            return "filter=lfs" in attributes.read_text(encoding="utf-8")
        except OSError:
            return False

    def lfs_pull(self) -> bool:
        """Hydrate LFS objects after a pull. Failure is logged, not raised."""
        if not self.lfs_configured():
            return False
        try:
            self._with_retry("LFS pull", lambda: self._git(["lfs", "pull"], network=True))
            return True
        except GitError as e:
            logger.warning(f"LFS pull failed: {e}")
            return False


def parse_porcelain_status(output: str) -> list[ChangeDescriptor]:
    """Parse ``git status --porcelain=v1 -z`` output."""
    changes = []
    entries = output.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if len(entry) < 4:
            continue

        code, path = entry[:2], entry[3:]
        from_path = None
        if code[0] in "RC" or code[1] in "RC":
            from_path = entries[i] if i < len(entries) else None
            i += 1

        if code == "!!":
            continue
        if "U" in code or code in ("AA", "DD"):
            status = RawStatus.CONFLICTED
        elif code == "??":
            status = RawStatus.UNTRACKED
        else:
            effective = code[0] if code[0] != " " else code[1]
            status = RawStatus.from_code(effective)
        if status is None:
            continue

        changes.append(ChangeDescriptor(path=path, status=status, from_path=from_path))
    return changes


def parse_name_status(output: str) -> list[ChangeDescriptor]:
    """Parse ``git diff --name-status -z`` output."""
    changes = []
    tokens = output.split("\0")
    i = 0
    while i < len(tokens):
        code = tokens[i].strip()
        i += 1
        if not code:
            continue

        if code[0] in "RC":
            if i + 1 >= len(tokens):
                break
            from_path, path = tokens[i], tokens[i + 1]
            i += 2
        else:
            if i >= len(tokens):
                break
            from_path, path = None, tokens[i]
            i += 1

        status = RawStatus.from_code(code)
        if status is None or not path:
            continue
        changes.append(ChangeDescriptor(path=path, status=status, from_path=from_path))
    return changes
