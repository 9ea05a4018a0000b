"""Git operations — best-effort commits of tier changes.

Nothing in here can fail the calling engine: every problem comes back as a
``Skipped`` result. Commits are attributed to tierguard's service identity,
never to the approver or the writer.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union

from git import Repo, InvalidGitRepositoryError, NoSuchPathError
from git.exc import GitCommandError

from tierguard.config.schema import TierConfig
from tierguard.constants import SERVICE_EMAIL, SERVICE_NAME

logger = logging.getLogger(__name__)


class SkipReason(Enum):
    """Why a commit was not made."""

    DISABLED = "disabled"  # git: false in config
    NO_FILES = "no_files"  # Nothing to stage
    NOTHING_STAGED = "nothing_staged"  # Files already committed / unchanged
    DIRTY_STAGING = "dirty_staging"  # Index held unrelated staged work
    NO_REPOSITORY = "no_repository"  # Workspace is not a git repo
    ERROR = "error"  # A git command failed


@dataclass(frozen=True)
class Committed:
    message: str
    files: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Skipped:
    reason: SkipReason
    detail: str = ""


GitCommitResult = Union[Committed, Skipped]


@dataclass(frozen=True)
class LogEntry:
    """One commit in the workspace history."""

    sha: str
    author: str
    date: str  # ISO 8601, author date
    message: str  # subject line


GitLogResult = Union[list[LogEntry], Skipped]

_LOG_FORMAT = "%H%x1f%an%x1f%aI%x1f%s"


def approval_commit_message(files: list[str]) -> str:
    return f"tierguard: locked update: {', '.join(files)}"


def sync_commit_message() -> str:
    return "tierguard: sync tracked files"


def snapshot_commit_message() -> str:
    return "tierguard: initial snapshot"


class GitBridge:
    """Commits tier files in the workspace repository.

    Args:
        root: Workspace root (also the repository work tree).
        timeout: Seconds before any git subprocess is killed.
    """

    def __init__(self, root: str | Path, timeout: int = 30):
        self.root = Path(root)
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Entry points used by the engines
    # ------------------------------------------------------------------

    def commit_snapshot(self, config: TierConfig, files: list[str]) -> GitCommitResult:
        """Commit the initial state of every tracked file."""
        return self._commit(config, files, snapshot_commit_message())

    def commit_approval(self, config: TierConfig, files: list[str]) -> GitCommitResult:
        """Commit locked files changed by a successful approval."""
        return self._commit(config, files, approval_commit_message(files))

    def commit_sync(self, config: TierConfig, files: list[str]) -> GitCommitResult:
        """Commit all files in both tiers after a sync."""
        return self._commit(config, files, sync_commit_message())

    def log(self, config: TierConfig, path: str | None = None, limit: int | None = None) -> GitLogResult:
        """Commit history, newest first, optionally only commits touching ``path``.

        An empty list means the repository has no commits yet.
        """
        if not config.git:
            return Skipped(SkipReason.DISABLED)
        try:
            repo = Repo(self.root)
        except (InvalidGitRepositoryError, NoSuchPathError):
            return Skipped(SkipReason.NO_REPOSITORY, str(self.root))

        try:
            if not repo.head.is_valid():
                return []
            args = ["log", f"--format={_LOG_FORMAT}"]
            if limit:
                args.append(f"--max-count={limit}")
            if path:
                args += ["--", path]
            out = self._git(repo, *args)
        except (GitCommandError, OSError, ValueError) as e:
            logger.warning("git log failed: %s", e)
            return Skipped(SkipReason.ERROR, str(e))
        finally:
            repo.close()

        entries = []
        for line in out.splitlines():
            sha, author, date, message = line.split("\x1f", 3)
            entries.append(LogEntry(sha=sha, author=author, date=date, message=message))
        return entries

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _commit(self, config: TierConfig, files: list[str], message: str) -> GitCommitResult:
        if not config.git:
            return Skipped(SkipReason.DISABLED)
        try:
            repo = Repo(self.root)
        except (InvalidGitRepositoryError, NoSuchPathError):
            return Skipped(SkipReason.NO_REPOSITORY, str(self.root))

        try:
            return self._stage_and_commit(repo, sorted(set(files)), message)
        except (GitCommandError, OSError, ValueError) as e:
            logger.warning("git commit skipped: %s", e)
            return Skipped(SkipReason.ERROR, str(e))
        finally:
            repo.close()

    def _git(self, repo: Repo, *args: str) -> str:
        return repo.git.execute(["git", *args], kill_after_timeout=self.timeout)

    def _stage_and_commit(self, repo: Repo, files: list[str], message: str) -> GitCommitResult:
        # Never absorb someone else's staged work into a tierguard commit
        if self._git(repo, "diff", "--cached", "--name-only").strip():
            return Skipped(SkipReason.DIRTY_STAGING)

        stageable = [f for f in files if self._is_stageable(repo, f)]
        if not stageable:
            return Skipped(SkipReason.NO_FILES)

        # `git add` on a tracked-but-deleted path stages the deletion
        self._git(repo, "add", "--all", "--", *stageable)

        staged = self._git(repo, "diff", "--cached", "--name-only").splitlines()
        if not staged:
            return Skipped(SkipReason.NOTHING_STAGED)

        env = {
            "GIT_AUTHOR_NAME": SERVICE_NAME,
            "GIT_AUTHOR_EMAIL": SERVICE_EMAIL,
            "GIT_COMMITTER_NAME": SERVICE_NAME,
            "GIT_COMMITTER_EMAIL": SERVICE_EMAIL,
        }
        with repo.git.custom_environment(**env):
            self._git(repo, "commit", "--no-verify", "-m", message)
        logger.info("committed %d file(s): %s", len(staged), message)
        return Committed(message=message, files=sorted(staged))

    def _is_stageable(self, repo: Repo, path: str) -> bool:
        """Exists on disk, or is known to git (so a deletion can be staged)."""
        if os.path.lexists(self.root / path):
            return True
        return bool(self._git(repo, "ls-files", "--", path).strip())
