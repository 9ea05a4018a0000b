"""SystemOperations — abstraction over OS-level file operations.

All paths are relative to the workspace root the instance is bound to.
Failures are raised as the standard ``OSError`` family
(``FileNotFoundError``, ``PermissionError``, ...); engines decide how to
classify them. Symbolic links are never followed.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from pathlib import Path

from tierguard.models import FileStat
from tierguard.utils.file_scanner import match_glob, normalize_path


def hash_bytes(data: bytes) -> str:
    """SHA-256 hex digest, the content hash used everywhere."""
    return hashlib.sha256(data).hexdigest()


class SystemOperations(ABC):
    """Primitive filesystem and ownership operations."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    @abstractmethod
    def stat(self, path: str) -> FileStat:
        """Owner, group and mode of a file."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """True if ``path`` exists as a regular file."""

    @abstractmethod
    def read(self, path: str) -> bytes:
        """Full file content."""

    @abstractmethod
    def write(self, path: str, data: bytes) -> None:
        """Write content, creating parent directories.

        An existing file keeps its owner, group and mode.
        """

    @abstractmethod
    def remove(self, path: str) -> None:
        """Delete a file."""

    @abstractmethod
    def make_dir(self, path: str) -> list[str]:
        """Create a directory and any missing parents.

        Returns the directories actually created, outermost first; an
        existing directory is left alone.
        """

    @abstractmethod
    def stat_dir(self, path: str) -> FileStat:
        """Owner, group and mode of a directory."""

    @abstractmethod
    def chown(self, path: str, user: str, group: str) -> None:
        """Change owner and group of a file or directory. Does not touch the mode."""

    @abstractmethod
    def chmod(self, path: str, mode: int) -> None:
        """Change permission bits of a file or directory."""

    @abstractmethod
    def list_files(self) -> list[str]:
        """Every regular file in the workspace outside skipped directories."""

    def hash(self, path: str) -> str:
        """SHA-256 of the file content."""
        return hash_bytes(self.read(path))

    def expand(self, pattern: str) -> list[str]:
        """Expand a glob pattern against the live workspace, sorted."""
        pattern = normalize_path(pattern)
        return sorted(p for p in self.list_files() if match_glob(pattern, p))
