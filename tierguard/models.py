"""Core data models shared by the engines."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Tier(Enum):
    """Protection tier a file belongs to."""

    LOCKED = "locked"  # Writes go through owner approval
    TRACKED = "tracked"  # Writer edits freely, ownership is enforced


@dataclass(frozen=True)
class FileOwnership:
    """OS-level owner, group and permission bits of a file."""

    user: str
    group: str
    mode: int

    @property
    def mode_str(self) -> str:
        return f"{self.mode & 0o777:03o}"

    def __str__(self) -> str:
        return f"{self.user}:{self.group} {self.mode_str}"


@dataclass(frozen=True)
class FileStat:
    """Result of ``SystemOperations.stat``."""

    path: str
    ownership: FileOwnership
    size: int = 0


@dataclass(frozen=True)
class TrackedFile:
    """A resolved path with the ownership its tier requires.

    Recomputed on every invocation, never persisted.
    """

    path: str
    tier: Tier
    expected: FileOwnership
