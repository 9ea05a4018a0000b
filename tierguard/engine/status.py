"""Status — compare actual ownership/mode of every tier file with its tier.

Drift happens when:
1. A file's owner differs from its tier's principal
2. A file's group differs from the tierguard group
3. A file's permission bits differ from the tier's mode

Status never mutates anything and needs no elevated privilege. A file
that cannot be inspected becomes an ``ErrorStatus`` entry; it does not stop
the rest of the report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from tierguard.engine.context import load_tier_context
from tierguard.errors import FileIOError
from tierguard.models import FileOwnership, Tier, TrackedFile
from tierguard.system.base import SystemOperations
from tierguard.workspace import Workspace


class DriftKind:
    WRONG_OWNER = "wrong_owner"
    WRONG_GROUP = "wrong_group"
    WRONG_MODE = "wrong_mode"


@dataclass(frozen=True)
class DriftIssue:
    kind: str
    expected: str
    actual: str


@dataclass(frozen=True)
class OkStatus:
    file: TrackedFile
    actual: FileOwnership

    @property
    def path(self) -> str:
        return self.file.path


@dataclass(frozen=True)
class DriftedStatus:
    file: TrackedFile
    actual: FileOwnership
    issues: tuple[DriftIssue, ...]

    @property
    def path(self) -> str:
        return self.file.path

    @property
    def needs_chown(self) -> bool:
        return any(i.kind in (DriftKind.WRONG_OWNER, DriftKind.WRONG_GROUP) for i in self.issues)

    @property
    def needs_chmod(self) -> bool:
        return any(i.kind == DriftKind.WRONG_MODE for i in self.issues)


@dataclass(frozen=True)
class MissingStatus:
    path: str
    tier: Tier


@dataclass(frozen=True)
class ErrorStatus:
    path: str
    tier: Tier
    cause: FileIOError


FileStatus = Union[OkStatus, DriftedStatus, MissingStatus, ErrorStatus]


def format_issue(issue: DriftIssue) -> str:
    """Human-readable description of a drift issue."""
    what = {
        DriftKind.WRONG_OWNER: "owner",
        DriftKind.WRONG_GROUP: "group",
        DriftKind.WRONG_MODE: "mode",
    }[issue.kind]
    return f"{what} is {issue.actual}, expected {issue.expected}"


def compare_ownership(actual: FileOwnership, expected: FileOwnership) -> tuple[DriftIssue, ...]:
    issues = []
    if actual.user != expected.user:
        issues.append(DriftIssue(DriftKind.WRONG_OWNER, expected.user, actual.user))
    if actual.group != expected.group:
        issues.append(DriftIssue(DriftKind.WRONG_GROUP, expected.group, actual.group))
    if actual.mode & 0o777 != expected.mode & 0o777:
        issues.append(DriftIssue(DriftKind.WRONG_MODE, expected.mode_str, actual.mode_str))
    return tuple(issues)


def check_file(file: TrackedFile, ops: SystemOperations) -> FileStatus:
    """Classify a single tracked file."""
    try:
        st = ops.stat(file.path)
    except FileNotFoundError:
        return MissingStatus(file.path, file.tier)
    except OSError as e:
        return ErrorStatus(file.path, file.tier, FileIOError(file.path, "stat", e))

    issues = compare_ownership(st.ownership, file.expected)
    if issues:
        return DriftedStatus(file, st.ownership, issues)
    return OkStatus(file, st.ownership)


@dataclass
class StatusReport:
    """Protection state of every resolved file, per tier."""

    locked: list[FileStatus] = field(default_factory=list)
    tracked: list[FileStatus] = field(default_factory=list)

    @property
    def all(self) -> list[FileStatus]:
        return self.locked + self.tracked

    @property
    def issues(self) -> list[FileStatus]:
        """Every non-ok entry from both tiers."""
        return [s for s in self.all if not isinstance(s, OkStatus)]

    @property
    def drifted(self) -> list[DriftedStatus]:
        return [s for s in self.all if isinstance(s, DriftedStatus)]

    @property
    def is_clean(self) -> bool:
        return not self.issues

    def summary(self) -> str:
        ok = len(self.all) - len(self.issues)
        return f"{ok}/{len(self.all)} files ok, {len(self.drifted)} drifted"


class StatusEngine:
    """Reports ownership/mode drift across both tiers."""

    def __init__(self, workspace: Workspace, ops: SystemOperations):
        self.workspace = workspace
        self.ops = ops

    def tracked_files(self, paths, tier: Tier) -> list[TrackedFile]:
        expected = self.workspace.expected_ownership(tier)
        return [TrackedFile(path=p, tier=tier, expected=expected) for p in paths]

    def run(self) -> StatusReport:
        ctx = load_tier_context(self.workspace, self.ops)
        return StatusReport(
            locked=[check_file(f, self.ops) for f in self.tracked_files(ctx.tiers.locked, Tier.LOCKED)],
            tracked=[check_file(f, self.ops) for f in self.tracked_files(ctx.tiers.tracked, Tier.TRACKED)],
        )
