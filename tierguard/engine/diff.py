"""Diff — compare locked-tier files with their staging copies.

Staging is the proposal: whatever differs between a locked file and its
staging copy is what an approval would commit. The approval hash summarises
every pending change so that a commit can prove it applies exactly what was
reviewed.
"""

from __future__ import annotations

import difflib
import hashlib
from dataclasses import dataclass, field
from typing import Union

from tierguard.engine.context import load_tier_context
from tierguard.errors import FileIOError
from tierguard.registry import OwnershipRegistry
from tierguard.system.base import SystemOperations, hash_bytes
from tierguard.utils.file_scanner import normalize_path
from tierguard.workspace import Workspace

# Reserved marker hashed in place of content for deletions
DELETION_SENTINEL = "\x00tierguard:deleted\x00"


@dataclass(frozen=True)
class Modified:
    path: str
    unified_diff: str
    locked_hash: str
    staged_hash: str


@dataclass(frozen=True)
class Created:
    """Locked file absent, staging copy present: proposal to create it."""

    path: str
    unified_diff: str
    staged_hash: str


@dataclass(frozen=True)
class Deleted:
    """A previously issued staging copy was removed: proposal to delete."""

    path: str
    locked_hash: str


@dataclass(frozen=True)
class Unchanged:
    path: str
    hash: str


@dataclass(frozen=True)
class MissingStaging:
    """No staging copy, and none was ever issued (or the file is absent)."""

    path: str


@dataclass(frozen=True)
class Unreadable:
    path: str
    cause: FileIOError


FileDiff = Union[Modified, Created, Deleted, Unchanged, MissingStaging, Unreadable]

CONTRIBUTING = (Modified, Created, Deleted)


def diff_kind(d: FileDiff) -> str:
    return type(d).__name__.lower()


def compute_approval_hash(diffs: list[FileDiff]) -> str:
    """Deterministic SHA-256 over every contributing change, sorted by path.

    Deletions hash a reserved sentinel plus the locked file's pre-deletion
    hash, so deleting the same path at different content gives different
    hashes.
    """
    h = hashlib.sha256()
    for d in sorted((d for d in diffs if isinstance(d, CONTRIBUTING)), key=lambda d: d.path):
        if isinstance(d, Deleted):
            token = f"{DELETION_SENTINEL}{d.locked_hash}"
        else:
            token = d.staged_hash
        h.update(f"{d.path}\0{diff_kind(d)}\0{token}\0".encode())
    return h.hexdigest()


def unified_diff(path: str, before: bytes, after: bytes) -> str:
    """Unified diff with ``a/`` and ``b/`` headers, git style."""
    a = before.decode("utf-8", errors="replace").splitlines(keepends=True)
    b = after.decode("utf-8", errors="replace").splitlines(keepends=True)
    lines = []
    for line in difflib.unified_diff(a, b, fromfile=f"a/{path}", tofile=f"b/{path}"):
        if line.endswith("\n"):
            lines.append(line)
        else:
            lines.append(line + "\n\\ No newline at end of file\n")
    return "".join(lines)


@dataclass
class DiffReport:
    files: list[FileDiff] = field(default_factory=list)
    approval_hash: str | None = None

    @property
    def contributing(self) -> list[FileDiff]:
        return [d for d in self.files if isinstance(d, CONTRIBUTING)]

    @property
    def errors(self) -> list[Unreadable]:
        return [d for d in self.files if isinstance(d, Unreadable)]

    @property
    def has_changes(self) -> bool:
        return bool(self.contributing)


class DiffEngine:
    """Compares staging copies against locked-tier originals. Read-only."""

    def __init__(self, workspace: Workspace, ops: SystemOperations):
        self.workspace = workspace
        self.ops = ops

    def run(self, files: list[str] | None = None) -> DiffReport:
        """Diff every locked file (or just ``files``).

        The approval hash is only produced when there is at least one change
        and every file could be read.
        """
        ctx = load_tier_context(self.workspace, self.ops)
        registry = OwnershipRegistry.load(self.ops, self.workspace.registry_path)

        paths = list(ctx.tiers.locked)
        if files:
            wanted = {normalize_path(f) for f in files}
            paths = [p for p in paths if p in wanted]

        report = DiffReport(files=[self.diff_file(p, registry) for p in paths])
        if report.has_changes and not report.errors:
            report.approval_hash = compute_approval_hash(report.files)
        return report

    def diff_file(self, path: str, registry: OwnershipRegistry) -> FileDiff:
        staging = self.workspace.staging_path(path)
        try:
            return self._classify(path, staging, registry)
        except FileIOError as e:
            return Unreadable(path, e)

    def _classify(self, path: str, staging: str, registry: OwnershipRegistry) -> FileDiff:
        locked_exists = self._exists(path)
        staged_exists = self._exists(staging)

        if locked_exists and not staged_exists:
            if registry.is_staged(path):
                return Deleted(path, self._read_hash(path))
            return MissingStaging(path)
        if not locked_exists and not staged_exists:
            return MissingStaging(path)
        if not locked_exists:
            content = self._read(staging)
            return Created(path, unified_diff(path, b"", content), self._hash(content))

        locked = self._read(path)
        staged = self._read(staging)
        locked_hash, staged_hash = self._hash(locked), self._hash(staged)
        if locked_hash == staged_hash:
            return Unchanged(path, locked_hash)
        return Modified(path, unified_diff(path, locked, staged), locked_hash, staged_hash)

    def _exists(self, path: str) -> bool:
        try:
            return self.ops.exists(path)
        except OSError as e:
            raise FileIOError(path, "exists", e)

    def _read(self, path: str) -> bytes:
        try:
            return self.ops.read(path)
        except OSError as e:
            raise FileIOError(path, "read", e)

    def _read_hash(self, path: str) -> str:
        try:
            return self.ops.hash(path)
        except OSError as e:
            raise FileIOError(path, "hash", e)

    @staticmethod
    def _hash(content: bytes) -> str:
        return hash_bytes(content)
