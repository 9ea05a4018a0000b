"""Sync — bring every tier file back to its required ownership and mode.

Besides correcting drift, sync:
- records the original ownership of files entering a tier
- releases files removed from the configuration back to that ownership
- keeps the staging directories owned by the writer
- issues a staging copy for each locked file that never had one

On a clean workspace a second run performs no mutations at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from tierguard.audit import AuditLogger
from tierguard.engine.context import load_tier_context
from tierguard.engine.staging import ensure_staging_dirs, write_staging_copy
from tierguard.engine.status import (
    DriftedStatus,
    ErrorStatus,
    MissingStatus,
    check_file,
    compare_ownership,
)
from tierguard.errors import FileIOError, PartialCommitFailure
from tierguard.models import FileOwnership, Tier, TrackedFile
from tierguard.registry import OwnershipRegistry
from tierguard.system.base import SystemOperations
from tierguard.utils.git_ops import GitBridge, GitCommitResult, SkipReason, Skipped
from tierguard.workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    corrected: list[str] = field(default_factory=list)
    """Files whose ownership or mode was fixed."""

    released: list[str] = field(default_factory=list)
    """Files handed back to their original ownership."""

    staged: list[str] = field(default_factory=list)
    """Locked files that received a fresh staging copy."""

    git_result: GitCommitResult = field(default_factory=lambda: Skipped(SkipReason.DISABLED))

    @property
    def changed(self) -> bool:
        return bool(self.corrected or self.released or self.staged)


class SyncEngine:
    """Reconciles ownership/mode across both tiers."""

    def __init__(
        self,
        workspace: Workspace,
        ops: SystemOperations,
        git: GitBridge | None = None,
        audit: AuditLogger | None = None,
    ):
        self.workspace = workspace
        self.ops = ops
        self.git = git
        self.audit = audit

    def run(self) -> SyncResult:
        """Fix drift, release orphans, seed staging, commit.

        Raises:
            PartialCommitFailure: a correction failed; files already fixed
                are listed in ``completed`` and the failing file is
                ``indeterminate``.
        """
        ctx = load_tier_context(self.workspace, self.ops)
        registry = OwnershipRegistry.load(
            self.ops, self.workspace.registry_path, owner=self.workspace.state_file_ownership,
        )
        result = SyncResult()

        try:
            self._release_orphans(ctx.tiers.all_paths(), registry, result)
            self._correct(ctx.tiers.items(), registry, result)
            self._seed_staging(ctx.tiers.locked, registry, result)
        except _SyncStepFailed as failed:
            try:
                registry.save()
            except FileIOError as e:
                logger.error("registry not saved after failed sync: %s", e)
            done = sorted(set(result.corrected + result.released + result.staged))
            self._audit({"failed": failed.path, "error": str(failed.cause), "completed": done}, success=False)
            raise PartialCommitFailure(
                failed.path, failed.cause, indeterminate=(failed.path,), completed=done,
            ) from failed.cause

        registry.save()

        if self.git is not None:
            result.git_result = self.git.commit_sync(ctx.config, ctx.tiers.all_paths())
        if result.changed:
            self._audit({
                "corrected": result.corrected,
                "released": result.released,
                "staged": result.staged,
            })
        return result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _release_orphans(self, managed: list[str], registry: OwnershipRegistry, result: SyncResult) -> None:
        for path in registry.find_orphaned(managed):
            entry = registry.get(path)
            staging = self.workspace.staging_path(path)
            if entry.tier is Tier.LOCKED and self._exists(staging):
                self._step(path, self.ops.remove, staging)

            original = entry.original.to_ownership() if entry.original else None
            if original is not None and self._exists(path):
                current = self._stat(path)
                enforced = self.workspace.expected_ownership(entry.tier)
                # Only hand back what tierguard still holds
                if not compare_ownership(current, enforced):
                    self._apply_ownership(path, current, original)
                    result.released.append(path)
                    logger.info("released %s to %s", path, original)
            registry.unregister(path)

    def _correct(self, items: list[tuple[str, Tier]], registry: OwnershipRegistry, result: SyncResult) -> None:
        for path, tier in items:
            expected = self.workspace.expected_ownership(tier)
            status = check_file(TrackedFile(path, tier, expected), self.ops)
            if isinstance(status, ErrorStatus):
                raise _SyncStepFailed(path, status.cause.cause)
            if isinstance(status, MissingStatus):
                continue  # nothing to protect yet

            previous = registry.get(path)
            if previous is not None and previous.tier is Tier.LOCKED and tier is Tier.TRACKED:
                staging = self.workspace.staging_path(path)
                if self._exists(staging):
                    self._step(staging, self.ops.remove, staging)

            # Capture before correcting: this is the pre-protection state
            registry.register(path, tier, status.actual)
            if isinstance(status, DriftedStatus):
                self._apply_ownership(path, status.actual, expected)
                result.corrected.append(path)

    def _seed_staging(self, locked: tuple[str, ...], registry: OwnershipRegistry, result: SyncResult) -> None:
        self._step(self.workspace.staging_dir, ensure_staging_dirs, self.workspace, self.ops)
        for path in locked:
            # A staged file without its copy is a pending deletion; leave it
            if registry.is_staged(path) or not self._exists(path):
                continue
            staging = self.workspace.staging_path(path)
            if not self._exists(staging):
                content = self._step(path, self.ops.read, path)
                self._step(staging, write_staging_copy, self.workspace, self.ops, path, content)
                result.staged.append(path)
            registry.mark_staged(path)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply_ownership(self, path: str, current: FileOwnership, target: FileOwnership) -> None:
        """chown first (needs privilege), then chmod."""
        if (current.user, current.group) != (target.user, target.group):
            self._step(path, self.ops.chown, path, target.user, target.group)
        if current.mode & 0o777 != target.mode & 0o777:
            self._step(path, self.ops.chmod, path, target.mode)

    def _step(self, path: str, fn, *args):
        try:
            return fn(*args)
        except OSError as e:
            raise _SyncStepFailed(path, e)

    def _exists(self, path: str) -> bool:
        return self._step(path, self.ops.exists, path)

    def _stat(self, path: str) -> FileOwnership:
        return self._step(path, self.ops.stat, path).ownership

    def _audit(self, details: dict, success: bool = True) -> None:
        if self.audit is not None:
            self.audit.log_event("sync", str(self.workspace.root), details, success=success)


class _SyncStepFailed(Exception):
    def __init__(self, path: str, cause: OSError):
        super().__init__(f"{path}: {cause}")
        self.path = path
        self.cause = cause
