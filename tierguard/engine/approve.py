"""Approve — commit staged changes into the locked tier.

Staging is the proposal. At approval time:
1. Recompute the diff and read every proposed file into memory
2. Hash those exact bytes and compare with the reviewer's hash
3. Run the self-protection checks
4. Snapshot the affected locked files and run any approval policies
5. Write/remove in path order, restoring the snapshot on failure
6. Re-protect the locked tier, re-mirror staging, commit to git

What gets written is the in-memory copy that was hashed, so the writer
cannot swap content between verification and write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from tierguard.audit import AuditLogger
from tierguard.engine.context import load_tier_context
from tierguard.engine.diff import (
    CONTRIBUTING,
    Deleted,
    DiffEngine,
    Unreadable,
    compute_approval_hash,
    unified_diff,
)
from tierguard.engine.policy import (
    ApprovalContext,
    PendingChange,
    Policy,
    deletion_notice,
    enforce_policies,
    validate_policies,
)
from tierguard.engine.self_protection import check_self_protection
from tierguard.engine.staging import write_staging_copy
from tierguard.errors import FileIOError, PartialCommitFailure, PolicyViolationError, StalenessError
from tierguard.models import FileOwnership, Tier
from tierguard.registry import OwnershipRegistry
from tierguard.system.base import SystemOperations, hash_bytes
from tierguard.utils.git_ops import GitBridge, GitCommitResult, SkipReason, Skipped
from tierguard.workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass
class ApprovalResult:
    applied: list[str] = field(default_factory=list)
    """Locked files written (modified or created)."""

    deleted: list[str] = field(default_factory=list)
    """Locked files removed."""

    git_result: GitCommitResult = field(default_factory=lambda: Skipped(SkipReason.DISABLED))

    warnings: list[str] = field(default_factory=list)
    """Post-commit housekeeping that failed (re-protection, staging refresh)."""

    @property
    def changed(self) -> list[str]:
        return sorted(self.applied + self.deleted)


@dataclass(frozen=True)
class _Snapshot:
    existed: bool
    content: bytes = b""
    ownership: FileOwnership | None = None


class ApprovalEngine:
    """Hash-gated commit of staged changes."""

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
        self.locked_ownership = workspace.expected_ownership(Tier.LOCKED)

    def approve(self, approval_hash: str, policies: list[Policy] | None = None) -> ApprovalResult:
        """Commit pending changes if ``approval_hash`` still describes them.

        ``policies`` run after the built-in self-protection checks and
        before anything is written; all of them are evaluated.

        Raises:
            PolicyNameCollision: two policies share a name (checked first).
            PolicyViolationError: a policy blocked the change.
            StalenessError: the hash does not match (nothing written).
            SelfProtectionViolation: the change would break the config.
            FileIOError: a file could not be read before any write.
            PartialCommitFailure: a write failed; rollback was attempted.
        """
        policies = list(policies or [])
        validate_policies(policies)

        ctx = load_tier_context(self.workspace, self.ops)
        registry = OwnershipRegistry.load(
            self.ops, self.workspace.registry_path, owner=self.workspace.state_file_ownership,
        )
        differ = DiffEngine(self.workspace, self.ops)
        diffs = [differ.diff_file(p, registry) for p in ctx.tiers.locked]

        for d in diffs:
            if isinstance(d, Unreadable):
                raise d.cause

        contributing = sorted((d for d in diffs if isinstance(d, CONTRIBUTING)), key=lambda d: d.path)
        if not contributing:
            raise StalenessError(approval_hash, None)

        pending, frozen = self._freeze(contributing)
        actual = compute_approval_hash(frozen)
        if actual != approval_hash:
            self._audit("approve", {"expected": approval_hash, "actual": actual}, success=False)
            raise StalenessError(approval_hash, actual)

        deleted = [d.path for d in contributing if isinstance(d, Deleted)]
        check_self_protection(self.workspace.config_path, pending, deleted, self.ops)

        snapshots = {d.path: self._snapshot(d.path) for d in contributing}
        if policies:
            try:
                enforce_policies(policies, self._policy_context(contributing, pending, snapshots))
            except PolicyViolationError as e:
                self._audit("approve", {
                    "hash": approval_hash,
                    "violations": [{"policy": v.policy, "message": v.message} for v in e.violations],
                }, success=False)
                raise

        self._apply(contributing, pending, snapshots)

        result = ApprovalResult(
            applied=[d.path for d in contributing if not isinstance(d, Deleted)],
            deleted=deleted,
        )
        self._finish(ctx.tiers.locked, result, pending, registry)

        if self.git is not None:
            result.git_result = self.git.commit_approval(ctx.config, result.changed)
        self._audit("approve", {
            "hash": approval_hash,
            "applied": result.applied,
            "deleted": result.deleted,
            "warnings": result.warnings,
        })
        logger.info("approved %d change(s)", len(result.changed))
        return result

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _freeze(self, contributing):
        """Read every proposed file once; rehash from the bytes in hand."""
        pending: dict[str, bytes] = {}
        frozen = []
        for d in contributing:
            if isinstance(d, Deleted):
                frozen.append(d)
                continue
            staging = self.workspace.staging_path(d.path)
            try:
                content = self.ops.read(staging)
            except FileNotFoundError:
                # Staging copy vanished after the diff: the proposal changed
                frozen.append(replace(d, staged_hash=""))
                continue
            except OSError as e:
                raise FileIOError(staging, "read", e)
            pending[d.path] = content
            frozen.append(replace(d, staged_hash=hash_bytes(content)))
        return pending, frozen

    def _snapshot(self, path: str) -> _Snapshot:
        try:
            if not self.ops.exists(path):
                return _Snapshot(existed=False)
            return _Snapshot(
                existed=True,
                content=self.ops.read(path),
                ownership=self.ops.stat(path).ownership,
            )
        except OSError as e:
            raise FileIOError(path, "snapshot", e)

    def _policy_context(self, contributing, pending: dict[str, bytes], snapshots: dict[str, _Snapshot]) -> ApprovalContext:
        ctx: ApprovalContext = {}
        for d in contributing:
            previous = snapshots[d.path].content
            if isinstance(d, Deleted):
                ctx[d.path] = PendingChange(final=b"", diff=deletion_notice(d.path), previous=previous)
            else:
                final = pending[d.path]
                ctx[d.path] = PendingChange(final=final, diff=unified_diff(d.path, previous, final), previous=previous)
        return ctx

    def _apply(self, contributing, pending: dict[str, bytes], snapshots: dict[str, _Snapshot]) -> None:
        done: list[str] = []
        for d in contributing:
            try:
                if isinstance(d, Deleted):
                    self.ops.remove(d.path)
                else:
                    self._write_locked(d.path, pending[d.path])
            except OSError as e:
                reverted, indeterminate = self._rollback(done + [d.path], snapshots)
                self._audit("approve", {
                    "failed": d.path,
                    "error": str(e),
                    "reverted": reverted,
                    "indeterminate": indeterminate,
                }, success=False)
                logger.warning("approval failed at %s: %s", d.path, e)
                raise PartialCommitFailure(d.path, e, reverted, indeterminate) from e
            done.append(d.path)

    def _write_locked(self, path: str, content: bytes) -> None:
        own = self.locked_ownership
        self.ops.write(path, content)
        self.ops.chown(path, own.user, own.group)
        self.ops.chmod(path, own.mode)

    def _rollback(self, touched: list[str], snapshots: dict[str, _Snapshot]):
        """Best-effort restore, newest change first."""
        reverted: list[str] = []
        indeterminate: list[str] = []
        for path in reversed(touched):
            snap = snapshots[path]
            try:
                if snap.existed:
                    self.ops.write(path, snap.content)
                    self.ops.chown(path, snap.ownership.user, snap.ownership.group)
                    self.ops.chmod(path, snap.ownership.mode)
                elif self.ops.exists(path):
                    self.ops.remove(path)
            except OSError as e:
                logger.error("rollback of %s failed: %s", path, e)
                indeterminate.append(path)
                continue
            reverted.append(path)
        return sorted(reverted), sorted(indeterminate)

    def _finish(self, locked: tuple[str, ...], result: ApprovalResult, pending, registry: OwnershipRegistry) -> None:
        """Re-protect the locked tier and re-mirror staging copies."""
        own = self.locked_ownership
        for path in locked:
            try:
                if not self.ops.exists(path):
                    continue
                current = self.ops.stat(path).ownership
                if (current.user, current.group) != (own.user, own.group):
                    self.ops.chown(path, own.user, own.group)
                if current.mode & 0o777 != own.mode:
                    self.ops.chmod(path, own.mode)
            except OSError as e:
                result.warnings.append(f"re-protect {path}: {e}")

        for path in result.applied:
            registry.register(path, Tier.LOCKED, None)
            try:
                write_staging_copy(self.workspace, self.ops, path, pending[path])
            except OSError as e:
                result.warnings.append(f"refresh staging {path}: {e}")
                continue
            registry.mark_staged(path)
        for path in result.deleted:
            registry.mark_staged(path, False)

        try:
            registry.save()
        except FileIOError as e:
            result.warnings.append(str(e))

        for w in result.warnings:
            logger.warning(w)

    def _audit(self, action: str, details: dict, success: bool = True) -> None:
        if self.audit is not None:
            self.audit.log_event(action, str(self.workspace.root), details, success=success)
