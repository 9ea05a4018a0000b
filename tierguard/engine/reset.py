"""Reset — discard pending proposals by re-mirroring the locked tier.

Staging is the proposal, so resetting staging to the current locked
content throws away every pending change: modified copies are
overwritten, deleted copies come back, and copies proposing new locked
files are removed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from tierguard.audit import AuditLogger
from tierguard.engine.context import load_tier_context
from tierguard.engine.diff import Created, Deleted, DiffEngine, Modified, Unreadable
from tierguard.engine.staging import write_staging_copy
from tierguard.errors import FileIOError
from tierguard.registry import OwnershipRegistry
from tierguard.system.base import SystemOperations
from tierguard.utils.file_scanner import normalize_path
from tierguard.workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass
class ResetResult:
    reset_files: list[str] = field(default_factory=list)


class ResetEngine:
    """Overwrites staging copies with current locked-tier content."""

    def __init__(self, workspace: Workspace, ops: SystemOperations, audit: AuditLogger | None = None):
        self.workspace = workspace
        self.ops = ops
        self.audit = audit

    def run(self, files: list[str] | None = None) -> ResetResult:
        """Reset every pending proposal, or only those for ``files``.

        Raises:
            FileIOError: a staging copy could not be rewritten.
        """
        ctx = load_tier_context(self.workspace, self.ops)
        registry = OwnershipRegistry.load(
            self.ops, self.workspace.registry_path, owner=self.workspace.state_file_ownership,
        )
        differ = DiffEngine(self.workspace, self.ops)
        wanted = {normalize_path(f) for f in files} if files else None

        result = ResetResult()
        for path in ctx.tiers.locked:
            if wanted is not None and path not in wanted:
                continue
            d = differ.diff_file(path, registry)
            if isinstance(d, Unreadable):
                raise d.cause
            if isinstance(d, (Modified, Deleted)):
                self._mirror(path)
                registry.mark_staged(path)
                result.reset_files.append(path)
            elif isinstance(d, Created):
                self._remove_staging(path)
                result.reset_files.append(path)

        registry.save()
        if result.reset_files and self.audit is not None:
            self.audit.log_event("reset", str(self.workspace.root), {"files": result.reset_files})
        logger.info("reset %d staging copies", len(result.reset_files))
        return result

    def _mirror(self, path: str) -> None:
        try:
            write_staging_copy(self.workspace, self.ops, path, self.ops.read(path))
        except OSError as e:
            raise FileIOError(self.workspace.staging_path(path), "reset", e)

    def _remove_staging(self, path: str) -> None:
        staging = self.workspace.staging_path(path)
        try:
            self.ops.remove(staging)
        except OSError as e:
            raise FileIOError(staging, "remove", e)
