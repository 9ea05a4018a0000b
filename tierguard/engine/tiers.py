"""Tier membership commands — protect, track and release.

Each command edits the configuration file directly and then syncs, so the
change takes effect at once. Writing the locked configuration outside the
staging workflow is an approver operation: run it with the approver's
privileges. A pending proposal against the configuration is discarded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tierguard.audit import AuditLogger
from tierguard.config.loader import config_from_dict, dump_config, load_config
from tierguard.engine.staging import write_staging_copy
from tierguard.engine.sync import SyncEngine, SyncResult
from tierguard.errors import FileIOError
from tierguard.models import Tier
from tierguard.system.base import SystemOperations
from tierguard.tiers.membership import TierChange, release_patterns, set_tier
from tierguard.tiers.patterns import PatternResolver
from tierguard.utils.git_ops import GitBridge
from tierguard.workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass
class TierUpdateResult:
    change: TierChange
    sync_result: SyncResult | None = None
    """None when nothing changed and no sync was needed."""


class TierEditor:
    """Moves patterns between tiers and applies the result."""

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

    def protect(self, patterns: list[str]) -> TierUpdateResult:
        """Move patterns into the locked tier."""
        return self._update("protect", lambda c: set_tier(c, patterns, Tier.LOCKED))

    def track(self, patterns: list[str]) -> TierUpdateResult:
        """Move patterns into the tracked tier."""
        return self._update("track", lambda c: set_tier(c, patterns, Tier.TRACKED))

    def release(self, patterns: list[str]) -> TierUpdateResult:
        """Remove patterns from both tiers; sync hands the files back."""
        return self._update("release", lambda c: release_patterns(c, patterns))

    def _update(self, action: str, edit) -> TierUpdateResult:
        """Validate, write, then sync.

        Raises:
            ConfigError: the edited configuration is invalid.
            PatternConflictError: a file would land in both tiers.
            FileIOError: the configuration could not be written.
            PartialCommitFailure: the follow-up sync failed.
        """
        path = self.workspace.config_path
        change = edit(load_config(self.ops, path))
        if not change.changed:
            return TierUpdateResult(change)

        # Fails here, before anything is written
        config = config_from_dict(change.config.to_dict(), path)
        try:
            PatternResolver(self.ops, path).resolve(config)
        except OSError as e:
            raise FileIOError(str(self.workspace.root), "expand", e)

        content = dump_config(config).encode()
        try:
            self.ops.write(path, content)
        except OSError as e:
            raise FileIOError(path, "write", e)
        # The old staging copy would read as a proposal to undo this edit
        staging = self.workspace.staging_path(path)
        try:
            if self.ops.exists(staging):
                write_staging_copy(self.workspace, self.ops, path, content)
        except OSError as e:
            raise FileIOError(staging, "write", e)
        logger.info("%s: %s", action, ", ".join(change.changed))
        if self.audit is not None:
            self.audit.log_event(action, str(self.workspace.root), {
                "added": change.added,
                "moved": change.moved,
                "released": change.released,
            })

        sync_result = SyncEngine(self.workspace, self.ops, git=self.git, audit=self.audit).run()
        return TierUpdateResult(change, sync_result)
