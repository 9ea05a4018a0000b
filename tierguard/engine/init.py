"""Init — first-time workspace setup.

Writes a default configuration if none exists, runs a sync (which takes
ownership of every tier file and issues staging copies) and commits an
initial snapshot. Provisioning of the OS principals themselves happens
outside tierguard.
"""

from __future__ import annotations

from dataclasses import dataclass

from tierguard.audit import AuditLogger
from tierguard.config.loader import config_from_dict, dump_config
from tierguard.config.schema import TierConfig
from tierguard.constants import DEFAULT_CONFIG
from tierguard.engine.context import load_tier_context
from tierguard.engine.sync import SyncEngine, SyncResult
from tierguard.errors import FileIOError
from tierguard.system.base import SystemOperations
from tierguard.utils.git_ops import GitBridge, GitCommitResult, SkipReason, Skipped
from tierguard.workspace import Workspace


@dataclass
class InitResult:
    config_created: bool
    sync_result: SyncResult
    git_result: GitCommitResult


def initialize_workspace(
    workspace: Workspace,
    ops: SystemOperations,
    git: GitBridge | None = None,
    config: TierConfig | None = None,
    audit: AuditLogger | None = None,
) -> InitResult:
    """Idempotent workspace setup.

    An existing configuration is never overwritten; ``config`` is only used
    when the file is absent.
    """
    config_created = False
    try:
        if not ops.exists(workspace.config_path):
            config = config or config_from_dict(DEFAULT_CONFIG)
            ops.write(workspace.config_path, dump_config(config).encode())
            config_created = True
    except OSError as e:
        raise FileIOError(workspace.config_path, "write", e)

    sync_result = SyncEngine(workspace, ops, audit=audit).run()

    git_result: GitCommitResult = Skipped(SkipReason.DISABLED)
    if git is not None:
        ctx = load_tier_context(workspace, ops)
        git_result = git.commit_snapshot(ctx.config, ctx.tiers.all_paths())

    if audit is not None:
        audit.log_event("init", str(workspace.root), {"config_created": config_created})
    return InitResult(config_created, sync_result, git_result)
