"""Per-invocation context: configuration plus freshly resolved tiers."""

from __future__ import annotations

from dataclasses import dataclass

from tierguard.config.loader import load_config
from tierguard.config.schema import TierConfig
from tierguard.errors import FileIOError
from tierguard.system.base import SystemOperations
from tierguard.tiers.patterns import PatternResolver, ResolvedTiers
from tierguard.workspace import Workspace


@dataclass(frozen=True)
class TierContext:
    config: TierConfig
    tiers: ResolvedTiers


def load_tier_context(workspace: Workspace, ops: SystemOperations) -> TierContext:
    """Load the configuration and resolve both tiers against live state.

    Raises:
        ConfigError, PatternConflictError, FileIOError
    """
    config = load_config(ops, workspace.config_path)
    resolver = PatternResolver(ops, workspace.config_path)
    try:
        tiers = resolver.resolve(config)
    except OSError as e:
        raise FileIOError(str(workspace.root), "expand", e)
    return TierContext(config=config, tiers=tiers)
