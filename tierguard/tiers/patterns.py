"""PatternResolver — expand declared tier patterns into concrete paths.

Literal paths are members even if the file does not exist yet; glob
patterns are expanded against the live workspace at call time. Results are
sorted, because the approval hash depends on a stable order.
"""

from __future__ import annotations

from dataclasses import dataclass

from tierguard.config.schema import TierConfig
from tierguard.constants import CONFIG_FILENAME
from tierguard.errors import PatternConflictError
from tierguard.models import Tier
from tierguard.system.base import SystemOperations
from tierguard.utils.file_scanner import is_glob, normalize_path


@dataclass(frozen=True)
class ResolvedTiers:
    """Concrete, sorted, disjoint file lists for both tiers."""

    locked: tuple[str, ...]
    tracked: tuple[str, ...]

    def tier_of(self, path: str) -> Tier | None:
        if path in self.locked:
            return Tier.LOCKED
        if path in self.tracked:
            return Tier.TRACKED
        return None

    def all_paths(self) -> list[str]:
        return sorted(self.locked + self.tracked)

    def items(self) -> list[tuple[str, Tier]]:
        """(path, tier) pairs, locked tier first."""
        return [(p, Tier.LOCKED) for p in self.locked] + [(p, Tier.TRACKED) for p in self.tracked]


class PatternResolver:
    """Resolves a ``TierConfig`` against a workspace."""

    def __init__(self, ops: SystemOperations, config_path: str = CONFIG_FILENAME):
        self.ops = ops
        self.config_path = normalize_path(config_path)

    def expand(self, patterns: tuple[str, ...] | list[str]) -> list[str]:
        """Expand one tier's patterns into a de-duplicated, sorted list.

        Raises:
            OSError: if the workspace cannot be listed.
        """
        files: set[str] = set()
        for pattern in patterns:
            if is_glob(pattern):
                files.update(self.ops.expand(pattern))
            else:
                files.add(normalize_path(pattern))
        return sorted(files)

    def resolve(self, config: TierConfig) -> ResolvedTiers:
        """Resolve both tiers, injecting the config file into the locked tier.

        Raises:
            PatternConflictError: if any path lands in both tiers.
        """
        locked = set(self.expand(config.locked))
        locked.add(self.config_path)
        tracked = set(self.expand(config.tracked))

        overlap = locked & tracked
        if overlap:
            raise PatternConflictError(sorted(overlap))

        return ResolvedTiers(locked=tuple(sorted(locked)), tracked=tuple(sorted(tracked)))
