"""Tier membership edits on a ``TierConfig``.

Pure functions: they return a new configuration and a record of what
changed, and never touch the workspace. Membership is by declared pattern,
so ``docs/*.md`` is one entry whatever it expands to.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from tierguard.config.schema import TierConfig
from tierguard.models import Tier
from tierguard.utils.file_scanner import normalize_path


@dataclass
class TierChange:
    """Outcome of a membership edit."""

    config: TierConfig
    added: list[str] = field(default_factory=list)
    """Patterns that were in no tier before."""

    moved: list[str] = field(default_factory=list)
    """Patterns taken out of the other tier."""

    unchanged: list[str] = field(default_factory=list)
    """Patterns already where they were asked to be."""

    released: list[str] = field(default_factory=list)
    """Patterns removed from every tier."""

    not_tracked: list[str] = field(default_factory=list)
    """Patterns asked to be released that were in no tier."""

    @property
    def changed(self) -> list[str]:
        return self.added + self.moved + self.released


def _other(tier: Tier) -> Tier:
    return Tier.TRACKED if tier is Tier.LOCKED else Tier.LOCKED


def _patterns(config: TierConfig, tier: Tier) -> list[str]:
    return list(getattr(config, tier.value))


def _without(patterns: list[str], pattern: str) -> list[str]:
    return [p for p in patterns if normalize_path(p) != pattern]


def _contains(patterns: list[str], pattern: str) -> bool:
    return any(normalize_path(p) == pattern for p in patterns)


def set_tier(config: TierConfig, patterns: list[str], tier: Tier) -> TierChange:
    """Put each pattern in ``tier``, moving it out of the other tier."""
    target = _patterns(config, tier)
    other = _patterns(config, _other(tier))
    change = TierChange(config=config)

    for pattern in dict.fromkeys(normalize_path(p) for p in patterns):
        if _contains(target, pattern):
            change.unchanged.append(pattern)
            continue
        if _contains(other, pattern):
            other = _without(other, pattern)
            change.moved.append(pattern)
        else:
            change.added.append(pattern)
        target.append(pattern)

    change.config = replace(config, **{tier.value: tuple(target), _other(tier).value: tuple(other)})
    return change


def release_patterns(config: TierConfig, patterns: list[str]) -> TierChange:
    """Remove each pattern from whichever tier declares it."""
    locked = list(config.locked)
    tracked = list(config.tracked)
    change = TierChange(config=config)

    for pattern in dict.fromkeys(normalize_path(p) for p in patterns):
        if _contains(locked, pattern) or _contains(tracked, pattern):
            locked = _without(locked, pattern)
            tracked = _without(tracked, pattern)
            change.released.append(pattern)
        else:
            change.not_tracked.append(pattern)

    change.config = replace(config, locked=tuple(locked), tracked=tuple(tracked))
    return change
