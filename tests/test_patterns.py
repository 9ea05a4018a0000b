"""Tests for tier pattern resolution."""

import pytest

from tierguard.config.schema import TierConfig
from tierguard.errors import PatternConflictError
from tierguard.models import Tier
from tierguard.system.memory import InMemorySystemOps
from tierguard.tiers.patterns import PatternResolver


def _ops(*paths):
    ops = InMemorySystemOps()
    for p in paths:
        ops.add_file(p, "x")
    return ops


def test_literals_pass_through_even_if_absent():
    resolver = PatternResolver(_ops())
    tiers = resolver.resolve(TierConfig(locked=("A.md",), tracked=("notes.txt",)))
    assert tiers.locked == ("A.md", "tierguard.yaml")
    assert tiers.tracked == ("notes.txt",)


def test_globs_expand_against_workspace():
    ops = _ops("docs/a.md", "docs/b.md", "docs/sub/c.md", "src/x.py")
    tiers = PatternResolver(ops).resolve(TierConfig(locked=("docs/*.md",), tracked=("src/**",)))
    assert tiers.locked == ("docs/a.md", "docs/b.md", "tierguard.yaml")
    assert tiers.tracked == ("src/x.py",)


def test_globs_see_files_created_later():
    ops = _ops("docs/a.md")
    resolver = PatternResolver(ops)
    config = TierConfig(locked=("docs/*.md",))
    assert "docs/new.md" not in resolver.resolve(config).locked

    ops.add_file("docs/new.md", "x")
    assert "docs/new.md" in resolver.resolve(config).locked


def test_state_dirs_never_matched():
    ops = _ops(".tierguard/staging/A.md", ".git/HEAD", "A.md")
    tiers = PatternResolver(ops).resolve(TierConfig(tracked=("**",)))
    assert tiers.tracked == ("A.md",)


def test_output_is_deduplicated_and_sorted():
    ops = _ops("b.md", "a.md")
    tiers = PatternResolver(ops).resolve(TierConfig(locked=("*.md", "a.md", "./b.md")))
    assert tiers.locked == ("a.md", "b.md", "tierguard.yaml")


def test_config_path_always_locked():
    tiers = PatternResolver(_ops(), "conf/tierguard.yaml").resolve(TierConfig())
    assert tiers.locked == ("conf/tierguard.yaml",)


def test_overlap_is_a_conflict():
    ops = _ops("docs/a.md", "docs/b.md")
    with pytest.raises(PatternConflictError) as exc:
        PatternResolver(ops).resolve(TierConfig(locked=("docs/a.md",), tracked=("docs/*.md",)))
    assert exc.value.paths == ["docs/a.md"]


def test_config_in_tracked_tier_is_a_conflict():
    with pytest.raises(PatternConflictError):
        PatternResolver(_ops("tierguard.yaml")).resolve(TierConfig(tracked=("*.yaml",)))


def test_tier_of_and_all_paths():
    tiers = PatternResolver(_ops()).resolve(TierConfig(locked=("A.md",), tracked=("B.md",)))
    assert tiers.tier_of("A.md") is Tier.LOCKED
    assert tiers.tier_of("B.md") is Tier.TRACKED
    assert tiers.tier_of("C.md") is None
    assert tiers.all_paths() == ["A.md", "B.md", "tierguard.yaml"]
