"""Approval policies — caller-supplied gates evaluated before any write.

A policy is a named check over the frozen approval context. It returns
``None`` to allow the change or a message to block it. Every policy runs,
so one rejected approval reports every violation at once.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Callable, Optional

from tierguard.errors import PolicyNameCollision, PolicyViolationError


@dataclass(frozen=True)
class PendingChange:
    """One file as a policy sees it."""

    final: bytes
    """Content that would be written (empty for a deletion)."""

    diff: str
    """Unified diff from the current content, or a deletion notice."""

    previous: bytes
    """Current locked content (empty for a new file)."""


ApprovalContext = dict[str, PendingChange]


@dataclass(frozen=True)
class Policy:
    name: str
    check: Callable[[ApprovalContext], Optional[str]]


@dataclass(frozen=True)
class PolicyViolation:
    policy: str
    message: str


def validate_policies(policies: list[Policy]) -> None:
    """Raises ``PolicyNameCollision`` if two policies share a name."""
    counts = Counter(p.name for p in policies)
    duplicates = [name for name, n in counts.items() if n > 1]
    if duplicates:
        raise PolicyNameCollision(duplicates)


def evaluate_policies(policies: list[Policy], ctx: ApprovalContext) -> list[PolicyViolation]:
    """Run every policy, in order, and collect the violations."""
    violations = []
    for policy in policies:
        message = policy.check(ctx)
        if message is not None:
            violations.append(PolicyViolation(policy.name, message))
    return violations


def enforce_policies(policies: list[Policy], ctx: ApprovalContext) -> None:
    """Raises ``PolicyViolationError`` listing every violation, if any."""
    violations = evaluate_policies(policies, ctx)
    if violations:
        raise PolicyViolationError(violations)


def deletion_notice(path: str) -> str:
    return f"File deleted: {path}"
