"""Error taxonomy.

Read-only engines (status, diff) turn per-file failures into result entries.
Mutating engines (approve, sync) raise, after attempting rollback where it
applies. Version-control failures never surface here: they come back as a
``Skipped`` git result.
"""

from __future__ import annotations


class TierguardError(Exception):
    """Base class for every error raised by tierguard."""


class ConfigError(TierguardError):
    """The configuration file is missing, malformed, or fails validation."""

    def __init__(self, message: str, issues: list[str] | None = None):
        self.issues = list(issues or [])
        if self.issues:
            message = f"{message}: " + "; ".join(self.issues)
        super().__init__(message)


class PatternConflictError(TierguardError):
    """One or more resolved paths are claimed by both tiers."""

    def __init__(self, paths: list[str]):
        self.paths = sorted(paths)
        super().__init__(
            "paths claimed by both locked and tracked tiers: " + ", ".join(self.paths)
        )


class FileIOError(TierguardError):
    """A filesystem operation failed. Carries the underlying ``OSError``."""

    def __init__(self, path: str, operation: str, cause: BaseException):
        self.path = path
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} {path}: {cause}")


class StalenessError(TierguardError):
    """The supplied approval hash no longer matches the pending changes."""

    def __init__(self, expected: str, actual: str | None):
        self.expected = expected
        self.actual = actual
        if actual is None:
            msg = f"no pending changes; hash {expected} is stale"
        else:
            msg = f"approval hash {expected} does not match current changes ({actual})"
        super().__init__(msg)


class SelfProtectionViolation(TierguardError):
    """The change would delete or corrupt tierguard's own configuration."""


class PartialCommitFailure(TierguardError):
    """A write/removal failed part-way through a mutating operation.

    ``reverted`` lists files restored to their pre-operation state,
    ``indeterminate`` lists files whose state could not be guaranteed and
    ``completed`` lists files left in their intended final state.
    """

    def __init__(
        self,
        path: str,
        cause: BaseException,
        reverted: list[str] | tuple[str, ...] = (),
        indeterminate: list[str] | tuple[str, ...] = (),
        completed: list[str] | tuple[str, ...] = (),
    ):
        self.path = path
        self.cause = cause
        self.reverted = tuple(reverted)
        self.indeterminate = tuple(indeterminate)
        self.completed = tuple(completed)
        super().__init__(
            f"failed at {path}: {cause} "
            f"(reverted: {len(self.reverted)}, indeterminate: {len(self.indeterminate)})"
        )


class PolicyNameCollision(TierguardError):
    """Two approval policies share a name."""

    def __init__(self, names: list[str]):
        self.names = sorted(set(names))
        super().__init__("duplicate policy names: " + ", ".join(self.names))


class PolicyViolationError(TierguardError):
    """One or more approval policies blocked the change. Nothing was written."""

    def __init__(self, violations: list):
        self.violations = tuple(violations)
        super().__init__(
            "approval blocked by policy: "
            + "; ".join(f"{v.policy}: {v.message}" for v in self.violations)
        )
