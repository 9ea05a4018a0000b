"""Built-in self-protection for approvals.

These checks are hardcoded and run on every approval, whatever the caller
passes in, so tierguard cannot be disabled through its own change path:

- the configuration file cannot be deleted
- a changed configuration must still parse and validate
- a changed configuration must keep itself locked and resolve without
  tier conflicts
"""

from __future__ import annotations

from tierguard.config.loader import parse_config
from tierguard.errors import ConfigError, FileIOError, PatternConflictError, SelfProtectionViolation
from tierguard.system.base import SystemOperations
from tierguard.tiers.patterns import PatternResolver


def check_self_protection(
    config_path: str,
    pending_contents: dict[str, bytes],
    deleted: list[str],
    ops: SystemOperations | None = None,
) -> None:
    """Veto a commit that would brick the configuration.

    Args:
        config_path: Workspace-relative path of the configuration file.
        pending_contents: path -> content about to be written.
        deleted: paths about to be removed.
        ops: When given, the proposed configuration is also resolved
            against the live workspace.

    Raises:
        SelfProtectionViolation
        FileIOError: the workspace could not be listed.
    """
    if config_path in deleted:
        raise SelfProtectionViolation(
            f"cannot delete {config_path}: it is required for tierguard to function"
        )

    proposed = pending_contents.get(config_path)
    if proposed is None:
        return
    try:
        config = parse_config(proposed, config_path)
    except ConfigError as e:
        raise SelfProtectionViolation(f"{config_path} would be invalid after this change: {e}") from e

    if ops is None:
        return
    try:
        PatternResolver(ops, config_path).resolve(config)
    except PatternConflictError as e:
        raise SelfProtectionViolation(f"{config_path} would put files in both tiers: {e}") from e
    except OSError as e:
        raise FileIOError(config_path, "expand", e)
