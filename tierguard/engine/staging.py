"""Staging area layout and ownership.

``.tierguard/`` belongs to the approver so the writer cannot touch the
registry or the audit trail. ``.tierguard/staging/`` and every directory
under it belong to the writer: proposing a deletion or a new locked file
means unlinking or creating entries there, and editors save by rename.
"""

from __future__ import annotations

import logging
import posixpath

from tierguard.models import FileOwnership
from tierguard.system.base import SystemOperations
from tierguard.workspace import Workspace

logger = logging.getLogger(__name__)


def staging_dirs(workspace: Workspace, path: str | None = None) -> list[tuple[str, FileOwnership]]:
    """Directories that must exist before a staging copy of ``path`` can.

    Outermost first, each with the ownership it has to carry.
    """
    dirs = [
        (workspace.state_dir, workspace.state_dir_ownership),
        (workspace.staging_dir, workspace.staging_dir_ownership),
    ]
    if path:
        parent = posixpath.dirname(path)
        parts = parent.split("/") if parent else []
        for i in range(len(parts)):
            sub = posixpath.join(workspace.staging_dir, *parts[: i + 1])
            dirs.append((sub, workspace.staging_dir_ownership))
    return dirs


def ensure_staging_dirs(workspace: Workspace, ops: SystemOperations, path: str | None = None) -> list[str]:
    """Create the staging directories and give each its ownership.

    Directories already in shape are not touched. Returns the directories
    created or corrected.

    Raises:
        OSError: a directory could not be created, inspected or changed.
    """
    changed = []
    for d, own in staging_dirs(workspace, path):
        created = ops.make_dir(d)
        current = ops.stat_dir(d).ownership
        fixed = False
        if (current.user, current.group) != (own.user, own.group):
            ops.chown(d, own.user, own.group)
            fixed = True
        if current.mode & 0o777 != own.mode:
            ops.chmod(d, own.mode)
            fixed = True
        if created or fixed:
            changed.append(d)
            logger.debug("staging dir %s set to %s", d, own)
    return changed


def write_staging_copy(workspace: Workspace, ops: SystemOperations, path: str, content: bytes) -> None:
    """Write the writer-owned staging copy of locked file ``path``.

    Raises:
        OSError: any step failed; the copy may be missing or partial.
    """
    ensure_staging_dirs(workspace, ops, path)
    staging = workspace.staging_path(path)
    own = workspace.staging_ownership
    ops.write(staging, content)
    ops.chown(staging, own.user, own.group)
    ops.chmod(staging, own.mode)
