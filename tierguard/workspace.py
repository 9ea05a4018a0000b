"""Workspace layout and principal identities.

Every engine receives a ``Workspace`` explicitly; nothing depends on the
process working directory.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from pathlib import Path

from tierguard.constants import (
    AUDIT_DIR,
    CONFIG_FILENAME,
    DEFAULT_APPROVER,
    DEFAULT_GROUP,
    DEFAULT_WRITER,
    LOCKED_MODE,
    REGISTRY_PATH,
    STAGING_DIR,
    STAGING_DIR_MODE,
    STAGING_MODE,
    STATE_DIR,
    STATE_DIR_MODE,
    STATE_FILE_MODE,
    TRACKED_MODE,
)
from tierguard.models import FileOwnership, Tier


@dataclass(frozen=True)
class Identity:
    """The two OS principals sharing the workspace."""

    approver: str = DEFAULT_APPROVER
    """Privileged principal that owns locked-tier files."""

    writer: str = DEFAULT_WRITER
    """Unprivileged automated writer."""

    group: str = DEFAULT_GROUP


@dataclass(frozen=True)
class Workspace:
    """A protected workspace rooted at ``root``."""

    root: Path
    identity: Identity = field(default_factory=Identity)
    config_path: str = CONFIG_FILENAME

    def __post_init__(self):
        object.__setattr__(self, "root", Path(self.root))

    @property
    def staging_dir(self) -> str:
        return STAGING_DIR

    @property
    def registry_path(self) -> str:
        return REGISTRY_PATH

    @property
    def audit_dir(self) -> Path:
        return self.root / AUDIT_DIR

    def staging_path(self, path: str) -> str:
        """Relative path of the staging copy for a locked file."""
        return posixpath.join(STAGING_DIR, path)

    def expected_ownership(self, tier: Tier) -> FileOwnership:
        if tier is Tier.LOCKED:
            return FileOwnership(self.identity.approver, self.identity.group, LOCKED_MODE)
        return FileOwnership(self.identity.writer, self.identity.group, TRACKED_MODE)

    @property
    def staging_ownership(self) -> FileOwnership:
        return FileOwnership(self.identity.writer, self.identity.group, STAGING_MODE)

    @property
    def state_dir(self) -> str:
        return STATE_DIR

    @property
    def state_dir_ownership(self) -> FileOwnership:
        """``.tierguard/`` itself: the writer can traverse but not modify it."""
        return FileOwnership(self.identity.approver, self.identity.group, STATE_DIR_MODE)

    @property
    def state_file_ownership(self) -> FileOwnership:
        return FileOwnership(self.identity.approver, self.identity.group, STATE_FILE_MODE)

    @property
    def staging_dir_ownership(self) -> FileOwnership:
        """``.tierguard/staging/`` and every directory below it."""
        return FileOwnership(self.identity.writer, self.identity.group, STAGING_DIR_MODE)
