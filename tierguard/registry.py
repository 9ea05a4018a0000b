"""Ownership registry — what tierguard manages and what it found there.

The OS keeps no history of a file's previous owner, so the ownership a file
had when it first entered a tier is captured here. Sync uses it to hand a
file back when it is removed from the configuration. The registry also
records which locked files have been issued a staging copy; only those can
be proposed for deletion by removing that copy.

Lives at ``.tierguard/registry.json``.
"""

from __future__ import annotations

import json
import logging
from typing import Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from tierguard.constants import REGISTRY_PATH
from tierguard.errors import ConfigError, FileIOError
from tierguard.models import FileOwnership, Tier
from tierguard.system.base import SystemOperations

logger = logging.getLogger(__name__)


class OwnershipSnapshot(BaseModel):
    """Serialised ``FileOwnership``."""

    user: str
    group: str
    mode: int

    @classmethod
    def of(cls, ownership: FileOwnership) -> "OwnershipSnapshot":
        return cls(user=ownership.user, group=ownership.group, mode=ownership.mode)

    def to_ownership(self) -> FileOwnership:
        return FileOwnership(self.user, self.group, self.mode)


class RegistryEntry(BaseModel):
    """One managed file."""

    tier: Tier
    original: Optional[OwnershipSnapshot] = None
    staged: bool = False


class RegistryData(BaseModel):
    version: Literal[1] = 1
    files: dict[str, RegistryEntry] = Field(default_factory=dict)


class OwnershipRegistry:
    """Persistent per-file record of tier membership and original ownership."""

    def __init__(
        self,
        ops: SystemOperations,
        data: RegistryData | None = None,
        path: str = REGISTRY_PATH,
        owner: FileOwnership | None = None,
    ):
        self.ops = ops
        self.path = path
        self.owner = owner
        self.data = data or RegistryData()
        self._dirty = False

    @classmethod
    def load(
        cls,
        ops: SystemOperations,
        path: str = REGISTRY_PATH,
        owner: FileOwnership | None = None,
    ) -> "OwnershipRegistry":
        """Load the registry; an absent file yields an empty registry.

        ``owner`` is the ownership ``save`` gives the file.

        Raises:
            FileIOError: the file exists but cannot be read.
            ConfigError: the file exists but is corrupt.
        """
        try:
            raw = ops.read(path)
        except FileNotFoundError:
            return cls(ops, path=path, owner=owner)
        except OSError as e:
            raise FileIOError(path, "read", e)
        try:
            data = RegistryData.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            raise ConfigError(f"corrupt ownership registry {path}", [str(e)])
        return cls(ops, data, path, owner)

    @property
    def dirty(self) -> bool:
        return self._dirty

    def save(self) -> bool:
        """Write the registry if it changed. Returns True if written."""
        if not self._dirty:
            return False
        content = json.dumps(self.data.model_dump(mode="json"), indent=2, sort_keys=True) + "\n"
        try:
            self.ops.write(self.path, content.encode())
            if self.owner is not None:
                self._protect()
        except OSError as e:
            raise FileIOError(self.path, "write", e)
        self._dirty = False
        logger.debug("registry saved (%d files)", len(self.data.files))
        return True

    def _protect(self) -> None:
        current = self.ops.stat(self.path).ownership
        if (current.user, current.group) != (self.owner.user, self.owner.group):
            self.ops.chown(self.path, self.owner.user, self.owner.group)
        if current.mode & 0o777 != self.owner.mode:
            self.ops.chmod(self.path, self.owner.mode)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, path: str) -> RegistryEntry | None:
        return self.data.files.get(path)

    def paths(self) -> list[str]:
        return sorted(self.data.files)

    def is_staged(self, path: str) -> bool:
        entry = self.data.files.get(path)
        return entry is not None and entry.staged

    def find_orphaned(self, managed: list[str] | tuple[str, ...]) -> list[str]:
        """Registered paths no longer matched by any tier."""
        managed_set = set(managed)
        return sorted(p for p in self.data.files if p not in managed_set)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def register(self, path: str, tier: Tier, current: FileOwnership | None) -> bool:
        """Record ``path`` at ``tier``.

        ``current`` is the ownership observed before any correction; it is
        kept only on first registration, so moving between tiers never
        overwrites the true original. Returns True if anything changed.
        """
        entry = self.data.files.get(path)
        if entry is None:
            self.data.files[path] = RegistryEntry(
                tier=tier,
                original=OwnershipSnapshot.of(current) if current else None,
            )
            self._dirty = True
            return True

        if entry.tier is tier:
            return False
        entry.tier = tier
        if tier is Tier.TRACKED:
            entry.staged = False
        self._dirty = True
        return True

    def mark_staged(self, path: str, staged: bool = True) -> None:
        entry = self.data.files.get(path)
        if entry is None:
            entry = self.data.files[path] = RegistryEntry(tier=Tier.LOCKED)
            self._dirty = True
        if entry.staged != staged:
            entry.staged = staged
            self._dirty = True

    def unregister(self, path: str) -> RegistryEntry | None:
        """Forget ``path``. Returns the entry so the caller can restore ownership."""
        entry = self.data.files.pop(path, None)
        if entry is not None:
            self._dirty = True
        return entry
