"""Schema for the tierguard configuration file.

This is the normative structural definition of ``tierguard.yaml``. A
configuration that does not pass it is rejected before any pattern is
resolved, including a staged replacement of the config itself.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass

from tierguard.config import CONFIG_VERSION

_PATTERN_LIST = {
    "type": "array",
    "items": {
        "type": "string",
        "minLength": 1,
        "description": "Literal workspace-relative path or glob pattern.",
    },
}

TIER_CONFIG_SCHEMA: dict = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": f"https://tierguard.dev/schema/config/v{CONFIG_VERSION}",
    "title": "tierguard configuration",
    "type": "object",
    "required": ["locked", "tracked"],
    "additionalProperties": False,
    "properties": {
        "locked": {
            **_PATTERN_LIST,
            "description": "Files that change only through owner approval.",
        },
        "tracked": {
            **_PATTERN_LIST,
            "description": "Files the writer may edit; ownership is enforced.",
        },
        "git": {
            "type": "boolean",
            "description": "Commit tier changes to the workspace git repo.",
        },
    },
}


def get_schema() -> dict:
    """Return a copy of the configuration JSON Schema."""
    return copy.deepcopy(TIER_CONFIG_SCHEMA)


@dataclass(frozen=True)
class TierConfig:
    """Validated configuration. Pattern order is preserved as declared."""

    locked: tuple[str, ...] = ()
    tracked: tuple[str, ...] = ()
    git: bool = True

    def to_dict(self) -> dict:
        return {
            "locked": list(self.locked),
            "tracked": list(self.tracked),
            "git": self.git,
        }
