"""System operations — the only path from the engines to the OS.

- ``SystemOperations``: abstract interface, bound to a workspace root
- ``LocalSystemOps``: real filesystem, ``os``/``pwd``/``grp`` backed
- ``InMemorySystemOps``: deterministic fake with failure injection
"""

from tierguard.system.base import SystemOperations, hash_bytes
from tierguard.system.local import LocalSystemOps
from tierguard.system.memory import InMemorySystemOps, RecordedOp

__all__ = [
    "SystemOperations",
    "LocalSystemOps",
    "InMemorySystemOps",
    "RecordedOp",
    "hash_bytes",
]
