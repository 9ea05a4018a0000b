"""tierguard — tiered file protection with an owner-approval workflow.

Locked-tier files can only change through a hash-gated approval of their
staging copies; tracked-tier files are written freely but their ownership
and permissions are kept in line.
"""

__version__ = "0.3.0"
