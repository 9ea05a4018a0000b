"""Shared constants: workspace layout, default modes and identities."""

CONFIG_FILENAME = "tierguard.yaml"

STATE_DIR = ".tierguard"
STAGING_DIR = f"{STATE_DIR}/staging"
REGISTRY_PATH = f"{STATE_DIR}/registry.json"
AUDIT_DIR = f"{STATE_DIR}/audit"

# Directories never matched by glob patterns
SKIP_DIRS = {STATE_DIR, ".git"}

LOCKED_MODE = 0o444  # read-only for everyone
TRACKED_MODE = 0o644  # writer-writable, others read
STAGING_MODE = 0o644

# .tierguard/ and the registry belong to the approver; staging/ to the writer
STATE_DIR_MODE = 0o755
STATE_FILE_MODE = 0o644
STAGING_DIR_MODE = 0o755

DEFAULT_APPROVER = "tierguard"
DEFAULT_WRITER = "agent"
DEFAULT_GROUP = "tierguard"

# Identity used for every version-control commit
SERVICE_NAME = "tierguard"
SERVICE_EMAIL = "tierguard@localhost"

DEFAULT_CONFIG: dict = {
    "locked": [CONFIG_FILENAME],
    "tracked": [],
    "git": True,
}
