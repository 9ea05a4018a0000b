"""Load, parse and serialise ``tierguard.yaml``.

Parsing fails closed: anything that is not a structurally and semantically
valid configuration raises ``ConfigError``.
"""

from __future__ import annotations

import logging

import yaml

from tierguard.config.schema import TierConfig
from tierguard.config.schema_validator import validate_config
from tierguard.constants import CONFIG_FILENAME
from tierguard.errors import ConfigError
from tierguard.system.base import SystemOperations

logger = logging.getLogger(__name__)


def parse_config(text: str | bytes, config_path: str = CONFIG_FILENAME) -> TierConfig:
    """Parse configuration text (YAML, or JSON as a YAML subset).

    ``config_path`` is where the text lives; it may not be claimed by the
    tracked tier.
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ConfigError("configuration is not valid UTF-8", [str(e)])
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError("configuration is not valid YAML", [str(e)])
    return config_from_dict(data, config_path)


def config_from_dict(data, config_path: str = CONFIG_FILENAME) -> TierConfig:
    """Validate a parsed configuration mapping and build a ``TierConfig``."""
    issues = validate_config(data, config_path)
    if issues:
        raise ConfigError("invalid configuration", issues)
    return TierConfig(
        locked=tuple(data["locked"]),
        tracked=tuple(data["tracked"]),
        git=data.get("git", True),
    )


def dump_config(config: TierConfig) -> str:
    """Serialise a configuration in the canonical on-disk form."""
    return yaml.safe_dump(config.to_dict(), sort_keys=False, default_flow_style=False)


def load_config(ops: SystemOperations, path: str = CONFIG_FILENAME) -> TierConfig:
    """Read and parse the workspace configuration."""
    try:
        raw = ops.read(path)
    except FileNotFoundError:
        raise ConfigError(f"configuration file not found: {path}")
    except OSError as e:
        raise ConfigError(f"cannot read configuration {path}", [str(e)])
    config = parse_config(raw, path)
    logger.debug("loaded %s: %d locked, %d tracked patterns", path, len(config.locked), len(config.tracked))
    return config
