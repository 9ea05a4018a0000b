"""Declarative tier configuration (``tierguard.yaml``).

1. Schema — JSON-Schema-shaped structural definition
2. Validator — structural walk plus semantic path checks
3. Loader — parse, validate and serialise configurations
"""

CONFIG_VERSION = "1"
