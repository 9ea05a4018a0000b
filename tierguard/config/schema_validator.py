"""Configuration validator — structural and semantic checks.

Structural validation walks the JSON Schema from ``schema.get_schema()``;
semantic validation covers what the schema cannot express: paths must stay
inside the workspace, stay out of tierguard's state directory, and not
repeat within a tier. The configuration file itself is always locked, so
no tracked pattern may name or match it.
"""

from __future__ import annotations

import re

from tierguard.config.schema import get_schema
from tierguard.constants import CONFIG_FILENAME, SKIP_DIRS
from tierguard.utils.file_scanner import match_glob, normalize_path


def validate_schema(data) -> list[str]:
    """Validate parsed configuration data against the JSON Schema.

    Returns:
        List of error messages. Empty list means valid.
    """
    issues: list[str] = []
    _validate_node(data, get_schema(), "", issues)
    return issues


def validate_semantics(data: dict, config_path: str = CONFIG_FILENAME) -> list[str]:
    """Path-level checks on a structurally valid configuration."""
    issues: list[str] = []
    for tier in ("locked", "tracked"):
        seen: set[str] = set()
        for i, pattern in enumerate(data.get(tier, [])):
            where = f".{tier}[{i}]"
            if pattern.startswith("/") or re.match(r"^[A-Za-z]:[\\/]", pattern):
                issues.append(f"{where}: absolute path '{pattern}' is not allowed")
                continue
            norm = normalize_path(pattern)
            parts = norm.split("/")
            if ".." in parts or norm == ".":
                issues.append(f"{where}: '{pattern}' escapes the workspace")
                continue
            if parts[0] in SKIP_DIRS:
                issues.append(f"{where}: '{pattern}' points into reserved directory '{parts[0]}'")
                continue
            if tier == "tracked" and match_glob(norm, normalize_path(config_path)):
                issues.append(f"{where}: '{pattern}' matches the configuration file {config_path}, which stays locked")
                continue
            if norm in seen:
                issues.append(f"{where}: duplicate pattern '{pattern}'")
            seen.add(norm)
    return issues


def validate_config(data, config_path: str = CONFIG_FILENAME) -> list[str]:
    """Run both gates; semantic checks only run on structurally valid data."""
    issues = validate_schema(data)
    if issues:
        return issues
    return validate_semantics(data, config_path)


def _validate_node(data, schema: dict, path: str, issues: list[str]):
    """Recursively validate data against a JSON Schema node."""
    schema_type = schema.get("type")

    if schema_type and not _type_matches(data, schema_type):
        issues.append(f"{path or '/'}: expected type '{schema_type}', got {type(data).__name__}")
        return

    if "enum" in schema and data not in schema["enum"]:
        issues.append(f"{path or '/'}: value '{data}' not in allowed values {schema['enum']}")

    if schema_type == "string" and isinstance(data, str):
        min_len = schema.get("minLength", 0)
        if len(data) < min_len:
            issues.append(f"{path or '/'}: string too short (min {min_len}, got {len(data)})")
        if "pattern" in schema and not re.match(schema["pattern"], data):
            issues.append(f"{path or '/'}: string '{data}' does not match pattern '{schema['pattern']}'")

    if schema_type == "object" and isinstance(data, dict):
        for req in schema.get("required", []):
            if req not in data:
                issues.append(f"{path or '/'}: missing required property '{req}'")

        props = schema.get("properties", {})
        for key, value in data.items():
            if key in props:
                _validate_node(value, props[key], f"{path}.{key}", issues)
            elif schema.get("additionalProperties") is False:
                issues.append(f"{path or '/'}: unknown property '{key}'")

    if schema_type == "array" and isinstance(data, list):
        items_schema = schema.get("items")
        if items_schema:
            for i, item in enumerate(data):
                _validate_node(item, items_schema, f"{path}[{i}]", issues)


def _type_matches(data, schema_type: str) -> bool:
    """Check if data matches the expected JSON Schema type."""
    type_map = {
        "string": str,
        "integer": int,
        "number": (int, float),
        "boolean": bool,
        "array": list,
        "object": dict,
        "null": type(None),
    }
    expected = type_map.get(schema_type)
    if expected is None:
        return False
    if schema_type in ("integer", "number") and isinstance(data, bool):
        return False
    return isinstance(data, expected)
