"""Tests for configuration parsing and validation."""

import pytest

from tierguard.config.loader import config_from_dict, dump_config, load_config, parse_config
from tierguard.config.schema import TierConfig, get_schema
from tierguard.config.schema_validator import validate_config, validate_schema, validate_semantics
from tierguard.errors import ConfigError
from tierguard.system.memory import InMemorySystemOps


def test_parse_yaml():
    config = parse_config("locked: [A.md, 'docs/*.md']\ntracked: [notes.txt]\ngit: false\n")
    assert config.locked == ("A.md", "docs/*.md")
    assert config.tracked == ("notes.txt",)
    assert config.git is False


def test_parse_json_subset():
    config = parse_config('{"locked": ["A.md"], "tracked": []}')
    assert config.locked == ("A.md",)
    assert config.git is True


def test_parse_bytes():
    assert parse_config(b"locked: []\ntracked: []\n") == TierConfig()


def test_invalid_yaml_raises():
    with pytest.raises(ConfigError):
        parse_config("locked: [unterminated\n")


def test_invalid_utf8_raises():
    with pytest.raises(ConfigError):
        parse_config(b"\xff\xfe locked")


def test_missing_required_key():
    issues = validate_schema({"locked": []})
    assert any("tracked" in i for i in issues)


def test_unknown_key_rejected():
    issues = validate_schema({"locked": [], "tracked": [], "extra": 1})
    assert any("unknown property 'extra'" in i for i in issues)


def test_wrong_types_rejected():
    assert validate_schema({"locked": "A.md", "tracked": []})
    assert validate_schema({"locked": [1], "tracked": []})
    assert validate_schema({"locked": [], "tracked": [], "git": "yes"})
    assert validate_schema(["locked"])
    assert validate_schema(None)


def test_empty_pattern_rejected():
    issues = validate_schema({"locked": [""], "tracked": []})
    assert any("too short" in i for i in issues)


def test_semantics_rejects_absolute_and_escaping_paths():
    issues = validate_semantics({"locked": ["/etc/passwd", "../x", "."], "tracked": []})
    assert len(issues) == 3


def test_semantics_rejects_reserved_dirs():
    issues = validate_semantics({"locked": [".tierguard/registry.json"], "tracked": [".git/config"]})
    assert len(issues) == 2


def test_semantics_rejects_duplicates_within_tier():
    issues = validate_semantics({"locked": ["A.md", "./A.md"], "tracked": []})
    assert any("duplicate" in i for i in issues)


def test_semantics_keeps_config_out_of_tracked_tier():
    data = {"locked": [], "tracked": ["tierguard.yaml", "*.yaml", "notes.txt"]}
    issues = validate_semantics(data)
    assert len(issues) == 2
    assert all("configuration file" in i for i in issues)
    assert validate_semantics({"locked": [], "tracked": ["*.yaml"]}, config_path="conf/tg.yml") == []
    assert len(validate_semantics({"locked": [], "tracked": ["conf/*"]}, config_path="conf/tg.yml")) == 1


def test_parse_config_rejects_config_in_tracked_tier():
    with pytest.raises(ConfigError):
        parse_config("locked: []\ntracked: ['./tierguard.yaml']\n")


def test_validate_config_valid():
    assert validate_config({"locked": ["A.md"], "tracked": ["**/*.txt"], "git": True}) == []


def test_config_error_carries_issues():
    with pytest.raises(ConfigError) as exc:
        config_from_dict({"locked": [], "tracked": [], "bogus": True})
    assert exc.value.issues


def test_dump_then_parse():
    config = TierConfig(locked=("A.md",), tracked=("notes/*.txt",), git=False)
    assert parse_config(dump_config(config)) == config


def test_schema_is_a_copy():
    schema = get_schema()
    schema["required"].append("x")
    assert "x" not in get_schema()["required"]


def test_load_config_missing_file():
    ops = InMemorySystemOps()
    with pytest.raises(ConfigError, match="not found"):
        load_config(ops, "tierguard.yaml")


def test_load_config_unreadable_file():
    ops = InMemorySystemOps()
    ops.add_file("tierguard.yaml", "locked: []\ntracked: []\n")
    ops.fail("read", "tierguard.yaml")
    with pytest.raises(ConfigError):
        load_config(ops, "tierguard.yaml")
