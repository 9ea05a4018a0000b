"""Tier membership — resolving declared patterns to concrete files."""
