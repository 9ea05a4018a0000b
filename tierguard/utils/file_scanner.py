"""File scanner — enumerate workspace files and match glob patterns."""

from __future__ import annotations

import os
import posixpath
import re
from functools import lru_cache
from pathlib import Path

from tierguard.constants import SKIP_DIRS


def scan_workspace_files(root: Path) -> list[str]:
    """Recursively list regular files under ``root`` as relative POSIX paths.

    Skips tierguard's own state directory and ``.git``; symlinks are not
    followed.
    """
    files = []
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = os.path.relpath(dirpath, root)
        dirnames[:] = sorted(
            d for d in dirnames
            if not _should_skip(d) and not os.path.islink(os.path.join(dirpath, d))
        )
        for name in filenames:
            full = os.path.join(dirpath, name)
            if os.path.islink(full) or not os.path.isfile(full):
                continue
            rel = name if rel_dir == "." else f"{rel_dir}/{name}"
            files.append(rel.replace(os.sep, "/"))
    return sorted(files)


def _should_skip(dirname: str) -> bool:
    return dirname in SKIP_DIRS


def is_skipped(path: str) -> bool:
    """True if any component of ``path`` is a skipped directory."""
    return any(part in SKIP_DIRS for part in path.split("/")[:-1])


def is_glob(pattern: str) -> bool:
    """Check if a pattern contains glob characters."""
    return any(c in pattern for c in "*?[")


def normalize_path(path: str) -> str:
    """Normalize a workspace-relative path (``./a//b`` -> ``a/b``)."""
    path = path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return posixpath.normpath(path) if path else path


def match_glob(pattern: str, path: str) -> bool:
    """Match a relative path against a glob pattern.

    ``*``, ``?`` and ``[...]`` never cross a ``/``; ``**`` matches any number
    of directories, and ``**/`` also matches none.
    """
    return _compile_glob(normalize_path(pattern)).match(path) is not None


@lru_cache(maxsize=256)
def _compile_glob(pattern: str) -> re.Pattern:
    out = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif c == "*":
            out.append("[^/]*")
            i += 1
        elif c == "?":
            out.append("[^/]")
            i += 1
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                out.append(re.escape(c))
                i += 1
            else:
                body = pattern[i + 1:end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"(?!/)[{body}]")
                i = end + 1
        else:
            out.append(re.escape(c))
            i += 1
    return re.compile("".join(out) + r"\Z")
