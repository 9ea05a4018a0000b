"""In-memory SystemOperations for deterministic tests.

Records every mutation so tests can assert exactly what happened, and
supports failure injection per operation/path.
"""

from __future__ import annotations

import errno
from dataclasses import dataclass
from pathlib import Path

from tierguard.models import FileOwnership, FileStat
from tierguard.system.base import SystemOperations
from tierguard.utils.file_scanner import is_skipped, normalize_path


@dataclass(frozen=True)
class RecordedOp:
    """A mutation the fake performed."""

    kind: str  # write | remove | mkdir | chown | chmod
    path: str
    detail: str = ""


@dataclass
class _MemFile:
    content: bytes
    owner: str
    group: str
    mode: int


@dataclass
class _MemDir:
    owner: str
    group: str
    mode: int


@dataclass
class _Failure:
    error: OSError
    remaining: int | None = None  # None = every call


class InMemorySystemOps(SystemOperations):
    """Dictionary-backed workspace.

    New files created through ``write`` get ``default_ownership`` (the
    process identity in the real world); overwriting keeps ownership.
    Directories are created implicitly for every file and carry their own
    ownership, mode 755 unless changed.
    """

    def __init__(
        self,
        root: str | Path = "/workspace",
        default_ownership: FileOwnership | None = None,
    ):
        super().__init__(root)
        self.files: dict[str, _MemFile] = {}
        self.dirs: dict[str, _MemDir] = {}
        self.mutations: list[RecordedOp] = []
        self.default_ownership = default_ownership or FileOwnership("root", "root", 0o644)
        self._failures: dict[tuple[str, str], _Failure] = {}

    # ------------------------------------------------------------------
    # Test setup helpers
    # ------------------------------------------------------------------

    def add_file(
        self,
        path: str,
        content: str | bytes = b"",
        owner: str = "unknown",
        group: str = "unknown",
        mode: int = 0o644,
    ) -> None:
        """Seed a file without recording a mutation."""
        if isinstance(content, str):
            content = content.encode()
        path = normalize_path(path)
        self._make_parents(path)
        self.files[path] = _MemFile(content, owner, group, mode)

    def add_dir(self, path: str, owner: str = "unknown", group: str = "unknown", mode: int = 0o755) -> None:
        """Seed a directory (and its parents) without recording a mutation."""
        path = normalize_path(path)
        self._make_parents(path)
        self.dirs[path] = _MemDir(owner, group, mode)

    def fail(
        self,
        op: str,
        path: str,
        error: OSError | None = None,
        times: int | None = None,
    ) -> None:
        """Make ``op`` on ``path`` raise ``error`` (PermissionError by default).

        ``times`` limits how many calls fail; ``None`` fails every call.
        """
        if error is None:
            error = PermissionError(errno.EPERM, f"injected {op} failure", path)
        self._failures[(op, normalize_path(path))] = _Failure(error, times)

    def clear_failures(self) -> None:
        self._failures.clear()

    def content(self, path: str) -> str:
        return self.files[normalize_path(path)].content.decode()

    def ownership(self, path: str) -> FileOwnership:
        f = self.files[normalize_path(path)]
        return FileOwnership(f.owner, f.group, f.mode)

    def dir_ownership(self, path: str) -> FileOwnership:
        d = self.dirs[normalize_path(path)]
        return FileOwnership(d.owner, d.group, d.mode)

    def reset_mutations(self) -> None:
        self.mutations.clear()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _check(self, op: str, path: str) -> str:
        path = normalize_path(path)
        failure = self._failures.get((op, path))
        if failure is not None:
            if failure.remaining is not None:
                failure.remaining -= 1
                if failure.remaining <= 0:
                    del self._failures[(op, path)]
            raise failure.error
        return path

    def _get(self, path: str) -> _MemFile:
        f = self.files.get(path)
        if f is None:
            raise FileNotFoundError(errno.ENOENT, "No such file", path)
        return f

    def _get_any(self, path: str) -> _MemFile | _MemDir:
        return self.dirs.get(path) or self._get(path)

    def _make_parents(self, path: str, record: bool = False) -> list[str]:
        created = []
        parts = path.split("/")[:-1]
        for i in range(len(parts)):
            created += self._make_one("/".join(parts[: i + 1]), record)
        return created

    def _make_one(self, path: str, record: bool) -> list[str]:
        if path in self.files:
            raise NotADirectoryError(errno.ENOTDIR, "Not a directory", path)
        if path in self.dirs:
            return []
        d = self.default_ownership
        self.dirs[path] = _MemDir(d.user, d.group, 0o755)
        if record:
            self.mutations.append(RecordedOp("mkdir", path))
        return [path]

    # ------------------------------------------------------------------
    # SystemOperations
    # ------------------------------------------------------------------

    def stat(self, path: str) -> FileStat:
        path = self._check("stat", path)
        f = self._get(path)
        return FileStat(path, FileOwnership(f.owner, f.group, f.mode), len(f.content))

    def exists(self, path: str) -> bool:
        path = self._check("exists", path)
        return path in self.files

    def read(self, path: str) -> bytes:
        path = self._check("read", path)
        return self._get(path).content

    def write(self, path: str, data: bytes) -> None:
        path = self._check("write", path)
        self._make_parents(path, record=True)
        existing = self.files.get(path)
        if existing is not None:
            existing.content = data
        else:
            d = self.default_ownership
            self.files[path] = _MemFile(data, d.user, d.group, d.mode)
        self.mutations.append(RecordedOp("write", path, f"{len(data)} bytes"))

    def remove(self, path: str) -> None:
        path = self._check("remove", path)
        self._get(path)
        del self.files[path]
        self.mutations.append(RecordedOp("remove", path))

    def make_dir(self, path: str) -> list[str]:
        path = self._check("make_dir", path)
        return self._make_parents(path, record=True) + self._make_one(path, record=True)

    def stat_dir(self, path: str) -> FileStat:
        path = self._check("stat_dir", path)
        if path in self.files:
            raise NotADirectoryError(errno.ENOTDIR, "Not a directory", path)
        d = self.dirs.get(path)
        if d is None:
            raise FileNotFoundError(errno.ENOENT, "No such directory", path)
        return FileStat(path, FileOwnership(d.owner, d.group, d.mode), 0)

    def chown(self, path: str, user: str, group: str) -> None:
        path = self._check("chown", path)
        f = self._get_any(path)
        f.owner, f.group = user, group
        self.mutations.append(RecordedOp("chown", path, f"{user}:{group}"))

    def chmod(self, path: str, mode: int) -> None:
        path = self._check("chmod", path)
        f = self._get_any(path)
        f.mode = mode
        self.mutations.append(RecordedOp("chmod", path, f"{mode:03o}"))

    def hash(self, path: str) -> str:
        self._check("hash", path)
        return super().hash(path)

    def list_files(self) -> list[str]:
        return sorted(p for p in self.files if not is_skipped(p))
