"""Real-filesystem implementation of SystemOperations."""

from __future__ import annotations

import errno
import grp
import os
import posixpath
import pwd
import stat as stat_mod
import tempfile
from pathlib import Path

from tierguard.models import FileOwnership, FileStat
from tierguard.system.base import SystemOperations
from tierguard.utils.file_scanner import normalize_path, scan_workspace_files


def _uid_to_name(uid: int) -> str:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def _gid_to_name(gid: int) -> str:
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def _name_to_uid(user: str) -> int:
    try:
        return pwd.getpwnam(user).pw_uid
    except KeyError:
        if user.isdigit():
            return int(user)
        raise OSError(errno.EINVAL, f"unknown user: {user}")


def _name_to_gid(group: str) -> int:
    try:
        return grp.getgrnam(group).gr_gid
    except KeyError:
        if group.isdigit():
            return int(group)
        raise OSError(errno.EINVAL, f"unknown group: {group}")


def _lstat_kind(full: Path, path: str, kind: int, what: str) -> os.stat_result:
    st = os.lstat(full)
    if stat_mod.S_IFMT(st.st_mode) != kind:
        raise OSError(errno.EINVAL, f"not a {what}: {path}")
    return st


def _to_stat(path: str, st: os.stat_result) -> FileStat:
    return FileStat(
        path=path,
        ownership=FileOwnership(
            user=_uid_to_name(st.st_uid),
            group=_gid_to_name(st.st_gid),
            mode=stat_mod.S_IMODE(st.st_mode),
        ),
        size=st.st_size,
    )


class LocalSystemOps(SystemOperations):
    """SystemOperations against the real filesystem under ``root``.

    Staging copies and the directories holding them belong to the writer,
    so a path may be swapped for a symlink at any time. No operation here
    follows one: links in the final component are refused by ``stat``,
    ``read``, ``chown`` and ``chmod``, and a linked directory anywhere on
    the way down is refused for every operation.
    """

    def _resolve(self, path: str) -> Path:
        parts = normalize_path(path).split("/")
        if any(p in ("", ".", "..") for p in parts):
            raise PermissionError(errno.EACCES, f"path escapes workspace: {path}")
        full = self.root.resolve()
        for part in parts[:-1]:
            full = full / part
            if full.is_symlink():
                raise OSError(errno.ELOOP, f"symbolic link in path: {path}")
        return full / parts[-1]

    def stat(self, path: str) -> FileStat:
        full = self._resolve(path)
        return _to_stat(path, _lstat_kind(full, path, stat_mod.S_IFREG, "regular file"))

    def stat_dir(self, path: str) -> FileStat:
        full = self._resolve(path)
        return _to_stat(path, _lstat_kind(full, path, stat_mod.S_IFDIR, "directory"))

    def exists(self, path: str) -> bool:
        # A symlink counts as present; reading it then fails
        try:
            st = os.lstat(self._resolve(path))
        except (FileNotFoundError, NotADirectoryError):
            return False
        return not stat_mod.S_ISDIR(st.st_mode)

    def read(self, path: str) -> bytes:
        full = self._resolve(path)
        fd = os.open(full, os.O_RDONLY | os.O_NOFOLLOW | os.O_NONBLOCK)
        with os.fdopen(fd, "rb") as f:
            if not stat_mod.S_ISREG(os.fstat(f.fileno()).st_mode):
                raise OSError(errno.EINVAL, f"not a regular file: {path}")
            return f.read()

    def write(self, path: str, data: bytes) -> None:
        """Replace the file through a sibling temp file.

        The target may be read-only (locked tier), so it is never opened for
        writing; the replacement inherits the old owner, group and mode. A
        symlink at the target is replaced, not written through.
        """
        parent = posixpath.dirname(normalize_path(path))
        if parent:
            self.make_dir(parent)
        full = self._resolve(path)
        try:
            previous = os.lstat(full)
        except FileNotFoundError:
            previous = None
        if previous is not None and not stat_mod.S_ISREG(previous.st_mode):
            previous = None

        fd, tmp = tempfile.mkstemp(dir=full.parent, prefix=f".{full.name}.")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            if previous is not None:
                if (previous.st_uid, previous.st_gid) != (os.geteuid(), os.getegid()):
                    os.chown(tmp, previous.st_uid, previous.st_gid)
                os.chmod(tmp, stat_mod.S_IMODE(previous.st_mode))
            else:
                os.chmod(tmp, 0o666 & ~_current_umask())
            os.replace(tmp, full)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

    def remove(self, path: str) -> None:
        os.remove(self._resolve(path))

    def make_dir(self, path: str) -> list[str]:
        parts = normalize_path(path).split("/")
        self._resolve(path)
        created = []
        current = self.root.resolve()
        for i, part in enumerate(parts):
            current = current / part
            rel = "/".join(parts[: i + 1])
            try:
                os.mkdir(current, 0o755)
                created.append(rel)
            except FileExistsError:
                if not stat_mod.S_ISDIR(os.lstat(current).st_mode):
                    raise NotADirectoryError(errno.ENOTDIR, f"not a directory: {rel}")
        return created

    def chown(self, path: str, user: str, group: str) -> None:
        os.chown(self._resolve(path), _name_to_uid(user), _name_to_gid(group), follow_symlinks=False)

    def chmod(self, path: str, mode: int) -> None:
        full = self._resolve(path)
        if stat_mod.S_ISLNK(os.lstat(full).st_mode):
            raise OSError(errno.ELOOP, f"refusing to chmod symbolic link: {path}")
        os.chmod(full, mode)

    def list_files(self) -> list[str]:
        return scan_workspace_files(self.root)
