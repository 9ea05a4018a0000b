"""Tests for the SystemOperations implementations."""

import errno
import grp
import os
import pwd
import shutil
import tempfile

import pytest

from tierguard.engine.approve import ApprovalEngine
from tierguard.engine.diff import DiffEngine, Unreadable
from tierguard.engine.sync import SyncEngine
from tierguard.errors import FileIOError
from tierguard.models import FileOwnership
from tierguard.system import InMemorySystemOps, LocalSystemOps, hash_bytes
from tierguard.workspace import Identity, Workspace


def _self_identity(ops):
    me = ops.stat("tierguard.yaml").ownership
    return Identity(me.user, me.user, me.group)


# --- In-memory ---


def test_memory_write_creates_with_default_ownership():
    ops = InMemorySystemOps(default_ownership=FileOwnership("agent", "tierguard", 0o644))
    ops.write("docs/A.md", b"hello")
    assert ops.read("docs/A.md") == b"hello"
    assert ops.ownership("docs/A.md") == FileOwnership("agent", "tierguard", 0o644)


def test_memory_write_keeps_existing_ownership():
    ops = InMemorySystemOps()
    ops.add_file("A.md", "v1", owner="tierguard", group="tierguard", mode=0o444)
    ops.write("A.md", b"v2")
    assert ops.content("A.md") == "v2"
    assert ops.ownership("A.md") == FileOwnership("tierguard", "tierguard", 0o444)


def test_memory_records_mutations_only():
    ops = InMemorySystemOps()
    ops.add_file("A.md", "v1")
    ops.read("A.md")
    ops.stat("A.md")
    ops.exists("A.md")
    assert ops.mutations == []

    ops.chown("A.md", "agent", "tierguard")
    ops.chmod("A.md", 0o644)
    ops.remove("A.md")
    assert [m.kind for m in ops.mutations] == ["chown", "chmod", "remove"]
    assert ops.mutations[0].detail == "agent:tierguard"
    assert ops.mutations[1].detail == "644"


def test_memory_missing_file_raises_file_not_found():
    ops = InMemorySystemOps()
    with pytest.raises(FileNotFoundError):
        ops.read("nope")
    with pytest.raises(FileNotFoundError):
        ops.stat("nope")
    assert not ops.exists("nope")


def test_memory_failure_injection():
    ops = InMemorySystemOps()
    ops.add_file("A.md", "x")
    ops.fail("write", "A.md", times=1)
    with pytest.raises(PermissionError):
        ops.write("A.md", b"y")
    ops.write("A.md", b"y")
    assert ops.content("A.md") == "y"

    ops.fail("stat", "A.md", OSError(errno.EIO, "disk error"))
    with pytest.raises(OSError):
        ops.stat("A.md")
    ops.clear_failures()
    assert ops.stat("A.md").size == 1


def test_memory_hash_and_expand():
    ops = InMemorySystemOps()
    ops.add_file("docs/a.md", "a")
    ops.add_file("docs/b.txt", "b")
    ops.add_file(".tierguard/staging/docs/a.md", "a")
    assert ops.hash("docs/a.md") == hash_bytes(b"a")
    assert ops.expand("docs/*.md") == ["docs/a.md"]
    assert ops.expand("**/*.md") == ["docs/a.md"]


# --- Local ---


def test_local_read_write_remove():
    with tempfile.TemporaryDirectory() as tmpdir:
        ops = LocalSystemOps(tmpdir)
        ops.write("docs/A.md", b"hello")
        assert ops.exists("docs/A.md")
        assert ops.read("docs/A.md") == b"hello"
        assert ops.hash("docs/A.md") == hash_bytes(b"hello")
        assert ops.list_files() == ["docs/A.md"]

        ops.remove("docs/A.md")
        assert not ops.exists("docs/A.md")
        with pytest.raises(FileNotFoundError):
            ops.read("docs/A.md")


def test_local_stat_and_chmod():
    with tempfile.TemporaryDirectory() as tmpdir:
        ops = LocalSystemOps(tmpdir)
        ops.write("A.md", b"x")
        ops.chmod("A.md", 0o640)
        st = ops.stat("A.md")
        assert st.ownership.mode == 0o640
        assert st.size == 1


def test_local_chown_to_self():
    with tempfile.TemporaryDirectory() as tmpdir:
        ops = LocalSystemOps(tmpdir)
        ops.write("A.md", b"x")
        own = ops.stat("A.md").ownership
        ops.chown("A.md", own.user, own.group)
        assert ops.stat("A.md").ownership == own


def test_local_chown_unknown_user():
    with tempfile.TemporaryDirectory() as tmpdir:
        ops = LocalSystemOps(tmpdir)
        ops.write("A.md", b"x")
        with pytest.raises(OSError):
            ops.chown("A.md", "no-such-user-tierguard", "no-such-group-tierguard")


def test_local_rejects_paths_outside_root():
    with tempfile.TemporaryDirectory() as tmpdir:
        ops = LocalSystemOps(os.path.join(tmpdir, "ws"))
        with pytest.raises(PermissionError):
            ops.read("../secret")


def test_local_stat_rejects_symlink():
    with tempfile.TemporaryDirectory() as tmpdir:
        ops = LocalSystemOps(tmpdir)
        ops.write("real.md", b"x")
        os.symlink(os.path.join(tmpdir, "real.md"), os.path.join(tmpdir, "link.md"))
        with pytest.raises(OSError):
            ops.stat("link.md")


def test_local_write_replaces_read_only_file_keeping_mode():
    with tempfile.TemporaryDirectory() as tmpdir:
        ops = LocalSystemOps(tmpdir)
        ops.write("A.md", b"v1")
        ops.chmod("A.md", 0o444)
        ops.write("A.md", b"v2")
        assert ops.read("A.md") == b"v2"
        assert ops.stat("A.md").ownership.mode == 0o444
        assert ops.list_files() == ["A.md"]


def test_memory_directories():
    ops = InMemorySystemOps()
    assert ops.make_dir(".tierguard/staging/docs") == [
        ".tierguard", ".tierguard/staging", ".tierguard/staging/docs",
    ]
    assert ops.make_dir(".tierguard/staging") == []
    assert ops.stat_dir(".tierguard/staging").ownership == FileOwnership("root", "root", 0o755)

    ops.chown(".tierguard/staging", "agent", "tierguard")
    assert ops.dir_ownership(".tierguard/staging") == FileOwnership("agent", "tierguard", 0o755)
    assert [m.kind for m in ops.mutations] == ["mkdir", "mkdir", "mkdir", "chown"]
    assert not ops.exists(".tierguard/staging")


def test_memory_directory_errors():
    ops = InMemorySystemOps()
    ops.add_file("A.md", "x")
    with pytest.raises(NotADirectoryError):
        ops.make_dir("A.md/sub")
    with pytest.raises(NotADirectoryError):
        ops.stat_dir("A.md")
    with pytest.raises(FileNotFoundError):
        ops.stat_dir("nope")


# --- Local directories and symlinks ---


def test_local_make_dir_and_stat_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        ops = LocalSystemOps(tmpdir)
        assert ops.make_dir("a/b") == ["a", "a/b"]
        assert ops.make_dir("a/b") == []
        ops.chmod("a/b", 0o750)
        assert ops.stat_dir("a/b").ownership.mode == 0o750
        assert not ops.exists("a/b")

        ops.write("f.md", b"x")
        with pytest.raises(NotADirectoryError):
            ops.make_dir("f.md")
        with pytest.raises(OSError):
            ops.stat_dir("f.md")


def test_local_read_does_not_follow_symlink():
    with tempfile.TemporaryDirectory() as outside, tempfile.TemporaryDirectory() as tmpdir:
        secret = os.path.join(outside, "secret")
        with open(secret, "wb") as f:
            f.write(b"root-only")
        os.symlink(secret, os.path.join(tmpdir, "link.md"))
        ops = LocalSystemOps(tmpdir)

        assert ops.exists("link.md")
        with pytest.raises(OSError) as exc:
            ops.read("link.md")
        assert exc.value.errno == errno.ELOOP
        with pytest.raises(OSError):
            ops.chmod("link.md", 0o444)


def test_local_refuses_symlinked_directory():
    with tempfile.TemporaryDirectory() as outside, tempfile.TemporaryDirectory() as tmpdir:
        with open(os.path.join(outside, "A.md"), "wb") as f:
            f.write(b"outside")
        os.symlink(outside, os.path.join(tmpdir, "docs"))
        ops = LocalSystemOps(tmpdir)

        for call in (
            lambda: ops.read("docs/A.md"),
            lambda: ops.exists("docs/A.md"),
            lambda: ops.write("docs/A.md", b"in"),
            lambda: ops.chmod("docs/A.md", 0o444),
            lambda: ops.make_dir("docs/sub"),
        ):
            with pytest.raises(OSError):
                call()
        with open(os.path.join(outside, "A.md"), "rb") as f:
            assert f.read() == b"outside"


def test_local_write_replaces_symlink_instead_of_following_it():
    with tempfile.TemporaryDirectory() as outside, tempfile.TemporaryDirectory() as tmpdir:
        target = os.path.join(outside, "target")
        with open(target, "wb") as f:
            f.write(b"untouched")
        os.symlink(target, os.path.join(tmpdir, "A.md"))
        ops = LocalSystemOps(tmpdir)

        ops.write("A.md", b"new")

        assert not os.path.islink(os.path.join(tmpdir, "A.md"))
        assert ops.read("A.md") == b"new"
        with open(target, "rb") as f:
            assert f.read() == b"untouched"


def test_symlinked_staging_copy_never_reaches_the_locked_tier():
    with tempfile.TemporaryDirectory() as outside, tempfile.TemporaryDirectory() as tmpdir:
        secret = os.path.join(outside, "secret")
        with open(secret, "wb") as f:
            f.write(b"root-only")
        ops = LocalSystemOps(tmpdir)
        ops.write("tierguard.yaml", b"locked: [A.md, docs/B.md]\ntracked: []\ngit: false\n")
        ops.write("A.md", b"v1")
        ops.write("docs/B.md", b"b")
        ws = Workspace(root=tmpdir, identity=_self_identity(ops))
        SyncEngine(ws, ops).run()

        staging = os.path.join(tmpdir, ".tierguard", "staging")
        os.remove(os.path.join(staging, "A.md"))
        os.symlink(secret, os.path.join(staging, "A.md"))
        shutil.rmtree(os.path.join(staging, "docs"))
        os.mkdir(os.path.join(outside, "docs"))
        with open(os.path.join(outside, "docs", "B.md"), "wb") as f:
            f.write(b"planted")
        os.symlink(os.path.join(outside, "docs"), os.path.join(staging, "docs"))

        report = DiffEngine(ws, ops).run()
        by_path = {d.path: d for d in report.files}
        assert isinstance(by_path["A.md"], Unreadable)
        assert isinstance(by_path["docs/B.md"], Unreadable)
        assert report.approval_hash is None
        with pytest.raises(FileIOError):
            ApprovalEngine(ws, ops).approve("0" * 64)
        assert ops.read("A.md") == b"v1"


def _run_as(uid, gid, fn):
    """Run ``fn`` in a child process with the given credentials."""
    pid = os.fork()
    if pid == 0:
        code = 1
        try:
            os.setgroups([])
            os.setgid(gid)
            os.setuid(uid)
            fn()
            code = 0
        finally:
            os._exit(code)
    _, status = os.waitpid(pid, 0)
    return os.waitstatus_to_exitcode(status) == 0


@pytest.mark.skipif(os.geteuid() != 0, reason="needs root to hand files to another user")
def test_writer_can_manage_its_staging_copies():
    try:
        nobody = pwd.getpwnam("nobody")
    except KeyError:
        pytest.skip("no 'nobody' user")
    group = grp.getgrgid(nobody.pw_gid).gr_name

    with tempfile.TemporaryDirectory() as tmpdir:
        os.chmod(tmpdir, 0o755)
        ops = LocalSystemOps(tmpdir)
        ops.write("tierguard.yaml", b"locked: [A.md, docs/B.md]\ntracked: []\ngit: false\n")
        ops.write("A.md", b"a")
        ops.write("docs/B.md", b"b")
        SyncEngine(Workspace(root=tmpdir, identity=Identity("root", "nobody", group)), ops).run()

        state = os.path.join(tmpdir, ".tierguard")
        staging = os.path.join(state, "staging")

        def propose():
            os.remove(os.path.join(staging, "A.md"))
            with open(os.path.join(staging, "docs", "new.md"), "w") as f:
                f.write("new")
            with open(os.path.join(staging, "docs", ".B.md.swp"), "w") as f:
                f.write("b2")
            os.replace(os.path.join(staging, "docs", ".B.md.swp"), os.path.join(staging, "docs", "B.md"))

        def tamper():
            os.remove(os.path.join(state, "registry.json"))

        assert _run_as(nobody.pw_uid, nobody.pw_gid, propose)
        assert not os.path.exists(os.path.join(staging, "A.md"))
        assert ops.read(".tierguard/staging/docs/B.md") == b"b2"

        assert not _run_as(nobody.pw_uid, nobody.pw_gid, tamper)
        assert os.path.exists(os.path.join(state, "registry.json"))
