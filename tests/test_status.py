"""Tests for drift detection."""

import errno

from tierguard.engine.status import (
    DriftedStatus,
    DriftKind,
    ErrorStatus,
    MissingStatus,
    OkStatus,
    StatusEngine,
    format_issue,
)
from tierguard.engine.sync import SyncEngine
from tierguard.models import Tier
from tierguard.system.memory import InMemorySystemOps
from tierguard.workspace import Workspace


def _workspace(locked="[A.md]", tracked="[notes.txt]"):
    ops = InMemorySystemOps()
    ops.add_file(
        "tierguard.yaml",
        f"locked: {locked}\ntracked: {tracked}\ngit: false\n",
        owner="tierguard", group="tierguard", mode=0o444,
    )
    return Workspace(root="/workspace"), ops


def test_clean_workspace():
    ws, ops = _workspace()
    ops.add_file("A.md", "v1", owner="tierguard", group="tierguard", mode=0o444)
    ops.add_file("notes.txt", "n", owner="agent", group="tierguard", mode=0o644)

    report = StatusEngine(ws, ops).run()
    assert report.is_clean
    assert [s.path for s in report.locked] == ["A.md", "tierguard.yaml"]
    assert all(isinstance(s, OkStatus) for s in report.all)
    assert report.summary() == "3/3 files ok, 0 drifted"


def test_locked_file_with_wrong_mode_and_owner():
    ws, ops = _workspace()
    ops.add_file("A.md", "v1", owner="agent", group="tierguard", mode=0o644)

    report = StatusEngine(ws, ops).run()
    status = report.locked[0]
    assert isinstance(status, DriftedStatus)
    assert {i.kind for i in status.issues} == {DriftKind.WRONG_OWNER, DriftKind.WRONG_MODE}
    assert status.needs_chown and status.needs_chmod
    assert not report.is_clean


def test_missing_file_reported():
    ws, ops = _workspace()
    report = StatusEngine(ws, ops).run()
    assert isinstance(report.locked[0], MissingStatus)
    assert report.locked[0].tier is Tier.LOCKED
    assert isinstance(report.tracked[0], MissingStatus)


def test_uninspectable_file_does_not_stop_report():
    ws, ops = _workspace()
    ops.add_file("A.md", "v1", owner="tierguard", group="tierguard", mode=0o444)
    ops.add_file("notes.txt", "n", owner="agent", group="tierguard", mode=0o644)
    ops.fail("stat", "A.md", OSError(errno.EIO, "disk error"))

    report = StatusEngine(ws, ops).run()
    assert isinstance(report.locked[0], ErrorStatus)
    assert report.locked[0].cause.path == "A.md"
    assert isinstance(report.tracked[0], OkStatus)


def test_status_never_mutates():
    ws, ops = _workspace()
    ops.add_file("A.md", "v1", owner="root", group="root", mode=0o777)
    StatusEngine(ws, ops).run()
    assert ops.mutations == []


def test_format_issue():
    ws, ops = _workspace()
    ops.add_file("A.md", "v1", owner="tierguard", group="tierguard", mode=0o644)
    status = StatusEngine(ws, ops).run().locked[0]
    assert format_issue(status.issues[0]) == "mode is 644, expected 444"


def test_tracked_ownership_reset_is_detected_and_corrected():
    ws, ops = _workspace()
    ops.add_file("A.md", "v1", owner="tierguard", group="tierguard", mode=0o444)
    ops.add_file("notes.txt", "notes", owner="agent", group="tierguard", mode=0o644)
    SyncEngine(ws, ops).run()

    ops.chown("notes.txt", "root", "root")
    status = StatusEngine(ws, ops).run().tracked[0]
    assert isinstance(status, DriftedStatus)
    assert {i.kind for i in status.issues} == {DriftKind.WRONG_OWNER, DriftKind.WRONG_GROUP}

    ops.reset_mutations()
    result = SyncEngine(ws, ops).run()
    assert result.corrected == ["notes.txt"]
    assert [m.kind for m in ops.mutations] == ["chown"]
    assert ops.content("notes.txt") == "notes"
    assert StatusEngine(ws, ops).run().is_clean
