"""tierguard CLI — the main entry point for workspace protection."""

import importlib
import logging
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from tierguard import __version__
from tierguard.audit import AuditLogger
from tierguard.engine.diff import Created, Deleted, MissingStaging, Modified, Unreadable
from tierguard.engine.status import DriftedStatus, ErrorStatus, MissingStatus, OkStatus, format_issue
from tierguard.errors import PartialCommitFailure, TierguardError
from tierguard.system.local import LocalSystemOps
from tierguard.utils.git_ops import Committed, GitBridge, Skipped
from tierguard.workspace import Identity, Workspace

console = Console()


class _Env:
    def __init__(self, workspace: Workspace):
        self.workspace = workspace
        self.ops = LocalSystemOps(workspace.root)
        self.audit = AuditLogger(workspace.audit_dir)
        self.git = GitBridge(workspace.root)


@click.group()
@click.version_option(version=__version__)
@click.option("--root", "-r", default=".", type=click.Path(file_okay=False), help="Workspace root")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--approver", envvar="TIERGUARD_APPROVER", default=Identity.approver, show_default=True)
@click.option("--writer", envvar="TIERGUARD_WRITER", default=Identity.writer, show_default=True)
@click.option("--group", envvar="TIERGUARD_GROUP", default=Identity.group, show_default=True)
@click.pass_context
def main(ctx, root: str, verbose: bool, approver: str, writer: str, group: str):
    """tierguard — two-tier file protection for shared workspaces.

    Locked files change only through approved staging proposals; tracked
    files are writable but their ownership is kept in line.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    workspace = Workspace(root=root, identity=Identity(approver, writer, group))
    ctx.obj = _Env(workspace)


def _fail(err: TierguardError):
    console.print(f"[red]Error:[/] {escape(str(err))}")
    if isinstance(err, PartialCommitFailure):
        for label, paths in (
            ("reverted", err.reverted),
            ("indeterminate", err.indeterminate),
            ("completed", err.completed),
        ):
            for p in paths:
                console.print(f"  {label}: {p}")
    sys.exit(1)


def _print_git(result):
    if isinstance(result, Committed):
        console.print(f"[dim]git: committed {len(result.files)} file(s)[/]")
    else:
        detail = f" ({result.detail})" if result.detail else ""
        console.print(f"[dim]git: skipped, {result.reason.value}{detail}[/]")


# ── Status ───────────────────────────────────────────────────────────


@main.command()
@click.pass_obj
def status(env: _Env):
    """Show ownership/mode drift for both tiers."""
    from tierguard.engine.status import StatusEngine

    try:
        report = StatusEngine(env.workspace, env.ops).run()
    except TierguardError as e:
        _fail(e)

    table = Table(title="Protection status")
    table.add_column("Tier", style="dim")
    table.add_column("Path", style="cyan")
    table.add_column("State")
    table.add_column("Details")

    for tier, entries in (("locked", report.locked), ("tracked", report.tracked)):
        for s in entries:
            if isinstance(s, OkStatus):
                table.add_row(tier, s.path, "[green]ok[/]", str(s.actual))
            elif isinstance(s, DriftedStatus):
                table.add_row(tier, s.path, "[yellow]drifted[/]", "; ".join(format_issue(i) for i in s.issues))
            elif isinstance(s, MissingStatus):
                table.add_row(tier, s.path, "[dim]missing[/]", "")
            elif isinstance(s, ErrorStatus):
                table.add_row(tier, s.path, "[red]error[/]", escape(str(s.cause)))

    console.print(table)
    console.print(report.summary())
    if not report.is_clean:
        sys.exit(1)


# ── Diff ─────────────────────────────────────────────────────────────


@main.command()
@click.argument("files", nargs=-1)
@click.pass_obj
def diff(env: _Env, files: tuple):
    """Show pending locked-tier proposals and their approval hash."""
    from tierguard.engine.diff import DiffEngine

    try:
        report = DiffEngine(env.workspace, env.ops).run(list(files) or None)
    except TierguardError as e:
        _fail(e)

    for d in report.files:
        if isinstance(d, (Modified, Created)):
            console.print(Syntax(d.unified_diff, "diff", theme="ansi_dark"))
        elif isinstance(d, Deleted):
            console.print(f"[red]deleted:[/] {d.path}")
        elif isinstance(d, MissingStaging):
            console.print(f"[dim]no staging copy: {d.path}[/]")
        elif isinstance(d, Unreadable):
            console.print(f"[red]unreadable:[/] {escape(str(d.cause))}")

    if report.errors:
        console.print("[red]Some files could not be read; no approval hash.[/]")
        sys.exit(1)
    if not report.has_changes:
        console.print("[green]No pending changes.[/]")
        return
    console.print(Panel(
        f"[bold]{report.approval_hash}[/]\n\n"
        f"Approve with: tierguard approve {report.approval_hash}",
        title=f"{len(report.contributing)} change(s)",
    ))


# ── Approve ──────────────────────────────────────────────────────────


def _load_policies(ctx, param, specs: tuple) -> list:
    """Resolve ``module:attribute`` specs into approval policies."""
    from tierguard.engine.policy import Policy

    policies = []
    for spec in specs:
        module_name, _, attr = spec.partition(":")
        if not module_name or not attr:
            raise click.BadParameter(f"expected MODULE:ATTRIBUTE, got '{spec}'", ctx=ctx, param=param)
        try:
            obj = getattr(importlib.import_module(module_name), attr)
        except (ImportError, AttributeError) as e:
            raise click.BadParameter(f"cannot load '{spec}': {e}", ctx=ctx, param=param)
        if isinstance(obj, Policy):
            policies.append(obj)
        elif isinstance(obj, (list, tuple)):
            policies.extend(obj)
        elif callable(obj):
            policies.append(Policy(attr, obj))
        else:
            raise click.BadParameter(f"'{spec}' is not a policy", ctx=ctx, param=param)
    return policies


@main.command()
@click.argument("approval_hash")
@click.option(
    "--policy", "policies", multiple=True, callback=_load_policies,
    help="Approval policy as MODULE:ATTRIBUTE (repeatable)",
)
@click.pass_obj
def approve(env: _Env, approval_hash: str, policies: list):
    """Commit staged proposals into the locked tier.

    APPROVAL_HASH must match the hash printed by 'tierguard diff'.
    """
    from tierguard.engine.approve import ApprovalEngine
    from tierguard.errors import PolicyViolationError

    engine = ApprovalEngine(env.workspace, env.ops, git=env.git, audit=env.audit)
    try:
        result = engine.approve(approval_hash, policies=policies)
    except PolicyViolationError as e:
        console.print("[red]Approval blocked by policy:[/]")
        for v in e.violations:
            console.print(f"  [bold]{escape(v.policy)}[/]: {escape(v.message)}")
        sys.exit(1)
    except TierguardError as e:
        _fail(e)

    for p in result.applied:
        console.print(f"  [green]✓[/] {p}")
    for p in result.deleted:
        console.print(f"  [red]✗[/] {p}")
    for w in result.warnings:
        console.print(f"  [yellow]warning:[/] {escape(w)}")
    _print_git(result.git_result)
    console.print(f"\n[green]Approved {len(result.changed)} change(s).[/]")


# ── Sync ─────────────────────────────────────────────────────────────


@main.command()
@click.pass_obj
def sync(env: _Env):
    """Correct ownership/mode drift and release removed files."""
    from tierguard.engine.sync import SyncEngine

    try:
        result = SyncEngine(env.workspace, env.ops, git=env.git, audit=env.audit).run()
    except TierguardError as e:
        _fail(e)

    for p in result.corrected:
        console.print(f"  corrected: {p}")
    for p in result.released:
        console.print(f"  released: {p}")
    for p in result.staged:
        console.print(f"  staged: {p}")
    _print_git(result.git_result)
    if not result.changed:
        console.print("[green]Workspace already in sync.[/]")


# ── Reset ────────────────────────────────────────────────────────────


@main.command()
@click.argument("files", nargs=-1)
@click.pass_obj
def reset(env: _Env, files: tuple):
    """Discard pending proposals by restoring staging copies."""
    from tierguard.engine.reset import ResetEngine

    try:
        result = ResetEngine(env.workspace, env.ops, audit=env.audit).run(list(files) or None)
    except TierguardError as e:
        _fail(e)

    for p in result.reset_files:
        console.print(f"  reset: {p}")
    console.print(f"[green]Reset {len(result.reset_files)} staging copies.[/]")


# ── Tiers ────────────────────────────────────────────────────────────


def _print_tier_update(result, verb: str):
    change = result.change
    for p in change.added:
        console.print(f"  [green]+[/] {p} {verb}")
    for p in change.moved:
        console.print(f"  [yellow]~[/] {p} {verb} (moved)")
    for p in change.released:
        console.print(f"  [red]-[/] {p} released")
    for p in change.unchanged:
        console.print(f"  [dim]· {p} already {verb}[/]")
    for p in change.not_tracked:
        console.print(f"  [dim]· {p} not in any tier[/]")
    if result.sync_result is None:
        console.print("Nothing to change.")
        return
    _print_git(result.sync_result.git_result)
    console.print(f"[green]Updated {len(change.changed)} pattern(s).[/]")


@main.command()
@click.argument("patterns", nargs=-1, required=True)
@click.pass_obj
def protect(env: _Env, patterns: tuple):
    """Add files or globs to the locked tier."""
    from tierguard.engine.tiers import TierEditor

    try:
        result = TierEditor(env.workspace, env.ops, git=env.git, audit=env.audit).protect(list(patterns))
    except TierguardError as e:
        _fail(e)
    _print_tier_update(result, "locked")


@main.command()
@click.argument("patterns", nargs=-1, required=True)
@click.pass_obj
def track(env: _Env, patterns: tuple):
    """Add files or globs to the tracked tier."""
    from tierguard.engine.tiers import TierEditor

    try:
        result = TierEditor(env.workspace, env.ops, git=env.git, audit=env.audit).track(list(patterns))
    except TierguardError as e:
        _fail(e)
    _print_tier_update(result, "tracked")


@main.command()
@click.argument("patterns", nargs=-1, required=True)
@click.pass_obj
def release(env: _Env, patterns: tuple):
    """Remove files or globs from both tiers and hand the files back."""
    from tierguard.engine.tiers import TierEditor

    try:
        result = TierEditor(env.workspace, env.ops, git=env.git, audit=env.audit).release(list(patterns))
    except TierguardError as e:
        _fail(e)
    _print_tier_update(result, "released")


# ── Log ──────────────────────────────────────────────────────────────


@main.command()
@click.argument("file", required=False)
@click.option("--limit", "-n", type=int, default=None, help="Show at most N commits")
@click.pass_obj
def log(env: _Env, file: str | None, limit: int | None):
    """Show the git history of tier files, or of one FILE."""
    from tierguard.config.loader import load_config
    from tierguard.utils.file_scanner import normalize_path

    try:
        config = load_config(env.ops, env.workspace.config_path)
    except TierguardError as e:
        _fail(e)

    entries = env.git.log(config, normalize_path(file) if file else None, limit)
    if isinstance(entries, Skipped):
        _print_git(entries)
        sys.exit(1)
    if not entries:
        console.print("No commits yet.")
        return
    for entry in entries:
        console.print(f"[yellow]{entry.sha[:10]}[/] [dim]{entry.date}[/] {escape(entry.message)} [dim]({escape(entry.author)})[/]")


# ── Init ─────────────────────────────────────────────────────────────


@main.command()
@click.pass_obj
def init(env: _Env):
    """Create a default configuration and protect the workspace."""
    from tierguard.engine.init import initialize_workspace

    try:
        result = initialize_workspace(env.workspace, env.ops, git=env.git, audit=env.audit)
    except TierguardError as e:
        _fail(e)

    if result.config_created:
        console.print(f"Created {env.workspace.config_path}")
    console.print(
        f"Protected {len(result.sync_result.corrected)} file(s), "
        f"staged {len(result.sync_result.staged)}."
    )
    _print_git(result.git_result)


if __name__ == "__main__":
    main()
