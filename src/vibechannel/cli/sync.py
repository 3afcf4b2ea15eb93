"""
VibeChannel CLI - init, sync and watch commands.
"""

import asyncio
from pathlib import Path

import typer

from vibechannel.cli.common import PathArgument, console, open_session, resolve_path
from vibechannel.cli.errors import ExitCode, print_read_only_notice
from vibechannel.core.sync import InitializeResult


def _print_init_result(result: InitializeResult) -> None:
    if not result.writable:
        print_read_only_notice(result.read_only_reason)
        return

    if result.created_branch:
        console.print("[green]✓[/green] Created the vibechannel branch")
    if result.seeded:
        console.print("[green]✓[/green] Added default channel and protocol files")
    if result.has_prior_remote_content:
        console.print("[green]✓[/green] Synced existing conversations from the remote")
    console.print(f"[green]✓[/green] Worktree: {result.worktree_path}")


def init(path: Path | None = PathArgument) -> None:
    """
    Set up VibeChannel in a git repository.

    Creates (or reuses) the vibechannel branch and its worktree, pulls
    existing conversations and publishes a new branch to the remote.

    Examples:
        vibechannel init
        vibechannel init ~/code/project
    """
    repo = resolve_path(path)

    async def _run() -> InitializeResult:
        async with open_session(repo) as (_, result):
            return result

    _print_init_result(asyncio.run(_run()))


def sync(path: Path | None = PathArgument) -> None:
    """
    Run one sync pass: fetch, merge remote messages, push queued commits.

    Examples:
        vibechannel sync
    """
    repo = resolve_path(path)

    async def _run() -> bool:
        async with open_session(repo, verbose_events=True) as (session, result):
            if not result.writable:
                print_read_only_notice(result.read_only_reason)
            if not await session.has_remote():
                console.print("[blue]No remote configured, nothing to sync[/blue]")
                return True
            await session.scheduler.force_sync()
            return True

    asyncio.run(_run())


def watch(
    path: Path | None = PathArgument,
    interval: float | None = typer.Option(
        None,
        "--interval",
        "-i",
        min=0.5,
        help="Seconds between sync passes (default from config, 10)",
    ),
) -> None:
    """
    Keep the repository in sync until interrupted.

    Examples:
        vibechannel watch
        vibechannel watch --interval 30
    """
    repo = resolve_path(path)

    async def _run() -> None:
        async with open_session(repo, verbose_events=True) as (session, result):
            if not result.writable:
                print_read_only_notice(result.read_only_reason)
            if interval is not None:
                session.scheduler.set_interval(interval)
            console.print(
                f"[blue]Watching {repo} every {session.scheduler.interval_seconds:g}s "
                "(Ctrl+C to stop)[/blue]"
            )
            session.start_sync()
            await asyncio.Event().wait()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped[/dim]")
        raise typer.Exit(ExitCode.SIGINT)
