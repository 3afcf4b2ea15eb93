"""Helpers shared by CLI commands."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import typer
from rich.console import Console

from vibechannel.cli.errors import ExitCode, print_error, print_not_a_repository_error
from vibechannel.core.config import load_config
from vibechannel.core.git.errors import GitCommandError, NotAGitRepositoryError
from vibechannel.core.sync import InitializeResult, RepositorySession, SyncEvent, SyncEventType

console = Console()

EVENT_STYLES = {
    SyncEventType.SYNC_START: ("dim", "sync started"),
    SyncEventType.SYNC_COMPLETE: ("dim", "sync complete"),
    SyncEventType.NEW_CONTENT: ("green", "new content"),
    SyncEventType.SYNC_ERROR: ("red", "sync error"),
    SyncEventType.PUSH_COMPLETE: ("green", "pushed"),
    SyncEventType.PUSH_ERROR: ("yellow", "push failed"),
    SyncEventType.ENTERED_READ_ONLY: ("yellow", "entered read-only mode"),
}

PathArgument = typer.Argument(
    None,
    help="Repository path (defaults to the current directory)",
)


def resolve_path(path: Path | None) -> Path:
    return (path or Path.cwd()).expanduser().resolve()


def print_event(event: SyncEvent) -> None:
    style, label = EVENT_STYLES[event.type]
    detail = event.head_commit[:8] if event.head_commit else (event.error or event.reason or "")
    console.print(f"[{style}]{label}[/{style}] {detail}".rstrip())


@asynccontextmanager
async def open_session(
    path: Path,
    *,
    verbose_events: bool = False,
) -> AsyncIterator[tuple[RepositorySession, InitializeResult]]:
    """
    Initialize a session for the command and dispose of it afterwards.

    Translates engine errors into CLI exits.
    """
    session = RepositorySession(config=load_config(path))
    if verbose_events:
        session.on_sync_event(print_event)
    try:
        try:
            result = await session.initialize(path)
        except NotAGitRepositoryError:
            print_not_a_repository_error(path)
            raise typer.Exit(ExitCode.USER_ERROR)
        except GitCommandError as e:
            print_error("Could not set up the VibeChannel branch", reason=str(e))
            raise typer.Exit(ExitCode.GENERAL_ERROR)
        yield session, result
    finally:
        await session.dispose()
