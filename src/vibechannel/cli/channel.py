"""
VibeChannel CLI - channel and message commands.
"""

import asyncio
from pathlib import Path

import typer
from rich.table import Table

from vibechannel.cli.common import PathArgument, console, open_session, resolve_path
from vibechannel.cli.errors import ExitCode, print_error, print_read_only_notice
from vibechannel.core.git.runner import GitRunner
from vibechannel.core.messages import compose_message, message_filename


def channels(path: Path | None = PathArgument) -> None:
    """
    List channels and how many files each holds.

    Examples:
        vibechannel channels
    """
    repo = resolve_path(path)

    async def _run() -> list[tuple[str, int]]:
        async with open_session(repo) as (session, _):
            return [
                (name, len(session.list_message_files(name))) for name in session.list_channels()
            ]

    rows = asyncio.run(_run())
    if not rows:
        console.print("[dim]No channels[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Channel")
    table.add_column("Files", justify="right")
    for name, count in rows:
        table.add_row(f"#{name}", str(count))
    console.print(table)


def channel_create(
    name: str = typer.Argument(..., help="Channel name (becomes a folder)"),
    path: Path | None = typer.Option(None, "--path", "-p", help="Repository path"),
) -> None:
    """
    Create a channel and push it.

    Examples:
        vibechannel channel-create random
    """
    repo = resolve_path(path)

    async def _run() -> bool:
        async with open_session(repo) as (session, result):
            if not result.writable:
                print_read_only_notice(result.read_only_reason)
                raise typer.Exit(ExitCode.GENERAL_ERROR)
            try:
                created = await session.create_channel(name)
            except ValueError as e:
                print_error(str(e))
                raise typer.Exit(ExitCode.USER_ERROR)
            if created:
                await session.queue_push()
            return created

    if asyncio.run(_run()):
        console.print(f"[green]✓[/green] Created #{name}")
    else:
        console.print(f"[blue]#{name} already exists[/blue]")


async def _git_user_name(repo: Path) -> str | None:
    result = await GitRunner(repo).run(["config", "user.name"])
    return result.output if result.success and result.output else None


def send(
    channel: str = typer.Argument(..., help="Channel to post in"),
    text: str = typer.Argument(..., help="Message text (Markdown)"),
    sender: str | None = typer.Option(
        None,
        "--as",
        help="Sender name (default: config identity.sender, then git user.name)",
    ),
    reply_to: str | None = typer.Option(
        None, "--reply-to", help="Filename of the message being answered"
    ),
    tags: list[str] | None = typer.Option(None, "--tag", "-t", help="Tag (repeatable)"),
    path: Path | None = typer.Option(None, "--path", "-p", help="Repository path"),
) -> None:
    """
    Post a message to a channel.

    Examples:
        vibechannel send general "Deploy is done"
        vibechannel send dev "LGTM" --reply-to 20250115T103045-lucas-a3f8x2.md
    """
    repo = resolve_path(path)

    async def _run() -> tuple[str, bool]:
        async with open_session(repo) as (session, result):
            if not result.writable:
                print_read_only_notice(result.read_only_reason)
                raise typer.Exit(ExitCode.GENERAL_ERROR)

            name = sender or session.config.identity.sender or await _git_user_name(repo)
            if not name:
                print_error(
                    "No sender name",
                    solution='vibechannel send ... --as "your name"  # or git config user.name',
                )
                raise typer.Exit(ExitCode.USER_ERROR)

            try:
                filename = message_filename(name)
                content = compose_message(name, text, reply_to=reply_to, tags=tags)
                await session.write_message(channel, filename, content)
            except ValueError as e:
                print_error(str(e))
                raise typer.Exit(ExitCode.USER_ERROR)

            push = await session.queue_push()
            return filename, bool(push and push.success)

    filename, pushed = asyncio.run(_run())
    console.print(f"[green]✓[/green] {channel}/{filename}")
    if pushed:
        console.print("[green]✓[/green] Pushed to remote")
    else:
        console.print("[dim]Saved locally; it will be pushed on the next sync[/dim]")


