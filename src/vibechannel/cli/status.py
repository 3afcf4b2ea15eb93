"""
VibeChannel CLI - status command.
"""

import asyncio
from pathlib import Path

from rich.table import Table

from vibechannel.cli.common import PathArgument, console, open_session, resolve_path
from vibechannel.core.sync import DATA_BRANCH


def status(path: Path | None = PathArgument) -> None:
    """
    Show the data branch, worktree and access state of a repository.

    Examples:
        vibechannel status
    """
    repo = resolve_path(path)

    async def _run() -> dict[str, str]:
        async with open_session(repo) as (session, result):
            head = await session.get_head_commit()
            has_remote = await session.has_remote()
            return {
                "Branch": DATA_BRANCH,
                "Worktree": str(result.worktree_path or "-"),
                "Head": head[:8] if head else "-",
                "Remote": session.remote_name if has_remote else "none (local only)",
                "Access": (
                    "[yellow]read-only[/yellow]" if session.is_read_only() else "[green]writable[/green]"
                ),
                "Channels": ", ".join(f"#{c}" for c in session.list_channels()) or "-",
            }

    rows = asyncio.run(_run())
    table = Table(show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column()
    for key, value in rows.items():
        table.add_row(key, value)
    console.print(table)
