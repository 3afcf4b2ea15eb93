"""
Standardized error handling and exit codes for the vibechannel CLI.
"""

from enum import IntEnum
from pathlib import Path

from rich.console import Console

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Generic error (git failure, push rejected...)."""

    USER_ERROR = 2
    """Problem the user has to fix (not a repository, bad name...)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Example:
        >>> print_error(
        ...     "Not a git repository: /tmp/x",
        ...     solution="git init /tmp/x",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_not_a_repository_error(path: Path) -> None:
    print_error(
        f"Not a git repository: {path}",
        reason="VibeChannel stores conversations on a branch of an existing repository",
        solution=f"git init {path}",
    )


def print_read_only_notice(reason: str | None) -> None:
    console.print(
        f"[yellow]Read-only:[/yellow] you cannot push to this remote ({reason or 'no-permission'}). "
        "Messages can be read but not sent."
    )
