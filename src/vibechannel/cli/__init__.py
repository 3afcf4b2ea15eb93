"""
VibeChannel CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging

import typer

from vibechannel import __version__
from vibechannel.cli import channel, status, sync
from vibechannel.cli.common import console
from vibechannel.core.config.env import load_layered_env

PANEL_SETUP = "Set Up"
PANEL_CHAT = "Channels and Messages"
PANEL_SYNC = "Keep in Sync"

app = typer.Typer(
    name="vibechannel",
    help="Git-backed team chat stored on a dedicated branch",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"vibechannel {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
) -> None:
    """
    VibeChannel - conversations that live next to your code.

    Messages are Markdown files on the `vibechannel` branch, checked out
    in a worktree inside .git and synced with the remote.

    Quick Start:
        vibechannel init                    # Create branch and worktree
        vibechannel send general "Hello"    # Post a message
        vibechannel watch                   # Sync until Ctrl+C
    """
    # Precedence: OS env > project .env > user .env
    load_layered_env()

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"debug": debug}


app.command(name="init", rich_help_panel=PANEL_SETUP)(sync.init)
app.command(name="status", rich_help_panel=PANEL_SETUP)(status.status)

app.command(name="channels", rich_help_panel=PANEL_CHAT)(channel.channels)
app.command(name="channel-create", rich_help_panel=PANEL_CHAT)(channel.channel_create)
app.command(name="send", rich_help_panel=PANEL_CHAT)(channel.send)

app.command(name="sync", rich_help_panel=PANEL_SYNC)(sync.sync)
app.command(name="watch", rich_help_panel=PANEL_SYNC)(sync.watch)


def cli_main() -> None:
    """Entry point for the vibechannel console script."""
    app()


__all__ = ["app", "cli_main"]
