"""
Serialized git execution for one repository session.

The git metadata directory is not safe for concurrent mutation, so every
`GitRunner` bound to the same session shares a single `asyncio.Lock`: two
primitives against the same repository never run at the same time, they
queue.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from vibechannel.core.git.errors import GitCommandError, GitErrorKind, classify_failure
from vibechannel.core.git.process import ProcessResult, run_process

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 60.0
DEFAULT_NETWORK_TIMEOUT = 120.0

NETWORK_COMMANDS = frozenset({"fetch", "push", "pull", "ls-remote"})

FALLBACK_IDENTITY = (
    ("user.name", "VibeChannel"),
    ("user.email", "vibechannel@localhost.invalid"),
)


class GitResult(ProcessResult):
    """ProcessResult of a git command, with its arguments and error kind."""

    args: list[str]
    kind: GitErrorKind | None = None

    @property
    def output(self) -> str:
        """Stripped stdout."""
        return self.stdout.strip()

    @property
    def message(self) -> str:
        """Best available description of a failure."""
        return (self.stderr.strip() or self.stdout.strip() or self.error or "").strip()

    def raise_for_error(self) -> None:
        """Raise GitCommandError if the command failed."""
        if self.success:
            return
        raise GitCommandError(
            f"Git command failed: git {' '.join(self.args)}",
            command=["git", *self.args],
            stderr=self.message,
            kind=self.kind or GitErrorKind.UNKNOWN,
        )


class GitRunner:
    """
    Runs git commands in a working directory.

    Example:
        >>> lock = asyncio.Lock()
        >>> repo = GitRunner(Path("/repo"), lock=lock)
        >>> worktree = repo.at(Path("/repo/.git/vibechannel-worktree"))
        >>> result = await repo.run(["branch", "--list", "vibechannel"])
        >>> sha = await worktree.output(["rev-parse", "HEAD"])
    """

    def __init__(
        self,
        cwd: Path,
        *,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        network_timeout: float = DEFAULT_NETWORK_TIMEOUT,
        lock: asyncio.Lock | None = None,
    ) -> None:
        self.cwd = cwd
        self.command_timeout = command_timeout
        self.network_timeout = network_timeout
        self._lock = lock or asyncio.Lock()

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    def at(self, cwd: Path) -> GitRunner:
        """Return a runner for another directory sharing this runner's lock."""
        return GitRunner(
            cwd,
            command_timeout=self.command_timeout,
            network_timeout=self.network_timeout,
            lock=self._lock,
        )

    def _timeout_for(self, args: list[str]) -> float:
        # Skip global "-c key=value" options to find the subcommand
        i = 0
        while i < len(args) and args[i] == "-c":
            i += 2
        subcommand = args[i] if i < len(args) else ""
        if subcommand in NETWORK_COMMANDS:
            return self.network_timeout
        return self.command_timeout

    async def run(
        self,
        args: list[str],
        *,
        input_data: str | None = None,
        timeout: float | None = None,
    ) -> GitResult:
        """
        Run ``git <args>`` and return a classified result. Never raises for
        a failed command.
        """
        effective_timeout = timeout if timeout is not None else self._timeout_for(args)
        async with self._lock:
            result = await run_process(
                ["git", *args],
                timeout=effective_timeout,
                cwd=str(self.cwd),
                input_data=input_data,
                # Never block on an interactive credential prompt
                env={"GIT_TERMINAL_PROMPT": "0"},
            )
        git_result = GitResult(
            **result.model_dump(),
            args=list(args),
            kind=classify_failure(result),
        )
        if not git_result.success:
            logger.debug(
                "git %s failed (%s): %s",
                " ".join(args),
                git_result.kind.value if git_result.kind else "unknown",
                git_result.message,
            )
        return git_result

    async def output(self, args: list[str], *, input_data: str | None = None) -> str:
        """
        Run ``git <args>`` and return stripped stdout.

        Raises:
            GitCommandError: If the command fails.
        """
        result = await self.run(args, input_data=input_data)
        result.raise_for_error()
        return result.output

    async def succeeds(self, args: list[str]) -> bool:
        """Run ``git <args>`` and report whether it exited zero."""
        result = await self.run(args)
        return result.success

    async def identity_args(self) -> list[str]:
        """
        ``-c user.*`` options for a command that creates commits.

        Empty when git can work out an author and committer on its own.
        Otherwise each unset ``user.name``/``user.email`` gets a fixed value,
        so a machine without git identity config can still commit.
        """
        if await self.succeeds(["var", "GIT_AUTHOR_IDENT"]) and await self.succeeds(
            ["var", "GIT_COMMITTER_IDENT"]
        ):
            return []
        args: list[str] = []
        for key, value in FALLBACK_IDENTITY:
            if not await self.succeeds(["config", key]):
                args += ["-c", f"{key}={value}"]
        return args
