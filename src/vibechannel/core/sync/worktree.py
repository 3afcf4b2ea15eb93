"""
Worktree management for the data branch.

Keeps a registered, valid worktree attached to the data branch at a fixed
path inside the repository's git directory, so conversation files never show
up in the user's primary working directory. Corrupted or stale worktrees are
removed and recreated; this is never surfaced to the caller as an error.
"""

from __future__ import annotations

import builtins
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from vibechannel.core.git.runner import GitRunner
from vibechannel.core.sync.models import DATA_BRANCH, OperationOutcome, RepositoryState
from vibechannel.core.sync.templates import ATTACHMENTS_DIR, DEFAULT_CHANNEL, SEED_FILES

logger = logging.getLogger(__name__)

SEED_COMMIT_MESSAGE = "Add initial VibeChannel structure"


@dataclass
class Worktree:
    """
    A registered git worktree.

    Attributes:
        path: Absolute path to the worktree directory
        branch: Full branch ref (None for detached HEAD)
        commit: Commit SHA
        is_bare: Whether this is the bare repository entry
        is_prunable: Whether git considers the entry stale
    """

    path: Path
    branch: str | None
    commit: str
    is_bare: bool = False
    is_prunable: bool = False


@dataclass
class WorktreeResolution:
    """What WorktreeManager.resolve had to do."""

    path: Path
    created: bool = False
    seeded: bool = False
    outcome: OperationOutcome = OperationOutcome.SUCCEEDED


def _same_path(a: Path, b: Path) -> bool:
    return a.resolve() == b.resolve()


class WorktreeManager:
    """
    Maintains the data branch worktree.

    Example:
        >>> manager = WorktreeManager(GitRunner(repo), repo / ".git" / "vibechannel-worktree")
        >>> resolution = await manager.resolve(state, seed_new_content=True)
        >>> resolution.path
    """

    def __init__(
        self,
        git: GitRunner,
        worktree_path: Path,
        branch_name: str = DATA_BRANCH,
    ) -> None:
        self.git = git
        self.worktree_path = worktree_path
        self.branch_name = branch_name
        self.worktree_git = git.at(worktree_path)

    @property
    def branch_ref(self) -> str:
        return f"refs/heads/{self.branch_name}"

    async def list(self) -> builtins.list[Worktree]:
        """List all worktrees registered with the repository."""
        result = await self.git.run(["worktree", "list", "--porcelain"])
        if not result.success:
            logger.warning("Could not list worktrees: %s", result.message)
            return []

        worktrees: builtins.list[Worktree] = []
        current: dict[str, str | bool] = {}

        for line in result.stdout.splitlines():
            line = line.strip()
            if not line:
                if current:
                    worktrees.append(self._parse_worktree(current))
                    current = {}
                continue

            if line.startswith("worktree "):
                current["path"] = line[len("worktree ") :]
            elif line.startswith("HEAD "):
                current["commit"] = line[len("HEAD ") :]
            elif line.startswith("branch "):
                current["branch"] = line[len("branch ") :]
            elif line == "bare":
                current["is_bare"] = True
            elif line.startswith("prunable"):
                current["is_prunable"] = True

        if current:
            worktrees.append(self._parse_worktree(current))

        return worktrees

    def _parse_worktree(self, data: dict[str, str | bool]) -> Worktree:
        return Worktree(
            path=Path(str(data.get("path", ""))),
            branch=str(data["branch"]) if "branch" in data else None,
            commit=str(data.get("commit", "")),
            is_bare=bool(data.get("is_bare", False)),
            is_prunable=bool(data.get("is_prunable", False)),
        )

    async def is_registered(self, path: Path | None = None) -> bool:
        path = path or self.worktree_path
        return any(_same_path(w.path, path) for w in await self.list())

    async def check(self) -> tuple[bool, bool]:
        """
        Inspect the expected worktree path.

        Returns:
            (exists, valid). Valid means the directory has its ``.git``
            metadata file and is registered at this exact path.
        """
        if not self.worktree_path.exists():
            return False, False

        if not (self.worktree_path / ".git").exists():
            return True, False

        return True, await self.is_registered()

    async def remove(self, path: Path | None = None) -> OperationOutcome:
        """
        Force-remove a worktree.

        Falls back to deleting the directory and pruning registrations when
        ``git worktree remove`` itself fails (typically because the metadata
        is already broken).

        Returns:
            SUCCEEDED, or SUCCEEDED_WITH_WARNING when the fallback was used.
        """
        path = path or self.worktree_path
        result = await self.git.run(["worktree", "remove", "--force", str(path)])
        if result.success:
            logger.info("Removed worktree at %s", path)
            return OperationOutcome.SUCCEEDED

        logger.warning(
            "git worktree remove failed for %s, deleting manually: %s", path, result.message
        )
        if path.exists():
            shutil.rmtree(path, ignore_errors=True)
        prune = await self.git.run(["worktree", "prune"])
        if not prune.success:
            logger.warning("git worktree prune failed: %s", prune.message)
        return OperationOutcome.SUCCEEDED_WITH_WARNING

    async def remove_stale_registrations(self) -> OperationOutcome:
        """
        Remove worktrees bound to the data branch at any other path.

        This happens when the host repository was moved after the worktree
        was created. Only the registration and directory go away; the
        branch and its commits are untouched.
        """
        outcome = OperationOutcome.SUCCEEDED
        for worktree in await self.list():
            if worktree.branch != self.branch_ref:
                continue
            if _same_path(worktree.path, self.worktree_path):
                continue
            logger.info(
                "Branch %s is checked out at stale path %s, removing",
                self.branch_name,
                worktree.path,
            )
            if await self.remove(worktree.path) is not OperationOutcome.SUCCEEDED:
                outcome = OperationOutcome.SUCCEEDED_WITH_WARNING
        return outcome

    async def create(self) -> OperationOutcome:
        """
        Create the worktree at the expected path.

        Raises:
            GitCommandError: If git refuses to add the worktree.
        """
        self.worktree_path.parent.mkdir(parents=True, exist_ok=True)

        # Drop registrations whose directories no longer exist
        await self.git.run(["worktree", "prune"])
        outcome = await self.remove_stale_registrations()

        result = await self.git.run(["worktree", "add", str(self.worktree_path), self.branch_name])
        result.raise_for_error()
        logger.info("Created worktree for %s at %s", self.branch_name, self.worktree_path)
        return outcome

    def has_content(self) -> bool:
        """Whether the worktree holds anything besides hidden/metadata entries."""
        if not self.worktree_path.exists():
            return False
        return any(
            entry.name != ".git" and not entry.name.startswith(".")
            for entry in self.worktree_path.iterdir()
        )

    async def seed(self) -> bool:
        """
        Write the default channel, attachments folder and protocol files,
        then commit once.

        Returns:
            True if content was written and committed. False if the worktree
            already had content from an earlier run.
        """
        if self.has_content():
            logger.info("Worktree already has content, skipping seed")
            return False

        logger.info("Seeding initial content in %s", self.worktree_path)
        for directory in (DEFAULT_CHANNEL, ATTACHMENTS_DIR):
            (self.worktree_path / directory).mkdir(parents=True, exist_ok=True)
            (self.worktree_path / directory / ".gitkeep").write_text("")
        for filename, content in SEED_FILES.items():
            (self.worktree_path / filename).write_text(content, encoding="utf-8")

        await self.worktree_git.output(["add", "-A"])
        identity = await self.worktree_git.identity_args()
        await self.worktree_git.output([*identity, "commit", "-m", SEED_COMMIT_MESSAGE])
        return True

    async def resolve(self, state: RepositoryState, *, seed_new_content: bool) -> WorktreeResolution:
        """
        Reuse, repair or create the worktree.

        Args:
            state: Detected repository state.
            seed_new_content: Seed a newly created worktree (only for a
                freshly fabricated branch with no remote counterpart).
        """
        resolution = WorktreeResolution(path=self.worktree_path)

        if state.has_worktree and state.worktree_valid:
            logger.debug("Worktree at %s is valid", self.worktree_path)
            return resolution

        if state.has_worktree:
            logger.info("Worktree at %s is corrupted or unregistered, recreating", self.worktree_path)
            resolution.outcome = await self.remove()

        if await self.create() is not OperationOutcome.SUCCEEDED:
            resolution.outcome = OperationOutcome.SUCCEEDED_WITH_WARNING
        resolution.created = True

        if seed_new_content:
            resolution.seeded = await self.seed()

        return resolution
