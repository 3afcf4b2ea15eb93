"""
Data branch resolution.

Creates the local data branch either by tracking the remote branch or by
fabricating a parentless root commit with plumbing commands. Neither path
checks anything out, so the caller's primary working directory is never
touched.
"""

from __future__ import annotations

import logging

from vibechannel.core.git.runner import GitRunner
from vibechannel.core.sync.models import DATA_BRANCH, RepositoryState

logger = logging.getLogger(__name__)


class BranchResolver:
    """Ensures the local data branch exists."""

    def __init__(
        self,
        git: GitRunner,
        branch_name: str = DATA_BRANCH,
        remote_name: str = "origin",
    ) -> None:
        self.git = git
        self.branch_name = branch_name
        self.remote_name = remote_name

    @property
    def branch_ref(self) -> str:
        """Full git ref for the data branch."""
        return f"refs/heads/{self.branch_name}"

    async def resolve(self, state: RepositoryState) -> bool:
        """
        Make sure the local branch exists.

        Returns:
            True if a branch was created, False if it already existed.

        Raises:
            GitCommandError: If branch creation fails.
        """
        if state.has_local_branch:
            logger.debug("Local branch %s already exists", self.branch_name)
            return False

        if state.has_remote_branch:
            logger.info("Creating local branch %s from %s", self.branch_name, self.remote_name)
            await self.git.output(
                ["branch", "--track", self.branch_name, f"{self.remote_name}/{self.branch_name}"]
            )
            return True

        await self.create_orphan_branch()
        return True

    async def create_orphan_branch(self) -> str:
        """
        Create the branch at a new root commit with an empty tree.

        Returns:
            SHA of the root commit.
        """
        empty_tree = await self.git.output(["mktree"], input_data="")
        identity = await self.git.identity_args()
        commit_sha = await self.git.output(
            [*identity, "commit-tree", empty_tree, "-m", "Initialize VibeChannel branch"]
        )
        # Empty old value: refuse to clobber a branch created concurrently
        await self.git.output(["update-ref", self.branch_ref, commit_sha, ""])
        logger.info("Created orphan branch %s at %s", self.branch_name, commit_sha[:8])
        return commit_sha

    async def delete(self) -> bool:
        """Delete the local branch. Returns False if git refused."""
        result = await self.git.run(["branch", "-D", self.branch_name])
        if not result.success:
            logger.warning("Could not delete branch %s: %s", self.branch_name, result.message)
        return result.success
