"""
Pull with a deterministic local-wins fallback.

Writers only ever add uniquely named files, so a real content collision
needs two messages with the same timestamp, sender and random id. When a
merge does fail, every conflicted path takes the local version and a
resolution commit is made. Failures inside the fallback are logged and
reported on the result; they never raise, so the session stays usable.
"""

from __future__ import annotations

import logging

from vibechannel.core.git.errors import GitErrorKind
from vibechannel.core.git.runner import GitRunner
from vibechannel.core.sync.models import DATA_BRANCH, OperationOutcome, PullResult

logger = logging.getLogger(__name__)

RESOLUTION_COMMIT_MESSAGE = "Resolve conflicts (auto)"


class ConflictResolver:
    """Merges the remote data branch into the worktree."""

    def __init__(
        self,
        worktree_git: GitRunner,
        branch_name: str = DATA_BRANCH,
        remote_name: str = "origin",
    ) -> None:
        self.git = worktree_git
        self.branch_name = branch_name
        self.remote_name = remote_name

    async def pull(self) -> PullResult:
        """
        Fetch and merge the remote data branch.

        Returns:
            PullResult. ``success`` is True only for a clean merge; a merge
            rescued by the local-wins fallback reports SUCCEEDED_WITH_WARNING.
            A merge git refused to start (for example, local files would be
            overwritten) is FAILED and leaves the worktree untouched.
        """
        identity = await self.git.identity_args()
        result = await self.git.run(
            [
                *identity,
                "pull",
                "--no-rebase",
                "--no-edit",
                "--allow-unrelated-histories",
                self.remote_name,
                self.branch_name,
            ]
        )
        if result.success:
            return PullResult(
                success=True,
                outcome=OperationOutcome.SUCCEEDED,
                head_commit=await self.head_commit(),
            )

        logger.warning("Pull of %s failed: %s", self.branch_name, result.message)

        if result.kind is not GitErrorKind.MERGE_CONFLICT or not await self.merge_in_progress():
            # Nothing was merged (network, permission, missing ref, refused merge...)
            return PullResult(
                success=False,
                outcome=OperationOutcome.FAILED,
                error=result.message,
            )

        return await self.resolve_local_wins(result.message)

    async def merge_in_progress(self) -> bool:
        """Check whether the worktree is stopped in the middle of a merge."""
        return await self.git.succeeds(["rev-parse", "-q", "--verify", "MERGE_HEAD"])

    async def resolve_local_wins(self, error: str | None = None) -> PullResult:
        """Take the local side of every conflict and commit the resolution."""
        warnings: list[str] = []

        checkout = await self.git.run(["checkout", "--ours", "--", "."])
        if not checkout.success:
            warnings.append(f"checkout --ours failed: {checkout.message}")

        add = await self.git.run(["add", "-A"])
        if not add.success:
            warnings.append(f"add failed: {add.message}")

        identity = await self.git.identity_args()
        commit = await self.git.run(
            [*identity, "commit", "--no-edit", "-m", RESOLUTION_COMMIT_MESSAGE]
        )
        if commit.success:
            logger.info("Resolved merge conflicts in favour of local content")
            return PullResult(
                success=False,
                outcome=OperationOutcome.SUCCEEDED_WITH_WARNING,
                resolved_conflicts=True,
                head_commit=await self.head_commit(),
                error=error,
                warnings=warnings,
            )

        if commit.kind is GitErrorKind.NOTHING_TO_COMMIT:
            warnings.append("nothing to commit after resolution")
        else:
            warnings.append(f"resolution commit failed: {commit.message}")

        # Leave the worktree usable rather than stuck mid-merge
        abort = await self.git.run(["merge", "--abort"])
        if not abort.success:
            warnings.append(f"merge --abort failed: {abort.message}")

        for warning in warnings:
            logger.warning("Conflict resolution: %s", warning)

        return PullResult(
            success=False,
            outcome=OperationOutcome.FAILED,
            resolved_conflicts=True,
            error=error,
            warnings=warnings,
        )

    async def head_commit(self) -> str | None:
        result = await self.git.run(["rev-parse", "HEAD"])
        return result.output if result.success else None
