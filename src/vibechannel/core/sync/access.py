"""
Write-access probing against the remote.

A dry-run push never reaches the server's authorization layer, so it cannot
tell us whether a real push would be accepted. Instead the prober builds a
throwaway root commit purely in the object database (no working tree is
touched), pushes it to a disposable branch on the remote and then deletes
that branch again.

Only an unambiguous denial marks the caller read-only. Network errors and
anything else unrecognised are reported as writable so that a flaky
connection never blocks local use; the real push will surface the problem
later.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

from vibechannel.core.git.errors import GitErrorKind
from vibechannel.core.git.runner import GitRunner
from vibechannel.core.sync.models import DATA_BRANCH, AccessCheck, OperationOutcome

logger = logging.getLogger(__name__)

PROBE_REF_PREFIX = f"refs/heads/{DATA_BRANCH}-access-probe"
NO_PERMISSION = "no-permission"

# Used only for the probe commit so that a missing user.name/user.email
# does not turn into a false "writable"
_PROBE_IDENTITY = [
    "-c",
    "user.name=VibeChannel access probe",
    "-c",
    "user.email=access-probe@vibechannel.invalid",
]


class AccessProber:
    """
    Determines whether the caller can push to the remote.

    Example:
        >>> prober = AccessProber(GitRunner(repo_path), remote_name="origin")
        >>> check = await prober.check_write_access(has_remote=True)
        >>> check.can_write, check.reason
        (False, 'no-permission')
    """

    def __init__(self, git: GitRunner, remote_name: str = "origin") -> None:
        self.git = git
        self.remote_name = remote_name

    def _probe_ref(self) -> str:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        return f"{PROBE_REF_PREFIX}-{stamp}-{secrets.token_hex(3)}"

    async def _create_probe_commit(self) -> str | None:
        empty_tree = await self.git.run(["mktree"], input_data="")
        if not empty_tree.success:
            logger.warning("Could not create empty tree for access probe: %s", empty_tree.message)
            return None

        commit = await self.git.run(
            [*_PROBE_IDENTITY, "commit-tree", empty_tree.output, "-m", "VibeChannel access probe"]
        )
        if not commit.success:
            logger.warning("Could not create access probe commit: %s", commit.message)
            return None
        return commit.output

    async def check_write_access(self, has_remote: bool) -> AccessCheck:
        """
        Probe the remote for write access.

        Args:
            has_remote: Whether the repository has the remote configured.
                Without one, local-only mode is always writable.

        Returns:
            AccessCheck. ``outcome`` is SUCCEEDED_WITH_WARNING when the probe
            branch could not be deleted afterwards.
        """
        if not has_remote:
            return AccessCheck(can_write=True)

        commit_sha = await self._create_probe_commit()
        if commit_sha is None:
            return AccessCheck(
                can_write=True,
                outcome=OperationOutcome.SUCCEEDED_WITH_WARNING,
                warnings=["access probe commit could not be created; assuming writable"],
            )

        probe_ref = self._probe_ref()
        logger.info("Probing write access with %s", probe_ref)
        push = await self.git.run(["push", self.remote_name, f"{commit_sha}:{probe_ref}"])

        if push.success:
            delete = await self.git.run(["push", self.remote_name, "--delete", probe_ref])
            if delete.success:
                return AccessCheck(can_write=True)
            # Left for an external cleanup job; never retried here
            logger.warning(
                "Could not delete access probe ref %s on %s: %s",
                probe_ref,
                self.remote_name,
                delete.message,
            )
            return AccessCheck(
                can_write=True,
                outcome=OperationOutcome.SUCCEEDED_WITH_WARNING,
                warnings=[f"probe ref {probe_ref} was left on {self.remote_name}"],
            )

        if push.kind is GitErrorKind.PERMISSION_DENIED:
            logger.info("Remote %s denied write access: %s", self.remote_name, push.message)
            return AccessCheck(can_write=False, reason=NO_PERMISSION)

        logger.warning(
            "Access probe failed ambiguously (%s); assuming writable: %s",
            push.kind.value if push.kind else "unknown",
            push.message,
        )
        return AccessCheck(
            can_write=True,
            outcome=OperationOutcome.SUCCEEDED_WITH_WARNING,
            warnings=[f"access probe inconclusive: {push.message}"],
        )
