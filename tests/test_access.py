"""
Tests for write-access probing.

Covers:
- No remote configured (local-only, always writable)
- Writable remote, probe branch cleaned up afterwards
- Remote rejecting pushes (read-only)
- Unreachable remote (fails open)
- Probe branch that cannot be deleted (warning, not an error)
"""

from pathlib import Path

import pytest

from vibechannel.core.git import GitRunner
from vibechannel.core.sync import AccessProber, OperationOutcome
from vibechannel.core.sync.access import NO_PERMISSION, PROBE_REF_PREFIX


def _probe_refs(git, remote: Path) -> list[str]:
    output = git(remote, "for-each-ref", "--format=%(refname)")
    return [line for line in output.splitlines() if line.startswith(PROBE_REF_PREFIX)]


class TestAccessProber:
    """Tests for AccessProber.check_write_access."""

    @pytest.mark.asyncio
    async def test_no_remote_is_writable(self, git_repo: Path) -> None:
        prober = AccessProber(GitRunner(git_repo))

        check = await prober.check_write_access(has_remote=False)

        assert check.can_write
        assert check.outcome is OperationOutcome.SUCCEEDED

    @pytest.mark.asyncio
    async def test_writable_remote_leaves_no_probe_branch(
        self, repo_with_remote: Path, bare_remote: Path, git
    ) -> None:
        prober = AccessProber(GitRunner(repo_with_remote))

        check = await prober.check_write_access(has_remote=True)

        assert check.can_write
        assert check.reason is None
        assert check.outcome is OperationOutcome.SUCCEEDED
        assert _probe_refs(git, bare_remote) == []

    @pytest.mark.asyncio
    async def test_probe_does_not_touch_working_copy(self, repo_with_remote: Path, git) -> None:
        head_before = git(repo_with_remote, "rev-parse", "HEAD")
        prober = AccessProber(GitRunner(repo_with_remote))

        await prober.check_write_access(has_remote=True)

        assert git(repo_with_remote, "rev-parse", "HEAD") == head_before
        assert git(repo_with_remote, "status", "--porcelain") == ""

    @pytest.mark.asyncio
    async def test_denied_remote_is_read_only(
        self, repo_with_remote: Path, bare_remote: Path, deny_pushes
    ) -> None:
        deny_pushes(bare_remote)
        prober = AccessProber(GitRunner(repo_with_remote))

        check = await prober.check_write_access(has_remote=True)

        assert not check.can_write
        assert check.reason == NO_PERMISSION

    @pytest.mark.asyncio
    async def test_unreachable_remote_fails_open(self, git_repo: Path, tmp_path: Path, git) -> None:
        git(git_repo, "remote", "add", "origin", str(tmp_path / "does-not-exist.git"))
        prober = AccessProber(GitRunner(git_repo))

        check = await prober.check_write_access(has_remote=True)

        assert check.can_write
        assert check.outcome is OperationOutcome.SUCCEEDED_WITH_WARNING
        assert check.warnings

    @pytest.mark.asyncio
    async def test_undeletable_probe_branch_is_a_warning(
        self, repo_with_remote: Path, bare_remote: Path, deny_deletes, git
    ) -> None:
        deny_deletes(bare_remote)
        prober = AccessProber(GitRunner(repo_with_remote))

        check = await prober.check_write_access(has_remote=True)

        assert check.can_write
        assert check.outcome is OperationOutcome.SUCCEEDED_WITH_WARNING
        assert len(_probe_refs(git, bare_remote)) == 1

    def test_probe_refs_are_unique(self, git_repo: Path) -> None:
        prober = AccessProber(GitRunner(git_repo))

        first, second = prober._probe_ref(), prober._probe_ref()

        assert first.startswith(PROBE_REF_PREFIX + "-")
        assert first != second
