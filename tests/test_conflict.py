"""
Tests for pulling the data branch and the local-wins conflict fallback.
"""

from pathlib import Path

import pytest
import pytest_asyncio

from vibechannel.core.sync import OperationOutcome, RepositorySession
from vibechannel.core.sync.conflict import RESOLUTION_COMMIT_MESSAGE


@pytest_asyncio.fixture
async def writers(repo_with_remote: Path, bare_remote: Path, make_clone):
    """Two initialized sessions sharing one remote."""
    alice = RepositorySession()
    await alice.initialize(repo_with_remote)
    bob = RepositorySession()
    await bob.initialize(make_clone(bare_remote, "bob"))
    yield alice, bob
    await alice.dispose()
    await bob.dispose()


class TestPull:
    """Tests for ConflictResolver.pull through the session."""

    @pytest.mark.asyncio
    async def test_clean_merge_of_distinct_files(self, writers) -> None:
        alice, bob = writers
        await alice.write_message("general", "20250115T103045-alice-aaaaaa.md", "from alice\n")
        assert (await alice.push()).success
        await bob.write_message("general", "20250115T103046-bob-bbbbbb.md", "from bob\n")

        result = await bob.pull()

        assert result.success
        assert result.outcome is OperationOutcome.SUCCEEDED
        assert not result.resolved_conflicts
        assert result.head_commit == await bob.get_head_commit()
        assert bob.list_message_files("general") == [
            "20250115T103045-alice-aaaaaa.md",
            "20250115T103046-bob-bbbbbb.md",
        ]

    @pytest.mark.asyncio
    async def test_pull_is_up_to_date(self, writers) -> None:
        _, bob = writers
        head = await bob.get_head_commit()

        result = await bob.pull()

        assert result.success
        assert result.head_commit == head

    @pytest.mark.asyncio
    async def test_conflict_keeps_local_version(self, writers, git) -> None:
        alice, bob = writers
        filename = "20250115T103045-same-aaaaaa.md"
        await alice.write_message("general", filename, "alice wrote this\n")
        assert (await alice.push()).success
        await bob.write_message("general", filename, "bob wrote this\n")

        result = await bob.pull()

        assert not result.success
        assert result.resolved_conflicts
        assert result.outcome is OperationOutcome.SUCCEEDED_WITH_WARNING
        assert result.merged
        assert bob.worktree_path is not None
        assert (bob.worktree_path / "general" / filename).read_text() == "bob wrote this\n"
        assert git(bob.worktree_path, "log", "-1", "--format=%s") == RESOLUTION_COMMIT_MESSAGE
        assert git(bob.worktree_path, "status", "--porcelain") == ""

        # The resolution is pushable and reaches the other writer
        assert (await bob.push()).success
        await alice.pull()
        assert alice.worktree_path is not None
        assert (alice.worktree_path / "general" / filename).read_text() == "bob wrote this\n"

    @pytest.mark.asyncio
    async def test_refused_merge_leaves_worktree_alone(self, writers, git) -> None:
        alice, bob = writers
        filename = "20250115T103045-alice-aaaaaa.md"
        await alice.write_message("general", filename, "from alice\n")
        assert (await alice.push()).success
        assert bob.worktree_path is not None
        head = await bob.get_head_commit()
        (bob.worktree_path / "general" / filename).write_text("untracked draft\n")
        (bob.worktree_path / "README.md").write_text("local edit\n")

        result = await bob.pull()

        assert result.outcome is OperationOutcome.FAILED
        assert not result.merged
        assert not result.resolved_conflicts
        assert await bob.get_head_commit() == head
        assert (bob.worktree_path / "general" / filename).read_text() == "untracked draft\n"
        assert (bob.worktree_path / "README.md").read_text() == "local edit\n"
        assert git(bob.worktree_path, "log", "-1", "--format=%s") != RESOLUTION_COMMIT_MESSAGE
        assert await bob.has_remote_changes()

    @pytest.mark.asyncio
    async def test_unreachable_remote_fails_without_raising(
        self, writers, tmp_path: Path, git
    ) -> None:
        _, bob = writers
        git(bob.repo_path, "remote", "set-url", "origin", str(tmp_path / "gone.git"))

        result = await bob.pull()

        assert not result.success
        assert result.outcome is OperationOutcome.FAILED
        assert not result.merged
        assert result.error
