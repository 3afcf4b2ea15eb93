"""
Tests for the periodic sync loop and event emission.
"""

import asyncio
from pathlib import Path

import pytest
import pytest_asyncio

from vibechannel.core.config import VibeChannelConfig
from vibechannel.core.sync import (
    RepositorySession,
    SyncEvent,
    SyncEventEmitter,
    SyncEventType,
    SyncScheduler,
)


@pytest_asyncio.fixture
async def alice(repo_with_remote: Path):
    session = RepositorySession()
    await session.initialize(repo_with_remote)
    yield session
    await session.dispose()


@pytest_asyncio.fixture
async def bob(bare_remote: Path, make_clone, alice: RepositorySession):
    session = RepositorySession()
    await session.initialize(make_clone(bare_remote, "bob"))
    yield session
    await session.dispose()


def _types(events: list[SyncEvent]) -> list[SyncEventType]:
    return [e.type for e in events]


class TestSyncEventEmitter:
    """Tests for SyncEventEmitter."""

    def test_delivers_in_order(self) -> None:
        emitter = SyncEventEmitter()
        seen: list[str] = []
        emitter.subscribe(lambda e: seen.append(f"a:{e.type.value}"))
        emitter.subscribe(lambda e: seen.append(f"b:{e.type.value}"))

        emitter.emit(SyncEventType.SYNC_START)

        assert seen == ["a:sync_start", "b:sync_start"]

    def test_failing_listener_does_not_stop_others(self) -> None:
        emitter = SyncEventEmitter()
        seen: list[SyncEvent] = []

        def broken(event: SyncEvent) -> None:
            raise RuntimeError("boom")

        emitter.subscribe(broken)
        emitter.subscribe(seen.append)

        event = emitter.emit(SyncEventType.NEW_CONTENT, head_commit="abc")

        assert seen == [event]
        assert event.head_commit == "abc"

    def test_unsubscribe(self) -> None:
        emitter = SyncEventEmitter()
        seen: list[SyncEvent] = []
        unsubscribe = emitter.subscribe(seen.append)

        unsubscribe()
        emitter.emit(SyncEventType.SYNC_START)

        assert seen == []


class TestTick:
    """Tests for SyncScheduler.tick."""

    @pytest.mark.asyncio
    async def test_skipped_without_remote(self, git_repo: Path) -> None:
        session = RepositorySession()
        await session.initialize(git_repo)
        events: list[SyncEvent] = []
        session.on_sync_event(events.append)

        assert await session.scheduler.tick() is False
        assert events == []
        await session.dispose()

    @pytest.mark.asyncio
    async def test_skipped_before_initialize(self) -> None:
        scheduler = SyncScheduler(RepositorySession())

        assert await scheduler.tick() is False

    @pytest.mark.asyncio
    async def test_quiet_tick(self, alice: RepositorySession) -> None:
        events: list[SyncEvent] = []
        alice.on_sync_event(events.append)

        assert await alice.scheduler.tick() is True

        assert _types(events) == [SyncEventType.SYNC_START, SyncEventType.SYNC_COMPLETE]

    @pytest.mark.asyncio
    async def test_new_content_from_other_writer(
        self, alice: RepositorySession, bob: RepositorySession
    ) -> None:
        await bob.write_message("general", "20250115T103045-bob-bbbbbb.md", "hello\n")
        assert (await bob.push()).success
        events: list[SyncEvent] = []
        alice.on_sync_event(events.append)

        await alice.scheduler.tick()

        assert _types(events) == [
            SyncEventType.SYNC_START,
            SyncEventType.NEW_CONTENT,
            SyncEventType.SYNC_COMPLETE,
        ]
        assert events[1].head_commit == await alice.get_head_commit()
        assert "20250115T103045-bob-bbbbbb.md" in alice.list_message_files("general")

    @pytest.mark.asyncio
    async def test_merges_then_pushes_queued_commit(
        self, alice: RepositorySession, bob: RepositorySession, bare_remote: Path, git
    ) -> None:
        await bob.write_message("general", "20250115T103045-bob-bbbbbb.md", "from bob\n")
        assert (await bob.push()).success
        await alice.write_message("general", "20250115T103046-alice-aaaaaa.md", "from alice\n")
        events: list[SyncEvent] = []
        alice.on_sync_event(events.append)

        await alice.scheduler.tick()

        assert _types(events) == [
            SyncEventType.SYNC_START,
            SyncEventType.NEW_CONTENT,
            SyncEventType.PUSH_COMPLETE,
            SyncEventType.SYNC_COMPLETE,
        ]
        assert not alice.push_pending
        assert git(bare_remote, "rev-parse", "vibechannel") == await alice.get_head_commit()

    @pytest.mark.asyncio
    async def test_transient_push_failure_is_retried(
        self, alice: RepositorySession, bare_remote: Path, tmp_path: Path, git
    ) -> None:
        repo = alice.repo_path
        await alice.write_message("general", "20250115T103045-alice-aaaaaa.md", "hi\n")
        events: list[SyncEvent] = []
        alice.on_sync_event(events.append)

        git(repo, "remote", "set-url", "origin", str(tmp_path / "offline.git"))
        await alice.scheduler.tick()

        assert _types(events) == [
            SyncEventType.SYNC_START,
            SyncEventType.SYNC_ERROR,
            SyncEventType.PUSH_ERROR,
            SyncEventType.SYNC_COMPLETE,
        ]
        assert alice.push_pending
        assert not alice.is_read_only()

        events.clear()
        git(repo, "remote", "set-url", "origin", str(bare_remote))
        await alice.scheduler.tick()

        assert SyncEventType.PUSH_COMPLETE in _types(events)
        assert not alice.push_pending

    @pytest.mark.asyncio
    async def test_revoked_access_goes_read_only(
        self, alice: RepositorySession, bare_remote: Path, deny_pushes
    ) -> None:
        deny_pushes(bare_remote)
        await alice.write_message("general", "20250115T103045-alice-aaaaaa.md", "hi\n")
        events: list[SyncEvent] = []
        alice.on_sync_event(events.append)

        await alice.scheduler.tick()
        await alice.scheduler.tick()

        assert _types(events).count(SyncEventType.ENTERED_READ_ONLY) == 1
        assert SyncEventType.PUSH_ERROR not in _types(events)
        assert alice.is_read_only()
        assert not alice.push_pending

    @pytest.mark.asyncio
    async def test_no_push_when_auto_push_disabled(self, repo_with_remote: Path) -> None:
        session = RepositorySession(config=VibeChannelConfig(sync={"auto_push": False}))
        await session.initialize(repo_with_remote)
        await session.write_message("general", "20250115T103045-test-aaaaaa.md", "hi\n")

        assert await session.queue_push() is None
        await session.scheduler.tick()

        assert session.push_pending
        assert await session.scheduler.force_push()
        assert not session.push_pending
        await session.dispose()


class TestLoop:
    """Tests for start/stop of the background loop."""

    @pytest.mark.asyncio
    async def test_start_runs_first_tick_immediately(self, alice: RepositorySession) -> None:
        completed = asyncio.Event()
        alice.on_sync_event(
            lambda e: completed.set() if e.type is SyncEventType.SYNC_COMPLETE else None
        )
        alice.scheduler.set_interval(60)

        alice.start_sync()
        await asyncio.wait_for(completed.wait(), timeout=10)

        assert alice.scheduler.running
        await alice.stop_sync()
        assert not alice.scheduler.running

    @pytest.mark.asyncio
    async def test_stop_prevents_further_ticks(self, alice: RepositorySession) -> None:
        starts: list[SyncEvent] = []
        alice.on_sync_event(
            lambda e: starts.append(e) if e.type is SyncEventType.SYNC_START else None
        )
        scheduler = alice.start_sync()
        scheduler.set_interval(0.05)
        await asyncio.sleep(0.3)

        await scheduler.aclose()
        count = len(starts)
        await asyncio.sleep(0.2)

        assert count >= 1
        assert len(starts) == count

    @pytest.mark.asyncio
    async def test_restart_after_reset(self, alice: RepositorySession) -> None:
        alice.scheduler.set_interval(60)
        alice.start_sync()

        await alice.reset()
        assert not alice.scheduler.running

        await alice.initialize()
        completed = asyncio.Event()
        alice.on_sync_event(
            lambda e: completed.set() if e.type is SyncEventType.SYNC_COMPLETE else None
        )
        alice.start_sync()
        await asyncio.wait_for(completed.wait(), timeout=10)
        await asyncio.sleep(0.1)

        assert alice.scheduler.running
        await alice.stop_sync()

    def test_interval_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            SyncScheduler(RepositorySession(), interval_seconds=0)
