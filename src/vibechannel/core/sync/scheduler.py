"""
Periodic synchronization loop.

Each tick fetches the data branch, merges remote commits when the remote is
ahead, and flushes a queued push. Ticks run one after another in a single
task, so a slow tick delays the next one instead of overlapping it.
`stop()` only prevents future ticks; a git command already running is left
to finish (bounded by the runner's timeouts).
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from vibechannel.core.git.errors import GitErrorKind, SessionBusyError, VibeChannelError
from vibechannel.core.sync.models import PushResult, SyncEventType

if TYPE_CHECKING:
    from vibechannel.core.sync.session import RepositorySession

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 10.0


class SyncScheduler:
    """
    Runs sync ticks for one RepositorySession at a fixed interval.

    Example:
        >>> scheduler = SyncScheduler(session, interval_seconds=10)
        >>> scheduler.start()
        >>> ...
        >>> await scheduler.aclose()
    """

    def __init__(
        self,
        session: RepositorySession,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        auto_push: bool = True,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.session = session
        self.interval_seconds = interval_seconds
        self.auto_push = auto_push
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking. The first tick runs immediately."""
        if self.running:
            return
        logger.info("Starting sync loop with %ss interval", self.interval_seconds)
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run(self._stop_event))

    def stop(self) -> None:
        """Prevent further ticks."""
        if self._stop_event is not None:
            self._stop_event.set()

    async def aclose(self) -> None:
        """Stop and wait for the loop, including any tick in progress."""
        self.stop()
        task, self._task = self._task, None
        if task is not None:
            await task
            logger.info("Sync loop stopped")

    def set_interval(self, interval_seconds: float) -> None:
        """Change the interval; takes effect after the current wait."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.interval_seconds = interval_seconds

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self.tick()
            except Exception:
                # Keep the loop alive; the next tick retries
                logger.exception("Unexpected error during sync tick")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                pass

    async def tick(self) -> bool:
        """
        Run one sync pass.

        Returns:
            False if the tick was skipped (session not initialized, no
            remote, or another operation in flight), True otherwise.
        """
        session = self.session
        if not session.is_initialized:
            return False
        if not await session.has_remote():
            return False
        if session.is_busy:
            logger.debug("Session busy, skipping sync tick")
            return False

        session.events.emit(SyncEventType.SYNC_START)
        try:
            fetch = await session.fetch()
            if fetch.success:
                if await session.has_remote_changes():
                    pull = await session.pull()
                    if pull.merged:
                        session.events.emit(
                            SyncEventType.NEW_CONTENT, head_commit=pull.head_commit
                        )
                    else:
                        session.events.emit(SyncEventType.SYNC_ERROR, error=pull.error)
            elif fetch.kind is not GitErrorKind.NO_REMOTE_REF:
                # Remote unreachable: still try the queued push below, it
                # will be retried on the next tick if it fails too
                session.events.emit(SyncEventType.SYNC_ERROR, error=fetch.message)

            if session.push_pending and not session.is_read_only() and self.auto_push:
                await self.push_now()

            session.events.emit(SyncEventType.SYNC_COMPLETE)
        except SessionBusyError:
            logger.debug("Session became busy during sync tick")
        except VibeChannelError as e:
            logger.warning("Sync tick failed: %s", e)
            session.events.emit(SyncEventType.SYNC_ERROR, error=str(e))
        return True

    async def push_now(self) -> PushResult:
        """
        Push the data branch and report the outcome as events.

        Success clears the push queue. A permission denial moves the session
        to read-only (announced once by the session). Any other failure keeps
        the queue for the next tick.
        """
        result = await self.session.push()
        if result.success:
            self.session.events.emit(SyncEventType.PUSH_COMPLETE)
        elif result.no_remote:
            logger.info("No remote configured, content saved locally only")
        elif result.no_permission:
            logger.debug("Push skipped or denied: session is read-only")
        else:
            self.session.events.emit(SyncEventType.PUSH_ERROR, error=result.error or "Push failed")
        return result

    async def force_sync(self) -> bool:
        """Run a tick now, outside the schedule."""
        return await self.tick()

    async def force_push(self) -> bool:
        """Push now regardless of the queue. Returns True on success."""
        result = await self.push_now()
        return result.success
