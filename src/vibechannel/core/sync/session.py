"""
Repository session: the sync engine's entry point.

A `RepositorySession` is owned by the caller and bound to one repository at
a time. It holds all mutable sync state (write access, the read-only reason
and the push queue) and serializes the operations that touch git metadata.

Initialization runs as a short-circuiting state machine:

1. reset access state and the push queue
2. validate the path is a git repository (fatal otherwise)
3. fetch from the remote, best effort
4. detect local/remote branch and worktree state
5. if the remote exists but has no data branch yet, probe write access
   before creating anything; on denial clean up leftovers and stop read-only
6. resolve the branch, then the worktree (seeding a brand-new branch)
7. pull if the remote branch already existed
8. publish the branch if the remote does not have it yet
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path

from vibechannel.core.config.models import VibeChannelConfig
from vibechannel.core.git.errors import (
    GitErrorKind,
    NotAGitRepositoryError,
    SessionBusyError,
    SessionNotInitializedError,
)
from vibechannel.core.git.runner import GitResult, GitRunner
from vibechannel.core.sync.access import NO_PERMISSION, AccessProber
from vibechannel.core.sync.branch import BranchResolver
from vibechannel.core.sync.conflict import ConflictResolver
from vibechannel.core.sync.events import SyncEventEmitter, SyncListener
from vibechannel.core.sync.models import (
    DATA_BRANCH,
    WORKTREE_DIR,
    AccessState,
    InitializeResult,
    PullResult,
    PushResult,
    RepositoryState,
    SyncEventType,
)
from vibechannel.core.sync.scheduler import SyncScheduler
from vibechannel.core.sync.worktree import WorktreeManager

logger = logging.getLogger(__name__)


def _validate_entry_name(name: str, what: str) -> None:
    if not name or name in (".", "..") or name.startswith("."):
        raise ValueError(f"Invalid {what} name: {name!r}")
    if "/" in name or "\\" in name:
        raise ValueError(f"{what.capitalize()} name must not contain path separators: {name!r}")


class RepositorySession:
    """
    Sync engine state for one repository.

    Example:
        >>> session = RepositorySession(config=load_config())
        >>> result = await session.initialize(Path("~/code/project").expanduser())
        >>> if result.writable:
        ...     await session.write_message("general", filename, content)
        ...     await session.queue_push()
        >>> session.start_sync()
        >>> ...
        >>> await session.dispose()
    """

    def __init__(
        self,
        repo_path: Path | None = None,
        *,
        config: VibeChannelConfig | None = None,
    ) -> None:
        self.config = config or VibeChannelConfig()
        self.branch_name = DATA_BRANCH
        self.events = SyncEventEmitter()

        # Shared by every GitRunner of this session
        self._git_lock = asyncio.Lock()
        self._operation_lock = asyncio.Lock()

        self._repo_path: Path | None = None
        self._worktree_path: Path | None = None
        self._initialized = False
        self._access_state = AccessState.UNKNOWN
        self._read_only_reason: str | None = None
        self._push_pending = False
        self._scheduler: SyncScheduler | None = None

        if repo_path is not None:
            self._bind(repo_path)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def repo_path(self) -> Path | None:
        return self._repo_path

    @property
    def worktree_path(self) -> Path | None:
        """Resolved worktree path, once initialized."""
        return self._worktree_path if self._initialized else None

    @property
    def remote_name(self) -> str:
        return self.config.git.remote_name

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def access_state(self) -> AccessState:
        return self._access_state

    @property
    def read_only_reason(self) -> str | None:
        return self._read_only_reason

    @property
    def push_pending(self) -> bool:
        return self._push_pending

    @property
    def is_busy(self) -> bool:
        """Whether initialize, pull or push is in flight."""
        return self._operation_lock.locked()

    def is_read_only(self) -> bool:
        return self._access_state is AccessState.READ_ONLY

    def on_sync_event(self, listener: SyncListener) -> Callable[[], None]:
        """Subscribe to sync events. Returns an unsubscribe function."""
        return self.events.subscribe(listener)

    def _reset_state(self) -> None:
        self._initialized = False
        self._access_state = AccessState.UNKNOWN
        self._read_only_reason = None
        self._push_pending = False

    def _enter_read_only(self, reason: str) -> None:
        self._push_pending = False
        if self._access_state is AccessState.READ_ONLY:
            return
        logger.info("Entering read-only mode: %s", reason)
        self._access_state = AccessState.READ_ONLY
        self._read_only_reason = reason
        self.events.emit(SyncEventType.ENTERED_READ_ONLY, reason=reason)

    def _mark_pending(self) -> None:
        # Nothing will ever be pushed from a read-only session
        if not self.is_read_only():
            self._push_pending = True

    # ------------------------------------------------------------------
    # Repository binding
    # ------------------------------------------------------------------

    def _bind(self, repo_path: Path) -> None:
        self._repo_path = repo_path.expanduser().resolve()
        self.git = GitRunner(
            self._repo_path,
            command_timeout=self.config.git.command_timeout,
            network_timeout=self.config.git.network_timeout,
            lock=self._git_lock,
        )
        self.access_prober = AccessProber(self.git, remote_name=self.remote_name)
        self.branch_resolver = BranchResolver(
            self.git, branch_name=self.branch_name, remote_name=self.remote_name
        )

    def _bind_worktree(self, worktree_path: Path) -> None:
        self._worktree_path = worktree_path
        self.worktree_manager = WorktreeManager(
            self.git, worktree_path, branch_name=self.branch_name
        )
        self.worktree_git = self.worktree_manager.worktree_git
        self.conflict_resolver = ConflictResolver(
            self.worktree_git, branch_name=self.branch_name, remote_name=self.remote_name
        )

    async def _switch_repository(self, repo_path: Path) -> None:
        if self._scheduler is not None:
            await self._scheduler.aclose()
        self._reset_state()
        self._worktree_path = None
        self._bind(repo_path)
        logger.info("Session switched to %s", self._repo_path)

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        if self._operation_lock.locked():
            raise SessionBusyError(f"Cannot {operation}: another operation is in progress")
        async with self._operation_lock:
            yield

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def initialize(self, repo_path: Path | None = None) -> InitializeResult:
        """
        Bring the repository's data branch and worktree into a usable state.

        Safe to call repeatedly on the same repository. Passing a different
        path switches the session to that repository, stopping the sync loop
        and clearing all state first.

        Raises:
            NotAGitRepositoryError: If the path is not a git repository.
            SessionBusyError: If another initialize/pull/push is in flight.
            GitCommandError: If the branch or worktree cannot be created.
        """
        if repo_path is None and self._repo_path is None:
            raise ValueError("No repository path given")

        async with self._guard("initialize"):
            if repo_path is not None and repo_path.expanduser().resolve() != self._repo_path:
                await self._switch_repository(repo_path)
            return await self._initialize()

    async def _validate_repository(self) -> Path:
        assert self._repo_path is not None
        if not self._repo_path.is_dir() or not (self._repo_path / ".git").exists():
            raise NotAGitRepositoryError(str(self._repo_path))
        result = await self.git.run(["rev-parse", "--absolute-git-dir"])
        if not result.success:
            raise NotAGitRepositoryError(str(self._repo_path))
        return Path(result.output)

    async def has_remote(self) -> bool:
        """Whether the configured remote exists."""
        if self._repo_path is None:
            return False
        result = await self.git.run(["remote"])
        return result.success and self.remote_name in result.output.splitlines()

    async def detect_state(self, has_remote: bool | None = None) -> RepositoryState:
        """Inspect branches and the worktree without changing anything."""
        if has_remote is None:
            has_remote = await self.has_remote()

        has_remote_branch = False
        if has_remote:
            remote_branch = await self.git.run(
                ["branch", "-r", "--list", f"{self.remote_name}/{self.branch_name}"]
            )
            has_remote_branch = remote_branch.success and bool(remote_branch.output)

        local_branch = await self.git.run(["branch", "--list", self.branch_name])
        has_worktree, worktree_valid = await self.worktree_manager.check()

        return RepositoryState(
            has_remote_origin=has_remote,
            has_remote_branch=has_remote_branch,
            has_local_branch=local_branch.success and bool(local_branch.output),
            has_worktree=has_worktree,
            worktree_valid=worktree_valid,
        )

    async def _cleanup_partial_state(self, state: RepositoryState) -> None:
        if state.has_worktree or await self.worktree_manager.is_registered():
            await self.worktree_manager.remove()
        await self.worktree_manager.remove_stale_registrations()
        if state.has_local_branch:
            await self.branch_resolver.delete()

    async def _initialize(self) -> InitializeResult:
        self._reset_state()

        git_dir = await self._validate_repository()
        self._bind_worktree(git_dir / WORKTREE_DIR)
        logger.info("Initializing %s", self._repo_path)

        has_remote = await self.has_remote()
        if has_remote:
            fetch = await self.git.run(["fetch", self.remote_name])
            if not fetch.success:
                logger.warning("Fetch failed (continuing anyway): %s", fetch.message)

        state = await self.detect_state(has_remote)
        logger.debug("Detected state: %s", state.model_dump())

        if state.needs_access_check:
            access = await self.access_prober.check_write_access(has_remote=True)
            if not access.can_write:
                if state.has_local_branch or state.has_worktree:
                    logger.info("Removing branch and worktree left by an earlier run")
                    await self._cleanup_partial_state(state)
                self._enter_read_only(access.reason or NO_PERMISSION)
                return InitializeResult(
                    writable=False,
                    has_prior_remote_content=False,
                    read_only_reason=self._read_only_reason,
                )
        self._access_state = AccessState.WRITABLE

        created_branch = await self.branch_resolver.resolve(state)
        resolution = await self.worktree_manager.resolve(
            state, seed_new_content=not state.has_remote_branch
        )
        self._initialized = True

        if state.has_remote_branch:
            logger.info("Pulling latest %s from %s", self.branch_name, self.remote_name)
            await self.conflict_resolver.pull()
            # Commits left unpushed by an earlier session
            if await self.has_unpushed_commits():
                logger.info(
                    "Local %s is ahead of %s, queueing push", self.branch_name, self.remote_name
                )
                self._mark_pending()

        if has_remote and not state.has_remote_branch:
            logger.info("Publishing %s to %s", self.branch_name, self.remote_name)
            push = await self._push()
            if not push.success and not push.no_permission:
                logger.warning("Initial push failed, will retry: %s", push.error)
                self._mark_pending()

        logger.info("Initialization complete, worktree at %s", resolution.path)
        return InitializeResult(
            writable=not self.is_read_only(),
            has_prior_remote_content=state.has_remote_branch,
            worktree_path=resolution.path,
            read_only_reason=self._read_only_reason,
            created_branch=created_branch,
            created_worktree=resolution.created,
            seeded=resolution.seeded,
        )

    # ------------------------------------------------------------------
    # Remote operations
    # ------------------------------------------------------------------

    def _require_initialized(self) -> Path:
        if not self._initialized or self._worktree_path is None:
            raise SessionNotInitializedError("Session is not initialized")
        return self._worktree_path

    async def fetch(self) -> GitResult:
        """Fetch only the data branch from the remote."""
        self._require_initialized()
        return await self.worktree_git.run(["fetch", self.remote_name, self.branch_name])

    async def has_remote_changes(self) -> bool:
        """Whether the remote-tracking branch has commits HEAD lacks."""
        self._require_initialized()
        return await self._count_commits(f"HEAD..{self.remote_name}/{self.branch_name}") > 0

    async def has_unpushed_commits(self) -> bool:
        """Whether HEAD has commits the remote-tracking branch lacks."""
        self._require_initialized()
        return await self._count_commits(f"{self.remote_name}/{self.branch_name}..HEAD") > 0

    async def _count_commits(self, revision_range: str) -> int:
        result = await self.worktree_git.run(["rev-list", "--count", revision_range])
        if not result.success:
            return 0
        try:
            return int(result.output)
        except ValueError:
            return 0

    async def pull(self) -> PullResult:
        """Merge the remote data branch (local wins on conflict)."""
        self._require_initialized()
        async with self._guard("pull"):
            return await self.conflict_resolver.pull()

    async def push(self) -> PushResult:
        """
        Push the data branch.

        Returns immediately without contacting the remote once the session
        is read-only.
        """
        self._require_initialized()
        async with self._guard("push"):
            return await self._push()

    async def _push(self) -> PushResult:
        if self.is_read_only():
            return PushResult(success=False, no_permission=True, skipped=True)

        if not await self.has_remote():
            self._push_pending = False
            return PushResult(success=False, no_remote=True)

        result = await self.worktree_git.run(
            ["push", "--set-upstream", self.remote_name, self.branch_name]
        )
        if not result.success and result.kind not in (
            GitErrorKind.PERMISSION_DENIED,
            GitErrorKind.TIMEOUT,
        ):
            logger.debug("Upstream push failed, retrying plain push: %s", result.message)
            result = await self.worktree_git.run(["push", self.remote_name, self.branch_name])

        if result.success:
            self._push_pending = False
            logger.info("Pushed %s to %s", self.branch_name, self.remote_name)
            return PushResult(success=True)

        if result.kind is GitErrorKind.PERMISSION_DENIED:
            self._enter_read_only(NO_PERMISSION)
            return PushResult(
                success=False,
                no_permission=True,
                error_kind=result.kind,
                error=result.message,
            )

        logger.warning("Push failed: %s", result.message)
        return PushResult(success=False, error_kind=result.kind, error=result.message)

    async def queue_push(self) -> PushResult | None:
        """
        Mark local commits as needing a push, and push now when auto-push is on.

        Returns:
            The push result, or None if no push was attempted (read-only,
            auto-push off, or another operation in flight; the sync loop
            picks it up later).
        """
        if self.is_read_only():
            return None
        self._mark_pending()
        if not self.config.sync.auto_push or not self._initialized:
            return None
        try:
            return await self.scheduler.push_now()
        except SessionBusyError:
            logger.debug("Push deferred to the next sync tick")
            return None

    async def get_head_commit(self) -> str | None:
        if not self._initialized:
            return None
        result = await self.worktree_git.run(["rev-parse", "HEAD"])
        return result.output if result.success else None

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def get_channel_path(self, channel: str) -> Path | None:
        if not self._initialized or self._worktree_path is None:
            return None
        return self._worktree_path / channel

    def list_channels(self) -> list[str]:
        """Sorted channel names (non-hidden top-level directories)."""
        if not self._initialized or self._worktree_path is None:
            return []
        if not self._worktree_path.exists():
            return []
        return sorted(
            entry.name
            for entry in self._worktree_path.iterdir()
            if entry.is_dir() and not entry.name.startswith(".")
        )

    def list_message_files(self, channel: str) -> list[str]:
        """
        Sorted file names in a channel, without any validation.

        Hidden files such as ``.gitkeep`` are left out; everything else is
        returned whether or not it is a well-formed message.
        """
        channel_path = self.get_channel_path(channel)
        if channel_path is None or not channel_path.is_dir():
            return []
        return sorted(
            entry.name
            for entry in channel_path.iterdir()
            if entry.is_file() and not entry.name.startswith(".")
        )

    async def commit_changes(self, message: str) -> bool:
        """
        Stage everything in the worktree and commit.

        Returns:
            True if a commit was made, False if there was nothing to commit.

        Raises:
            GitCommandError: If staging or committing fails for another reason.
        """
        self._require_initialized()
        add = await self.worktree_git.run(["add", "-A"])
        add.raise_for_error()

        identity = await self.worktree_git.identity_args()
        commit = await self.worktree_git.run([*identity, "commit", "-m", message])
        if commit.kind is GitErrorKind.NOTHING_TO_COMMIT:
            logger.debug("Nothing to commit for %r", message)
            return False
        commit.raise_for_error()

        self._mark_pending()
        return True

    async def create_channel(self, channel: str) -> bool:
        """
        Create a channel directory and commit it.

        Returns:
            True if the channel was created, False if it already existed.
        """
        worktree = self._require_initialized()
        _validate_entry_name(channel, "channel")
        channel_path = worktree / channel
        if channel_path.exists():
            return False
        channel_path.mkdir(parents=True)
        (channel_path / ".gitkeep").write_text("")
        await self.commit_changes(f"Create #{channel} channel")
        return True

    async def write_message(self, channel: str, filename: str, content: str) -> Path:
        """
        Write a message file into a channel and commit it.

        Returns:
            Path of the written file.
        """
        worktree = self._require_initialized()
        _validate_entry_name(channel, "channel")
        _validate_entry_name(filename, "message file")
        channel_path = worktree / channel
        channel_path.mkdir(parents=True, exist_ok=True)

        file_path = channel_path / filename
        file_path.write_text(content, encoding="utf-8")
        await self.commit_changes(f"Message in #{channel}")
        return file_path

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def scheduler(self) -> SyncScheduler:
        if self._scheduler is None:
            self._scheduler = SyncScheduler(
                self,
                interval_seconds=self.config.sync.interval_seconds,
                auto_push=self.config.sync.auto_push,
            )
        return self._scheduler

    def start_sync(self) -> SyncScheduler:
        """Start the background sync loop (requires a running event loop)."""
        self.scheduler.start()
        return self.scheduler

    async def stop_sync(self) -> None:
        if self._scheduler is not None:
            await self._scheduler.aclose()

    async def reset(self) -> None:
        """
        Stop the sync loop, then clear access state, the read-only flag and
        the push queue. ``start_sync`` may be called again afterwards.
        """
        await self.stop_sync()
        self._reset_state()

    async def dispose(self) -> None:
        """Stop syncing, clear all state and drop event listeners."""
        await self.stop_sync()
        self._scheduler = None
        self._reset_state()
        self.events.clear()
