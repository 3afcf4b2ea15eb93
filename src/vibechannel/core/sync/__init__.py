"""
Git-backed message store synchronization.

Conversation data lives on a dedicated `vibechannel` branch that is checked
out in its own worktree inside the repository's git directory, so it never
appears in the user's working copy. Commits are the replication unit: each
writer commits new message files locally and the sync loop fetches, merges
and pushes the branch.

Example:
    >>> from vibechannel.core.sync import RepositorySession, SyncEventType
    >>> session = RepositorySession()
    >>> result = await session.initialize(Path("."))
    >>> session.on_sync_event(lambda e: print(e.type))
    >>> session.start_sync()
"""

from vibechannel.core.sync.access import AccessProber
from vibechannel.core.sync.branch import BranchResolver
from vibechannel.core.sync.conflict import ConflictResolver
from vibechannel.core.sync.events import SyncEventEmitter
from vibechannel.core.sync.models import (
    DATA_BRANCH,
    WORKTREE_DIR,
    AccessCheck,
    AccessState,
    InitializeResult,
    OperationOutcome,
    PullResult,
    PushResult,
    RepositoryState,
    SyncEvent,
    SyncEventType,
)
from vibechannel.core.sync.scheduler import SyncScheduler
from vibechannel.core.sync.session import RepositorySession
from vibechannel.core.sync.worktree import Worktree, WorktreeManager

__all__ = [
    "DATA_BRANCH",
    "WORKTREE_DIR",
    "AccessCheck",
    "AccessProber",
    "AccessState",
    "BranchResolver",
    "ConflictResolver",
    "InitializeResult",
    "OperationOutcome",
    "PullResult",
    "PushResult",
    "RepositorySession",
    "RepositoryState",
    "SyncEvent",
    "SyncEventEmitter",
    "SyncEventType",
    "SyncScheduler",
    "Worktree",
    "WorktreeManager",
]
