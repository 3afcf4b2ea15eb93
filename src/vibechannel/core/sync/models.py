"""
Data models for the sync engine.

Defines Pydantic models for detected repository state, access checks,
push/pull results, initialization results and sync events.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from vibechannel.core.git.errors import GitErrorKind

DATA_BRANCH = "vibechannel"
WORKTREE_DIR = "vibechannel-worktree"


class OperationOutcome(str, Enum):
    """How a best-effort operation finished."""

    SUCCEEDED = "succeeded"
    SUCCEEDED_WITH_WARNING = "succeeded_with_warning"
    FAILED = "failed"


class AccessState(str, Enum):
    """Write access to the remote, as known by a session."""

    UNKNOWN = "unknown"
    WRITABLE = "writable"
    READ_ONLY = "read_only"


class RepositoryState(BaseModel):
    """
    Snapshot of the repository taken at the start of initialization.

    Example:
        >>> state = RepositoryState(has_remote_origin=True, has_remote_branch=False)
        >>> state.needs_access_check
        True
    """

    has_remote_origin: bool = False
    has_remote_branch: bool = False
    has_local_branch: bool = False
    has_worktree: bool = False
    worktree_valid: bool = False

    @property
    def needs_access_check(self) -> bool:
        """A remote exists but nobody has published the data branch yet."""
        return self.has_remote_origin and not self.has_remote_branch


class AccessCheck(BaseModel):
    """Result of probing the remote for write access."""

    can_write: bool
    reason: str | None = Field(
        default=None,
        description="Why writing is not possible (e.g. 'no-permission')",
    )
    outcome: OperationOutcome = OperationOutcome.SUCCEEDED
    warnings: list[str] = Field(default_factory=list)


class PushResult(BaseModel):
    """Result of pushing the data branch."""

    success: bool
    no_remote: bool = False
    no_permission: bool = False
    skipped: bool = Field(
        default=False,
        description="True when the push was not attempted (session is read-only)",
    )
    error_kind: GitErrorKind | None = None
    error: str | None = None


class PullResult(BaseModel):
    """
    Result of fetching and merging the remote data branch.

    ``success`` is True only for a clean merge. When the merge failed and the
    local-wins fallback ran, ``resolved_conflicts`` is True and ``outcome``
    tells whether the fallback itself completed.
    """

    success: bool
    outcome: OperationOutcome
    resolved_conflicts: bool = False
    head_commit: str | None = None
    error: str | None = None
    warnings: list[str] = Field(default_factory=list)

    @property
    def merged(self) -> bool:
        """Whether remote content is now part of the local branch."""
        return self.outcome is not OperationOutcome.FAILED


class InitializeResult(BaseModel):
    """Result of RepositorySession.initialize."""

    writable: bool
    has_prior_remote_content: bool = False
    worktree_path: Path | None = None
    read_only_reason: str | None = None
    created_branch: bool = False
    created_worktree: bool = False
    seeded: bool = False


class SyncEventType(str, Enum):
    """Notifications emitted to consumers of a session."""

    SYNC_START = "sync_start"
    SYNC_COMPLETE = "sync_complete"
    NEW_CONTENT = "new_content"
    SYNC_ERROR = "sync_error"
    PUSH_COMPLETE = "push_complete"
    PUSH_ERROR = "push_error"
    ENTERED_READ_ONLY = "entered_read_only"


class SyncEvent(BaseModel):
    """A single sync notification."""

    type: SyncEventType
    head_commit: str | None = None
    error: str | None = None
    reason: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
