"""
Error kinds and exceptions for git operations.

git reports failures only as free text on stderr (and occasionally stdout).
`classify_failure` is the one place that reads that text; everything else in
the engine branches on the `GitErrorKind` it returns.

Matching is done on lowercase English substrings, so a git configured for a
different locale may produce text that falls through to ``UNKNOWN``. The
engine treats ``UNKNOWN`` as transient, which fails open.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vibechannel.core.git.process import ProcessResult


class GitErrorKind(str, Enum):
    """Closed classification of a failed git invocation."""

    PERMISSION_DENIED = "permission_denied"
    NO_REMOTE_REF = "no_remote_ref"
    NOTHING_TO_COMMIT = "nothing_to_commit"
    MERGE_CONFLICT = "merge_conflict"
    NO_UPSTREAM = "no_upstream"
    NETWORK = "network"
    TIMEOUT = "timeout"
    NOT_A_REPOSITORY = "not_a_repository"
    GIT_NOT_FOUND = "git_not_found"
    UNKNOWN = "unknown"


PERMISSION_SIGNATURES = ("permission", "denied", "not allowed", "forbidden")

# HTTP 403 as a standalone status code, not digits inside a SHA or a timestamp
_HTTP_FORBIDDEN = re.compile(r"(?<![0-9a-z])403(?![0-9a-z])")

_NOTHING_TO_COMMIT = (
    "nothing to commit",
    "nothing added to commit",
    "no changes added to commit",
)

_NO_REMOTE_REF = ("couldn't find remote ref", "could not find remote ref")

_MERGE_CONFLICT = (
    "conflict",
    "automatic merge failed",
    "unmerged files",
    "divergent branches",
    "unrelated histories",
    "would be overwritten by merge",
)

_NO_UPSTREAM = ("has no upstream", "no upstream")

_NETWORK = (
    "could not resolve host",
    "could not read from remote",
    "unable to access",
    "connection refused",
    "connection reset",
    "connection timed out",
    "network is unreachable",
    "does not appear to be a git repository",
    "failed to connect",
)

_NOT_A_REPOSITORY = ("not a git repository",)


def matches_permission_denial(text: str) -> bool:
    """Check whether error text carries one of the known denial signatures."""
    lowered = text.lower()
    if _HTTP_FORBIDDEN.search(lowered):
        return True
    return any(signature in lowered for signature in PERMISSION_SIGNATURES)


def classify_failure(result: ProcessResult) -> GitErrorKind | None:
    """
    Classify a git process result.

    Args:
        result: Result of running a git command.

    Returns:
        None if the command succeeded, otherwise the error kind.
    """
    if result.success:
        return None

    if result.timed_out:
        return GitErrorKind.TIMEOUT

    if result.error and result.exit_code is None:
        # The process never ran
        if "not found" in result.error.lower():
            return GitErrorKind.GIT_NOT_FOUND
        return GitErrorKind.UNKNOWN

    text = f"{result.stderr}\n{result.stdout}".lower()

    # Order matters: a rejected push mentions both the remote and the denial,
    # and "nothing to commit" output can include words like "conflict" in
    # file names.
    if any(s in text for s in _NOTHING_TO_COMMIT):
        return GitErrorKind.NOTHING_TO_COMMIT
    if any(s in text for s in _NOT_A_REPOSITORY):
        return GitErrorKind.NOT_A_REPOSITORY
    if matches_permission_denial(text):
        return GitErrorKind.PERMISSION_DENIED
    if any(s in text for s in _NO_REMOTE_REF):
        return GitErrorKind.NO_REMOTE_REF
    if any(s in text for s in _NO_UPSTREAM):
        return GitErrorKind.NO_UPSTREAM
    if any(s in text for s in _MERGE_CONFLICT):
        return GitErrorKind.MERGE_CONFLICT
    if any(s in text for s in _NETWORK):
        return GitErrorKind.NETWORK
    return GitErrorKind.UNKNOWN


class VibeChannelError(Exception):
    """Base exception for the sync engine."""


class NotAGitRepositoryError(VibeChannelError):
    """Raised when a path is not a git repository. Not retried."""

    def __init__(self, path: str):
        super().__init__(f"Not a git repository: {path}")
        self.path = path


class GitCommandError(VibeChannelError):
    """Raised when a git primitive the engine cannot work around fails."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        stderr: str = "",
        kind: GitErrorKind = GitErrorKind.UNKNOWN,
    ):
        super().__init__(message)
        self.command = command
        self.stderr = stderr
        self.kind = kind

    def __str__(self) -> str:
        base = super().__str__()
        if self.stderr:
            return f"{base}: {self.stderr}"
        return base


class SessionBusyError(VibeChannelError):
    """Raised when an operation is attempted while another is in flight."""


class SessionNotInitializedError(VibeChannelError):
    """Raised when content is written before the session is initialized."""
