"""
Process boundary for git.

All version-control primitives run through `GitRunner`, which returns
structured `GitResult` objects whose failures are classified into the closed
`GitErrorKind` enum by `classify_failure`.
"""

from vibechannel.core.git.errors import (
    GitCommandError,
    GitErrorKind,
    NotAGitRepositoryError,
    SessionBusyError,
    SessionNotInitializedError,
    VibeChannelError,
    classify_failure,
    matches_permission_denial,
)
from vibechannel.core.git.process import ProcessResult, run_process
from vibechannel.core.git.runner import GitResult, GitRunner

__all__ = [
    "GitCommandError",
    "GitErrorKind",
    "GitResult",
    "GitRunner",
    "NotAGitRepositoryError",
    "ProcessResult",
    "SessionBusyError",
    "SessionNotInitializedError",
    "VibeChannelError",
    "classify_failure",
    "matches_permission_denial",
    "run_process",
]
