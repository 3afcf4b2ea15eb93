"""
VibeChannel - chat channels stored in a git branch.

Every message is a file, every channel a directory, and commits on a
dedicated branch are how writers replicate to each other.
"""

__version__ = "0.1.0"

from vibechannel.core.config.models import VibeChannelConfig
from vibechannel.core.sync.models import InitializeResult, SyncEvent, SyncEventType
from vibechannel.core.sync.session import RepositorySession

__all__ = [
    "InitializeResult",
    "RepositorySession",
    "SyncEvent",
    "SyncEventType",
    "VibeChannelConfig",
    "__version__",
]
