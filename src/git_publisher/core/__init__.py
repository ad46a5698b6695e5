"""Remote repository adapters and async plumbing shared by the publisher."""

from .async_utils import run_sync, run_sync_limited
from .remote import NodeKind, RemoteEntry, RemoteRepositoryService, WriteResult

__all__ = [
    "NodeKind",
    "RemoteEntry",
    "RemoteRepositoryService",
    "WriteResult",
    "run_sync",
    "run_sync_limited",
]
