# Sync/__init__.py
# Remote mirroring of collection files: a debounced, coalescing queue in front of
# an atomic multi-file commit against a Git Data API.
from .exceptions import SyncError, TransportError
from .models import PendingSyncFile
from .transport import GitDataTransport
from .queue import SyncQueue

__all__ = ["SyncError", "TransportError", "PendingSyncFile", "GitDataTransport", "SyncQueue"]
