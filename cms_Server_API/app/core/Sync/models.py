# Sync/models.py
from dataclasses import dataclass


@dataclass(frozen=True)
class PendingSyncFile:
    """One collection file waiting to be mirrored. At most one per filename is ever pending."""
    name: str
    content: str
