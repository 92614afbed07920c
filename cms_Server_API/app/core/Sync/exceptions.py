# Sync/exceptions.py

class SyncError(Exception):
    """Base exception for remote sync."""
    pass

class TransportError(SyncError):
    """Represents a failed call against the remote Git Data API."""
    def __init__(self, message, status_code=None, step=None, *args):
        super().__init__(message, *args)
        self.status_code = status_code
        self.step = step

    def __str__(self):
        base = super().__str__()
        details = []
        if self.step: details.append(f"Step: {self.step}")
        if self.status_code: details.append(f"HTTP {self.status_code}")
        return f"{base} ({', '.join(details)})" if details else base
