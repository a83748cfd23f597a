"""Exception taxonomy for jarbackup.

Structural failures (unreadable index, unknown layout, storage I/O) are
raised and abort the current operation. Per-entry failures during a restore
are recorded in the restore report instead of being raised.
"""

from pathlib import Path
from typing import Optional


class JarBackupError(Exception):
    """Base exception for all jarbackup errors."""
    pass


class StorageIOError(JarBackupError):
    """Raised when reading or writing the CAS or an index fails."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


class BlobNotFound(StorageIOError):
    """Raised when a blob is absent from its version directory."""
    pass


class MalformedIndex(JarBackupError):
    """Raised when an index manifest cannot be parsed."""
    pass


class InvalidVersionLayout(JarBackupError):
    """Raised when a path is not a snapshot or diff directory of a jar."""
    pass


class InvalidTimestampReference(JarBackupError):
    """Raised when an entry's source timestamp is not in the version chain."""

    def __init__(self, message: str, timestamp: str):
        super().__init__(message)
        self.timestamp = timestamp


class PermissionApplyError(JarBackupError):
    """Raised when mode or ownership cannot be applied to a restored path."""
    pass
