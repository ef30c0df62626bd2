"""Exception hierarchy for backup, restore and cloud sync.

Structural problems (no signed-in user, malformed backup) are raised
before anything is written. Per-collection failures during a restore are
not exceptions: they are collected in ``ImportResult.errors``.
"""

from typing import Optional


class StudyTrackerError(Exception):
    """Base exception for all studytracker errors."""

    pass


class AuthenticationError(StudyTrackerError):
    """Raised when an operation needs a signed-in user and there is none."""

    def __init__(self, message: str = "User is not authenticated"):
        super().__init__(message)


class ValidationError(StudyTrackerError):
    """Raised when a backup document is malformed or unsupported."""

    pass


class BackupExportError(StudyTrackerError):
    """Raised when reading user data for a backup fails."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class DocumentStoreError(StudyTrackerError):
    """Raised when the document store rejects a read or write."""

    pass


class ProviderError(StudyTrackerError):
    """Raised by a cloud storage provider when an API call fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class RemoteOperationError(StudyTrackerError):
    """Raised when talking to the cloud storage provider fails.

    Carries a user-facing message plus the underlying cause.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.message = message
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class BackupNotFoundError(RemoteOperationError):
    """Raised when a restore needs a remote backup file and none exists."""

    def __init__(self, message: str = "No backup file found"):
        super().__init__(message)
