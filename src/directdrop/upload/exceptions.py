"""Exception hierarchy for the direct upload pipeline.

Every fatal condition in a session collapses to one of these, and the
exception message is the human-readable text shown to the user.
"""

from __future__ import annotations


class UploadError(Exception):
    """Base class for all session-fatal upload failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(UploadError):
    """Target parameters or file names rejected before any bytes move."""


class AuthenticationError(UploadError):
    """The application server rejected the bearer credential (401).

    Never retried here; refreshing the credential belongs to the caller.
    """


class PresignError(UploadError):
    """The presign call failed or returned an unusable body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DesyncError(UploadError):
    """The server's target list cannot be matched to the local files."""


class StorageUploadError(UploadError):
    """A direct PUT to object storage failed after its retry budget."""

    def __init__(self, message: str, filename: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.filename = filename
        self.status_code = status_code


class FinalizeError(UploadError):
    """Bytes are in storage but the server could not finalize the batch."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SessionBusyError(UploadError):
    """An upload was requested while another one is still in flight."""
