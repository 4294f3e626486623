"""Direct-to-storage upload client for transfers, words media and shared assets."""

__version__ = "0.1.0"

from directdrop.models import (
    CandidateFile,
    ClientConfig,
    FileKind,
    FileReference,
    SessionPhase,
    SessionProgress,
    UploadEntry,
    UploadTarget,
)

__all__ = [
    "CandidateFile",
    "ClientConfig",
    "FileKind",
    "FileReference",
    "SessionPhase",
    "SessionProgress",
    "UploadEntry",
    "UploadTarget",
    "__version__",
]
