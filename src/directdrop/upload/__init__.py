"""Direct-to-object-storage upload pipeline.

Public API
----------
.. autoclass:: UploadSession
.. autoclass:: UploadApiClient
.. autoclass:: DirectUploader
.. autoclass:: UploadWorkerPool
.. autoclass:: RetryPolicy
.. autoclass:: ProgressRecorder
.. autoclass:: UploadProgressTracker
"""

from directdrop.upload.client import PresignResult, UploadApiClient
from directdrop.upload.exceptions import (
    AuthenticationError,
    DesyncError,
    FinalizeError,
    PresignError,
    SessionBusyError,
    StorageUploadError,
    UploadError,
    ValidationError,
)
from directdrop.upload.features import (
    SharedAssetFeature,
    TransferAppendFeature,
    TransferFeature,
    UploadFeature,
    WordMediaFeature,
)
from directdrop.upload.fsm import UploadSessionSM
from directdrop.upload.pool import FIXED_CONCURRENCY, UploadCompleted, UploadWorkerPool
from directdrop.upload.progress import ProgressRecorder, UploadProgressTracker
from directdrop.upload.reconciler import reconcile
from directdrop.upload.retry import (
    RetryPolicy,
    backoff_delay,
    call_with_retry,
    is_retryable_status,
)
from directdrop.upload.schemas import (
    FinalizeResult,
    MediaUploadResult,
    TransferResult,
    UploadedMedia,
)
from directdrop.upload.session import UploadSession
from directdrop.upload.storage import DirectUploader

__all__ = [
    "AuthenticationError",
    "DesyncError",
    "DirectUploader",
    "FIXED_CONCURRENCY",
    "FinalizeError",
    "FinalizeResult",
    "MediaUploadResult",
    "PresignError",
    "PresignResult",
    "ProgressRecorder",
    "RetryPolicy",
    "SessionBusyError",
    "SharedAssetFeature",
    "StorageUploadError",
    "TransferAppendFeature",
    "TransferFeature",
    "TransferResult",
    "UploadApiClient",
    "UploadCompleted",
    "UploadError",
    "UploadFeature",
    "UploadProgressTracker",
    "UploadSession",
    "UploadSessionSM",
    "UploadWorkerPool",
    "UploadedMedia",
    "ValidationError",
    "WordMediaFeature",
    "backoff_delay",
    "call_with_retry",
    "is_retryable_status",
    "reconcile",
]
