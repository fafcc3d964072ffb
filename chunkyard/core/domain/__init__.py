"""
Domain models for the chunked upload protocol.

Pure models without framework or infrastructure dependencies.
"""

from .errors import (
    ErrorCode, UploadError, InvalidCallerError, InvalidRequestError,
    InvalidChunkError, SessionNotFoundError, UnauthorizedError,
    AlreadyCompletedError, CompletionInProgressError, IncompleteUploadError,
    SizeExceededError, CorruptedUploadError, UploadFailedError
)
from .events import Event, EventPriority, UploadEvents
from .progress import project
from .sessions import AssetDescriptor, AssetUpload, SessionDescriptor, UploadSession

__all__ = [
    "ErrorCode",
    "UploadError",
    "InvalidCallerError",
    "InvalidRequestError",
    "InvalidChunkError",
    "SessionNotFoundError",
    "UnauthorizedError",
    "AlreadyCompletedError",
    "CompletionInProgressError",
    "IncompleteUploadError",
    "SizeExceededError",
    "CorruptedUploadError",
    "UploadFailedError",
    "Event",
    "EventPriority",
    "UploadEvents",
    "project",
    "AssetDescriptor",
    "AssetUpload",
    "SessionDescriptor",
    "UploadSession",
]
