"""
Error taxonomy for the chunked upload protocol.

Every failure surfaced by the upload orchestrator is one of these typed
errors. Callers (the HTTP layer, the CLI, tests) dispatch on the class or on
the ``code`` attribute; none of them is ever downgraded to a generic success.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Stable error codes exposed to API clients."""
    INVALID_CALLER = "invalid_caller"
    INVALID_REQUEST = "invalid_request"
    INVALID_CHUNK = "invalid_chunk"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    ALREADY_COMPLETED = "already_completed"
    COMPLETION_IN_PROGRESS = "completion_in_progress"
    INCOMPLETE = "incomplete"
    SIZE_EXCEEDED = "size_exceeded"
    CORRUPTED_UPLOAD = "corrupted_upload"
    UPLOAD_FAILED = "upload_failed"


class UploadError(Exception):
    """Base class for all upload protocol errors."""

    code: ErrorCode = ErrorCode.INVALID_REQUEST

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class InvalidCallerError(UploadError):
    """The caller identity is missing or blank."""
    code = ErrorCode.INVALID_CALLER


class InvalidRequestError(UploadError):
    """Session parameters supplied at initiation are invalid."""
    code = ErrorCode.INVALID_REQUEST


class InvalidChunkError(UploadError):
    """A chunk is out of range, empty, or would overflow the declared size."""
    code = ErrorCode.INVALID_CHUNK


class SessionNotFoundError(UploadError):
    """No session exists with the given identifier."""
    code = ErrorCode.NOT_FOUND

    def __init__(self, session_id: str):
        super().__init__(
            f"Upload session {session_id} not found",
            {"session_id": session_id},
        )
        self.session_id = session_id


class UnauthorizedError(UploadError):
    """The caller is not the identity that initiated the session."""
    code = ErrorCode.UNAUTHORIZED


class AlreadyCompletedError(UploadError):
    """The session has already been merged and handed to the asset store."""
    code = ErrorCode.ALREADY_COMPLETED


class CompletionInProgressError(AlreadyCompletedError):
    """Another completion of the same session is currently running."""
    code = ErrorCode.COMPLETION_IN_PROGRESS


class IncompleteUploadError(UploadError):
    """Not every chunk has been received yet."""
    code = ErrorCode.INCOMPLETE

    def __init__(self, session_id: str, received: int, expected: int):
        super().__init__(
            f"Upload session {session_id} is not complete. "
            f"Received {received}/{expected} chunks.",
            {"session_id": session_id, "received": received, "expected": expected},
        )
        self.received = received
        self.expected = expected


class SizeExceededError(UploadError):
    """The declared total size is above a configured limit."""
    code = ErrorCode.SIZE_EXCEEDED

    def __init__(self, size: int, limit: int, message: Optional[str] = None):
        super().__init__(
            message or f"File size ({size} bytes) exceeds maximum allowed ({limit} bytes)",
            {"size": size, "limit": limit},
        )
        self.size = size
        self.limit = limit


class CorruptedUploadError(UploadError):
    """Chunk lengths do not add up to the declared total size."""
    code = ErrorCode.CORRUPTED_UPLOAD


class UploadFailedError(UploadError):
    """The asset store rejected the assembled payload."""
    code = ErrorCode.UPLOAD_FAILED
