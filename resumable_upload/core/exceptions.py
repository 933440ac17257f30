"""Exceptions raised by the upload engine.

Exception Hierarchy:
    UploadError (base)
    ├── ChunkTransferError
    ├── SourceMismatchError
    ├── MissingDataSourceError
    └── SessionNotFoundError

Chunk transfer failures never escape the scheduler; they are recorded on the
chunk record and retried. The others are reported to the caller.
"""
from typing import Any, Dict, Optional


class UploadError(Exception):
    """Base exception for upload engine errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        session_id: Upload session the error relates to, if any
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        error_code: str = "UPLOAD_ERROR",
        session_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.session_id = session_id
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a JSON-friendly dictionary."""
        result = {
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }
        if self.session_id:
            result["session_id"] = self.session_id
        return result


class ChunkTransferError(UploadError):
    """A single chunk could not be transferred."""

    def __init__(
        self,
        chunk_index: int,
        reason: str,
        session_id: Optional[str] = None,
    ):
        super().__init__(
            f"Failed to upload chunk {chunk_index}: {reason}",
            error_code="CHUNK_TRANSFER_FAILED",
            session_id=session_id,
            details={"chunk_index": chunk_index, "reason": reason},
        )
        self.chunk_index = chunk_index
        self.reason = reason


class SourceMismatchError(UploadError):
    """A candidate data source does not match the session's recorded file."""

    def __init__(
        self,
        session_id: str,
        expected_name: str,
        expected_size: int,
        actual_name: str,
        actual_size: int,
    ):
        super().__init__(
            "Please select the same file to resume upload.",
            error_code="SOURCE_MISMATCH",
            session_id=session_id,
            details={
                "expected": {"name": expected_name, "size": expected_size},
                "actual": {"name": actual_name, "size": actual_size},
            },
        )


class MissingDataSourceError(UploadError):
    """Chunk bytes were requested but no data source is bound."""

    def __init__(self, session_id: str):
        super().__init__(
            "File needed to resume upload. Please select the same file.",
            error_code="DATA_SOURCE_MISSING",
            session_id=session_id,
        )


class SessionNotFoundError(UploadError):
    """No persisted session exists for the given id."""

    def __init__(self, session_id: str):
        super().__init__(
            f"Upload session {session_id} not found",
            error_code="SESSION_NOT_FOUND",
            session_id=session_id,
        )
