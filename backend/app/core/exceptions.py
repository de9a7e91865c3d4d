"""
Custom exception classes for unified error handling.
"""

from fastapi import HTTPException, status


class AppBaseError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


# ── Synchronous (request-time) errors ────────────────────

class InvalidUploadError(AppBaseError):
    """Raised when an ingestion request is missing its file or required fields."""
    def __init__(self, message: str = "Invalid upload request", detail: str | None = None):
        super().__init__(message=message, detail=detail)


class ForeignStoragePathError(AppBaseError):
    """Raised when a storage reference points outside the caller's namespace."""
    def __init__(self, storage_path: str):
        super().__init__(
            message="Storage path is not in your namespace",
            detail=f"Refusing to ingest '{storage_path}'.",
        )


class UploadTooLargeError(AppBaseError):
    """Raised when an upload exceeds the configured byte limit."""
    def __init__(self, size: int, limit: int):
        super().__init__(
            message="File too large",
            detail=f"{size} bytes exceeds the {limit} byte limit.",
        )


class DocumentNotFoundError(AppBaseError):
    """Raised when a document does not exist or belongs to another owner."""
    def __init__(self, document_id: str):
        super().__init__(message="Document not found", detail=document_id)


class CompletionServiceError(AppBaseError):
    """Raised when the hosted completion model fails to answer."""
    def __init__(self, original_error: str):
        super().__init__(message="AI service error", detail=original_error)


# ── Background pipeline errors ───────────────────────────

class InvalidStatusTransitionError(AppBaseError):
    """Raised when the pipeline tries to move a document backwards."""
    def __init__(self, current: str, target: str):
        super().__init__(
            message=f"Illegal status transition {current} -> {target}",
            detail="Document status only moves forward.",
        )


class PipelineStageError(AppBaseError):
    """Wraps any exception escaping an ingestion stage."""
    def __init__(self, stage: str, original_error: Exception):
        self.stage = stage
        self.original_error = original_error
        super().__init__(
            message=f"Stage '{stage}' failed",
            detail=str(original_error),
        )


class ChunkStoreWriteError(AppBaseError):
    """Raised when a chunk batch insert fails."""
    def __init__(self, batch_number: int, total_batches: int, original_error: str):
        self.batch_number = batch_number
        self.total_batches = total_batches
        super().__init__(
            message=f"Chunk batch {batch_number}/{total_batches} failed to insert",
            detail=original_error,
        )


# ── Utility: convert to HTTPException ────────────────────

def app_error_to_http(error: AppBaseError, status_code: int = status.HTTP_400_BAD_REQUEST) -> HTTPException:
    """Convert an AppBaseError to an HTTPException with consistent JSON body."""
    return HTTPException(
        status_code=status_code,
        detail={
            "error": error.message,
            "detail": error.detail,
            "type": type(error).__name__,
        },
    )
