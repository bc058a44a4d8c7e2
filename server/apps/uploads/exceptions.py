"""Exceptions for uploads app.

Every error carries a human-readable ``message`` and the HTTP status
the API answers with.
"""


class ChunkUploadError(Exception):
    """Base class for chunked upload failures."""

    status_code = 400

    def __init__(self, message: str) -> None:
        """Initialize with a human-readable message."""
        self.message = message
        super().__init__(message)


class UploadValidationError(ChunkUploadError):
    """Malformed upload or chunk parameters."""


class SizeLimitExceededError(ChunkUploadError):
    """Declared file size is above the configured maximum."""

    status_code = 413


class UploadNotFoundError(ChunkUploadError):
    """Unknown upload session, no chunks to merge, or missing file."""

    status_code = 404


class IncompleteUploadError(ChunkUploadError):
    """Merge requested while a chunk is missing or not completed."""

    status_code = 409

    def __init__(self, message: str, chunk_number: int) -> None:
        """Initialize with the first offending chunk number."""
        self.chunk_number = chunk_number
        super().__init__(message)


class UploadStateError(ChunkUploadError):
    """Operation not allowed in the session's current state."""

    status_code = 409


class UploadIntegrityError(ChunkUploadError):
    """Merged content does not match the declared hash or size."""

    status_code = 422


class UploadStorageError(ChunkUploadError):
    """Blob store read or write failed."""

    status_code = 502
