"""Blob storage error types.

Every backend reports failures through this hierarchy so the conformance
harness can tell the expected outcomes (not found, unsupported capability)
apart from hard failures.
"""

from __future__ import annotations


class BlobStorageError(Exception):
    """Base exception for blob storage operations.

    Attributes:
        message: Human-readable error message.
        blob_id: Blob identifier associated with the operation (if applicable).
    """

    def __init__(self, message: str, *, blob_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.blob_id = blob_id

    def __str__(self) -> str:
        if self.blob_id is not None:
            return f"{self.message} blob_id={self.blob_id}"
        return self.message


class BlobNotFoundError(BlobStorageError):
    """Raised when a blob does not exist in storage."""

    def __init__(self, message: str = "Blob not found", *, blob_id: str | None = None) -> None:
        super().__init__(message, blob_id=blob_id)


class SetTimeUnsupportedError(BlobStorageError):
    """Raised by backends that cannot change a blob's timestamp.

    This is a capability report, not a failure: callers are expected to
    check for it and carry on.
    """

    def __init__(
        self,
        message: str = "Setting blob time is not supported",
        *,
        blob_id: str | None = None,
    ) -> None:
        super().__init__(message, blob_id=blob_id)


class InvalidRangeError(BlobStorageError):
    """Raised when a partial read asks for bytes outside the blob."""

    def __init__(
        self,
        message: str = "Invalid blob offset or length",
        *,
        blob_id: str | None = None,
        offset: int | None = None,
        length: int | None = None,
    ) -> None:
        super().__init__(message, blob_id=blob_id)
        self.offset = offset
        self.length = length


class BlobAlreadyExistsError(BlobStorageError):
    """Raised when ``PutOptions.do_not_recreate`` is set and the blob exists."""

    def __init__(self, message: str = "Blob already exists", *, blob_id: str | None = None) -> None:
        super().__init__(message, blob_id=blob_id)


class InvalidBlobIdError(BlobStorageError):
    """Raised when a backend cannot represent a blob identifier.

    Filesystem-backed storage rejects identifiers containing path
    separators or traversal segments.
    """

    def __init__(
        self,
        message: str = "Invalid blob ID",
        *,
        blob_id: str | None = None,
    ) -> None:
        super().__init__(message, blob_id=blob_id)


class StorageBackendError(BlobStorageError):
    """Raised when the storage backend cannot complete an operation.

    This error indicates the backend itself failed (e.g., disk full,
    permission denied, I/O error, unexpected HTTP status) rather than a
    logical error like blob not found.
    """

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        blob_id: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, blob_id=blob_id)
        self.cause = cause
