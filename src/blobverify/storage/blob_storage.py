"""Blob storage interface definition.

Provides the BlobStorage abstract base class that all storage backends must
implement and that the conformance harness exercises.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from types import TracebackType

from blobverify.storage.models import BlobMetadata, ConnectionInfo, PutOptions

ListCallback = Callable[[BlobMetadata], None]


class BlobStorage(ABC):
    """Abstract base class for blob storage backends.

    All implementations must provide:
    - Atomic replace-on-write for a blob identifier
    - Metadata lookup without transferring content
    - Idempotent deletion
    - Prefix-filtered listing that stops on (and re-raises) callback errors
    - A connection descriptor that reconnects to the same namespace

    Implementations must be safe to call from multiple threads at once.

    Implementations:
    - InMemoryBlobStorage: process-local, namespaced (dev/test)
    - FilesystemBlobStorage: one file per blob under a base directory
    - HttpBlobStorage: REST blob service accessed through httpx
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability.

        Returns:
            Backend name string (e.g., "memory", "filesystem").
        """
        ...

    @abstractmethod
    def put_blob(
        self,
        blob_id: str,
        data: bytes,
        options: PutOptions | None = None,
    ) -> None:
        """Store a blob, replacing any existing contents.

        Args:
            blob_id: Identifier of the blob.
            data: Blob content as bytes.
            options: Write options. ``None`` is the same as ``PutOptions()``.

        Raises:
            BlobAlreadyExistsError: If do_not_recreate is set and the blob exists.
            SetTimeUnsupportedError: If set_mod_time is set but unsupported.
            StorageBackendError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    def get_blob(self, blob_id: str, offset: int = 0, length: int = -1) -> bytes:
        """Retrieve blob content, or a byte range of it.

        Args:
            blob_id: Identifier of the blob.
            offset: First byte to return.
            length: Number of bytes to return; negative means the whole blob,
                in which case offset must be 0.

        Returns:
            The requested bytes.

        Raises:
            BlobNotFoundError: If the blob does not exist.
            InvalidRangeError: If the range falls outside the blob.
            StorageBackendError: If the backend cannot complete the read.
        """
        ...

    @abstractmethod
    def get_metadata(self, blob_id: str) -> BlobMetadata:
        """Get blob metadata without retrieving content.

        Raises:
            BlobNotFoundError: If the blob does not exist.
            StorageBackendError: If the backend cannot complete the operation.
        """
        ...

    @abstractmethod
    def set_time(self, blob_id: str, timestamp: datetime) -> None:
        """Set the last-modified time of a blob.

        Raises:
            SetTimeUnsupportedError: If the backend cannot change timestamps,
                raised directly or as the ``__cause__`` of another error.
            BlobNotFoundError: If the blob does not exist.
            StorageBackendError: If the backend cannot complete the operation.
        """
        ...

    @abstractmethod
    def delete_blob(self, blob_id: str) -> None:
        """Delete a blob. Deleting a missing blob succeeds.

        Raises:
            StorageBackendError: If the backend cannot complete the deletion.
        """
        ...

    @abstractmethod
    def list_blobs(self, prefix: str, callback: ListCallback) -> None:
        """Invoke ``callback`` with metadata for each blob starting with ``prefix``.

        An exception raised by the callback stops the enumeration and is
        re-raised, either unchanged or as the ``__cause__`` of a wrapping
        error (``raise ... from e``).

        Raises:
            StorageBackendError: If the backend cannot complete the listing.
        """
        ...

    @abstractmethod
    def connection_info(self) -> ConnectionInfo:
        """Return the descriptor that reconnects to this storage namespace."""
        ...

    def display_name(self) -> str:
        """Return a human-readable name for reports."""
        return self.backend_name

    def close(self) -> None:
        """Release resources held by this handle."""
        return None

    def __enter__(self) -> BlobStorage:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
