"""Blob storage abstraction.

Defines the BlobStorage contract the conformance harness verifies, the
shared error taxonomy and data model, and three reference backends.

Backends:
- InMemoryBlobStorage: process-local namespaces (dev/test)
- FilesystemBlobStorage: one file per blob under a base directory
- HttpBlobStorage: REST blob service accessed through httpx

Importing this package registers all three with the storage registry so
``new_storage(connection_info)`` can rebuild any of them.
"""

from blobverify.storage.blob_storage import BlobStorage, ListCallback
from blobverify.storage.errors import (
    BlobAlreadyExistsError,
    BlobNotFoundError,
    BlobStorageError,
    InvalidBlobIdError,
    InvalidRangeError,
    SetTimeUnsupportedError,
    StorageBackendError,
)
from blobverify.storage.filesystem_store import FilesystemBlobStorage
from blobverify.storage.http_store import HttpBlobStorage
from blobverify.storage.memory_store import InMemoryBlobStorage
from blobverify.storage.models import BlobMetadata, ConnectionInfo, PutOptions
from blobverify.storage.registry import new_storage, register_storage_type

__all__ = [
    "BlobAlreadyExistsError",
    "BlobMetadata",
    "BlobNotFoundError",
    "BlobStorage",
    "BlobStorageError",
    "ConnectionInfo",
    "FilesystemBlobStorage",
    "HttpBlobStorage",
    "InMemoryBlobStorage",
    "InvalidBlobIdError",
    "InvalidRangeError",
    "ListCallback",
    "PutOptions",
    "SetTimeUnsupportedError",
    "StorageBackendError",
    "new_storage",
    "register_storage_type",
]
