"""In-memory blob storage backend.

Blobs live in process-local namespaces. Any number of handles can open the
same namespace, which is what lets the connection descriptor reconnect to
the same data.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from blobverify.storage.blob_storage import BlobStorage, ListCallback
from blobverify.storage.errors import (
    BlobAlreadyExistsError,
    BlobNotFoundError,
    BlobStorageError,
)
from blobverify.storage.models import (
    BlobMetadata,
    ConnectionInfo,
    PutOptions,
    normalize_timestamp,
)
from blobverify.storage.ranges import slice_range
from blobverify.storage.registry import register_storage_type
from blobverify.storage.tracing import traced_blob_operation

logger = logging.getLogger(__name__)

MEMORY_STORAGE_TYPE = "memory"


@dataclass
class _Namespace:
    lock: threading.Lock = field(default_factory=threading.Lock)
    blobs: dict[str, tuple[bytes, datetime]] = field(default_factory=dict)


_namespaces: dict[str, _Namespace] = {}
_namespaces_lock = threading.Lock()


def _open_namespace(name: str, *, create: bool) -> _Namespace:
    with _namespaces_lock:
        ns = _namespaces.get(name)
        if ns is None:
            if not create:
                raise BlobStorageError(f"Memory namespace does not exist: {name}")
            ns = _Namespace()
            _namespaces[name] = ns
        return ns


def drop_namespace(name: str) -> None:
    """Forget a namespace and all its blobs."""
    with _namespaces_lock:
        _namespaces.pop(name, None)


class InMemoryBlobStorage(BlobStorage):
    """Thread-safe in-memory blob storage for development and testing."""

    def __init__(self, namespace: str | None = None, *, create: bool = True) -> None:
        """Open (or create) a namespace.

        Args:
            namespace: Namespace name. A fresh unique namespace when None.
            create: Create the namespace if it does not exist yet.
        """
        self._namespace_name = namespace or f"mem-{uuid.uuid4().hex}"
        self._ns = _open_namespace(self._namespace_name, create=create or namespace is None)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return MEMORY_STORAGE_TYPE

    @property
    def namespace(self) -> str:
        """Return the namespace name."""
        return self._namespace_name

    @traced_blob_operation("put_blob")
    def put_blob(
        self,
        blob_id: str,
        data: bytes,
        options: PutOptions | None = None,
    ) -> None:
        """Store a blob."""
        opts = options or PutOptions()
        timestamp = (
            normalize_timestamp(opts.set_mod_time)
            if opts.set_mod_time is not None
            else datetime.now(UTC)
        )

        with self._ns.lock:
            if opts.do_not_recreate and blob_id in self._ns.blobs:
                raise BlobAlreadyExistsError(blob_id=blob_id)
            self._ns.blobs[blob_id] = (bytes(data), timestamp)

        logger.debug(
            "Stored blob: namespace=%s blob_id=%s length=%d",
            self._namespace_name,
            blob_id,
            len(data),
        )

    @traced_blob_operation("get_blob")
    def get_blob(self, blob_id: str, offset: int = 0, length: int = -1) -> bytes:
        """Retrieve blob content."""
        with self._ns.lock:
            entry = self._ns.blobs.get(blob_id)
        if entry is None:
            raise BlobNotFoundError(blob_id=blob_id)
        return slice_range(entry[0], offset, length, blob_id=blob_id)

    @traced_blob_operation("get_metadata")
    def get_metadata(self, blob_id: str) -> BlobMetadata:
        """Get blob metadata."""
        with self._ns.lock:
            entry = self._ns.blobs.get(blob_id)
        if entry is None:
            raise BlobNotFoundError(blob_id=blob_id)
        return BlobMetadata(blob_id=blob_id, length=len(entry[0]), timestamp=entry[1])

    @traced_blob_operation("set_time")
    def set_time(self, blob_id: str, timestamp: datetime) -> None:
        """Set the blob's timestamp."""
        with self._ns.lock:
            entry = self._ns.blobs.get(blob_id)
            if entry is None:
                raise BlobNotFoundError(blob_id=blob_id)
            self._ns.blobs[blob_id] = (entry[0], normalize_timestamp(timestamp))

    @traced_blob_operation("delete_blob")
    def delete_blob(self, blob_id: str) -> None:
        """Delete a blob; missing blobs are ignored."""
        with self._ns.lock:
            self._ns.blobs.pop(blob_id, None)

    @traced_blob_operation("list_blobs")
    def list_blobs(self, prefix: str, callback: ListCallback) -> None:
        """List blobs with the given prefix."""
        with self._ns.lock:
            snapshot = [
                BlobMetadata(blob_id=blob_id, length=len(data), timestamp=timestamp)
                for blob_id, (data, timestamp) in self._ns.blobs.items()
                if blob_id.startswith(prefix)
            ]

        # The callback runs unlocked so it may call back into the storage.
        for metadata in sorted(snapshot, key=lambda m: m.blob_id):
            callback(metadata)

    def connection_info(self) -> ConnectionInfo:
        """Return the connection descriptor."""
        return ConnectionInfo(type=MEMORY_STORAGE_TYPE, config={"namespace": self._namespace_name})

    def display_name(self) -> str:
        """Return a human-readable name."""
        return f"memory:{self._namespace_name}"


def _factory(config: dict[str, object], is_create: bool) -> InMemoryBlobStorage:
    namespace = config.get("namespace")
    if not isinstance(namespace, str) or not namespace:
        raise BlobStorageError("Memory storage config requires a non-empty 'namespace'")
    return InMemoryBlobStorage(namespace, create=is_create)


register_storage_type(MEMORY_STORAGE_TYPE, _factory)
