"""Filesystem blob storage backend.

Provides local filesystem storage with:
- One ``<blob_id>.data`` file per blob in a flat base directory
- Atomic replace-on-write (temp file + ``os.replace``)
- Atomic create-if-absent for ``PutOptions.do_not_recreate`` (``os.link``)
- Timestamps backed by file modification times (nanosecond ``os.utime``)
- Rejection of blob IDs that could escape the base directory

Environment Variables:
    BLOBVERIFY_FILESYSTEM_BASE_DIR: Base directory for storage
        (default: tempfile.gettempdir() / blobverify_blobs)
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Final

from blobverify.storage.blob_storage import BlobStorage, ListCallback
from blobverify.storage.errors import (
    BlobAlreadyExistsError,
    BlobNotFoundError,
    BlobStorageError,
    InvalidBlobIdError,
    InvalidRangeError,
    StorageBackendError,
)
from blobverify.storage.models import (
    BlobMetadata,
    ConnectionInfo,
    PutOptions,
    normalize_timestamp,
)
from blobverify.storage.ranges import is_valid_range
from blobverify.storage.registry import register_storage_type
from blobverify.storage.tracing import traced_blob_operation

logger = logging.getLogger(__name__)

FILESYSTEM_STORAGE_TYPE: Final[str] = "filesystem"
ENV_FILESYSTEM_BASE_DIR: Final[str] = "BLOBVERIFY_FILESYSTEM_BASE_DIR"

_CONTENT_SUFFIX = ".data"
_TEMP_SUFFIX = ".tmp"
_SAFE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_\-.]+$")
_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _is_unsafe_blob_id(blob_id: str) -> bool:
    """Check whether a blob ID cannot be mapped to a single file name.

    Rejects empty IDs, "." and "..", and anything containing characters
    outside ``[a-zA-Z0-9_-.]`` (which covers separators and null bytes).
    """
    if blob_id in ("", ".", ".."):
        return True
    return not _SAFE_ID_PATTERN.match(blob_id)


def _to_nanoseconds(timestamp: datetime) -> int:
    delta = normalize_timestamp(timestamp) - _EPOCH
    return (delta // timedelta(microseconds=1)) * 1000


def _from_nanoseconds(value: int) -> datetime:
    return _EPOCH + timedelta(microseconds=value // 1000)


class FilesystemBlobStorage(BlobStorage):
    """Filesystem-based blob storage implementation.

    Blobs are stored as:
        {base_dir}/{blob_id}.data

    In-flight writes use ``{blob_id}.data.{random}.tmp`` and are never
    listed.
    """

    def __init__(self, base_dir: str | Path | None = None, *, create: bool = True) -> None:
        """Initialize filesystem storage.

        Args:
            base_dir: Base directory for storage. If None, uses
                BLOBVERIFY_FILESYSTEM_BASE_DIR env var or OS temp directory.
            create: Create the base directory if it does not exist.

        Raises:
            BlobStorageError: If the directory is missing and create is False.
        """
        if base_dir is None:
            base_dir = os.environ.get(ENV_FILESYSTEM_BASE_DIR)

        if base_dir is None:
            base_dir = Path(tempfile.gettempdir()) / "blobverify_blobs"
        else:
            base_dir = Path(base_dir)

        self._base_dir = base_dir.resolve()

        if not self._base_dir.is_dir():
            if not create:
                raise BlobStorageError(f"Storage directory does not exist: {self._base_dir}")
            try:
                self._base_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageBackendError(
                    message=f"Failed to create storage directory: {e}",
                    cause=e,
                ) from e

        logger.debug("FilesystemBlobStorage initialized with base_dir=%s", self._base_dir)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return FILESYSTEM_STORAGE_TYPE

    @property
    def base_dir(self) -> Path:
        """Return the base directory path."""
        return self._base_dir

    def _blob_path(self, blob_id: str) -> Path:
        """Get the content path for a blob, validating the ID."""
        if _is_unsafe_blob_id(blob_id):
            raise InvalidBlobIdError(
                message="Invalid blob ID: path separators or unsafe characters detected",
                blob_id=blob_id,
            )
        return self._base_dir / f"{blob_id}{_CONTENT_SUFFIX}"

    def _temp_path(self, blob_id: str) -> Path:
        return self._base_dir / f"{blob_id}{_CONTENT_SUFFIX}.{uuid.uuid4().hex}{_TEMP_SUFFIX}"

    @traced_blob_operation("put_blob")
    def put_blob(
        self,
        blob_id: str,
        data: bytes,
        options: PutOptions | None = None,
    ) -> None:
        """Store a blob atomically."""
        opts = options or PutOptions()
        path = self._blob_path(blob_id)
        tmp_file = self._temp_path(blob_id)

        try:
            tmp_file.write_bytes(data)
            if opts.set_mod_time is not None:
                mtime_ns = _to_nanoseconds(opts.set_mod_time)
                os.utime(tmp_file, ns=(mtime_ns, mtime_ns))

            if opts.do_not_recreate:
                try:
                    os.link(tmp_file, path)
                except FileExistsError as e:
                    raise BlobAlreadyExistsError(blob_id=blob_id) from e
            else:
                tmp_file.replace(path)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to write blob: {e}",
                blob_id=blob_id,
                cause=e,
            ) from e
        finally:
            tmp_file.unlink(missing_ok=True)

        logger.debug("Stored blob: blob_id=%s length=%d", blob_id, len(data))

    @traced_blob_operation("get_blob")
    def get_blob(self, blob_id: str, offset: int = 0, length: int = -1) -> bytes:
        """Read a blob, or a range of it."""
        path = self._blob_path(blob_id)
        try:
            with path.open("rb") as f:
                size = os.fstat(f.fileno()).st_size
                if not is_valid_range(size, offset, length):
                    raise InvalidRangeError(blob_id=blob_id, offset=offset, length=length)
                if length < 0:
                    return f.read()
                f.seek(offset)
                return f.read(length)
        except FileNotFoundError as e:
            raise BlobNotFoundError(blob_id=blob_id) from e
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to read blob: {e}",
                blob_id=blob_id,
                cause=e,
            ) from e

    @traced_blob_operation("get_metadata")
    def get_metadata(self, blob_id: str) -> BlobMetadata:
        """Get blob metadata from the file's stat."""
        path = self._blob_path(blob_id)
        try:
            st = path.stat()
        except FileNotFoundError as e:
            raise BlobNotFoundError(blob_id=blob_id) from e
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to stat blob: {e}",
                blob_id=blob_id,
                cause=e,
            ) from e

        return BlobMetadata(
            blob_id=blob_id,
            length=st.st_size,
            timestamp=_from_nanoseconds(st.st_mtime_ns),
        )

    @traced_blob_operation("set_time")
    def set_time(self, blob_id: str, timestamp: datetime) -> None:
        """Set the blob file's modification time."""
        path = self._blob_path(blob_id)
        mtime_ns = _to_nanoseconds(timestamp)
        try:
            os.utime(path, ns=(mtime_ns, mtime_ns))
        except FileNotFoundError as e:
            raise BlobNotFoundError(blob_id=blob_id) from e
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to set blob time: {e}",
                blob_id=blob_id,
                cause=e,
            ) from e

    @traced_blob_operation("delete_blob")
    def delete_blob(self, blob_id: str) -> None:
        """Delete a blob file; missing files are ignored."""
        path = self._blob_path(blob_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to delete blob: {e}",
                blob_id=blob_id,
                cause=e,
            ) from e
        logger.debug("Deleted blob: blob_id=%s", blob_id)

    def _scan(self, prefix: str) -> list[BlobMetadata]:
        """Collect metadata for all blob files whose ID starts with prefix."""
        result: list[BlobMetadata] = []
        try:
            with os.scandir(self._base_dir) as entries:
                for entry in entries:
                    if not entry.name.endswith(_CONTENT_SUFFIX):
                        continue
                    blob_id = entry.name[: -len(_CONTENT_SUFFIX)]
                    if not blob_id.startswith(prefix):
                        continue
                    try:
                        st = entry.stat()
                    except FileNotFoundError:
                        # Deleted while scanning.
                        continue
                    result.append(
                        BlobMetadata(
                            blob_id=blob_id,
                            length=st.st_size,
                            timestamp=_from_nanoseconds(st.st_mtime_ns),
                        )
                    )
        except OSError as e:
            raise StorageBackendError(message=f"Failed to list blobs: {e}", cause=e) from e

        result.sort(key=lambda m: m.blob_id)
        return result

    @traced_blob_operation("list_blobs")
    def list_blobs(self, prefix: str, callback: ListCallback) -> None:
        """List blob files with the given ID prefix."""
        for metadata in self._scan(prefix):
            callback(metadata)

    def connection_info(self) -> ConnectionInfo:
        """Return the connection descriptor."""
        return ConnectionInfo(type=FILESYSTEM_STORAGE_TYPE, config={"path": str(self._base_dir)})

    def display_name(self) -> str:
        """Return a human-readable name."""
        return f"filesystem:{self._base_dir}"


def _factory(config: dict[str, object], is_create: bool) -> FilesystemBlobStorage:
    path = config.get("path")
    if not isinstance(path, str) or not path:
        raise BlobStorageError("Filesystem storage config requires a non-empty 'path'")
    return FilesystemBlobStorage(path, create=is_create)


register_storage_type(FILESYSTEM_STORAGE_TYPE, _factory)
