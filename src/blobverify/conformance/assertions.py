"""Reusable read-only checks against a BlobStorage.

Each helper queries the storage and raises BlobAssertionError (an
AssertionError, so pytest renders it natively) when the observed behavior
deviates from the storage contract.
"""

from __future__ import annotations

import threading
from collections import Counter

from blobverify.storage.blob_storage import BlobStorage
from blobverify.storage.errors import BlobNotFoundError, InvalidRangeError
from blobverify.storage.models import BlobMetadata


class BlobAssertionError(AssertionError):
    """Raised when a storage fails a conformance assertion."""

    def __init__(self, message: str, *, blob_id: str | None = None) -> None:
        super().__init__(message)
        self.blob_id = blob_id


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


def assert_get_blob_not_found(storage: BlobStorage, blob_id: str) -> None:
    """Assert that get_blob reports BlobNotFoundError for ``blob_id``."""
    try:
        data = storage.get_blob(blob_id)
    except BlobNotFoundError:
        return
    except Exception as e:
        raise BlobAssertionError(
            f"get_blob({blob_id!r}) raised {_describe(e)}, want BlobNotFoundError",
            blob_id=blob_id,
        ) from e
    raise BlobAssertionError(
        f"get_blob({blob_id!r}) returned {len(data)} bytes, want BlobNotFoundError",
        blob_id=blob_id,
    )


def assert_get_metadata_not_found(storage: BlobStorage, blob_id: str) -> None:
    """Assert that get_metadata reports BlobNotFoundError for ``blob_id``."""
    try:
        metadata = storage.get_metadata(blob_id)
    except BlobNotFoundError:
        return
    except Exception as e:
        raise BlobAssertionError(
            f"get_metadata({blob_id!r}) raised {_describe(e)}, want BlobNotFoundError",
            blob_id=blob_id,
        ) from e
    raise BlobAssertionError(
        f"get_metadata({blob_id!r}) returned {metadata}, want BlobNotFoundError",
        blob_id=blob_id,
    )


def _assert_range(
    storage: BlobStorage,
    blob_id: str,
    offset: int,
    length: int,
    expected: bytes,
) -> None:
    try:
        data = storage.get_blob(blob_id, offset, length)
    except Exception as e:
        raise BlobAssertionError(
            f"get_blob({blob_id!r}, {offset}, {length}) raised {_describe(e)}",
            blob_id=blob_id,
        ) from e
    if data != expected:
        raise BlobAssertionError(
            f"get_blob({blob_id!r}, {offset}, {length}) returned {len(data)} bytes "
            f"that differ from the {len(expected)} expected",
            blob_id=blob_id,
        )


def assert_invalid_offset_length(
    storage: BlobStorage,
    blob_id: str,
    offset: int,
    length: int,
) -> None:
    """Assert that reading ``(offset, length)`` raises InvalidRangeError."""
    try:
        data = storage.get_blob(blob_id, offset, length)
    except InvalidRangeError:
        return
    except Exception as e:
        raise BlobAssertionError(
            f"get_blob({blob_id!r}, {offset}, {length}) raised {_describe(e)}, "
            "want InvalidRangeError",
            blob_id=blob_id,
        ) from e
    raise BlobAssertionError(
        f"get_blob({blob_id!r}, {offset}, {length}) returned {len(data)} bytes, "
        "want InvalidRangeError",
        blob_id=blob_id,
    )


def assert_get_blob(storage: BlobStorage, blob_id: str, expected: bytes) -> None:
    """Assert that ``blob_id`` holds exactly ``expected``.

    Also checks partial reads of the first and second half, a zero-length
    read, and that out-of-range reads are rejected.
    """
    _assert_range(storage, blob_id, 0, -1, expected)

    size = len(expected)
    half = size // 2
    if half == 0:
        return

    _assert_range(storage, blob_id, 0, 0, b"")
    _assert_range(storage, blob_id, 0, half, expected[:half])
    _assert_range(storage, blob_id, half, size - half, expected[half:])

    for offset, length in ((-3, 1), (size, 3), (size - 1, 3), (size + 1, 3)):
        assert_invalid_offset_length(storage, blob_id, offset, length)


def assert_list_results(storage: BlobStorage, prefix: str, *expected: str) -> None:
    """Assert that listing ``prefix`` yields exactly the ``expected`` IDs, in any order."""
    seen: list[str] = []
    lock = threading.Lock()

    def collect(metadata: BlobMetadata) -> None:
        with lock:
            seen.append(metadata.blob_id)

    try:
        storage.list_blobs(prefix, collect)
    except Exception as e:
        raise BlobAssertionError(f"list_blobs({prefix!r}) raised {_describe(e)}") from e

    duplicates = sorted(blob_id for blob_id, n in Counter(seen).items() if n > 1)
    if duplicates:
        raise BlobAssertionError(f"list_blobs({prefix!r}) returned duplicates: {duplicates}")

    got = set(seen)
    want = set(expected)
    if got != want:
        raise BlobAssertionError(
            f"list_blobs({prefix!r}) returned {sorted(got)}, want {sorted(want)} "
            f"(missing={sorted(want - got)}, unexpected={sorted(got - want)})"
        )
