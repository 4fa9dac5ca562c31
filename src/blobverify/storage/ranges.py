"""Byte-range validation shared by the bundled backends."""

from __future__ import annotations

from blobverify.storage.errors import InvalidRangeError


def is_valid_range(size: int, offset: int, length: int) -> bool:
    """Return whether ``(offset, length)`` addresses bytes inside a blob of ``size``."""
    if length < 0:
        return offset == 0
    if offset < 0:
        return False
    return offset + length <= size


def slice_range(data: bytes, offset: int, length: int, *, blob_id: str) -> bytes:
    """Return ``data[offset:offset + length]`` or raise InvalidRangeError.

    A negative ``length`` selects the whole blob.
    """
    if not is_valid_range(len(data), offset, length):
        raise InvalidRangeError(blob_id=blob_id, offset=offset, length=length)
    if length < 0:
        return data
    return data[offset : offset + length]
