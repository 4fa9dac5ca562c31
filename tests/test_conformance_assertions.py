"""Tests for the reusable conformance assertions."""

from __future__ import annotations

import pytest

from blobverify.conformance import (
    BlobAssertionError,
    assert_get_blob,
    assert_get_blob_not_found,
    assert_get_metadata_not_found,
    assert_invalid_offset_length,
    assert_list_results,
)
from blobverify.storage import InMemoryBlobStorage
from blobverify.storage.blob_storage import ListCallback
from blobverify.storage.memory_store import drop_namespace


class LenientRangeStorage(InMemoryBlobStorage):
    """Clamps out-of-range reads instead of rejecting them."""

    def get_blob(self, blob_id: str, offset: int = 0, length: int = -1) -> bytes:
        data = super().get_blob(blob_id)
        if length < 0:
            return data
        return data[max(offset, 0) : max(offset, 0) + length]


class FailingListStorage(InMemoryBlobStorage):
    def list_blobs(self, prefix: str, callback: ListCallback) -> None:
        raise OSError("connection reset")


@pytest.fixture
def lenient_storage():
    storage = LenientRangeStorage()
    yield storage
    drop_namespace(storage.namespace)


class TestNotFoundAssertions:
    """assert_get_blob_not_found / assert_get_metadata_not_found."""

    def test_missing_blob_passes(self, memory_storage: InMemoryBlobStorage) -> None:
        assert_get_blob_not_found(memory_storage, "missing")
        assert_get_metadata_not_found(memory_storage, "missing")

    def test_existing_blob_fails_get(self, memory_storage: InMemoryBlobStorage) -> None:
        memory_storage.put_blob("present", b"abc")

        with pytest.raises(BlobAssertionError, match="returned 3 bytes") as exc_info:
            assert_get_blob_not_found(memory_storage, "present")

        assert exc_info.value.blob_id == "present"

    def test_existing_blob_fails_metadata(self, memory_storage: InMemoryBlobStorage) -> None:
        memory_storage.put_blob("present", b"abc")

        with pytest.raises(BlobAssertionError, match="want BlobNotFoundError"):
            assert_get_metadata_not_found(memory_storage, "present")


class TestGetBlobAssertion:
    """assert_get_blob checks full, partial and invalid reads."""

    @pytest.mark.parametrize("contents", [b"", b"\x01", b"hello world", bytes(range(256))])
    def test_conforming_storage_passes(
        self, memory_storage: InMemoryBlobStorage, contents: bytes
    ) -> None:
        memory_storage.put_blob("blob", contents)

        assert_get_blob(memory_storage, "blob", contents)

    def test_wrong_contents_fail(self, memory_storage: InMemoryBlobStorage) -> None:
        memory_storage.put_blob("blob", b"hello")

        with pytest.raises(BlobAssertionError, match="differ"):
            assert_get_blob(memory_storage, "blob", b"jello")

    def test_missing_blob_fails(self, memory_storage: InMemoryBlobStorage) -> None:
        with pytest.raises(BlobAssertionError, match="BlobNotFoundError"):
            assert_get_blob(memory_storage, "missing", b"x")

    def test_clamped_out_of_range_read_fails(self, lenient_storage: LenientRangeStorage) -> None:
        lenient_storage.put_blob("blob", b"0123456789")

        with pytest.raises(BlobAssertionError, match="want InvalidRangeError"):
            assert_get_blob(lenient_storage, "blob", b"0123456789")

    def test_single_byte_blob_skips_range_checks(
        self, lenient_storage: LenientRangeStorage
    ) -> None:
        lenient_storage.put_blob("blob", b"\x01")

        assert_get_blob(lenient_storage, "blob", b"\x01")


class TestInvalidOffsetLength:
    """assert_invalid_offset_length."""

    @pytest.mark.parametrize(("offset", "length"), [(-3, 1), (10, 3), (9, 3), (11, 3), (3, -1)])
    def test_rejected_ranges_pass(
        self, memory_storage: InMemoryBlobStorage, offset: int, length: int
    ) -> None:
        memory_storage.put_blob("blob", b"0123456789")

        assert_invalid_offset_length(memory_storage, "blob", offset, length)

    def test_accepted_range_fails(self, memory_storage: InMemoryBlobStorage) -> None:
        memory_storage.put_blob("blob", b"0123456789")

        with pytest.raises(BlobAssertionError, match="returned 2 bytes"):
            assert_invalid_offset_length(memory_storage, "blob", 8, 2)


class TestListResults:
    """assert_list_results compares ID sets."""

    def test_exact_match_passes(self, memory_storage: InMemoryBlobStorage) -> None:
        for blob_id in ("ab1", "ab2", "cd1"):
            memory_storage.put_blob(blob_id, b"x")

        assert_list_results(memory_storage, "ab", "ab2", "ab1")
        assert_list_results(memory_storage, "", "ab1", "ab2", "cd1")
        assert_list_results(memory_storage, "zz")

    def test_missing_and_unexpected_reported(self, memory_storage: InMemoryBlobStorage) -> None:
        memory_storage.put_blob("ab1", b"x")
        memory_storage.put_blob("ab3", b"x")

        with pytest.raises(BlobAssertionError) as exc_info:
            assert_list_results(memory_storage, "ab", "ab1", "ab2")

        message = str(exc_info.value)
        assert "missing=['ab2']" in message
        assert "unexpected=['ab3']" in message

    def test_list_error_fails(self) -> None:
        storage = FailingListStorage()
        try:
            with pytest.raises(BlobAssertionError, match="OSError: connection reset"):
                assert_list_results(storage, "")
        finally:
            drop_namespace(storage.namespace)
