"""Tests for the in-memory blob storage backend."""

from __future__ import annotations

import threading
from datetime import UTC, datetime

import pytest

from blobverify.storage import (
    BlobAlreadyExistsError,
    BlobMetadata,
    BlobNotFoundError,
    BlobStorageError,
    InMemoryBlobStorage,
    InvalidRangeError,
    PutOptions,
)
from blobverify.storage.memory_store import drop_namespace


class TestNamespaces:
    """Tests for namespace sharing and isolation."""

    def test_handles_share_a_namespace(self, memory_storage: InMemoryBlobStorage) -> None:
        memory_storage.put_blob("shared", b"data")

        other = InMemoryBlobStorage(memory_storage.namespace, create=False)

        assert other.get_blob("shared") == b"data"

    def test_fresh_namespaces_are_isolated(self, memory_storage: InMemoryBlobStorage) -> None:
        memory_storage.put_blob("blob", b"data")
        other = InMemoryBlobStorage()
        try:
            with pytest.raises(BlobNotFoundError):
                other.get_blob("blob")
        finally:
            drop_namespace(other.namespace)

    def test_open_missing_namespace_without_create(self) -> None:
        with pytest.raises(BlobStorageError, match="does not exist"):
            InMemoryBlobStorage("never-created-namespace", create=False)

    def test_named_namespace_created_on_demand(self) -> None:
        storage = InMemoryBlobStorage("named-ns")
        try:
            assert storage.namespace == "named-ns"
            assert storage.display_name() == "memory:named-ns"
        finally:
            drop_namespace("named-ns")

    def test_drop_namespace_forgets_blobs(self) -> None:
        storage = InMemoryBlobStorage("to-drop")
        storage.put_blob("blob", b"data")

        drop_namespace("to-drop")

        with pytest.raises(BlobStorageError):
            InMemoryBlobStorage("to-drop", create=False)


class TestBlobOperations:
    """Tests for put/get/metadata/delete."""

    def test_roundtrip(self, memory_storage: InMemoryBlobStorage) -> None:
        memory_storage.put_blob("blob", b"hello world")

        assert memory_storage.get_blob("blob") == b"hello world"
        assert memory_storage.get_blob("blob", 6, 5) == b"world"

    def test_stored_bytes_are_copied(self, memory_storage: InMemoryBlobStorage) -> None:
        data = bytearray(b"mutable")

        memory_storage.put_blob("blob", data)  # type: ignore[arg-type]
        data[0] = ord("M")

        assert memory_storage.get_blob("blob") == b"mutable"

    def test_invalid_range(self, memory_storage: InMemoryBlobStorage) -> None:
        memory_storage.put_blob("blob", b"abc")

        with pytest.raises(InvalidRangeError):
            memory_storage.get_blob("blob", 2, 5)

    def test_metadata(self, memory_storage: InMemoryBlobStorage) -> None:
        memory_storage.put_blob("blob", b"abc")

        metadata = memory_storage.get_metadata("blob")

        assert metadata.blob_id == "blob"
        assert metadata.length == 3
        assert metadata.timestamp.tzinfo is not None

    def test_do_not_recreate(self, memory_storage: InMemoryBlobStorage) -> None:
        memory_storage.put_blob("blob", b"one", PutOptions(do_not_recreate=True))

        with pytest.raises(BlobAlreadyExistsError):
            memory_storage.put_blob("blob", b"two", PutOptions(do_not_recreate=True))

        assert memory_storage.get_blob("blob") == b"one"

    def test_set_mod_time_and_set_time(self, memory_storage: InMemoryBlobStorage) -> None:
        first = datetime(2019, 5, 4, 3, 2, 1, tzinfo=UTC)
        second = datetime(2020, 1, 1, 15, 30, 45, tzinfo=UTC)

        memory_storage.put_blob("blob", b"x", PutOptions(set_mod_time=first))
        assert memory_storage.get_metadata("blob").timestamp == first

        memory_storage.set_time("blob", second)
        assert memory_storage.get_metadata("blob").timestamp == second

    def test_set_time_missing_blob(self, memory_storage: InMemoryBlobStorage) -> None:
        with pytest.raises(BlobNotFoundError):
            memory_storage.set_time("missing", datetime(2020, 1, 1, tzinfo=UTC))

    def test_delete_is_idempotent(self, memory_storage: InMemoryBlobStorage) -> None:
        memory_storage.put_blob("blob", b"x")

        memory_storage.delete_blob("blob")
        memory_storage.delete_blob("blob")
        memory_storage.delete_blob("never-written")

        with pytest.raises(BlobNotFoundError):
            memory_storage.get_metadata("blob")


class TestListing:
    """Tests for list_blobs."""

    def test_sorted_prefix_listing(self, memory_storage: InMemoryBlobStorage) -> None:
        for blob_id in ("ab2", "cd1", "ab1"):
            memory_storage.put_blob(blob_id, b"x")
        found: list[BlobMetadata] = []

        memory_storage.list_blobs("ab", found.append)

        assert [m.blob_id for m in found] == ["ab1", "ab2"]

    def test_callback_may_reenter_storage(self, memory_storage: InMemoryBlobStorage) -> None:
        memory_storage.put_blob("a", b"1")
        memory_storage.put_blob("b", b"2")
        contents: list[bytes] = []

        memory_storage.list_blobs("", lambda m: contents.append(memory_storage.get_blob(m.blob_id)))

        assert contents == [b"1", b"2"]

    def test_callback_error_propagates(self, memory_storage: InMemoryBlobStorage) -> None:
        memory_storage.put_blob("a", b"1")

        def fail(_: BlobMetadata) -> None:
            raise RuntimeError("stop")

        with pytest.raises(RuntimeError, match="stop"):
            memory_storage.list_blobs("", fail)


class TestConcurrency:
    """Concurrent identical writes converge."""

    def test_parallel_identical_puts(self, memory_storage: InMemoryBlobStorage) -> None:
        barrier = threading.Barrier(8)

        def writer() -> None:
            barrier.wait()
            memory_storage.put_blob("blob", b"same contents")

        threads = [threading.Thread(target=writer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert memory_storage.get_blob("blob") == b"same contents"
