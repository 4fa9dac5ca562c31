"""Pytest configuration and fixtures for blobverify tests.

This module provides the storage backends shared by the test modules.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest

from blobverify.conformance.fixtures import ENV_CI
from blobverify.storage import FilesystemBlobStorage, HttpBlobStorage, InMemoryBlobStorage
from blobverify.storage.memory_store import drop_namespace
from tests.fixtures.blob_server import FakeBlobServer


@pytest.fixture(autouse=True)
def clear_ci_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test with the non-CI fan-out unless it opts in.

    Tests that need to verify the CI toggle set the variable themselves.
    """
    monkeypatch.delenv(ENV_CI, raising=False)


TRACING_ENV_VARS = (
    "BLOBVERIFY_OTEL_ENABLED",
    "BLOBVERIFY_REQUIRE_OTEL",
    "BLOBVERIFY_OTEL_SERVICE_NAME",
    "BLOBVERIFY_OTEL_EXPORTER",
    "BLOBVERIFY_OTEL_TEST_CAPTURE",
    "BLOBVERIFY_OTEL_EXPORTER_OTLP_ENDPOINT",
    "BLOBVERIFY_OTEL_EXPORTER_OTLP_PROTOCOL",
)


@pytest.fixture
def tracing_env() -> Iterator[None]:
    """Reset tracing environment and state around a test."""
    original_env = {k: os.environ.get(k) for k in TRACING_ENV_VARS}

    for k in TRACING_ENV_VARS:
        if k in os.environ:
            del os.environ[k]

    from blobverify.observability.tracing import reset_tracing

    reset_tracing()

    yield

    for k in TRACING_ENV_VARS:
        if k in os.environ:
            del os.environ[k]

    for k, v in original_env.items():
        if v is not None:
            os.environ[k] = v

    reset_tracing()


@pytest.fixture
def memory_storage() -> Iterator[InMemoryBlobStorage]:
    """Return an in-memory storage on a fresh namespace."""
    storage = InMemoryBlobStorage()
    yield storage
    storage.close()
    drop_namespace(storage.namespace)


@pytest.fixture
def filesystem_storage(tmp_path: Path) -> Iterator[FilesystemBlobStorage]:
    """Return a filesystem storage rooted in a temp directory."""
    storage = FilesystemBlobStorage(base_dir=tmp_path / "blobs")
    yield storage
    storage.close()


@pytest.fixture
def blob_server() -> FakeBlobServer:
    """Return an in-process fake HTTP blob service."""
    return FakeBlobServer()


@pytest.fixture
def http_storage(blob_server: FakeBlobServer) -> Iterator[HttpBlobStorage]:
    """Return an HTTP storage talking to the fake blob service."""
    client = blob_server.client()
    storage = HttpBlobStorage(blob_server.base_url, http_client=client)
    yield storage
    storage.close()
    client.close()
