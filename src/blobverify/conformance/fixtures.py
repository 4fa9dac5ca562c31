"""Fixture blobs used by the conformance program.

Environment Variables:
    CI: When set to a non-empty value, the concurrent insertion phase writes
        each blob 4 times in parallel instead of 2.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Final

ENV_CI: Final[str] = "CI"

DEFAULT_ADD_CONCURRENCY: Final[int] = 2
CI_ADD_CONCURRENCY: Final[int] = 4

LIST_PREFIX: Final[str] = "ab"
NON_EXISTENT_BLOB_ID: Final[str] = "no-such-blob"
SET_TIME_TIMESTAMP: Final[datetime] = datetime(2020, 1, 1, 15, 30, 45, tzinfo=UTC)


@dataclass(frozen=True)
class BlobFixture:
    """One blob the conformance program writes, reads, lists and deletes."""

    blob_id: str
    contents: bytes


# The last entry is not hash-shaped.
DEFAULT_FIXTURES: Final[tuple[BlobFixture, ...]] = (
    BlobFixture("abcdbbf4f0507d054ed5a80a5b65086f602b", b""),
    BlobFixture("zxce0e35630770c54668a8cfb4e414c6bf8f", b"\x01"),
    BlobFixture("abff4585856ebf0748fd989e1dd623a8963d", b"\x01" * 1000),
    BlobFixture("abgc3dca496d510f492c858a2df1eb824e62", b"\x01" * 10000),
    BlobFixture("kopia.repository", b"\x02" * 100),
)


def initial_add_concurrency() -> int:
    """Return how many parallel writers target each fixture blob."""
    if os.environ.get(ENV_CI, ""):
        return CI_ADD_CONCURRENCY
    return DEFAULT_ADD_CONCURRENCY


def ids_with_prefix(fixtures: tuple[BlobFixture, ...], prefix: str) -> list[str]:
    """Return fixture IDs starting with ``prefix``, in fixture order."""
    return [f.blob_id for f in fixtures if f.blob_id.startswith(prefix)]
