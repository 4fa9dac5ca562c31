"""Conformance harness for BlobStorage implementations.

Usage from a backend's test suite::

    from blobverify.conformance import assert_connection_info_round_trips, verify_storage

    def test_my_storage(my_storage):
        verify_storage(my_storage).raise_for_failures()
        assert_connection_info_round_trips(my_storage)

Environment Variables:
    CI: Non-empty value raises the concurrent insertion fan-out from 2 to 4.
"""

from blobverify.conformance.assertions import (
    BlobAssertionError,
    assert_get_blob,
    assert_get_blob_not_found,
    assert_get_metadata_not_found,
    assert_invalid_offset_length,
    assert_list_results,
)
from blobverify.conformance.fixtures import DEFAULT_FIXTURES, BlobFixture
from blobverify.conformance.options import TEST_VALIDATION_OPTIONS, ValidationOptions
from blobverify.conformance.roundtrip import assert_connection_info_round_trips
from blobverify.conformance.types import (
    StorageVerificationError,
    SubCaseResult,
    SubCaseStatus,
    VerificationReport,
)
from blobverify.conformance.verify import PHASES, verify_storage

__all__ = [
    "BlobAssertionError",
    "BlobFixture",
    "DEFAULT_FIXTURES",
    "PHASES",
    "StorageVerificationError",
    "SubCaseResult",
    "SubCaseStatus",
    "TEST_VALIDATION_OPTIONS",
    "ValidationOptions",
    "VerificationReport",
    "assert_connection_info_round_trips",
    "assert_get_blob",
    "assert_get_blob_not_found",
    "assert_get_metadata_not_found",
    "assert_invalid_offset_length",
    "assert_list_results",
    "verify_storage",
]
