"""Conformance program for BlobStorage implementations.

Drives a storage through a fixed, ordered sequence of phases over the
fixture blobs. Sub-cases within a phase run in parallel on a thread pool
against the shared storage; each phase is joined before the next starts,
because later phases rely on the state earlier ones leave behind.

Phases:
    VerifyBlobsNotFound  fixtures absent; deleting a never-written blob succeeds
    AddBlobs             N concurrent identical writes per fixture
    GetBlobs             read-back, including partial reads
    ListBlobs            full and prefix listing; callback errors propagate
    OverwriteBlobs       rewrite with default options, contents unchanged
    SetTime              optional: timestamp round-trips exactly
    DeleteBlobs          deleting the same blob twice succeeds
    ListAfterDelete      listings no longer include the deleted blob

Nothing is retried. Expected outcomes (not found in the absence phase,
SetTimeUnsupportedError in the SetTime phase, also when it is the cause of
another error) are the only errors that do not fail a sub-case.
"""

from __future__ import annotations

import contextvars
import functools
import logging
import time
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Final

from blobverify.conformance.assertions import (
    BlobAssertionError,
    assert_get_blob,
    assert_get_blob_not_found,
    assert_get_metadata_not_found,
    assert_list_results,
)
from blobverify.conformance.fixtures import (
    DEFAULT_FIXTURES,
    LIST_PREFIX,
    NON_EXISTENT_BLOB_ID,
    SET_TIME_TIMESTAMP,
    BlobFixture,
    ids_with_prefix,
    initial_add_concurrency,
)
from blobverify.conformance.types import SubCaseResult, SubCaseStatus, VerificationReport
from blobverify.observability.tracing import traced_span
from blobverify.storage.blob_storage import BlobStorage
from blobverify.storage.errors import SetTimeUnsupportedError
from blobverify.storage.models import BlobMetadata, PutOptions

logger = logging.getLogger(__name__)

PHASE_VERIFY_BLOBS_NOT_FOUND: Final[str] = "VerifyBlobsNotFound"
PHASE_ADD_BLOBS: Final[str] = "AddBlobs"
PHASE_GET_BLOBS: Final[str] = "GetBlobs"
PHASE_LIST_BLOBS: Final[str] = "ListBlobs"
PHASE_OVERWRITE_BLOBS: Final[str] = "OverwriteBlobs"
PHASE_SET_TIME: Final[str] = "SetTime"
PHASE_DELETE_BLOBS: Final[str] = "DeleteBlobs"
PHASE_LIST_AFTER_DELETE: Final[str] = "ListAfterDelete"

PHASES: Final[tuple[str, ...]] = (
    PHASE_VERIFY_BLOBS_NOT_FOUND,
    PHASE_ADD_BLOBS,
    PHASE_GET_BLOBS,
    PHASE_LIST_BLOBS,
    PHASE_OVERWRITE_BLOBS,
    PHASE_SET_TIME,
    PHASE_DELETE_BLOBS,
    PHASE_LIST_AFTER_DELETE,
)

# A check returns None on success or a skip reason.
Check = Callable[[], str | None]
SubCase = tuple[str, Check]


class ListCallbackError(Exception):
    """Raised by the listing callback to verify that list_blobs propagates it."""


def _cause_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield ``exc`` followed by its explicit ``__cause__`` links.

    Implicit ``__context__`` is not followed: an error raised while handling
    another one replaces it rather than wrapping it.
    """
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__


def _is_set_time_unsupported(exc: BaseException) -> bool:
    return any(isinstance(e, SetTimeUnsupportedError) for e in _cause_chain(exc))


def _check_absent(storage: BlobStorage, blob_id: str) -> None:
    assert_get_blob_not_found(storage, blob_id)
    assert_get_metadata_not_found(storage, blob_id)


def _check_delete_never_written(storage: BlobStorage) -> None:
    try:
        storage.delete_blob(NON_EXISTENT_BLOB_ID)
    except Exception as e:
        raise BlobAssertionError(
            f"invalid error when deleting non-existent blob: {type(e).__name__}: {e}",
            blob_id=NON_EXISTENT_BLOB_ID,
        ) from e


def _check_put(storage: BlobStorage, fixture: BlobFixture, options: PutOptions) -> None:
    storage.put_blob(fixture.blob_id, fixture.contents, options)


def _check_list_error(storage: BlobStorage, prefix: str) -> None:
    expected = ListCallbackError("expected error")

    def fail(_: BlobMetadata) -> None:
        raise expected

    try:
        storage.list_blobs(prefix, fail)
    except Exception as e:
        if any(link is expected for link in _cause_chain(e)):
            return
        raise BlobAssertionError(
            f"list_blobs({prefix!r}) raised {type(e).__name__}: {e}, "
            "want the error raised by the callback"
        ) from e
    raise BlobAssertionError(
        f"list_blobs({prefix!r}) returned normally, want the error raised by the callback"
    )


def _check_overwrite(storage: BlobStorage, fixture: BlobFixture) -> None:
    storage.put_blob(fixture.blob_id, fixture.contents, PutOptions())
    assert_get_blob(storage, fixture.blob_id, fixture.contents)


def _check_set_time(storage: BlobStorage, blob_id: str) -> str | None:
    try:
        storage.set_time(blob_id, SET_TIME_TIMESTAMP)
    except Exception as e:
        if _is_set_time_unsupported(e):
            return f"set_time is not supported by {storage.backend_name}"
        raise

    metadata = storage.get_metadata(blob_id)
    if metadata.timestamp != SET_TIME_TIMESTAMP:
        raise BlobAssertionError(
            f"invalid time after set_time(): {metadata.timestamp.isoformat()}, "
            f"want {SET_TIME_TIMESTAMP.isoformat()}",
            blob_id=blob_id,
        )
    return None


def _check_delete_twice(storage: BlobStorage, blob_id: str) -> None:
    storage.delete_blob(blob_id)
    storage.delete_blob(blob_id)


def _run_sub_case(phase: str, name: str, check: Check) -> SubCaseResult:
    """Run one check and turn its outcome into a SubCaseResult."""
    started = time.monotonic()
    status = SubCaseStatus.PASS
    errors: list[str] = []
    skip_reason: str | None = None

    try:
        skip_reason = check()
        if skip_reason is not None:
            status = SubCaseStatus.SKIPPED
    except AssertionError as e:
        status = SubCaseStatus.FAIL
        errors.append(str(e))
    except Exception as e:
        status = SubCaseStatus.FAIL
        errors.append(f"unexpected {type(e).__name__}: {e}")

    elapsed_ms = int((time.monotonic() - started) * 1000)
    logger.debug("%s/%s: %s (%d ms)", phase, name, status.value, elapsed_ms)

    return SubCaseResult(
        phase=phase,
        name=name,
        status=status,
        errors=errors,
        skip_reason=skip_reason,
        execution_time_ms=elapsed_ms,
    )


def _run_phase(
    report: VerificationReport,
    phase: str,
    sub_cases: Sequence[SubCase],
    *,
    max_workers: int | None,
) -> bool:
    """Run all sub-cases of a phase in parallel and wait for every one of them.

    Returns:
        True if no sub-case failed.
    """
    logger.info("Phase %s: running %d sub-case(s)", phase, len(sub_cases))

    with traced_span(
        f"blobverify.conformance.{phase}",
        {"storage.backend": report.backend, "blobverify.sub_case_count": len(sub_cases)},
    ):
        workers = max_workers or max(len(sub_cases), 1)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=phase) as executor:
            futures = [
                executor.submit(contextvars.copy_context().run, _run_sub_case, phase, name, check)
                for name, check in sub_cases
            ]
            results = [future.result() for future in futures]

    report.phases.append(phase)
    report.cases.extend(results)

    failed = [r for r in results if r.status == SubCaseStatus.FAIL]
    for result in failed:
        logger.warning("%s failed: %s", result.qualified_name, "; ".join(result.errors))
    return not failed


def _build_phases(
    storage: BlobStorage,
    fixtures: tuple[BlobFixture, ...],
    put_options: PutOptions,
    add_concurrency: int,
) -> list[tuple[str, list[SubCase]]]:
    """Build the ordered sub-case program."""
    p = functools.partial
    deleted = fixtures[0]
    remaining = fixtures[1:]

    not_found: list[SubCase] = [(f.blob_id, p(_check_absent, storage, f.blob_id)) for f in fixtures]
    not_found.append(("DeleteNonExistentBlob", p(_check_delete_never_written, storage)))

    add: list[SubCase] = [
        (f"{f.blob_id}-{i}", p(_check_put, storage, f, put_options))
        for f in fixtures
        for i in range(add_concurrency)
    ]

    get: list[SubCase] = [
        (f.blob_id, p(assert_get_blob, storage, f.blob_id, f.contents)) for f in fixtures
    ]

    listing: list[SubCase] = [
        ("ListErrorNoPrefix", p(_check_list_error, storage, "")),
        ("ListErrorWithPrefix", p(_check_list_error, storage, LIST_PREFIX)),
        ("ListNoPrefix", p(assert_list_results, storage, "", *ids_with_prefix(fixtures, ""))),
        (
            "ListWithPrefix",
            p(assert_list_results, storage, LIST_PREFIX, *ids_with_prefix(fixtures, LIST_PREFIX)),
        ),
    ]

    overwrite: list[SubCase] = [(f.blob_id, p(_check_overwrite, storage, f)) for f in fixtures]

    set_time: list[SubCase] = [
        (f.blob_id, p(_check_set_time, storage, f.blob_id)) for f in fixtures
    ]

    delete: list[SubCase] = [(deleted.blob_id, p(_check_delete_twice, storage, deleted.blob_id))]

    after_delete: list[SubCase] = [
        (
            "ListWithPrefixAfterDelete",
            p(
                assert_list_results,
                storage,
                LIST_PREFIX,
                *ids_with_prefix(remaining, LIST_PREFIX),
            ),
        ),
        (
            "ListNoPrefixAfterDelete",
            p(assert_list_results, storage, "", *ids_with_prefix(remaining, "")),
        ),
    ]

    return [
        (PHASE_VERIFY_BLOBS_NOT_FOUND, not_found),
        (PHASE_ADD_BLOBS, add),
        (PHASE_GET_BLOBS, get),
        (PHASE_LIST_BLOBS, listing),
        (PHASE_OVERWRITE_BLOBS, overwrite),
        (PHASE_SET_TIME, set_time),
        (PHASE_DELETE_BLOBS, delete),
        (PHASE_LIST_AFTER_DELETE, after_delete),
    ]


def verify_storage(
    storage: BlobStorage,
    put_options: PutOptions | None = None,
    *,
    fixtures: Sequence[BlobFixture] = DEFAULT_FIXTURES,
    add_concurrency: int | None = None,
    max_workers: int | None = None,
    fail_fast: bool = False,
) -> VerificationReport:
    """Verify the behavior of the given storage.

    The storage must start out empty of the fixture IDs; it is left holding
    every fixture except the first.

    Args:
        storage: Storage under test, shared by all sub-cases.
        put_options: Options for the concurrent insertion phase
            (default: ``PutOptions()``). The overwrite phase always uses
            ``PutOptions()``.
        fixtures: Fixture blobs with distinct IDs. The first one is the blob
            that gets deleted.
        add_concurrency: Parallel writers per fixture in the insertion phase.
            Defaults to 2, or 4 when the CI environment variable is set.
        max_workers: Thread pool size per phase (default: one thread per sub-case).
        fail_fast: Stop after the first phase with a failed sub-case.

    Returns:
        VerificationReport with one result per sub-case. Call
        ``raise_for_failures()`` to turn failures into an AssertionError.

    Raises:
        ValueError: If fixtures are empty or contain duplicate IDs.
    """
    fixture_table = tuple(fixtures)
    if not fixture_table:
        raise ValueError("At least one fixture blob is required")
    if len({f.blob_id for f in fixture_table}) != len(fixture_table):
        raise ValueError("Fixture blob IDs must be distinct")

    concurrency = add_concurrency if add_concurrency is not None else initial_add_concurrency()
    if concurrency < 1:
        raise ValueError("add_concurrency must be >= 1")

    report = VerificationReport(
        storage_name=storage.display_name(),
        backend=storage.backend_name,
        started_at=VerificationReport.now_iso(),
    )
    logger.info(
        "Verifying storage %s (fixtures=%d, add_concurrency=%d)",
        report.storage_name,
        len(fixture_table),
        concurrency,
    )

    program = _build_phases(storage, fixture_table, put_options or PutOptions(), concurrency)
    for phase, sub_cases in program:
        ok = _run_phase(report, phase, sub_cases, max_workers=max_workers)
        if not ok and fail_fast:
            logger.warning("Stopping after failed phase %s", phase)
            break

    report.finished_at = VerificationReport.now_iso()
    logger.info(
        "Verification of %s finished: %s (%d failed, %d skipped of %d)",
        report.storage_name,
        "PASS" if report.passed else "FAIL",
        len(report.failures),
        len(report.skipped),
        len(report.cases),
    )
    return report
