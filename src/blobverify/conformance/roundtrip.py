"""Connection descriptor round-trip check."""

from __future__ import annotations

import logging

from blobverify.conformance.assertions import BlobAssertionError
from blobverify.storage import new_storage
from blobverify.storage.blob_storage import BlobStorage

logger = logging.getLogger(__name__)


def assert_connection_info_round_trips(storage: BlobStorage) -> None:
    """Verify that a storage's ConnectionInfo rebuilds an equivalent storage.

    Reconnects from ``storage.connection_info()`` without asking the backend
    to create anything, checks that the new handle describes itself with an
    equal descriptor, then closes it.

    Raises:
        BlobAssertionError: If reconnecting fails, the descriptors differ, or
            closing the new handle fails. A descriptor mismatch is reported
            even when closing also fails, with the close error as its cause.
    """
    info = storage.connection_info()

    try:
        reconnected = new_storage(info, is_create=False)
    except Exception as e:
        raise BlobAssertionError(
            f"unable to reconnect from {info.type!r} connection info: {type(e).__name__}: {e}"
        ) from e

    mismatch: BlobAssertionError | None = None
    try:
        info2 = reconnected.connection_info()
        if info2 != info:
            mismatch = BlobAssertionError(
                "connection info changed after reconnect: "
                f"{info2.model_dump()} != {info.model_dump()}"
            )
    finally:
        try:
            reconnected.close()
        except Exception as e:
            # The descriptor mismatch is the primary failure.
            if mismatch is not None:
                raise mismatch from e
            raise BlobAssertionError(
                f"closing reconnected storage failed: {type(e).__name__}: {e}"
            ) from e

    if mismatch is not None:
        raise mismatch

    logger.debug("Connection info round-tripped for %s", storage.display_name())
