"""HTTP blob storage backend.

Talks to a blob service over a small REST protocol using httpx:

    PUT    {url}/blobs/{id}                  store (If-None-Match: * => do not recreate)
    GET    {url}/blobs/{id}                  fetch content
    HEAD   {url}/blobs/{id}                  metadata (Content-Length, X-Blob-Timestamp)
    DELETE {url}/blobs/{id}                  delete (404 counts as success)
    GET    {url}/blobs?prefix=P&cursor=C     one page of {"blobs": [...], "next": C|null}

The service has no way to change timestamps, so set_time and
``PutOptions.set_mod_time`` report SetTimeUnsupportedError.
"""

from __future__ import annotations

import logging
import urllib.parse
from datetime import datetime
from typing import Any, Final

import httpx

from blobverify.storage.blob_storage import BlobStorage, ListCallback
from blobverify.storage.errors import (
    BlobAlreadyExistsError,
    BlobNotFoundError,
    BlobStorageError,
    SetTimeUnsupportedError,
    StorageBackendError,
)
from blobverify.storage.models import BlobMetadata, ConnectionInfo, PutOptions
from blobverify.storage.ranges import slice_range
from blobverify.storage.registry import register_storage_type
from blobverify.storage.tracing import traced_blob_operation

logger = logging.getLogger(__name__)

HTTP_STORAGE_TYPE: Final[str] = "http"
TIMESTAMP_HEADER: Final[str] = "X-Blob-Timestamp"
DEFAULT_TIMEOUT_SECONDS: Final[float] = 30.0


class HttpBlobStorage(BlobStorage):
    """Blob storage backed by a remote HTTP blob service."""

    def __init__(
        self,
        url: str,
        *,
        http_client: httpx.Client | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the HTTP storage.

        Args:
            url: Base URL of the blob namespace, without trailing slash.
            http_client: Optional httpx.Client for dependency injection (testing).
                Injected clients are not closed by close().
            timeout_seconds: Request timeout for the client created here.
        """
        if not url:
            raise BlobStorageError("HTTP storage requires a non-empty URL")
        self._url = url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout_seconds)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return HTTP_STORAGE_TYPE

    def _blob_url(self, blob_id: str) -> str:
        return f"{self._url}/blobs/{urllib.parse.quote(blob_id, safe='')}"

    def _request(
        self,
        method: str,
        url: str,
        *,
        blob_id: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request, mapping transport failures to StorageBackendError."""
        try:
            return self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise StorageBackendError(
                message=f"{method} request failed: {e}",
                blob_id=blob_id,
                cause=e,
            ) from e

    @staticmethod
    def _unexpected(response: httpx.Response, *, blob_id: str | None) -> StorageBackendError:
        return StorageBackendError(
            message=(
                f"Unexpected HTTP {response.status_code} for "
                f"{response.request.method} request"
            ),
            blob_id=blob_id,
        )

    @traced_blob_operation("put_blob")
    def put_blob(
        self,
        blob_id: str,
        data: bytes,
        options: PutOptions | None = None,
    ) -> None:
        """Upload a blob."""
        opts = options or PutOptions()
        if opts.set_mod_time is not None:
            raise SetTimeUnsupportedError(blob_id=blob_id)

        headers = {"Content-Type": "application/octet-stream"}
        if opts.do_not_recreate:
            headers["If-None-Match"] = "*"

        response = self._request(
            "PUT",
            self._blob_url(blob_id),
            blob_id=blob_id,
            content=bytes(data),
            headers=headers,
        )
        if response.status_code == 412:
            raise BlobAlreadyExistsError(blob_id=blob_id)
        if response.status_code not in (200, 201, 204):
            raise self._unexpected(response, blob_id=blob_id)

        logger.debug("Uploaded blob: blob_id=%s length=%d", blob_id, len(data))

    @traced_blob_operation("get_blob")
    def get_blob(self, blob_id: str, offset: int = 0, length: int = -1) -> bytes:
        """Download a blob and return the requested range."""
        response = self._request("GET", self._blob_url(blob_id), blob_id=blob_id)
        if response.status_code == 404:
            raise BlobNotFoundError(blob_id=blob_id)
        if response.status_code != 200:
            raise self._unexpected(response, blob_id=blob_id)
        return slice_range(response.content, offset, length, blob_id=blob_id)

    @traced_blob_operation("get_metadata")
    def get_metadata(self, blob_id: str) -> BlobMetadata:
        """Fetch blob metadata with a HEAD request."""
        response = self._request("HEAD", self._blob_url(blob_id), blob_id=blob_id)
        if response.status_code == 404:
            raise BlobNotFoundError(blob_id=blob_id)
        if response.status_code != 200:
            raise self._unexpected(response, blob_id=blob_id)

        try:
            return BlobMetadata.from_dict(
                {
                    "id": blob_id,
                    "length": response.headers["Content-Length"],
                    "timestamp": response.headers[TIMESTAMP_HEADER],
                }
            )
        except (KeyError, ValueError) as e:
            raise StorageBackendError(
                message=f"Malformed metadata headers: {e}",
                blob_id=blob_id,
                cause=e,
            ) from e

    @traced_blob_operation("set_time")
    def set_time(self, blob_id: str, timestamp: datetime) -> None:
        """Not supported by the HTTP blob service."""
        raise SetTimeUnsupportedError(blob_id=blob_id)

    @traced_blob_operation("delete_blob")
    def delete_blob(self, blob_id: str) -> None:
        """Delete a blob; a 404 response means it is already gone."""
        response = self._request("DELETE", self._blob_url(blob_id), blob_id=blob_id)
        if response.status_code not in (200, 204, 404):
            raise self._unexpected(response, blob_id=blob_id)

    def _list_page(self, prefix: str, cursor: str | None) -> tuple[list[BlobMetadata], str | None]:
        """Fetch one page of listing results."""
        params = {"prefix": prefix}
        if cursor is not None:
            params["cursor"] = cursor

        response = self._request("GET", f"{self._url}/blobs", params=params)
        if response.status_code != 200:
            raise self._unexpected(response, blob_id=None)

        try:
            payload = response.json()
            items = [BlobMetadata.from_dict(item) for item in payload["blobs"]]
            next_cursor = payload.get("next")
        except (KeyError, TypeError, ValueError) as e:
            raise StorageBackendError(message=f"Malformed listing response: {e}", cause=e) from e

        return items, next_cursor if isinstance(next_cursor, str) and next_cursor else None

    @traced_blob_operation("list_blobs")
    def list_blobs(self, prefix: str, callback: ListCallback) -> None:
        """List blobs page by page."""
        cursor: str | None = None
        while True:
            items, cursor = self._list_page(prefix, cursor)
            for metadata in items:
                callback(metadata)
            if cursor is None:
                return

    def connection_info(self) -> ConnectionInfo:
        """Return the connection descriptor."""
        return ConnectionInfo(type=HTTP_STORAGE_TYPE, config={"url": self._url})

    def display_name(self) -> str:
        """Return a human-readable name."""
        return f"http:{self._url}"

    def close(self) -> None:
        """Close the underlying client if this storage created it."""
        if self._owns_client:
            self._client.close()


def _factory(config: dict[str, object], is_create: bool) -> HttpBlobStorage:
    url = config.get("url")
    if not isinstance(url, str) or not url:
        raise BlobStorageError("HTTP storage config requires a non-empty 'url'")
    return HttpBlobStorage(url)


register_storage_type(HTTP_STORAGE_TYPE, _factory)
