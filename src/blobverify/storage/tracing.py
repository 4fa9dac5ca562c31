"""Blob storage OpenTelemetry tracing integration.

Provides a tracing decorator for BlobStorage operations.

Span attributes carry the backend name, a SHA256 of the blob ID (never the
raw ID, which may embed caller data) and result sizes. No filesystem paths
or URLs are exported.
"""

from __future__ import annotations

import functools
import hashlib
import logging
from collections.abc import Callable
from typing import Any, TypeVar, cast

from blobverify.observability.tracing import is_tracing_enabled
from blobverify.storage.models import BlobMetadata

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_TRACER_NAME = "blobverify.blob_storage"


def _hash_blob_id(blob_id: str) -> str:
    return hashlib.sha256(blob_id.encode("utf-8")).hexdigest()


def traced_blob_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace blob storage operations with OpenTelemetry.

    The decorated method must take the blob ID (or, for ``list_blobs``, the
    prefix) as its first positional argument after ``self``.

    Args:
        operation: Operation name (e.g., "put_blob", "get_blob", "list_blobs").

    Returns:
        Decorated function that emits OTel spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, target: str, *args: Any, **kwargs: Any) -> Any:
            if not is_tracing_enabled():
                return func(self, target, *args, **kwargs)

            from opentelemetry import trace

            tracer = trace.get_tracer(_TRACER_NAME)
            span_name = f"{_TRACER_NAME}.{operation}"

            with tracer.start_as_current_span(span_name) as span:
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))

                if operation == "list_blobs":
                    span.set_attribute("blobverify.list_prefix_sha256", _hash_blob_id(target))
                    return _traced_list(func, span, self, target, *args, **kwargs)

                span.set_attribute("blobverify.blob_id_sha256", _hash_blob_id(target))
                try:
                    result = func(self, target, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

                _add_result_attributes(span, result, args)
                return result

        return cast(F, wrapper)

    return decorator


def _traced_list(
    func: Callable[..., Any],
    span: Any,
    storage: Any,
    prefix: str,
    callback: Callable[[BlobMetadata], None],
    *args: Any,
    **kwargs: Any,
) -> Any:
    """Run list_blobs while counting the items handed to the callback."""
    count = 0

    def counting_callback(metadata: BlobMetadata) -> None:
        nonlocal count
        count += 1
        callback(metadata)

    try:
        return func(storage, prefix, counting_callback, *args, **kwargs)
    except Exception as e:
        span.set_attribute("error", True)
        span.set_attribute("error.type", type(e).__name__)
        raise
    finally:
        span.set_attribute("blobverify.list_count", count)


def _add_result_attributes(span: Any, result: Any, args: tuple[Any, ...]) -> None:
    """Add size attributes to a span when the operation moved bytes."""
    try:
        if isinstance(result, BlobMetadata):
            span.set_attribute("blobverify.blob_length", result.length)
        elif isinstance(result, bytes):
            span.set_attribute("blobverify.bytes_read", len(result))
        elif args and isinstance(args[0], bytes):
            span.set_attribute("blobverify.bytes_written", len(args[0]))
    except Exception as e:
        logger.debug("Failed to add result attributes to span: %s", e)
