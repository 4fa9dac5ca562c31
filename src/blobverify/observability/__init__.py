"""blobverify observability module.

Provides the OpenTelemetry tracing baseline for storage operations and
conformance runs.
"""

from blobverify.observability.tracing import configure_tracing, is_tracing_enabled

__all__ = ["configure_tracing", "is_tracing_enabled"]
