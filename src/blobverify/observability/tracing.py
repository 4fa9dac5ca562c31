"""OpenTelemetry tracing configuration for blobverify.

Tracing is off unless explicitly enabled. When on, blob storage operations
and conformance phases emit spans through the global tracer provider.

Environment Variables:
    BLOBVERIFY_OTEL_ENABLED: Set to "1" to enable tracing (default: disabled)
    BLOBVERIFY_REQUIRE_OTEL: Set to "1" to fail if tracing cannot initialize
    BLOBVERIFY_OTEL_SERVICE_NAME: Service name for spans (default: "blobverify")
    BLOBVERIFY_OTEL_EXPORTER: Exporter type - "otlp" or "console" (default: "otlp")
    BLOBVERIFY_OTEL_EXPORTER_OTLP_ENDPOINT: OTLP endpoint URL (optional)
    BLOBVERIFY_OTEL_EXPORTER_OTLP_PROTOCOL: "grpc" or "http" (default: "grpc")
    BLOBVERIFY_OTEL_TEST_CAPTURE: Set to "1" to use in-memory exporter for tests
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Final

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
    from opentelemetry.sdk.trace.export import SpanExporter

logger = logging.getLogger(__name__)

ENV_OTEL_ENABLED: Final[str] = "BLOBVERIFY_OTEL_ENABLED"
ENV_REQUIRE_OTEL: Final[str] = "BLOBVERIFY_REQUIRE_OTEL"
ENV_OTEL_SERVICE_NAME: Final[str] = "BLOBVERIFY_OTEL_SERVICE_NAME"
ENV_OTEL_EXPORTER: Final[str] = "BLOBVERIFY_OTEL_EXPORTER"
ENV_OTEL_ENDPOINT: Final[str] = "BLOBVERIFY_OTEL_EXPORTER_OTLP_ENDPOINT"
ENV_OTEL_PROTOCOL: Final[str] = "BLOBVERIFY_OTEL_EXPORTER_OTLP_PROTOCOL"
ENV_OTEL_TEST_CAPTURE: Final[str] = "BLOBVERIFY_OTEL_TEST_CAPTURE"

_tracer_provider: TracerProvider | None = None
_is_configured: bool = False
_test_exporter: Any = None  # InMemorySpanExporter, kept across reset_tracing()


class TracingConfigError(Exception):
    """Raised when tracing configuration fails and BLOBVERIFY_REQUIRE_OTEL=1."""


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no", ""):
        return default
    return default


def _get_env_str(key: str, default: str = "") -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default).strip()


def is_tracing_enabled() -> bool:
    """Return whether span emission is switched on."""
    return _get_env_bool(ENV_OTEL_ENABLED, False)


def _create_otlp_exporter(protocol: str, endpoint: str | None) -> Any:
    """Create OTLP exporter based on protocol."""
    kwargs: dict[str, Any] = {}
    if endpoint:
        kwargs["endpoint"] = endpoint

    if protocol == "http":
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
            OTLPSpanExporter as HTTPExporter,
        )

        return HTTPExporter(**kwargs)

    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
        OTLPSpanExporter as GRPCExporter,
    )

    return GRPCExporter(**kwargs)


def _create_console_exporter() -> SpanExporter:
    """Create console exporter for development."""
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter

    return ConsoleSpanExporter()


def configure_tracing() -> bool:
    """Configure OpenTelemetry tracing.

    Idempotent - safe to call multiple times.

    Returns:
        True if tracing is enabled and configured, False otherwise.

    Raises:
        TracingConfigError: If BLOBVERIFY_REQUIRE_OTEL=1 and configuration fails.
    """
    global _tracer_provider, _is_configured, _test_exporter

    enabled = is_tracing_enabled()
    require_otel = _get_env_bool(ENV_REQUIRE_OTEL, False)
    test_capture = _get_env_bool(ENV_OTEL_TEST_CAPTURE, False)

    if not enabled:
        _is_configured = True
        logger.debug("OpenTelemetry tracing disabled (%s not set)", ENV_OTEL_ENABLED)
        return False

    # The global provider can only be installed once per process.
    if _test_exporter is not None and test_capture:
        return True

    if _is_configured and _tracer_provider is not None:
        return True

    _is_configured = True

    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

        service_name = _get_env_str(ENV_OTEL_SERVICE_NAME, "blobverify")
        exporter_type = _get_env_str(ENV_OTEL_EXPORTER, "otlp")
        endpoint = _get_env_str(ENV_OTEL_ENDPOINT, "")
        protocol = _get_env_str(ENV_OTEL_PROTOCOL, "grpc")

        provider = TracerProvider(resource=Resource.create({"service.name": service_name}))

        if test_capture:
            from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
                InMemorySpanExporter,
            )

            _test_exporter = InMemorySpanExporter()
            provider.add_span_processor(SimpleSpanProcessor(_test_exporter))
        elif exporter_type == "console":
            provider.add_span_processor(SimpleSpanProcessor(_create_console_exporter()))
        else:
            otlp_exporter = _create_otlp_exporter(protocol, endpoint or None)
            provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

        trace.set_tracer_provider(provider)
        _tracer_provider = provider

        logger.info(
            "OpenTelemetry tracing configured: service=%s, exporter=%s",
            service_name,
            exporter_type if not test_capture else "in-memory",
        )
        return True

    except Exception as e:
        logger.error("Failed to configure OpenTelemetry tracing: %s", e)
        if require_otel:
            raise TracingConfigError(
                f"OpenTelemetry tracing required but configuration failed: {e}"
            ) from e
        return False


@contextmanager
def traced_span(name: str, attributes: dict[str, Any] | None = None) -> Iterator[None]:
    """Run the enclosed block inside a span when tracing is enabled."""
    if not is_tracing_enabled():
        yield
        return

    from opentelemetry import trace

    tracer = trace.get_tracer("blobverify")
    with tracer.start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        yield


def get_test_spans() -> list[ReadableSpan]:
    """Get captured spans from in-memory exporter (for testing).

    Returns:
        List of captured spans if BLOBVERIFY_OTEL_TEST_CAPTURE=1, else empty list.
    """
    if _test_exporter is not None and hasattr(_test_exporter, "get_finished_spans"):
        return list(_test_exporter.get_finished_spans())
    return []


def clear_test_spans() -> None:
    """Clear captured spans from in-memory exporter (for testing)."""
    if _test_exporter is not None and hasattr(_test_exporter, "clear"):
        _test_exporter.clear()


def reset_tracing() -> None:
    """Reset tracing configuration (for testing).

    The OpenTelemetry TracerProvider cannot be replaced once set, so the
    in-memory exporter is cleared but kept for later configure_tracing() calls.
    """
    global _is_configured

    clear_test_spans()
    _is_configured = False
