"""OpenTelemetry tracing helpers for chatbridge.

Provides a thin wrapper around the OpenTelemetry API so the rest of the
codebase can call ``get_tracer()`` without caring whether the SDK is
installed.  When the SDK is *not* configured the API returns no-op
implementations, so there is no overhead in production unless explicitly opted in.

Usage::

    from chatbridge.utils.telemetry import get_tracer

    _tracer = get_tracer(__name__)

    with _tracer.start_as_current_span("my.operation") as span:
        span.set_attribute("key", "value")

To activate real tracing, call :func:`configure_telemetry` once at startup
(requires the ``otel`` extra: ``pip install chatbridge[otel]``).
"""

from __future__ import annotations

from typing import Any

from opentelemetry import trace

# ---------------------------------------------------------------------------
# Semantic attribute keys used by session instrumentation
# ---------------------------------------------------------------------------

ATTR_PROVIDER = "chatbridge.provider"
ATTR_MODEL = "chatbridge.model"
ATTR_PROMPT_KEY = "chatbridge.prompt_key"
ATTR_HISTORY_LENGTH = "chatbridge.history.length"
ATTR_TOKENS_PROMPT = "chatbridge.tokens.prompt"
ATTR_TOKENS_COMPLETION = "chatbridge.tokens.completion"
ATTR_FINISH_REASON = "chatbridge.finish_reason"
ATTR_TOOL_INVOCATIONS = "chatbridge.tool.invocations"

_INSTRUMENTATION_NAME = "chatbridge"


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Return a :class:`~opentelemetry.trace.Tracer` for *name*.

    If the OpenTelemetry SDK has not been configured the returned tracer
    is a no-op and every span it starts is a no-op too.
    """
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def configure_telemetry(
    *,
    service_name: str = "chatbridge",
    console: bool = False,
    otlp_endpoint: str | None = None,
) -> None:
    """Install an SDK tracer provider (requires ``chatbridge[otel]``).

    Spans are printed to stdout when *console* is set and shipped over
    OTLP/gRPC when *otlp_endpoint* is given.

    Raises:
        ImportError: If ``opentelemetry-sdk`` (or, for OTLP export,
            ``opentelemetry-exporter-otlp``) is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace.export import (  # pyright: ignore[reportMissingImports]
            BatchSpanProcessor,
            ConsoleSpanExporter,
            SimpleSpanProcessor,
        )
    except ImportError as exc:
        msg = "opentelemetry-sdk is required for tracing. Install it with: pip install chatbridge[otel]"
        raise ImportError(msg) from exc

    provider: Any = TracerProvider(resource=Resource.create({"service.name": service_name}))

    if console:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    if otlp_endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (  # pyright: ignore[reportMissingImports]
                OTLPSpanExporter,
            )
        except ImportError as exc:
            msg = "opentelemetry-exporter-otlp is required for OTLP export. Install it with: pip install chatbridge[otel]"
            raise ImportError(msg) from exc
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))

    trace.set_tracer_provider(provider)
