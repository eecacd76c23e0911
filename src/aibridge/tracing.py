"""Spans for bridge calls and their export.

Every ``complete()`` / ``stream()`` call runs inside one span
(``aibridge.complete`` / ``aibridge.stream``) carrying:

- ``llm.provider``, ``llm.model``, ``llm.max_tokens``
- ``llm.prompt.length``, ``llm.context.count``, ``llm.image``
- on success ``llm.response.length`` and ``llm.usage.total_tokens`` or
  ``llm.stream.tokens``
- ``llm.status``: ``success``, ``error`` or ``cancelled``

Spans go to the no-op provider until ``init_telemetry()`` installs an SDK
provider with an OTLP (gRPC) or console exporter:

    ```python
    from aibridge.config import TelemetrySettings
    from aibridge.tracing import init_telemetry, shutdown_telemetry

    init_telemetry(TelemetrySettings(exporter="console"))
    ...
    shutdown_telemetry()
    ```
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, Any, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)

from . import __version__
from .config import TelemetrySettings

if TYPE_CHECKING:
    from .errors import BridgeError
    from .providers.base import ProviderAdapter
    from .types import CompletionRequest

EXPORTERS = ("otlp", "console")

# Proxy tracer: picks up whichever provider init_telemetry() installs later
tracer = trace.get_tracer("aibridge", __version__)

_initialized = False


def request_attributes(
    adapter: ProviderAdapter,
    request: CompletionRequest,
    payload: dict[str, Any],
    prompt_text: str,
) -> dict[str, Any]:
    """Span attributes known before the request is sent."""
    return {
        "llm.provider": request.provider.value,
        "llm.model": adapter.model_for(request),
        "llm.max_tokens": payload.get("max_tokens", 0),
        "llm.prompt.length": len(prompt_text),
        "llm.context.count": len(request.context_chunks),
        "llm.image": bool(request.image_base64),
    }


def record_success(
    span: trace.Span,
    text: str,
    *,
    tokens_used: Optional[int] = None,
    stream_tokens: Optional[int] = None,
) -> None:
    span.set_attribute("llm.response.length", len(text))
    if tokens_used is not None:
        span.set_attribute("llm.usage.total_tokens", tokens_used)
    if stream_tokens is not None:
        span.set_attribute("llm.stream.tokens", stream_tokens)
    span.set_attribute("llm.status", "success")
    span.set_status(trace.Status(trace.StatusCode.OK))


def record_cancelled(span: trace.Span) -> None:
    # Not an error: the caller asked for it
    span.set_attribute("llm.status", "cancelled")


def record_error(span: trace.Span, error: BridgeError) -> None:
    span.set_attribute("llm.status", "error")
    span.set_attribute("llm.error.type", type(error).__name__)
    span.set_status(trace.Status(trace.StatusCode.ERROR, str(error)))
    span.record_exception(error)


def _span_processor(settings: TelemetrySettings, exporter: str) -> SpanProcessor:
    if exporter == "console":
        # Answers go to stdout; keep spans out of them
        return SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr))
    if exporter == "otlp":
        return BatchSpanProcessor(
            OTLPSpanExporter(endpoint=settings.resolved_endpoint(), insecure=settings.insecure),
            schedule_delay_millis=settings.schedule_delay_millis,
        )
    raise ValueError(f"Unknown trace exporter: {exporter!r} (expected one of {', '.join(EXPORTERS)})")


def init_telemetry(
    settings: Optional[TelemetrySettings] = None,
    exporter: Optional[str] = None,
) -> bool:
    """Install an SDK tracer provider that exports bridge spans.

    Args:
        settings: ``[telemetry]`` settings (defaults: OTEL environment variables)
        exporter: ``"otlp"`` or ``"console"``; overrides ``settings.exporter``

    Returns:
        True if a provider was installed by this call, False if tracing was
        already initialized or no exporter is selected

    Raises:
        ValueError: Unknown exporter name
    """
    global _initialized
    settings = settings or TelemetrySettings()
    exporter = exporter or settings.exporter
    if _initialized or not exporter:
        return False

    processor = _span_processor(settings, exporter)
    resource = Resource.create(
        {
            "service.name": settings.resolved_service_name(),
            "service.version": __version__,
            "deployment.environment": settings.resolved_environment(),
        }
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)

    _initialized = True
    target = settings.resolved_endpoint() if exporter == "otlp" else "stderr"
    print(f"[aibridge.tracing] Exporting spans: exporter={exporter}, target={target}")
    return True


def shutdown_telemetry() -> None:
    """Flush pending spans and shut the exporter down."""
    global _initialized
    if not _initialized:
        return

    provider = trace.get_tracer_provider()
    if hasattr(provider, "shutdown"):
        provider.shutdown()

    _initialized = False


__all__ = [
    "EXPORTERS",
    "tracer",
    "request_attributes",
    "record_success",
    "record_cancelled",
    "record_error",
    "init_telemetry",
    "shutdown_telemetry",
]
