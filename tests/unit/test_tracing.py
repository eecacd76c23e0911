"""Tests for bridge spans and telemetry setup."""

import asyncio
import sys
from unittest.mock import MagicMock, patch

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

import aibridge.tracing as tracing
from aibridge.client import BridgeClient
from aibridge.config import TelemetrySettings
from aibridge.errors import HttpStatusError
from aibridge.types import CANCELLED, CompletionRequest, Provider

from fakes import RecordingTransport, json_reply, sse_lines, sse_reply


@pytest.fixture(autouse=True)
def fresh_telemetry(monkeypatch):
    monkeypatch.setattr(tracing, "_initialized", False)


@pytest.fixture
def spans():
    """Route bridge spans into an in-memory exporter."""
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    with patch("aibridge.client.tracer", provider.get_tracer("test")):
        yield exporter


class TestInitTelemetry:
    def test_no_exporter_installs_nothing(self):
        with patch.object(tracing.trace, "set_tracer_provider") as set_provider:
            assert tracing.init_telemetry(TelemetrySettings()) is False

        set_provider.assert_not_called()

    def test_otlp_uses_configured_collector(self):
        settings = TelemetrySettings(
            exporter="otlp",
            service_name="overlay",
            endpoint="http://collector:4317",
            environment="staging",
            schedule_delay_millis=250,
        )

        with patch.object(tracing, "OTLPSpanExporter") as exporter_cls, patch.object(
            tracing, "BatchSpanProcessor", MagicMock()
        ) as processor_cls, patch.object(tracing.trace, "set_tracer_provider") as set_provider:
            assert tracing.init_telemetry(settings) is True

        exporter_cls.assert_called_once_with(endpoint="http://collector:4317", insecure=True)
        processor_cls.assert_called_once_with(exporter_cls.return_value, schedule_delay_millis=250)
        resource = set_provider.call_args.args[0].resource.attributes
        assert resource["service.name"] == "overlay"
        assert resource["deployment.environment"] == "staging"

    def test_exporter_argument_overrides_settings(self):
        with patch.object(tracing, "ConsoleSpanExporter") as console_cls, patch.object(
            tracing, "SimpleSpanProcessor", MagicMock()
        ), patch.object(tracing, "OTLPSpanExporter") as otlp_cls, patch.object(
            tracing.trace, "set_tracer_provider"
        ):
            tracing.init_telemetry(TelemetrySettings(exporter="otlp"), exporter="console")

        console_cls.assert_called_once_with(out=sys.stderr)
        otlp_cls.assert_not_called()

    def test_unknown_exporter_raises(self):
        with pytest.raises(ValueError, match="Unknown trace exporter"):
            tracing.init_telemetry(exporter="zipkin")

        assert tracing._initialized is False

    def test_init_is_idempotent_and_shutdown_flushes(self):
        with patch.object(tracing, "OTLPSpanExporter"), patch.object(
            tracing, "BatchSpanProcessor", MagicMock()
        ), patch.object(tracing.trace, "set_tracer_provider") as set_provider:
            assert tracing.init_telemetry(exporter="otlp") is True
            assert tracing.init_telemetry(exporter="otlp") is False

        set_provider.assert_called_once()
        provider = set_provider.call_args.args[0]

        with patch.object(tracing.trace, "get_tracer_provider", return_value=provider), patch.object(
            provider, "shutdown"
        ) as shutdown:
            tracing.shutdown_telemetry()

        shutdown.assert_called_once()
        assert tracing._initialized is False


class TestBridgeSpans:
    @pytest.mark.asyncio
    async def test_complete_span_attributes(self, broadcaster, spans):
        body = {"choices": [{"message": {"content": "hello"}}], "usage": {"total_tokens": 5}}
        client = BridgeClient(broadcaster, transport=RecordingTransport(json_reply(body)))

        await client.complete(
            CompletionRequest(
                api_key="k", prompt="hi", provider=Provider.DEEPSEEK, context_chunks=["a", "b"]
            )
        )

        (span,) = spans.get_finished_spans()
        assert span.name == "aibridge.complete"
        assert span.attributes["llm.provider"] == "deepseek"
        assert span.attributes["llm.model"] == "deepseek-chat"
        assert span.attributes["llm.context.count"] == 2
        assert span.attributes["llm.image"] is False
        assert span.attributes["llm.response.length"] == 5
        assert span.attributes["llm.usage.total_tokens"] == 5
        assert span.attributes["llm.status"] == "success"
        assert span.status.status_code == StatusCode.OK

    @pytest.mark.asyncio
    async def test_error_span(self, broadcaster, spans):
        client = BridgeClient(
            broadcaster,
            transport=RecordingTransport(json_reply({"error": {"message": "nope"}}, status=401)),
        )

        with pytest.raises(HttpStatusError):
            await client.complete(CompletionRequest(api_key="k", prompt="hi"))

        (span,) = spans.get_finished_spans()
        assert span.attributes["llm.status"] == "error"
        assert span.attributes["llm.error.type"] == "HttpStatusError"
        assert span.status.status_code == StatusCode.ERROR
        assert "nope" in span.status.description

    @pytest.mark.asyncio
    async def test_stream_span_counts_tokens(self, broadcaster, spans):
        body = sse_lines(
            {"choices": [{"delta": {"content": "a"}}]},
            {"choices": [{"delta": {"content": "b"}}]},
            "[DONE]",
        )
        client = BridgeClient(broadcaster, transport=RecordingTransport(sse_reply([body])))

        await client.stream(CompletionRequest(api_key="k", prompt="hi"), lambda event: None)

        (span,) = spans.get_finished_spans()
        assert span.name == "aibridge.stream"
        assert span.attributes["llm.stream.tokens"] == 2
        assert span.attributes["llm.status"] == "success"

    @pytest.mark.asyncio
    async def test_cancelled_span(self, broadcaster, spans):
        started = asyncio.Event()

        async def hang(request):
            started.set()
            await asyncio.sleep(3600)

        client = BridgeClient(broadcaster, transport=RecordingTransport(hang))
        task = asyncio.ensure_future(client.complete(CompletionRequest(api_key="k", prompt="hi")))
        await asyncio.wait_for(started.wait(), timeout=1)
        client.cancel()

        assert await asyncio.wait_for(task, timeout=1) is CANCELLED
        (span,) = spans.get_finished_spans()
        assert span.attributes["llm.status"] == "cancelled"
        assert span.status.status_code == StatusCode.UNSET
