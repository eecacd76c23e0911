"""Bridge Client - one completion exchange per call.

Provides direct HTTP calls to every supported provider through its adapter:
- complete(): one-shot request/response
- stream(): server-sent-event streaming into a caller-supplied sink

Both race the network work against the cancellation broadcaster. Whichever
finishes first decides the outcome; a cancelled call drops its in-flight
request locally (the server is not told) and yields ``CANCELLED``.

No retries are performed. Retry policy belongs to the caller.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

import httpx
from .cancellation import CancellationBroadcaster, CancelSubscription, get_default_broadcaster
from .errors import BridgeError, HttpStatusError, NetworkError, extract_error_message
from .prompt import build_prompt
from .providers.base import ProviderAdapter
from .providers.registry import ProviderRegistry
from .streaming import StreamDecoder
from .tracing import record_cancelled, record_error, record_success, request_attributes, tracer
from .types import CANCELLED, Cancelled, CompletionRequest, CompletionResponse, Done, StreamEvent

CONNECT_TIMEOUT_SEC = 10.0
# Local inference hardware can take minutes to answer
TOTAL_TIMEOUT_SEC = 600.0

T = TypeVar("T")
Sink = Callable[[StreamEvent], Any]


class BridgeClient:
    """Drives provider adapters through single HTTP exchanges.

    Args:
        broadcaster: Cancellation signal to race against (defaults to the
            process-wide broadcaster)
        registry: Provider -> adapter resolution
        transport: Optional httpx transport (tests use ``httpx.MockTransport``)
    """

    def __init__(
        self,
        broadcaster: Optional[CancellationBroadcaster] = None,
        *,
        registry: Optional[ProviderRegistry] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.broadcaster = broadcaster or get_default_broadcaster()
        self.registry = registry or ProviderRegistry.default()
        self.transport = transport

    def cancel(self) -> int:
        """Cancel every call racing against this client's broadcaster."""
        return self.broadcaster.advance()

    async def complete(
        self, request: CompletionRequest
    ) -> Union[CompletionResponse, Cancelled]:
        """Perform one non-streaming completion.

        Returns:
            The normalized response, or ``CANCELLED`` if the broadcaster
            advanced first

        Raises:
            AuthError: Key required but empty (no request is sent)
            NetworkError: Connect/transport/timeout failure
            HttpStatusError: Non-2xx answer
            ParseError: Body is not the expected JSON
            ValueError: Unknown provider or missing local endpoint
        """
        adapter = self.registry.resolve(request)
        adapter.check_key(request)

        prompt_text = build_prompt(request.prompt, request.context_chunks)
        payload = adapter.build_payload(request, prompt_text)
        url = adapter.endpoint_url()
        headers = adapter.headers(request.api_key)
        subscription = self.broadcaster.subscribe()

        with tracer.start_as_current_span(
            "aibridge.complete",
            attributes=request_attributes(adapter, request, payload, prompt_text),
        ) as span:
            try:
                result = await self._race(
                    self._deadline(
                        adapter, url, self._exchange(adapter, request, url, headers, payload)
                    ),
                    subscription,
                )
            except BridgeError as e:
                record_error(span, e)
                raise

            if isinstance(result, Cancelled):
                record_cancelled(span)
                return result

            record_success(span, result.text, tokens_used=result.tokens_used)
            return result

    async def stream(self, request: CompletionRequest, sink: Sink) -> Union[Done, Cancelled]:
        """Perform one streaming completion, relaying events to ``sink``.

        ``sink`` receives zero or more ``Token`` events followed by exactly
        one ``Done`` or ``Cancelled``. It may be a plain function or a
        coroutine function.

        Returns:
            The terminal event that was emitted

        Raises:
            The same errors as ``complete()``. An error status received
            before the body starts is raised, not emitted.
        """
        adapter = self.registry.resolve(request)
        adapter.check_key(request)

        prompt_text = build_prompt(request.prompt, request.context_chunks)
        payload = adapter.build_stream_payload(request, prompt_text)
        url = adapter.endpoint_url()
        headers = adapter.headers(request.api_key)
        decoder = StreamDecoder(adapter, adapter.model_for(request))
        subscription = self.broadcaster.subscribe()

        with tracer.start_as_current_span(
            "aibridge.stream",
            attributes=request_attributes(adapter, request, payload, prompt_text),
        ) as span:
            try:
                result = await self._race(
                    self._deadline(
                        adapter,
                        url,
                        self._stream_exchange(adapter, decoder, url, headers, payload, sink),
                    ),
                    subscription,
                )
            except BridgeError as e:
                record_error(span, e)
                raise

            if isinstance(result, Cancelled):
                record_cancelled(span)
            else:
                record_success(span, result.text, stream_tokens=decoder.token_count)

            await _emit(sink, result)
            return result

    def _http_client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(TOTAL_TIMEOUT_SEC, connect=CONNECT_TIMEOUT_SEC)
        return httpx.AsyncClient(timeout=timeout, transport=self.transport)

    async def _exchange(
        self,
        adapter: ProviderAdapter,
        request: CompletionRequest,
        url: str,
        headers: dict[str, str],
        payload: dict[str, Any],
    ) -> CompletionResponse:
        logging.info("[aibridge] %s -> %s", adapter.label, url)
        try:
            async with self._http_client() as client:
                response = await client.post(url, json=payload, headers=headers)
                body = response.text
        except httpx.TransportError as e:
            raise _network_error(adapter, url, e) from e

        return adapter.parse_response(response.status_code, body, request)

    async def _stream_exchange(
        self,
        adapter: ProviderAdapter,
        decoder: StreamDecoder,
        url: str,
        headers: dict[str, str],
        payload: dict[str, Any],
        sink: Sink,
    ) -> Done:
        logging.info("[aibridge] %s -> %s (stream)", adapter.label, url)
        try:
            async with self._http_client() as client:
                async with client.stream("POST", url, json=payload, headers=headers) as response:
                    if not 200 <= response.status_code < 300:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        raise HttpStatusError(
                            adapter.label, response.status_code, extract_error_message(body)
                        )

                    async for chunk in response.aiter_bytes():
                        for token in decoder.feed(chunk):
                            await _emit(sink, token)
                        if decoder.finished:
                            break
        except httpx.TransportError as e:
            raise _network_error(adapter, url, e) from e

        return decoder.finish()

    async def _deadline(self, adapter: ProviderAdapter, url: str, work: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(work, TOTAL_TIMEOUT_SEC)
        except asyncio.TimeoutError as e:
            raise _network_error(adapter, url, e) from e

    async def _race(
        self, work: Awaitable[T], subscription: CancelSubscription
    ) -> Union[T, Cancelled]:
        work_task = asyncio.ensure_future(work)
        cancel_task = asyncio.ensure_future(subscription.changed())
        try:
            done, _ = await asyncio.wait(
                {work_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
            if work_task in done:
                return work_task.result()
            logging.info("[aibridge] Request cancelled")
            return CANCELLED
        finally:
            pending = [task for task in (work_task, cancel_task) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)


async def _emit(sink: Sink, event: StreamEvent) -> None:
    result = sink(event)
    if inspect.isawaitable(result):
        await result


def _network_error(adapter: ProviderAdapter, url: str, error: Exception) -> NetworkError:
    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
        kind = "timeout"
        reason = "request timed out (server did not respond in time)"
    elif isinstance(error, httpx.ConnectError):
        kind = "connect"
        reason = "could not connect (server not running or port closed)"
    else:
        kind = "other"
        reason = str(error) or type(error).__name__
    return NetworkError(adapter.label, reason, kind=kind, url=url, hint=adapter.network_hint())


__all__ = ["BridgeClient", "Sink", "CONNECT_TIMEOUT_SEC", "TOTAL_TIMEOUT_SEC"]
