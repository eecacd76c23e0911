"""Fake transports for exercising the client without a network."""

import json
from typing import Any, Callable

import httpx


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], Any]):
        self.requests: list[httpx.Request] = []

        def recording(request: httpx.Request):
            self.requests.append(request)
            return handler(request)

        super().__init__(recording)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def payload(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


def json_reply(body: Any, status: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    """Handler that answers every request with the same JSON body."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=body)

    return handler


def text_reply(body: str, status: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text=body)

    return handler


def sse_reply(chunks: list[bytes], status: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    """Handler that streams ``chunks`` as the response body, one by one."""

    def handler(request: httpx.Request) -> httpx.Response:
        async def body():
            for chunk in chunks:
                yield chunk

        return httpx.Response(
            status, headers={"content-type": "text/event-stream"}, content=body()
        )

    return handler


def sse_lines(*payloads: Any) -> bytes:
    """Encode payloads as ``data:`` lines (strings are sent verbatim)."""
    lines = []
    for payload in payloads:
        text = payload if isinstance(payload, str) else json.dumps(payload)
        lines.append(f"data: {text}\n")
    return "".join(lines).encode("utf-8")
