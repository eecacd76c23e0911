"""Incremental server-sent-event decoder.

Chunk boundaries coming off the socket carry no meaning: a chunk may end in
the middle of a line or of a UTF-8 code point. The decoder buffers text until
it sees ``\\n`` and only then interprets the line.
"""

from __future__ import annotations

import codecs
import json
import logging
from typing import Optional

from .providers.base import ProviderAdapter
from .types import Done, Token

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class StreamDecoder:
    """Turns raw SSE body chunks into ordered ``Token`` events.

    Usage:
        decoder = StreamDecoder(adapter, model)
        for chunk in body:
            for token in decoder.feed(chunk):
                ...
        done = decoder.finish()
    """

    def __init__(self, adapter: ProviderAdapter, model: str):
        self.adapter = adapter
        self.model = model
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._parts: list[str] = []
        self._finished = False

    @property
    def finished(self) -> bool:
        """True once the ``[DONE]`` sentinel has been seen."""
        return self._finished

    @property
    def token_count(self) -> int:
        return len(self._parts)

    @property
    def text(self) -> str:
        """Text accumulated so far."""
        return "".join(self._parts)

    def feed(self, chunk: bytes) -> list[Token]:
        """Consume one body chunk and return the tokens it completes."""
        if self._finished:
            return []

        self._buffer += self._utf8.decode(chunk)
        tokens: list[Token] = []
        while not self._finished:
            newline = self._buffer.find("\n")
            if newline < 0:
                break
            line = self._buffer[:newline].strip()
            self._buffer = self._buffer[newline + 1 :]
            token = self._decode_line(line)
            if token is not None:
                tokens.append(token)
        return tokens

    def finish(self) -> Done:
        """Terminal event for a stream that reached EOF or ``[DONE]``."""
        self._finished = True
        return Done(text=self.text, model=self.model)

    def _decode_line(self, line: str) -> Optional[Token]:
        if not line.startswith(DATA_PREFIX):
            return None

        payload = line[len(DATA_PREFIX) :]
        if payload == DONE_SENTINEL and self.adapter.uses_done_sentinel:
            self._finished = True
            return None

        try:
            data = json.loads(payload)
        except ValueError:
            logging.debug("[aibridge] Skipping malformed stream line: %.80s", payload)
            return None

        delta = self.adapter.parse_stream_line(data)
        if not delta:
            return None
        self._parts.append(delta)
        return Token(delta)


__all__ = ["StreamDecoder", "DATA_PREFIX", "DONE_SENTINEL"]
