"""Bridge Types - Data structures for completion requests.

This module defines the provider-agnostic request/response records and the
events emitted by a streaming completion:
- Provider: Closed set of supported providers
- CompletionRequest: Canonical request shared by all providers
- CompletionResponse: Normalized one-shot result
- Token / Done / Cancelled: Stream events
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class Provider(str, Enum):
    """Supported completion providers."""

    OPENAI = "openai"
    CLAUDE = "claude"
    DEEPSEEK = "deepseek"
    OPENROUTER = "openrouter"
    LOCAL = "local"

    @classmethod
    def parse(cls, value: Union[str, Provider]) -> Provider:
        """Resolve a provider from its name (case-insensitive).

        Raises:
            ValueError: If the name is not a known provider.
        """
        if isinstance(value, Provider):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = [p.value for p in cls]
            raise ValueError(f"Unknown provider: {value}. Choose from: {choices}") from None


@dataclass
class CompletionRequest:
    """A canonical completion request.

    Attributes:
        prompt: User prompt text
        provider: Target provider
        api_key: API key (may be empty for local servers)
        system_prompt: Optional system-level instruction
        image_base64: Optional PNG screenshot, base64-encoded
        context_chunks: Preformatted read-only context blocks, in order
        model: Override the provider's default model
        max_tokens: Hard cap on output tokens (None = provider default)
        local_endpoint: Base URL of a local server (local provider only)
    """

    prompt: str
    provider: Provider = Provider.OPENAI
    api_key: str = ""
    system_prompt: Optional[str] = None
    image_base64: Optional[str] = None
    context_chunks: list[str] = field(default_factory=list)
    model: Optional[str] = None
    max_tokens: Optional[int] = None
    local_endpoint: Optional[str] = None

    def __post_init__(self) -> None:
        self.provider = Provider.parse(self.provider)
        if self.api_key is None:
            self.api_key = ""
        if self.context_chunks is None:
            self.context_chunks = []
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {self.max_tokens}")

    def attach_png(self, data: bytes) -> None:
        """Attach raw PNG bytes, encoding them for transport."""
        self.image_base64 = base64.b64encode(data).decode("ascii")


@dataclass
class CompletionResponse:
    """Normalized result of a one-shot completion.

    Attributes:
        text: Generated text (may be empty)
        model: Model that produced the answer
        tokens_used: Total token count, when the provider reports it
    """

    text: str
    model: str
    tokens_used: Optional[int] = None


@dataclass(frozen=True)
class Token:
    """One incremental text fragment of a streaming completion."""

    delta: str


@dataclass(frozen=True)
class Done:
    """Terminal event of a stream that finished normally."""

    text: str
    model: str


@dataclass(frozen=True)
class Cancelled:
    """Terminal outcome of a call that lost the race against cancellation.

    Not an error: callers show nothing for it.
    """


CANCELLED = Cancelled()

StreamEvent = Union[Token, Done, Cancelled]


__all__ = [
    "Provider",
    "CompletionRequest",
    "CompletionResponse",
    "Token",
    "Done",
    "Cancelled",
    "CANCELLED",
    "StreamEvent",
]
