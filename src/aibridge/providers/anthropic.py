"""Anthropic Messages API adapter.

Differences from the chat-completions family:
- ``system`` is a top-level field, not a message role
- ``max_tokens`` is mandatory, so a default is always sent
- the image block precedes the text block
- usage is reported as separate input/output counts
- the stream has no ``[DONE]`` sentinel; it ends when the body closes
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ..errors import ParseError
from ..types import CompletionRequest, CompletionResponse
from .base import ProviderAdapter, optional_dict, optional_int, optional_list, optional_str

ANTHROPIC_VERSION = "2023-06-01"


@dataclass
class MessagesResponse:
    """Typed view of a Messages API response body."""

    text: str
    model: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0

    @classmethod
    def from_json(cls, data: Any) -> MessagesResponse:
        if not isinstance(data, dict):
            raise TypeError(f"response should be an object, got {type(data).__name__}")

        parts = []
        for block in optional_list(data, "content"):
            if not isinstance(block, dict):
                raise TypeError("content blocks should be objects")
            if block.get("type", "text") == "text":
                parts.append(optional_str(block, "text") or "")

        usage = optional_dict(data, "usage")
        return cls(
            text="".join(parts),
            model=optional_str(data, "model"),
            input_tokens=optional_int(usage, "input_tokens") or 0,
            output_tokens=optional_int(usage, "output_tokens") or 0,
        )


class AnthropicAdapter(ProviderAdapter):
    label = "Anthropic"
    default_model = "claude-3-5-sonnet-20241022"
    default_max_tokens = 2048
    default_stream_max_tokens = 4096
    uses_done_sentinel = False

    def endpoint_url(self) -> str:
        return "https://api.anthropic.com/v1/messages"

    def auth(self, key: str) -> dict[str, str]:
        return {"x-api-key": key, "anthropic-version": ANTHROPIC_VERSION}

    def _payload(
        self, request: CompletionRequest, prompt_text: str, max_tokens: int
    ) -> dict[str, Any]:
        content: list[dict[str, Any]] = []
        if request.image_base64:
            content.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": "image/png",
                        "data": request.image_base64,
                    },
                }
            )
        content.append({"type": "text", "text": prompt_text})

        payload: dict[str, Any] = {
            "model": self.model_for(request),
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": content}],
        }
        system = (request.system_prompt or "").strip()
        if system:
            payload["system"] = system
        return payload

    def build_payload(self, request: CompletionRequest, prompt_text: str) -> dict[str, Any]:
        return self._payload(request, prompt_text, request.max_tokens or self.default_max_tokens)

    def build_stream_payload(
        self, request: CompletionRequest, prompt_text: str
    ) -> dict[str, Any]:
        payload = self._payload(
            request, prompt_text, request.max_tokens or self.default_stream_max_tokens
        )
        payload["stream"] = True
        return payload

    def parse_body(self, data: Any, raw: str, request: CompletionRequest) -> CompletionResponse:
        try:
            message = MessagesResponse.from_json(data)
        except TypeError as e:
            raise ParseError(self.label, raw, str(e)) from e

        return CompletionResponse(
            text=message.text,
            model=message.model or self.model_for(request),
            tokens_used=message.input_tokens + message.output_tokens,
        )

    def parse_stream_line(self, data: Any) -> Optional[str]:
        if not isinstance(data, dict) or data.get("type") != "content_block_delta":
            return None
        delta = data.get("delta")
        if not isinstance(delta, dict):
            return None
        text = delta.get("text")
        return text if isinstance(text, str) else None


__all__ = ["AnthropicAdapter", "MessagesResponse", "ANTHROPIC_VERSION"]
