"""OpenAI-compatible providers: OpenAI, DeepSeek, OpenRouter and local servers.

All four share the chat-completions wire format. They differ in endpoint,
extra headers, default limits, vision support and where the system prompt
goes (local servers often reject a ``system`` role, so it is folded into
the user message).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..errors import ParseError
from ..types import CompletionRequest, CompletionResponse
from .base import ProviderAdapter, optional_dict, optional_int, optional_list, optional_str

REASONING_ONLY_NOTE = (
    "\n\n*(reasoning only: the model returned its reasoning without a final answer. "
    "Increase max_tokens for a complete reply.)*"
)


@dataclass
class ChatMessage:
    """``choices[0].message`` of a chat completion."""

    content: Optional[str] = None
    reasoning: Optional[str] = None

    @classmethod
    def from_json(cls, data: dict) -> ChatMessage:
        return cls(
            content=optional_str(data, "content"),
            reasoning=optional_str(data, "reasoning"),
        )

    def text(self) -> str:
        """Answer text, falling back to reasoning for CoT models."""
        content = (self.content or "").strip()
        if content:
            return content
        reasoning = (self.reasoning or "").strip()
        if reasoning:
            return reasoning + REASONING_ONLY_NOTE
        return ""


@dataclass
class ChatCompletion:
    """Typed view of a chat-completions response body."""

    message: ChatMessage
    model: Optional[str] = None
    total_tokens: Optional[int] = None

    @classmethod
    def from_json(cls, data: Any) -> ChatCompletion:
        if not isinstance(data, dict):
            raise TypeError(f"response should be an object, got {type(data).__name__}")

        message = ChatMessage()
        choices = optional_list(data, "choices")
        if choices:
            if not isinstance(choices[0], dict):
                raise TypeError("choices[0] should be an object")
            message = ChatMessage.from_json(optional_dict(choices[0], "message"))

        usage = optional_dict(data, "usage")
        return cls(
            message=message,
            model=optional_str(data, "model"),
            total_tokens=optional_int(usage, "total_tokens"),
        )


class OpenAICompatibleAdapter(ProviderAdapter):
    """Shared chat-completions payload and parsing."""

    url: str = ""
    supports_vision: bool = True
    system_as_message: bool = True

    def endpoint_url(self) -> str:
        return self.url

    def auth(self, key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {key}"}

    def user_text(self, request: CompletionRequest, prompt_text: str) -> str:
        return prompt_text

    def messages(self, request: CompletionRequest, prompt_text: str) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        system = request.system_prompt
        if self.system_as_message and system and system.strip():
            messages.append({"role": "system", "content": system})

        text = self.user_text(request, prompt_text)
        image = request.image_base64
        if image and not self.supports_vision:
            logging.warning("[aibridge] %s has no vision support; image dropped", self.label)
            image = None

        # The array form is only sent with an image; text-only requests
        # keep a plain string because some servers reject the array.
        if image:
            content: Any = [
                {"type": "text", "text": text},
                {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{image}"}},
            ]
        else:
            content = text
        messages.append({"role": "user", "content": content})
        return messages

    def build_payload(self, request: CompletionRequest, prompt_text: str) -> dict[str, Any]:
        return {
            "model": self.model_for(request),
            "messages": self.messages(request, prompt_text),
            "max_tokens": request.max_tokens or self.default_max_tokens,
        }

    def build_stream_payload(
        self, request: CompletionRequest, prompt_text: str
    ) -> dict[str, Any]:
        return {
            "model": self.model_for(request),
            "messages": self.messages(request, prompt_text),
            "max_tokens": request.max_tokens or self.default_stream_max_tokens,
            "stream": True,
        }

    def parse_body(self, data: Any, raw: str, request: CompletionRequest) -> CompletionResponse:
        try:
            completion = ChatCompletion.from_json(data)
        except TypeError as e:
            raise ParseError(self.label, raw, str(e)) from e

        return CompletionResponse(
            text=completion.message.text(),
            model=completion.model or self.model_for(request),
            tokens_used=completion.total_tokens,
        )

    def parse_stream_line(self, data: Any) -> Optional[str]:
        if not isinstance(data, dict):
            return None
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return None
        delta = choices[0].get("delta")
        if not isinstance(delta, dict):
            return None
        content = delta.get("content")
        return content if isinstance(content, str) else None


class OpenAIAdapter(OpenAICompatibleAdapter):
    label = "OpenAI"
    url = "https://api.openai.com/v1/chat/completions"
    default_model = "gpt-4o"


class DeepSeekAdapter(OpenAICompatibleAdapter):
    label = "DeepSeek"
    url = "https://api.deepseek.com/v1/chat/completions"
    default_model = "deepseek-chat"
    supports_vision = False


class OpenRouterAdapter(OpenAICompatibleAdapter):
    label = "OpenRouter"
    url = "https://openrouter.ai/api/v1/chat/completions"
    default_model = "openai/gpt-4o"

    def auth(self, key: str) -> dict[str, str]:
        headers = super().auth(key)
        headers["HTTP-Referer"] = "https://github.com/ai-assistant"
        headers["X-Title"] = "AI Assistant Overlay"
        return headers


LOCAL_HINT = (
    "Hints:\n"
    "• LM Studio: open the 'Local Server' tab, start the server and load a model\n"
    "• LM Studio: use http://127.0.0.1:PORT (not localhost)\n"
    "• Ollama: http://127.0.0.1:11434"
)


def resolve_local_url(base_url: Optional[str]) -> str:
    """Turn a user-supplied server address into a chat-completions URL.

    A bare ``scheme://host[:port]`` gets ``/v1/chat/completions`` appended;
    an address that already has a path is used as-is.

    Raises:
        ValueError: If the address is empty.
    """
    base = (base_url or "").strip().rstrip("/")
    if not base:
        raise ValueError(
            "Local LLM server URL is required (e.g. http://localhost:1234/api/v1/chat)"
        )
    _, sep, rest = base.partition("://")
    has_path = bool(sep) and "/" in rest
    return base if has_path else f"{base}/v1/chat/completions"


class LocalAdapter(OpenAICompatibleAdapter):
    """LM Studio, Ollama or any OpenAI-compatible server."""

    label = "Local LLM"
    default_model = "local-model"
    requires_key = False
    default_max_tokens = 4096
    default_stream_max_tokens = 4096
    system_as_message = False

    def __init__(self, base_url: Optional[str]):
        self.url = resolve_local_url(base_url)

    def auth(self, key: str) -> dict[str, str]:
        if not key:
            return {}
        return super().auth(key)

    def user_text(self, request: CompletionRequest, prompt_text: str) -> str:
        system = (request.system_prompt or "").strip()
        if system:
            return f"{system}\n\n{prompt_text}"
        return prompt_text

    def network_hint(self) -> Optional[str]:
        return LOCAL_HINT


__all__ = [
    "REASONING_ONLY_NOTE",
    "ChatCompletion",
    "ChatMessage",
    "OpenAICompatibleAdapter",
    "OpenAIAdapter",
    "DeepSeekAdapter",
    "OpenRouterAdapter",
    "LocalAdapter",
    "resolve_local_url",
]
