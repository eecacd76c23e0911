"""Provider adapters - one per wire protocol.

- ProviderAdapter: Base interface (endpoint, auth, payload, parsing)
- OpenAIAdapter / DeepSeekAdapter / OpenRouterAdapter / LocalAdapter:
  chat-completions family
- AnthropicAdapter: Messages API
- ProviderRegistry / adapter_for: Request -> adapter resolution
"""

from .anthropic import AnthropicAdapter
from .base import ProviderAdapter
from .openai_compat import (
    REASONING_ONLY_NOTE,
    DeepSeekAdapter,
    LocalAdapter,
    OpenAIAdapter,
    OpenAICompatibleAdapter,
    OpenRouterAdapter,
    resolve_local_url,
)
from .registry import ProviderRegistry, adapter_for

__all__ = [
    "ProviderAdapter",
    "OpenAICompatibleAdapter",
    "OpenAIAdapter",
    "DeepSeekAdapter",
    "OpenRouterAdapter",
    "LocalAdapter",
    "AnthropicAdapter",
    "ProviderRegistry",
    "adapter_for",
    "resolve_local_url",
    "REASONING_ONLY_NOTE",
]
