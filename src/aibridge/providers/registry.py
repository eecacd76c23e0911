"""Provider registry for resolving a request to its adapter."""

from __future__ import annotations

from typing import Callable, Dict, Union

from ..types import CompletionRequest, Provider
from .anthropic import AnthropicAdapter
from .base import ProviderAdapter
from .openai_compat import DeepSeekAdapter, LocalAdapter, OpenAIAdapter, OpenRouterAdapter

AdapterFactory = Callable[[CompletionRequest], ProviderAdapter]


class ProviderRegistry:
    """Maps providers to adapter factories.

    Usage:
        registry = ProviderRegistry.default()
        adapter = registry.resolve(request)
    """

    def __init__(self) -> None:
        self._factories: Dict[Provider, AdapterFactory] = {}

    @classmethod
    def default(cls) -> ProviderRegistry:
        registry = cls()
        registry.register(Provider.OPENAI, lambda request: OpenAIAdapter())
        registry.register(Provider.CLAUDE, lambda request: AnthropicAdapter())
        registry.register(Provider.DEEPSEEK, lambda request: DeepSeekAdapter())
        registry.register(Provider.OPENROUTER, lambda request: OpenRouterAdapter())
        registry.register(Provider.LOCAL, lambda request: LocalAdapter(request.local_endpoint))
        return registry

    def register(self, provider: Union[str, Provider], factory: AdapterFactory) -> None:
        """Register (or replace) the factory for a provider."""
        self._factories[Provider.parse(provider)] = factory

    def providers(self) -> list[Provider]:
        return list(self._factories)

    def resolve(self, request: CompletionRequest) -> ProviderAdapter:
        """Build the adapter for ``request.provider``.

        Raises:
            ValueError: If no adapter is registered, or the adapter rejects
                the request (e.g. a local request without an endpoint).
        """
        factory = self._factories.get(request.provider)
        if factory is None:
            available = ", ".join(sorted(p.value for p in self._factories)) or "(none)"
            raise ValueError(
                f"No adapter registered for provider '{request.provider.value}'. "
                f"Available providers: {available}"
            )
        return factory(request)


_default_registry = ProviderRegistry.default()


def adapter_for(request: CompletionRequest) -> ProviderAdapter:
    """Resolve ``request`` against the built-in registry."""
    return _default_registry.resolve(request)


__all__ = ["ProviderRegistry", "AdapterFactory", "adapter_for"]
