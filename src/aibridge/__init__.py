"""aibridge - one request shape for many LLM providers.

Normalizes a canonical completion request into the wire formats of
OpenAI-compatible services (OpenAI, DeepSeek, OpenRouter, local LM Studio /
Ollama servers) and Anthropic, and unifies their answers and errors.

Quick Start:
    ```python
    from aibridge import BridgeClient, CompletionRequest, Provider

    client = BridgeClient()
    response = await client.complete(
        CompletionRequest(prompt="Explain this", provider=Provider.OPENAI, api_key="sk-...")
    )
    print(response.text)
    ```

Streaming:
    ```python
    async def sink(event):
        if isinstance(event, Token):
            print(event.delta, end="")

    await client.stream(request, sink)
    client.cancel()  # from anywhere: stops every in-flight call
    ```

Module structure:
    - types: CompletionRequest, CompletionResponse, stream events
    - prompt: Prompt + read-only context assembly, key validation
    - providers/: One adapter per wire protocol
    - streaming: Incremental SSE decoder
    - client: One-shot and streaming exchanges, raced against cancellation
    - cancellation: Generation-counter broadcaster
    - config: aibridge.toml loading (providers, [telemetry])
    - tracing: Bridge spans and OTLP / console export
    - cli: Command line interface
"""

__version__ = "0.1.0"

from .cancellation import (
    CancellationBroadcaster,
    CancelSubscription,
    cancel_all,
    get_default_broadcaster,
)
from .client import BridgeClient
from .config import BridgeSettings, ProviderSettings, TelemetrySettings, load_settings
from .errors import AuthError, BridgeError, HttpStatusError, NetworkError, ParseError
from .prompt import build_prompt, format_context_block, prepare_context, validate_key
from .providers import ProviderAdapter, ProviderRegistry, adapter_for
from .streaming import StreamDecoder
from .types import (
    CANCELLED,
    Cancelled,
    CompletionRequest,
    CompletionResponse,
    Done,
    Provider,
    StreamEvent,
    Token,
)

__all__ = [
    "__version__",
    # Client
    "BridgeClient",
    # Types
    "Provider",
    "CompletionRequest",
    "CompletionResponse",
    "Token",
    "Done",
    "Cancelled",
    "CANCELLED",
    "StreamEvent",
    # Errors
    "BridgeError",
    "AuthError",
    "NetworkError",
    "HttpStatusError",
    "ParseError",
    # Cancellation
    "CancellationBroadcaster",
    "CancelSubscription",
    "get_default_broadcaster",
    "cancel_all",
    # Prompt
    "build_prompt",
    "validate_key",
    "format_context_block",
    "prepare_context",
    # Providers
    "ProviderAdapter",
    "ProviderRegistry",
    "adapter_for",
    "StreamDecoder",
    # Config
    "BridgeSettings",
    "ProviderSettings",
    "TelemetrySettings",
    "load_settings",
]
