"""Base provider adapter interface."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any, Optional

from ..errors import HttpStatusError, ParseError, extract_error_message
from ..prompt import validate_key
from ..types import CompletionRequest, CompletionResponse


class ProviderAdapter(ABC):
    """Abstract base class for provider adapters.

    Each adapter knows one provider's endpoint, auth scheme, payload shape
    and response/error parsing. Adapters hold no I/O state; the client owns
    the HTTP exchange.
    """

    #: Human-readable provider name used in error messages
    label: str = "Provider"
    default_model: str = ""
    requires_key: bool = True
    default_max_tokens: int = 2048
    default_stream_max_tokens: int = 2048
    #: Whether the stream ends with a ``data: [DONE]`` line
    uses_done_sentinel: bool = True

    @abstractmethod
    def endpoint_url(self) -> str:
        """Full URL of the completion endpoint."""

    @abstractmethod
    def auth(self, key: str) -> dict[str, str]:
        """Authentication headers for ``key``."""

    @abstractmethod
    def build_payload(self, request: CompletionRequest, prompt_text: str) -> dict[str, Any]:
        """Wire payload for a one-shot completion."""

    @abstractmethod
    def build_stream_payload(
        self, request: CompletionRequest, prompt_text: str
    ) -> dict[str, Any]:
        """Wire payload for a streaming completion."""

    @abstractmethod
    def parse_body(self, data: Any, raw: str, request: CompletionRequest) -> CompletionResponse:
        """Convert a decoded 2xx body into a response.

        Raises:
            ParseError: If the body does not have the provider's shape.
        """

    @abstractmethod
    def parse_stream_line(self, data: Any) -> Optional[str]:
        """Extract the text delta from one decoded stream event, if any."""

    def network_hint(self) -> Optional[str]:
        """Setup advice appended to network errors."""
        return None

    def model_for(self, request: CompletionRequest) -> str:
        return request.model or self.default_model

    def check_key(self, request: CompletionRequest) -> None:
        """Raise ``AuthError`` if this provider needs a key and has none."""
        if self.requires_key:
            validate_key(request.api_key, self.label)

    def headers(self, key: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(self.auth(key))
        return headers

    def parse_response(
        self, status: int, body: str, request: CompletionRequest
    ) -> CompletionResponse:
        """Parse a complete HTTP exchange.

        Raises:
            HttpStatusError: If ``status`` is outside 2xx
            ParseError: If the body is not valid JSON of the expected shape
        """
        if not 200 <= status < 300:
            raise HttpStatusError(self.label, status, extract_error_message(body))

        try:
            data = json.loads(body)
        except ValueError as e:
            raise ParseError(self.label, body, str(e)) from e

        return self.parse_body(data, body, request)


def optional_str(data: dict, key: str) -> Optional[str]:
    """Read an optional string field, rejecting other types."""
    value = data.get(key)
    if value is None or isinstance(value, str):
        return value
    raise TypeError(f"field '{key}' should be a string, got {type(value).__name__}")


def optional_int(data: dict, key: str) -> Optional[int]:
    """Read an optional non-negative integer field."""
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise TypeError(f"field '{key}' should be a non-negative integer, got {value!r}")
    return value


def optional_dict(data: dict, key: str) -> dict:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"field '{key}' should be an object, got {type(value).__name__}")
    return value


def optional_list(data: dict, key: str) -> list:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"field '{key}' should be an array, got {type(value).__name__}")
    return value
