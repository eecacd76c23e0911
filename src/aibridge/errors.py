"""Error taxonomy shared by every provider.

Every error is terminal for its call; nothing here retries.
"""

from __future__ import annotations

import json
from typing import Optional

# Raw body excerpt used when no structured error message is found
ERROR_BODY_LIMIT = 300
# Raw body excerpt attached to parse failures
PARSE_BODY_LIMIT = 200


class BridgeError(RuntimeError):
    """Base class for completion failures."""

    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider


class AuthError(BridgeError):
    """A provider requires an API key and none was supplied."""

    def __init__(self, provider: str):
        super().__init__(provider, f"{provider} API key is required")


class NetworkError(BridgeError):
    """Connect, transport or timeout failure.

    Attributes:
        kind: "timeout", "connect" or "other"
        reason: Human-readable cause
        url: Endpoint that was being called
        hint: Optional setup advice (local servers)
    """

    def __init__(
        self,
        provider: str,
        reason: str,
        *,
        kind: str = "other",
        url: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        message = f"{provider} network error: {reason}"
        if url:
            message += f"\n\nURL: {url}"
        if hint:
            message += f"\n\n{hint}"
        super().__init__(provider, message)
        self.reason = reason
        self.kind = kind
        self.url = url
        self.hint = hint


class HttpStatusError(BridgeError):
    """The remote answered outside the 2xx range."""

    def __init__(self, provider: str, status: int, message: str):
        super().__init__(provider, f"{provider} HTTP {status}: {message}")
        self.status = status
        self.detail = message


class ParseError(BridgeError):
    """The response body is not the JSON shape the provider documents."""

    def __init__(self, provider: str, raw: str, cause: str = "unexpected response shape"):
        excerpt = raw[:PARSE_BODY_LIMIT]
        super().__init__(
            provider, f"{provider}: failed to parse response JSON: {cause}\nRaw: {excerpt}"
        )
        self.raw = excerpt
        self.cause = cause


def extract_error_message(body: str) -> str:
    """Pull a human-readable message out of an error body.

    Tries ``{"error": {"message"}}`` (OpenAI/Anthropic), ``{"message"}``
    (LM Studio) and ``{"detail"}`` (FastAPI servers), in that order, then
    falls back to the first 300 characters of the raw body.
    """
    try:
        data = json.loads(body)
    except ValueError:
        data = None

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(data.get("message"), str):
            return data["message"]
        if isinstance(data.get("detail"), str):
            return data["detail"]

    excerpt = body[:ERROR_BODY_LIMIT]
    return excerpt if excerpt.strip() else "unknown error"


__all__ = [
    "BridgeError",
    "AuthError",
    "NetworkError",
    "HttpStatusError",
    "ParseError",
    "extract_error_message",
]
