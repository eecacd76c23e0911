"""Prompt normalization shared by every provider.

The context header below is a fixed contract: prompt-injection tests match
it byte-for-byte.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from .errors import AuthError

CONTEXT_HEADER = "\n\n---\n**PROJECT CONTEXT (read-only)**\n"
TRUNCATION_MARKER = "\n[…truncated…]"


def build_prompt(prompt: str, context_chunks: Optional[Sequence[str]] = None) -> str:
    """Append read-only context blocks to the user prompt.

    Args:
        prompt: User prompt text
        context_chunks: Preformatted blocks, concatenated in order

    Returns:
        ``prompt`` unchanged when there is no context, otherwise the prompt,
        the context header and every block followed by a newline.
    """
    if not context_chunks:
        return prompt

    parts = [prompt, CONTEXT_HEADER]
    for chunk in context_chunks:
        parts.append(chunk)
        parts.append("\n")
    return "".join(parts)


def validate_key(key: Optional[str], provider_label: str) -> None:
    """Check that a key-mandating provider received a key.

    Raises:
        AuthError: If ``key`` is empty.
    """
    if not key:
        raise AuthError(provider_label)


def format_context_block(
    path: str,
    extension: str,
    content: str,
    max_chars: Optional[int] = None,
) -> str:
    """Render one file as a fenced context block."""
    if max_chars is not None and len(content) > max_chars:
        content = content[:max_chars] + TRUNCATION_MARKER
    return f"### {path}\n```{extension}\n{content}\n```"


def prepare_context(
    files: Iterable[tuple[str, str, str]],
    max_files: int,
    max_chars_per_file: int,
) -> list[str]:
    """Format up to ``max_files`` ``(path, extension, content)`` items."""
    blocks: list[str] = []
    for path, extension, content in files:
        if len(blocks) >= max_files:
            break
        blocks.append(format_context_block(path, extension, content, max_chars_per_file))
    return blocks


__all__ = [
    "CONTEXT_HEADER",
    "build_prompt",
    "validate_key",
    "format_context_block",
    "prepare_context",
]
