"""Token counting for conversation messages."""

from __future__ import annotations

from typing import Any, Iterable

# Loaded on first use; stays None when tiktoken or its encoding data is missing.
_tiktoken_encoder: Any = None
_tiktoken_loaded: bool = False

_CHARS_PER_TOKEN = 4


def _get_encoder() -> Any:
    global _tiktoken_encoder, _tiktoken_loaded
    if _tiktoken_loaded:
        return _tiktoken_encoder
    _tiktoken_loaded = True
    try:
        import tiktoken
        _tiktoken_encoder = tiktoken.get_encoding("cl100k_base")
    except Exception:
        _tiktoken_encoder = None
    return _tiktoken_encoder


def count_tokens(text: str) -> int:
    """Exact cl100k count when tiktoken loads, otherwise about one token per 4 chars."""
    if not text:
        return 0
    enc = _get_encoder()
    if enc is not None:
        return len(enc.encode(text))
    return max(1, len(text) // _CHARS_PER_TOKEN)


def estimate_message_tokens(msg: dict[str, Any]) -> int:
    """Estimate token count of a chat message (string or text-block content)."""
    total = 0
    content = msg.get("content", "")
    if isinstance(content, str):
        total += count_tokens(content)
    elif isinstance(content, list):
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text":
                total += count_tokens(block.get("text", ""))
    name = msg.get("name")
    if isinstance(name, str):
        total += count_tokens(name)
    return total


def count_message_tokens(messages: Iterable[dict[str, Any]]) -> int:
    return sum(estimate_message_tokens(m) for m in messages)
