"""Character-based token estimation (~4 chars per token).

Only used for relative budget decisions, never for billing.
"""

import math
from typing import Any

from context_budget.domain.model import LLMMessage

CHARS_PER_TOKEN = 4


def content_length(content: Any) -> int:
    """Character length of message content (multi-part text parts are summed)."""
    if not content:
        return 0
    if isinstance(content, str):
        return len(content)
    if isinstance(content, list):
        return sum(
            len(part.get("text") or "")
            for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        )
    return len(str(content))


def estimate_tokens(messages: list[LLMMessage]) -> int:
    """Estimate tokens for messages: total content characters / 4, rounded up."""
    total_chars = sum(content_length(m.get("content")) for m in messages)
    return math.ceil(total_chars / CHARS_PER_TOKEN)
