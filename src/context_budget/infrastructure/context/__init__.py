"""Context reduction module for agent conversations.

This module provides:
- Token estimation for message lists
- Content summarization policy (chunking, failure handling)
- Compact summaries of dropped tool results and session progress
- The tiered shrink pipeline
"""

from .shrink_pipeline import (
    AGGRESSIVE_TRUNCATE_THRESHOLD,
    ShrinkPipeline,
    TierOutcome,
)
from .summarization import DEFAULT_CHUNK_SIZE, ContentSummarizer, IdentitySummarizer
from .token_estimator import estimate_tokens
from .tool_drop_summary import (
    MAX_TOOL_SUMMARY_LENGTH,
    build_progress_summary,
    parse_tool_name_from_content,
    summarize_tool_messages_for_dropping,
)

__all__ = [
    # Pipeline
    "ShrinkPipeline",
    "TierOutcome",
    "AGGRESSIVE_TRUNCATE_THRESHOLD",
    # Summarization
    "ContentSummarizer",
    "IdentitySummarizer",
    "DEFAULT_CHUNK_SIZE",
    # Estimation
    "estimate_tokens",
    # Drop summaries
    "build_progress_summary",
    "parse_tool_name_from_content",
    "summarize_tool_messages_for_dropping",
    "MAX_TOOL_SUMMARY_LENGTH",
]
