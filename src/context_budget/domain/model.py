"""
Domain model for context budgeting.

Messages travel as plain OpenAI-format dicts (``{"role": ..., "content": ...}``)
so they can be handed to any LLM client without conversion. Everything else is
a small dataclass created per call.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

LLMMessage = dict[str, Any]
MessageList = list[LLMMessage]

# (current, total, message) -> None
ProgressCallback = Callable[[int, int, str], None]


class ShrinkStrategy(str, Enum):
    """Reduction tiers, in the order the pipeline applies them."""

    AGGRESSIVE_TRUNCATE = "aggressive_truncate"
    SUMMARIZE = "summarize"
    DROP_MIDDLE = "drop_middle"
    MINIMAL_SYSTEM_PROMPT = "minimal_system_prompt"


SHRINK_STRATEGY_ORDER: tuple[ShrinkStrategy, ...] = (
    ShrinkStrategy.AGGRESSIVE_TRUNCATE,
    ShrinkStrategy.SUMMARIZE,
    ShrinkStrategy.DROP_MIDDLE,
    ShrinkStrategy.MINIMAL_SYSTEM_PROMPT,
)


@dataclass(frozen=True)
class ModelSpec:
    """Token limits for a registry entry."""

    context_window: int
    max_output_tokens: int | None = None


@dataclass(frozen=True)
class ToolInfo:
    """Tool inventory entry used to build a minimal system prompt."""

    name: str
    description: str | None = None
    input_schema: dict[str, Any] | None = None

    @property
    def parameter_names(self) -> list[str]:
        properties = (self.input_schema or {}).get("properties")
        if isinstance(properties, dict):
            return list(properties.keys())
        return []


@dataclass(frozen=True)
class StepSummary:
    """One persisted step of an agent session."""

    step_number: int
    action_summary: str
    importance: str = "normal"  # "low", "normal", "high", "critical"


@dataclass
class ShrinkOptions:
    """Input for a single shrink request.

    Tuning fields left as ``None`` fall back to configured settings.
    """

    messages: MessageList
    available_tools: list[ToolInfo] = field(default_factory=list)
    relevant_tools: list[ToolInfo] | None = None
    is_agent_mode: bool = False
    target_ratio: float | None = None
    last_n_messages: int | None = None
    summarize_char_threshold: int | None = None
    session_id: str | None = None
    on_progress: ProgressCallback | None = None
    provider_id: str | None = None
    model: str | None = None

    def __post_init__(self) -> None:
        """Validate tuning parameters."""
        if self.target_ratio is not None and not (0 < self.target_ratio <= 1):
            raise ValueError(f"target_ratio must be in (0, 1], got {self.target_ratio}")
        if self.last_n_messages is not None and self.last_n_messages < 1:
            raise ValueError(f"last_n_messages must be >= 1, got {self.last_n_messages}")
        if self.summarize_char_threshold is not None and self.summarize_char_threshold < 0:
            raise ValueError(
                f"summarize_char_threshold must be >= 0, got {self.summarize_char_threshold}"
            )


@dataclass
class ShrinkResult:
    """Result of a shrink request."""

    messages: MessageList
    applied_strategies: list[str]
    est_tokens_before: int
    est_tokens_after: int
    max_tokens: int
    tool_results_summarized: bool = False

    @property
    def tokens_saved(self) -> int:
        return self.est_tokens_before - self.est_tokens_after

    def to_dict(self) -> dict[str, Any]:
        return {
            "messages": self.messages,
            "applied_strategies": list(self.applied_strategies),
            "est_tokens_before": self.est_tokens_before,
            "est_tokens_after": self.est_tokens_after,
            "max_tokens": self.max_tokens,
            "tool_results_summarized": self.tool_results_summarized,
        }
