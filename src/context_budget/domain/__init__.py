from context_budget.domain.model import (
    SHRINK_STRATEGY_ORDER,
    LLMMessage,
    MessageList,
    ModelSpec,
    ProgressCallback,
    ShrinkOptions,
    ShrinkResult,
    ShrinkStrategy,
    StepSummary,
    ToolInfo,
)
from context_budget.domain.ports import (
    CancellationOracle,
    ContextBudgetObserver,
    ContextWindowLookup,
    LoggingContextBudgetObserver,
    ProgressLedger,
    PromptBuilder,
    Summarizer,
    notify,
)

__all__ = [
    "SHRINK_STRATEGY_ORDER",
    "LLMMessage",
    "MessageList",
    "ModelSpec",
    "ProgressCallback",
    "ShrinkOptions",
    "ShrinkResult",
    "ShrinkStrategy",
    "StepSummary",
    "ToolInfo",
    "CancellationOracle",
    "ContextBudgetObserver",
    "ContextWindowLookup",
    "LoggingContextBudgetObserver",
    "ProgressLedger",
    "PromptBuilder",
    "Summarizer",
    "notify",
]
