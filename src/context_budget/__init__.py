"""context-budget - keeps LLM conversations within a model's context window.

Two cooperating parts:
- Context window resolution: registry lookup with fuzzy model-name matching,
  provider fallbacks, live provider lookups and a per-resolver cache
- Shrink pipeline: ordered reduction tiers (truncate, summarize, drop middle,
  minimal system prompt) that stop as soon as the budget is met
"""

__version__ = "0.1.0"

from context_budget.configuration.config import ContextBudgetSettings, get_settings
from context_budget.configuration.factories import (
    create_context_window_resolver,
    create_shrink_pipeline,
)
from context_budget.domain.model import (
    ModelSpec,
    ShrinkOptions,
    ShrinkResult,
    ShrinkStrategy,
    StepSummary,
    ToolInfo,
)
from context_budget.domain.ports import (
    CancellationOracle,
    ContextBudgetObserver,
    LoggingContextBudgetObserver,
    ProgressLedger,
    PromptBuilder,
    Summarizer,
)
from context_budget.infrastructure.context import (
    ContentSummarizer,
    ShrinkPipeline,
    estimate_tokens,
)
from context_budget.infrastructure.llm import (
    ContextWindowCache,
    ContextWindowResolver,
    LiteLLMSummarizer,
    calculate_match_score,
    normalize_model_name,
)
from context_budget.infrastructure.prompts import MinimalSystemPromptBuilder
from context_budget.infrastructure.session import (
    InMemoryProgressLedger,
    InMemorySessionStateManager,
)

__all__ = [
    "__version__",
    # Configuration
    "ContextBudgetSettings",
    "get_settings",
    "create_context_window_resolver",
    "create_shrink_pipeline",
    # Domain
    "ModelSpec",
    "ShrinkOptions",
    "ShrinkResult",
    "ShrinkStrategy",
    "StepSummary",
    "ToolInfo",
    # Ports
    "CancellationOracle",
    "ContextBudgetObserver",
    "LoggingContextBudgetObserver",
    "ProgressLedger",
    "PromptBuilder",
    "Summarizer",
    # Context window
    "ContextWindowCache",
    "ContextWindowResolver",
    "calculate_match_score",
    "normalize_model_name",
    # Shrinking
    "ContentSummarizer",
    "ShrinkPipeline",
    "estimate_tokens",
    # Collaborators
    "LiteLLMSummarizer",
    "MinimalSystemPromptBuilder",
    "InMemoryProgressLedger",
    "InMemorySessionStateManager",
]
