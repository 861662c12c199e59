"""
Factory functions wiring the context budget components.

Each call builds independent instances; share a resolver (and so its cache)
across pipelines by passing it in explicitly.
"""

import logging
from typing import Optional

from context_budget.configuration.config import ContextBudgetSettings, get_settings
from context_budget.domain.ports import (
    CancellationOracle,
    ContextBudgetObserver,
    LoggingContextBudgetObserver,
    ProgressLedger,
    PromptBuilder,
    Summarizer,
)
from context_budget.infrastructure.context.shrink_pipeline import ShrinkPipeline
from context_budget.infrastructure.context.summarization import (
    ContentSummarizer,
    IdentitySummarizer,
)
from context_budget.infrastructure.llm.context_window import ContextWindowResolver
from context_budget.infrastructure.llm.litellm_summarizer import LiteLLMSummarizer
from context_budget.infrastructure.llm.provider_lookup import build_live_lookups

logger = logging.getLogger(__name__)


def create_context_window_resolver(
    settings: Optional[ContextBudgetSettings] = None,
    observer: Optional[ContextBudgetObserver] = None,
) -> ContextWindowResolver:
    """Create a resolver with live lookups for every configured provider."""
    settings = settings or get_settings()
    return ContextWindowResolver(
        settings=settings,
        live_lookups=build_live_lookups(settings),
        observer=observer or LoggingContextBudgetObserver(debug=settings.context_debug),
    )


def create_shrink_pipeline(
    settings: Optional[ContextBudgetSettings] = None,
    summarizer: Optional[Summarizer] = None,
    resolver: Optional[ContextWindowResolver] = None,
    prompt_builder: Optional[PromptBuilder] = None,
    cancellation: Optional[CancellationOracle] = None,
    progress_ledger: Optional[ProgressLedger] = None,
    observer: Optional[ContextBudgetObserver] = None,
) -> ShrinkPipeline:
    """
    Create a ShrinkPipeline from settings.

    Without an explicit summarizer, a LiteLLMSummarizer is used when
    SUMMARIZER_MODEL is configured, otherwise summarization is a no-op.
    """
    settings = settings or get_settings()
    observer = observer or LoggingContextBudgetObserver(debug=settings.context_debug)

    if summarizer is None:
        summarizer = LiteLLMSummarizer.from_settings(settings)
        if summarizer is None:
            logger.info("No SUMMARIZER_MODEL configured, summarize tier keeps content as-is")
            summarizer = IdentitySummarizer()

    return ShrinkPipeline(
        resolver=resolver or create_context_window_resolver(settings, observer),
        summarizer=ContentSummarizer(summarizer, cancellation=cancellation, observer=observer),
        prompt_builder=prompt_builder,
        cancellation=cancellation,
        progress_ledger=progress_ledger,
        settings=settings,
        observer=observer,
    )
