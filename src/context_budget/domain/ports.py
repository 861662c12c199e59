"""
Ports for the collaborators the context budget core depends on.

Following hexagonal architecture: the shrink pipeline and the resolver only
know these contracts; infrastructure provides concrete implementations
(LiteLLM summarizer, in-memory session state, minimal prompt builder).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from context_budget.domain.model import ShrinkStrategy, StepSummary, ToolInfo

logger = logging.getLogger(__name__)


@runtime_checkable
class Summarizer(Protocol):
    """Produces a condensed version of a text.

    Implementations must return the original text on internal failure.
    """

    async def summarize(self, text: str, session_id: str | None = None) -> str: ...


@runtime_checkable
class CancellationOracle(Protocol):
    """Answers whether a session has been asked to stop."""

    async def is_session_stopping(self, session_id: str) -> bool: ...


@runtime_checkable
class ProgressLedger(Protocol):
    """Ordered step summaries persisted for a session."""

    async def get_recent_step_summaries(self, session_id: str) -> list[StepSummary]: ...


@runtime_checkable
class PromptBuilder(Protocol):
    """Builds a reduced system prompt from a tool inventory."""

    def build_minimal_system_prompt(
        self,
        tools: Sequence[ToolInfo],
        is_agent_mode: bool = False,
        relevant_tools: Sequence[ToolInfo] | None = None,
    ) -> str: ...


@runtime_checkable
class ContextWindowLookup(Protocol):
    """Asks a provider directly for a model's context window."""

    async def fetch_context_window(self, model: str) -> int | None: ...


class ContextBudgetObserver:
    """Extension points for diagnostics.

    All methods are no-ops; subclass and override the ones you need.
    Observers must not influence results, callers guard every notification.
    """

    def on_model_matched(
        self,
        model: str,
        normalized: str,
        pattern: str,
        score: int,
        context_window: int,
    ) -> None:
        pass

    def on_model_fallback(
        self,
        provider_id: str,
        model: str,
        context_window: int,
        source: str,
    ) -> None:
        pass

    def on_shrink_started(
        self,
        provider_id: str,
        model: str,
        max_tokens: int,
        target_tokens: int,
        est_tokens: int,
        message_count: int,
    ) -> None:
        pass

    def on_tier_applied(
        self,
        strategy: ShrinkStrategy,
        tokens_before: int,
        tokens_after: int,
        changed: int,
    ) -> None:
        pass

    def on_tier_skipped(self, strategy: ShrinkStrategy, reason: str) -> None:
        pass

    def on_summarization_failed(self, error: Exception) -> None:
        pass


class LoggingContextBudgetObserver(ContextBudgetObserver):
    """Writes observer events to the module logger.

    Match, fallback and tier traces are only logged when ``debug`` is set.
    """

    def __init__(self, debug: bool = False) -> None:
        self._debug = debug

    def on_model_matched(
        self,
        model: str,
        normalized: str,
        pattern: str,
        score: int,
        context_window: int,
    ) -> None:
        if self._debug:
            logger.debug(
                f"ModelRegistry: matched original={model} normalized={normalized} "
                f"pattern={pattern} score={score} context_window={context_window}"
            )

    def on_model_fallback(
        self,
        provider_id: str,
        model: str,
        context_window: int,
        source: str,
    ) -> None:
        if self._debug:
            logger.debug(
                f"ModelRegistry: no registry match, using {source} "
                f"provider={provider_id} model={model} context_window={context_window}"
            )

    def on_shrink_started(
        self,
        provider_id: str,
        model: str,
        max_tokens: int,
        target_tokens: int,
        est_tokens: int,
        message_count: int,
    ) -> None:
        if self._debug:
            logger.debug(
                f"ContextBudget: initial provider={provider_id} model={model} "
                f"max_tokens={max_tokens} target_tokens={target_tokens} "
                f"est_tokens={est_tokens} count={message_count}"
            )

    def on_tier_applied(
        self,
        strategy: ShrinkStrategy,
        tokens_before: int,
        tokens_after: int,
        changed: int,
    ) -> None:
        if self._debug:
            logger.debug(
                f"ContextBudget: after {strategy.value} est_tokens={tokens_after} "
                f"(was {tokens_before}), changed={changed}"
            )

    def on_tier_skipped(self, strategy: ShrinkStrategy, reason: str) -> None:
        if self._debug:
            logger.debug(f"ContextBudget: skipped {strategy.value} ({reason})")


def notify(observer: ContextBudgetObserver | None, event: str, *args: object) -> None:
    """Invoke an observer hook, logging instead of propagating its errors."""
    if observer is None:
        return
    try:
        getattr(observer, event)(*args)
    except Exception as e:
        logger.warning(f"Context budget observer {event} failed: {e}")
