"""
Shrink Pipeline - tiered message reduction down to a token budget.

Tiers run strictly in order, each taking a message list and returning a new
one; the pipeline re-estimates after every tier and stops as soon as the
estimate is within ``floor(max_tokens * target_ratio)``:

- Tier 0 (aggressive_truncate): cut huge tool-shaped user payloads
- Tier 1 (summarize): summarize oversized messages, longest first
- Tier 2 (drop_middle): keep system, first user and the tail; summarize
  dropped tool results and re-inject session progress
- Tier 3 (minimal_system_prompt): swap the system prompt for a minimal one

Input lists and message dicts are never mutated. Reduction is best effort:
the result of Tier 3 is returned even if it still exceeds the budget.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from context_budget.configuration.config import ContextBudgetSettings, get_settings
from context_budget.domain.model import (
    SHRINK_STRATEGY_ORDER,
    MessageList,
    ProgressCallback,
    ShrinkOptions,
    ShrinkResult,
    ShrinkStrategy,
    ToolInfo,
)
from context_budget.domain.ports import (
    CancellationOracle,
    ContextBudgetObserver,
    ProgressLedger,
    PromptBuilder,
    notify,
)
from context_budget.infrastructure.context.summarization import ContentSummarizer
from context_budget.infrastructure.context.token_estimator import estimate_tokens
from context_budget.infrastructure.context.tool_drop_summary import (
    build_progress_summary,
    summarize_tool_messages_for_dropping,
)
from context_budget.infrastructure.llm.context_window import ContextWindowResolver
from context_budget.infrastructure.prompts.minimal_prompt import MinimalSystemPromptBuilder

logger = logging.getLogger(__name__)

AGGRESSIVE_TRUNCATE_THRESHOLD = 5000
TOOL_PAYLOAD_MARKERS = ('"url":', '"id":')
TRUNCATION_NOTE = (
    "\n\n... (truncated {cut} characters for context management. "
    "Key information preserved above.)"
)
PROGRESS_PREVIEW_CHARS = 100


@dataclass(frozen=True)
class _ShrinkContext:
    """Per-request values shared by all tiers."""

    target_tokens: int
    last_n_messages: int
    summarize_char_threshold: int
    session_id: str | None
    on_progress: ProgressCallback | None
    available_tools: Sequence[ToolInfo]
    relevant_tools: Sequence[ToolInfo] | None
    is_agent_mode: bool


@dataclass(frozen=True)
class TierOutcome:
    """Messages produced by one tier and how many entries it changed."""

    messages: MessageList
    changed: int = 0
    tool_results_summarized: bool = False


Tier = Callable[[MessageList, _ShrinkContext], Awaitable[TierOutcome]]


def _looks_like_tool_payload(content: str) -> bool:
    return any(marker in content for marker in TOOL_PAYLOAD_MARKERS)


def _first_index(messages: MessageList, role: str, exclude: int = -1) -> int:
    for idx, msg in enumerate(messages):
        if msg.get("role") == role and idx != exclude:
            return idx
    return -1


class ShrinkPipeline:
    """
    Keeps a conversation within a model's context budget.

    Usage:
        pipeline = ShrinkPipeline(
            resolver=ContextWindowResolver(settings),
            summarizer=ContentSummarizer(LiteLLMSummarizer("openai/gpt-4o-mini")),
            settings=settings,
        )
        result = await pipeline.shrink(ShrinkOptions(messages=messages))
        # Use result.messages for the LLM call
    """

    def __init__(
        self,
        resolver: ContextWindowResolver,
        summarizer: ContentSummarizer,
        prompt_builder: PromptBuilder | None = None,
        cancellation: CancellationOracle | None = None,
        progress_ledger: ProgressLedger | None = None,
        settings: ContextBudgetSettings | None = None,
        observer: ContextBudgetObserver | None = None,
        aggressive_truncate_threshold: int = AGGRESSIVE_TRUNCATE_THRESHOLD,
        aggressive_tail_ratio: float | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._resolver = resolver
        self._summarizer = summarizer
        self._prompt_builder = prompt_builder or MinimalSystemPromptBuilder()
        self._cancellation = cancellation
        self._progress_ledger = progress_ledger
        self._observer = observer
        self._truncate_threshold = aggressive_truncate_threshold
        self._aggressive_tail_ratio = (
            aggressive_tail_ratio
            if aggressive_tail_ratio is not None
            else self._settings.context_aggressive_tail_ratio
        )
        self._tiers: tuple[tuple[ShrinkStrategy, Tier], ...] = (
            (ShrinkStrategy.AGGRESSIVE_TRUNCATE, self._truncate_tool_payloads),
            (ShrinkStrategy.SUMMARIZE, self._summarize_large_messages),
            (ShrinkStrategy.DROP_MIDDLE, self._drop_middle),
            (ShrinkStrategy.MINIMAL_SYSTEM_PROMPT, self._apply_minimal_system_prompt),
        )

    @property
    def resolver(self) -> ContextWindowResolver:
        return self._resolver

    async def shrink(self, options: ShrinkOptions) -> ShrinkResult:
        """Reduce ``options.messages`` until the estimate fits the target budget."""
        settings = self._settings
        provider_id = options.provider_id or settings.context_provider_id
        model = options.model or settings.context_model
        tokens_before = estimate_tokens(options.messages)

        if not settings.context_reduction_enabled:
            max_tokens = self._resolver.get_static_context_tokens(provider_id, model)
            self._skip_tiers(SHRINK_STRATEGY_ORDER, "reduction_disabled")
            return ShrinkResult(
                messages=list(options.messages),
                applied_strategies=[],
                est_tokens_before=tokens_before,
                est_tokens_after=tokens_before,
                max_tokens=max_tokens,
            )

        target_ratio = (
            options.target_ratio
            if options.target_ratio is not None
            else settings.context_target_ratio
        )
        max_tokens = await self._resolver.get_max_context_tokens(provider_id, model)
        ctx = _ShrinkContext(
            target_tokens=math.floor(max_tokens * target_ratio),
            last_n_messages=(
                options.last_n_messages
                if options.last_n_messages is not None
                else settings.context_last_n_messages
            ),
            summarize_char_threshold=(
                options.summarize_char_threshold
                if options.summarize_char_threshold is not None
                else settings.context_summarize_char_threshold
            ),
            session_id=options.session_id,
            on_progress=options.on_progress,
            available_tools=options.available_tools,
            relevant_tools=options.relevant_tools,
            is_agent_mode=options.is_agent_mode,
        )

        messages = list(options.messages)
        notify(
            self._observer,
            "on_shrink_started",
            provider_id,
            model,
            max_tokens,
            ctx.target_tokens,
            tokens_before,
            len(messages),
        )

        if tokens_before <= ctx.target_tokens:
            self._skip_tiers(SHRINK_STRATEGY_ORDER, "within_budget")
            return ShrinkResult(
                messages=messages,
                applied_strategies=[],
                est_tokens_before=tokens_before,
                est_tokens_after=tokens_before,
                max_tokens=max_tokens,
            )

        start_time = time.monotonic()
        applied: list[str] = []
        tool_results_summarized = False
        tokens = tokens_before

        for position, (strategy, tier) in enumerate(self._tiers):
            outcome = await tier(messages, ctx)
            messages = outcome.messages
            tool_results_summarized = tool_results_summarized or outcome.tool_results_summarized
            applied.append(strategy.value)

            tokens_after_tier = estimate_tokens(messages)
            notify(
                self._observer,
                "on_tier_applied",
                strategy,
                tokens,
                tokens_after_tier,
                outcome.changed,
            )
            tokens = tokens_after_tier

            if tokens <= ctx.target_tokens:
                remaining = [s for s, _ in self._tiers[position + 1 :]]
                self._skip_tiers(remaining, "within_budget")
                break

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            f"Context shrink complete: strategies={applied}, "
            f"tokens={tokens_before}->{tokens} (target={ctx.target_tokens}, max={max_tokens}), "
            f"messages={len(options.messages)}->{len(messages)}, duration={duration_ms:.0f}ms"
        )

        return ShrinkResult(
            messages=messages,
            applied_strategies=applied,
            est_tokens_before=tokens_before,
            est_tokens_after=tokens,
            max_tokens=max_tokens,
            tool_results_summarized=tool_results_summarized,
        )

    def _skip_tiers(self, strategies: Sequence[ShrinkStrategy], reason: str) -> None:
        for strategy in strategies:
            notify(self._observer, "on_tier_skipped", strategy, reason)

    async def _truncate_tool_payloads(
        self,
        messages: MessageList,
        ctx: _ShrinkContext,
    ) -> TierOutcome:
        """Tier 0: truncate every oversized user message that looks like tool/API output."""
        threshold = self._truncate_threshold
        result: MessageList = []
        changed = 0
        for msg in messages:
            content = msg.get("content")
            if (
                msg.get("role") == "user"
                and isinstance(content, str)
                and len(content) > threshold
                and _looks_like_tool_payload(content)
            ):
                cut = len(content) - threshold
                result.append(
                    {**msg, "content": content[:threshold] + TRUNCATION_NOTE.format(cut=cut)}
                )
                changed += 1
            else:
                result.append(msg)

        if changed:
            logger.info(f"Aggressive truncate: truncated {changed} oversized tool payloads")
        return TierOutcome(messages=result, changed=changed)

    async def _summarize_large_messages(
        self,
        messages: MessageList,
        ctx: _ShrinkContext,
    ) -> TierOutcome:
        """Tier 1: summarize non-system messages over the threshold, longest first."""
        candidates = sorted(
            (
                (idx, len(msg["content"]))
                for idx, msg in enumerate(messages)
                if msg.get("role") != "system"
                and isinstance(msg.get("content"), str)
                and len(msg["content"]) > ctx.summarize_char_threshold
            ),
            key=lambda item: item[1],
            reverse=True,
        )
        result = list(messages)
        changed = 0
        total = len(candidates)

        for current, (idx, length) in enumerate(candidates, start=1):
            if ctx.session_id and await self._is_stopping(ctx.session_id):
                logger.info(
                    f"Session {ctx.session_id} stopping, abandoning summarization "
                    f"after {current - 1}/{total} messages"
                )
                break

            content = result[idx]["content"]
            self._report_progress(ctx.on_progress, current, total, length, content)

            summarized = await self._summarizer.summarize_content(content, ctx.session_id)
            if summarized != content:
                result[idx] = {**result[idx], "content": summarized}
                changed += 1

            if estimate_tokens(result) <= ctx.target_tokens:
                break

        return TierOutcome(messages=result, changed=changed)

    async def _drop_middle(self, messages: MessageList, ctx: _ShrinkContext) -> TierOutcome:
        """Tier 2: keep system, first user and the last N messages."""
        tokens = estimate_tokens(messages)
        last_n = ctx.last_n_messages
        if tokens > ctx.target_tokens * self._aggressive_tail_ratio:
            last_n = max(1, last_n // 2)

        system_idx = _first_index(messages, "system")
        first_user_idx = _first_index(messages, "user", exclude=system_idx)
        tail_start = max(0, len(messages) - last_n)
        tail = range(tail_start, len(messages))

        kept = set(tail)
        if system_idx >= 0:
            kept.add(system_idx)
        if first_user_idx >= 0:
            kept.add(first_user_idx)

        dropped_tools = [
            msg
            for idx, msg in enumerate(messages)
            if idx not in kept and msg.get("role") == "tool"
        ]
        tool_summary = summarize_tool_messages_for_dropping(dropped_tools)
        if tool_summary:
            logger.info(f"Summarized {len(dropped_tools)} tool results before drop_middle")

        ordered: MessageList = []
        if system_idx >= 0:
            ordered.append(messages[system_idx])
        if first_user_idx >= 0:
            ordered.append(messages[first_user_idx])
        if tool_summary:
            ordered.append({"role": "assistant", "content": tool_summary})
        ordered.extend(messages[k] for k in tail if k not in (system_idx, first_user_idx))

        dropped = len(messages) - len(kept)

        if tool_summary and ctx.session_id:
            ordered = await self._inject_progress_summary(ordered, ctx.session_id)

        return TierOutcome(
            messages=ordered,
            changed=dropped,
            tool_results_summarized=bool(tool_summary),
        )

    async def _apply_minimal_system_prompt(
        self,
        messages: MessageList,
        ctx: _ShrinkContext,
    ) -> TierOutcome:
        """Tier 3: replace (or insert) the system prompt with a minimal one."""
        minimal = self._prompt_builder.build_minimal_system_prompt(
            ctx.available_tools,
            ctx.is_agent_mode,
            ctx.relevant_tools,
        )
        result = list(messages)
        system_idx = _first_index(result, "system")
        if system_idx >= 0:
            result[system_idx] = {"role": "system", "content": minimal}
        else:
            result.insert(0, {"role": "system", "content": minimal})
        return TierOutcome(messages=result, changed=1)

    async def _inject_progress_summary(self, messages: MessageList, session_id: str) -> MessageList:
        if self._progress_ledger is None:
            return messages

        try:
            steps = await self._progress_ledger.get_recent_step_summaries(session_id)
        except Exception as e:
            logger.warning(f"Failed to load step summaries for session {session_id}: {e}")
            return messages

        progress = build_progress_summary(steps)
        if not progress:
            return messages

        first_user_idx = _first_index(messages, "user")
        if first_user_idx < 0 or first_user_idx >= len(messages) - 1:
            return messages

        logger.debug(f"Injected session progress summary for session {session_id}")
        return [
            *messages[: first_user_idx + 1],
            {"role": "assistant", "content": progress},
            *messages[first_user_idx + 1 :],
        ]

    async def _is_stopping(self, session_id: str) -> bool:
        if self._cancellation is None:
            return False
        return await self._cancellation.is_session_stopping(session_id)

    @staticmethod
    def _report_progress(
        on_progress: ProgressCallback | None,
        current: int,
        total: int,
        length: int,
        content: str,
    ) -> None:
        if on_progress is None:
            return
        preview = content[:PROGRESS_PREVIEW_CHARS].replace("\n", " ")
        try:
            on_progress(
                current,
                total,
                f"Summarizing large message {current}/{total} ({length} chars): {preview}...",
            )
        except Exception as e:
            logger.warning(f"Summarization progress callback failed: {e}")
