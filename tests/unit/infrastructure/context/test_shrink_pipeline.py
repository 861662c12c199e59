"""Tests for the tiered ShrinkPipeline."""

import copy
from unittest.mock import AsyncMock, MagicMock

import pytest

from context_budget.configuration.config import ContextBudgetSettings
from context_budget.domain.model import (
    SHRINK_STRATEGY_ORDER,
    ShrinkOptions,
    ShrinkStrategy,
    StepSummary,
    ToolInfo,
)
from context_budget.domain.ports import ContextBudgetObserver
from context_budget.infrastructure.context.shrink_pipeline import ShrinkPipeline
from context_budget.infrastructure.context.summarization import (
    ContentSummarizer,
    IdentitySummarizer,
)
from context_budget.infrastructure.context.token_estimator import estimate_tokens
from context_budget.infrastructure.llm.context_window import ContextWindowResolver
from context_budget.infrastructure.prompts.minimal_prompt import BASE_PROMPT
from context_budget.infrastructure.session.state import (
    InMemoryProgressLedger,
    InMemorySessionStateManager,
)

ALL_STRATEGIES = [s.value for s in SHRINK_STRATEGY_ORDER]


class RecordingObserver(ContextBudgetObserver):
    def __init__(self):
        self.started = []
        self.applied = []
        self.skipped = []

    def on_shrink_started(self, *args):
        self.started.append(args)

    def on_tier_applied(self, strategy, tokens_before, tokens_after, changed):
        self.applied.append((strategy, tokens_before, tokens_after, changed))

    def on_tier_skipped(self, strategy, reason):
        self.skipped.append((strategy, reason))


def make_settings(**overrides):
    # 1000 token window, 700 token (2800 char) target
    values = {
        "max_context_tokens_override": 1000,
        "context_reduction_enabled": True,
        "context_target_ratio": 0.7,
        "context_last_n_messages": 3,
        "context_summarize_char_threshold": 2000,
        "context_aggressive_tail_ratio": 1.5,
        "context_provider_id": "openai",
        "context_model": "gpt-4o",
        "context_debug": False,
    }
    values.update(overrides)
    return ContextBudgetSettings(_env_file=None, **values)


def make_pipeline(
    settings=None,
    summarizer=None,
    observer=None,
    cancellation=None,
    progress_ledger=None,
):
    settings = settings or make_settings()
    return ShrinkPipeline(
        resolver=ContextWindowResolver(settings=settings),
        summarizer=ContentSummarizer(summarizer or IdentitySummarizer()),
        cancellation=cancellation,
        progress_ledger=progress_ledger,
        settings=settings,
        observer=observer,
    )


def make_summarizer(**kwargs):
    summarizer = MagicMock()
    summarizer.summarize = AsyncMock(**kwargs)
    return summarizer


def tool_heavy_conversation(tool_count=10, tool_body=300):
    messages = [
        {"role": "system", "content": "S" * 40},
        {"role": "user", "content": "first question"},
    ]
    for i in range(tool_count):
        messages.append({"role": "tool", "content": f"[tool_{i}] " + "r" * tool_body})
    messages.extend(
        [
            {"role": "assistant", "content": "thinking"},
            {"role": "user", "content": "follow up"},
            {"role": "assistant", "content": "final answer"},
        ]
    )
    return messages


def assert_strategy_prefix(applied):
    assert applied == ALL_STRATEGIES[: len(applied)]


@pytest.mark.unit
class TestShrinkPipelineBudget:
    @pytest.mark.asyncio
    async def test_within_budget_is_noop(self):
        observer = RecordingObserver()
        messages = [
            {"role": "system", "content": "You are helpful."},
            {"role": "user", "content": "hello"},
        ]

        result = await make_pipeline(observer=observer).shrink(ShrinkOptions(messages=messages))

        assert result.messages == messages
        assert result.applied_strategies == []
        assert result.est_tokens_before == result.est_tokens_after == estimate_tokens(messages)
        assert result.max_tokens == 1000
        assert observer.applied == []
        assert observer.skipped == [(s, "within_budget") for s in SHRINK_STRATEGY_ORDER]

    @pytest.mark.asyncio
    async def test_reduction_disabled_returns_input(self):
        observer = RecordingObserver()
        settings = make_settings(context_reduction_enabled=False)
        messages = tool_heavy_conversation()
        snapshot = copy.deepcopy(messages)

        result = await make_pipeline(settings=settings, observer=observer).shrink(
            ShrinkOptions(messages=messages)
        )

        assert result.messages == snapshot
        assert result.applied_strategies == []
        assert result.est_tokens_before == result.est_tokens_after
        assert result.max_tokens == 1000
        assert observer.started == []
        assert observer.skipped == [(s, "reduction_disabled") for s in SHRINK_STRATEGY_ORDER]

    @pytest.mark.asyncio
    async def test_max_tokens_from_resolved_model(self):
        settings = make_settings(max_context_tokens_override=None)
        options = ShrinkOptions(
            messages=[{"role": "user", "content": "hi"}],
            provider_id="anthropic",
            model="anthropic/claude-3-opus-20240229",
        )

        result = await make_pipeline(settings=settings).shrink(options)

        assert result.max_tokens == 200_000

    @pytest.mark.asyncio
    async def test_default_model_from_settings(self):
        settings = make_settings(max_context_tokens_override=None, context_model="gpt-4o")
        result = await make_pipeline(settings=settings).shrink(
            ShrinkOptions(messages=[{"role": "user", "content": "hi"}])
        )
        assert result.max_tokens == 128_000

    @pytest.mark.asyncio
    async def test_option_target_ratio_overrides_settings(self):
        # 2400 chars = 600 tokens: over a 0.5 target, under the 0.7 default
        messages = [{"role": "user", "content": "x" * 2400}]
        pipeline = make_pipeline()

        default = await pipeline.shrink(ShrinkOptions(messages=messages))
        tight = await pipeline.shrink(ShrinkOptions(messages=messages, target_ratio=0.5))

        assert default.applied_strategies == []
        assert tight.applied_strategies != []


@pytest.mark.unit
class TestAggressiveTruncate:
    @pytest.mark.asyncio
    async def test_truncates_tool_shaped_user_payload(self):
        observer = RecordingObserver()
        payload = '{"id":"x"}' + "a" * 5990
        messages = [
            {"role": "system", "content": "s" * 100},
            {"role": "user", "content": payload},
        ]
        snapshot = copy.deepcopy(messages)
        settings = make_settings(max_context_tokens_override=2000)

        result = await make_pipeline(settings=settings, observer=observer).shrink(
            ShrinkOptions(messages=messages)
        )

        content = result.messages[1]["content"]
        assert content.startswith(payload[:5000])
        assert content[5000:] == (
            "\n\n... (truncated 1000 characters for context management. "
            "Key information preserved above.)"
        )
        assert result.applied_strategies == ["aggressive_truncate"]
        assert result.est_tokens_before == estimate_tokens(snapshot)
        assert result.est_tokens_after < result.est_tokens_before
        assert messages == snapshot
        assert observer.applied[0][0] == ShrinkStrategy.AGGRESSIVE_TRUNCATE
        assert observer.applied[0][3] == 1
        assert observer.skipped == [
            (ShrinkStrategy.SUMMARIZE, "within_budget"),
            (ShrinkStrategy.DROP_MIDDLE, "within_budget"),
            (ShrinkStrategy.MINIMAL_SYSTEM_PROMPT, "within_budget"),
        ]

    @pytest.mark.asyncio
    async def test_truncates_every_payload_in_one_pass(self):
        # 3025 tokens against a 3000 token target; cutting the first payload
        # alone would already fit, both are still truncated
        observer = RecordingObserver()
        first = '{"id":"a"}' + "a" * 5990
        second = '{"url":"b"}' + "b" * 5989
        messages = [
            {"role": "system", "content": "s" * 100},
            {"role": "user", "content": first},
            {"role": "user", "content": second},
        ]
        settings = make_settings(max_context_tokens_override=4000)

        result = await make_pipeline(settings=settings, observer=observer).shrink(
            ShrinkOptions(messages=messages, target_ratio=0.75)
        )

        assert result.applied_strategies == ["aggressive_truncate"]
        assert result.messages[1]["content"].startswith(first[:5000] + "\n\n... (truncated 1000")
        assert result.messages[2]["content"].startswith(second[:5000] + "\n\n... (truncated 1000")
        assert observer.applied[0][0] == ShrinkStrategy.AGGRESSIVE_TRUNCATE
        assert observer.applied[0][3] == 2

    @pytest.mark.asyncio
    async def test_ignores_non_tool_and_non_user_messages(self):
        messages = [
            {"role": "user", "content": "plain prose " * 500},
            {"role": "assistant", "content": '"url": ' + "b" * 6000},
        ]
        snapshot = copy.deepcopy(messages)

        result = await make_pipeline().shrink(ShrinkOptions(messages=messages, last_n_messages=5))

        assert "truncated" not in result.messages[-1]["content"]
        assert messages == snapshot


@pytest.mark.unit
class TestSummarizeTier:
    @pytest.mark.asyncio
    async def test_longest_first_and_stops_when_within_budget(self):
        summarizer = make_summarizer(return_value="short")
        progress = []
        messages = [
            {"role": "system", "content": "s" * 50},
            {"role": "user", "content": "u" * 100},
            {"role": "assistant", "content": "a" * 3000},
            {"role": "user", "content": "b" * 2500},
        ]

        result = await make_pipeline(summarizer=summarizer).shrink(
            ShrinkOptions(
                messages=messages,
                on_progress=lambda current, total, message: progress.append(
                    (current, total, message)
                ),
            )
        )

        assert result.applied_strategies == ["aggressive_truncate", "summarize"]
        assert result.messages[2]["content"] == "short"
        assert result.messages[3]["content"] == "b" * 2500
        summarizer.summarize.assert_awaited_once()
        assert len(progress) == 1
        current, total, message = progress[0]
        assert (current, total) == (1, 2)
        assert message.startswith("Summarizing large message 1/2 (3000 chars): aaaa")

    @pytest.mark.asyncio
    async def test_system_messages_never_summarized(self):
        summarizer = make_summarizer(return_value="short")
        messages = [
            {"role": "system", "content": "S" * 4000},
            {"role": "user", "content": "hello"},
        ]

        await make_pipeline(summarizer=summarizer).shrink(ShrinkOptions(messages=messages))

        summarizer.summarize.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stopping_session_abandons_summarization(self):
        summarizer = make_summarizer(return_value="short")
        cancellation = InMemorySessionStateManager()
        cancellation.request_stop("s-1")
        messages = [
            {"role": "user", "content": "a" * 3000},
            {"role": "user", "content": "b" * 3000},
        ]

        result = await make_pipeline(summarizer=summarizer, cancellation=cancellation).shrink(
            ShrinkOptions(messages=messages, session_id="s-1")
        )

        summarizer.summarize.assert_not_awaited()
        assert "summarize" in result.applied_strategies
        assert_strategy_prefix(result.applied_strategies)

    @pytest.mark.asyncio
    async def test_summarizer_failure_keeps_content(self):
        summarizer = make_summarizer(side_effect=RuntimeError("provider down"))
        messages = [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "a" * 3000},
        ]

        result = await make_pipeline(summarizer=summarizer).shrink(
            ShrinkOptions(messages=messages)
        )

        assert result.messages[-1]["content"] == "a" * 3000
        assert_strategy_prefix(result.applied_strategies)

    @pytest.mark.asyncio
    async def test_progress_callback_errors_are_ignored(self):
        def broken(current, total, message):
            raise RuntimeError("ui went away")

        messages = [{"role": "user", "content": "a" * 3000}]
        result = await make_pipeline(summarizer=make_summarizer(return_value="ok")).shrink(
            ShrinkOptions(messages=messages, on_progress=broken)
        )

        assert result.messages[0]["content"] == "ok"


@pytest.mark.unit
class TestDropMiddle:
    @pytest.mark.asyncio
    async def test_keeps_system_first_user_summary_and_tail(self):
        messages = tool_heavy_conversation()
        snapshot = copy.deepcopy(messages)

        result = await make_pipeline().shrink(ShrinkOptions(messages=messages))

        assert result.applied_strategies == ["aggressive_truncate", "summarize", "drop_middle"]
        assert result.tool_results_summarized is True
        assert [m["role"] for m in result.messages] == [
            "system",
            "user",
            "assistant",
            "assistant",
            "user",
            "assistant",
        ]
        assert result.messages[0] == snapshot[0]
        assert result.messages[1] == snapshot[1]
        summary = result.messages[2]["content"]
        assert summary.startswith("Previously executed tools:\n[tool_0] ")
        assert len(summary) <= 800
        assert summary.endswith("... and 2 more tool results")
        assert [m["content"] for m in result.messages[3:]] == [
            "thinking",
            "follow up",
            "final answer",
        ]
        assert result.est_tokens_after <= 700
        assert messages == snapshot

    @pytest.mark.asyncio
    async def test_tail_halved_when_far_over_budget(self):
        # 12 x ~410 chars is well over 1.5x the 700 token target
        messages = tool_heavy_conversation(tool_count=12, tool_body=400)

        result = await make_pipeline().shrink(ShrinkOptions(messages=messages))

        assert [m["content"] for m in result.messages][-1] == "final answer"
        assert [m["role"] for m in result.messages] == ["system", "user", "assistant", "assistant"]
        assert result.messages[2]["content"].startswith("Previously executed tools:")

    @pytest.mark.asyncio
    async def test_tail_ratio_is_configurable(self):
        messages = tool_heavy_conversation(tool_count=12, tool_body=400)
        settings = make_settings(context_aggressive_tail_ratio=10)

        result = await make_pipeline(settings=settings).shrink(ShrinkOptions(messages=messages))

        assert [m["content"] for m in result.messages][-3:] == [
            "thinking",
            "follow up",
            "final answer",
        ]

    @pytest.mark.asyncio
    async def test_progress_summary_injected_after_first_user(self):
        ledger = InMemoryProgressLedger()
        ledger.record_step("s-1", StepSummary(1, "Opened the dashboard"))
        ledger.record_step("s-1", StepSummary(2, "Exported the report", importance="high"))

        result = await make_pipeline(progress_ledger=ledger).shrink(
            ShrinkOptions(messages=tool_heavy_conversation(), session_id="s-1")
        )

        assert result.messages[1]["content"] == "first question"
        assert result.messages[2] == {
            "role": "assistant",
            "content": "[Session Progress Summary]\n✓ Step 2: Exported the report",
        }
        assert result.messages[3]["content"].startswith("Previously executed tools:")

    @pytest.mark.asyncio
    async def test_no_progress_summary_without_session(self):
        ledger = MagicMock()
        ledger.get_recent_step_summaries = AsyncMock(return_value=[StepSummary(1, "x")])

        result = await make_pipeline(progress_ledger=ledger).shrink(
            ShrinkOptions(messages=tool_heavy_conversation())
        )

        ledger.get_recent_step_summaries.assert_not_awaited()
        assert not any(
            m["content"].startswith("[Session Progress Summary]") for m in result.messages
        )

    @pytest.mark.asyncio
    async def test_ledger_failure_is_ignored(self):
        ledger = MagicMock()
        ledger.get_recent_step_summaries = AsyncMock(side_effect=RuntimeError("db down"))

        result = await make_pipeline(progress_ledger=ledger).shrink(
            ShrinkOptions(messages=tool_heavy_conversation(), session_id="s-1")
        )

        assert result.messages[2]["content"].startswith("Previously executed tools:")


@pytest.mark.unit
class TestMinimalSystemPrompt:
    @pytest.mark.asyncio
    async def test_replaces_oversized_system_prompt(self):
        observer = RecordingObserver()
        tools = [ToolInfo(name="search", input_schema={"properties": {"query": {}}})]
        messages = [
            {"role": "system", "content": "S" * 4000},
            {"role": "user", "content": "hello"},
        ]

        result = await make_pipeline(observer=observer).shrink(
            ShrinkOptions(messages=messages, available_tools=tools, is_agent_mode=True)
        )

        assert result.applied_strategies == ALL_STRATEGIES
        assert result.messages[0]["role"] == "system"
        assert result.messages[0]["content"].startswith(BASE_PROMPT)
        assert "- search(query)" in result.messages[0]["content"]
        assert result.messages[1] == {"role": "user", "content": "hello"}
        assert [event[0] for event in observer.applied] == list(SHRINK_STRATEGY_ORDER)
        assert observer.skipped == []

    @pytest.mark.asyncio
    async def test_inserts_system_prompt_when_missing(self):
        messages = [{"role": "user", "content": "x" * 4000}]

        result = await make_pipeline().shrink(ShrinkOptions(messages=messages))

        assert result.applied_strategies == ALL_STRATEGIES
        assert result.messages[0]["role"] == "system"
        assert result.messages[1] == messages[0]
        # best effort: still over budget but returned
        assert result.est_tokens_after > 700

    @pytest.mark.asyncio
    async def test_custom_prompt_builder(self):
        builder = MagicMock()
        builder.build_minimal_system_prompt = MagicMock(return_value="tiny")
        settings = make_settings()
        pipeline = ShrinkPipeline(
            resolver=ContextWindowResolver(settings=settings),
            summarizer=ContentSummarizer(IdentitySummarizer()),
            prompt_builder=builder,
            settings=settings,
        )
        messages = [
            {"role": "system", "content": "S" * 4000},
            {"role": "user", "content": "hello"},
        ]

        result = await pipeline.shrink(ShrinkOptions(messages=messages))

        assert result.messages[0] == {"role": "system", "content": "tiny"}
        builder.build_minimal_system_prompt.assert_called_once_with([], False, None)


@pytest.mark.unit
class TestShrinkInvariants:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "messages",
        [
            [{"role": "user", "content": "hi"}],
            [{"role": "user", "content": '{"url": "x"}' + "z" * 6000}],
            tool_heavy_conversation(),
            [{"role": "system", "content": "S" * 4000}, {"role": "user", "content": "hi"}],
        ],
    )
    async def test_strategies_are_an_ordered_prefix(self, messages):
        result = await make_pipeline().shrink(ShrinkOptions(messages=messages))
        assert_strategy_prefix(result.applied_strategies)
        assert result.est_tokens_after == estimate_tokens(result.messages)

    @pytest.mark.asyncio
    async def test_observer_errors_do_not_change_result(self):
        class Broken(ContextBudgetObserver):
            def on_tier_applied(self, *args):
                raise RuntimeError("observer exploded")

        messages = tool_heavy_conversation()
        expected = await make_pipeline().shrink(ShrinkOptions(messages=messages))
        result = await make_pipeline(observer=Broken()).shrink(ShrinkOptions(messages=messages))

        assert result.to_dict() == expected.to_dict()

    @pytest.mark.asyncio
    async def test_shrink_started_reports_budget(self):
        observer = RecordingObserver()
        messages = tool_heavy_conversation()

        await make_pipeline(observer=observer).shrink(ShrinkOptions(messages=messages))

        assert observer.started == [
            ("openai", "gpt-4o", 1000, 700, estimate_tokens(messages), len(messages))
        ]
