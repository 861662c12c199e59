"""Tests for ContentSummarizer chunking and failure policy."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from context_budget.domain.ports import ContextBudgetObserver
from context_budget.infrastructure.context.summarization import (
    DEFAULT_CHUNK_SIZE,
    ContentSummarizer,
    IdentitySummarizer,
)


def make_summarizer(**kwargs):
    summarizer = MagicMock()
    summarizer.summarize = AsyncMock(**kwargs)
    return summarizer


def make_cancellation(stopping):
    oracle = MagicMock()
    oracle.is_session_stopping = AsyncMock(return_value=stopping)
    return oracle


@pytest.mark.unit
class TestContentSummarizer:
    def test_default_chunk_size(self):
        assert ContentSummarizer(IdentitySummarizer()).chunk_size == DEFAULT_CHUNK_SIZE == 16_000

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            ContentSummarizer(IdentitySummarizer(), chunk_size=0)

    @pytest.mark.asyncio
    async def test_single_call_under_chunk_size(self):
        summarizer = make_summarizer(return_value="short")
        policy = ContentSummarizer(summarizer, chunk_size=100)

        assert await policy.summarize_content("x" * 100, "s-1") == "short"
        summarizer.summarize.assert_awaited_once_with("x" * 100, "s-1")

    @pytest.mark.asyncio
    async def test_chunks_large_content(self):
        summarizer = make_summarizer(side_effect=lambda text, sid: f"sum{len(text)}")
        policy = ContentSummarizer(summarizer, chunk_size=100)

        result = await policy.summarize_content("x" * 250)

        assert result == "sum100\nsum100\nsum50"
        assert summarizer.summarize.await_count == 3

    @pytest.mark.asyncio
    async def test_combined_summary_recompressed_when_still_large(self):
        summarizer = make_summarizer(
            side_effect=lambda text, sid: "final" if "\n" in text else "y" * 60
        )
        policy = ContentSummarizer(summarizer, chunk_size=100)

        result = await policy.summarize_content("x" * 300)

        assert result == "final"
        assert summarizer.summarize.await_count == 4

    @pytest.mark.asyncio
    async def test_failure_keeps_original_and_notifies(self):
        failures = []

        class Recorder(ContextBudgetObserver):
            def on_summarization_failed(self, error):
                failures.append(error)

        summarizer = make_summarizer(side_effect=RuntimeError("provider down"))
        policy = ContentSummarizer(summarizer, observer=Recorder())

        assert await policy.summarize_content("original text") == "original text"
        assert len(failures) == 1
        assert str(failures[0]) == "provider down"

    @pytest.mark.asyncio
    async def test_failed_chunk_keeps_its_text(self):
        def summarize(text, sid):
            if text.startswith("b"):
                raise RuntimeError("chunk failed")
            return "A"

        policy = ContentSummarizer(make_summarizer(side_effect=summarize), chunk_size=10)

        assert await policy.summarize_content("a" * 10 + "b" * 5) == "A\nbbbbb"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("empty", ["", "   \n", None])
    async def test_empty_summary_keeps_original(self, empty):
        policy = ContentSummarizer(make_summarizer(return_value=empty))
        assert await policy.summarize_content("original") == "original"

    @pytest.mark.asyncio
    async def test_stopping_session_skips_summarizer(self):
        summarizer = make_summarizer(return_value="short")
        policy = ContentSummarizer(summarizer, cancellation=make_cancellation(True))

        assert await policy.summarize_content("original", "s-1") == "original"
        summarizer.summarize.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_cancellation_check_without_session(self):
        cancellation = make_cancellation(True)
        policy = ContentSummarizer(make_summarizer(return_value="short"), cancellation=cancellation)

        assert await policy.summarize_content("original") == "short"
        cancellation.is_session_stopping.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_identity_summarizer(self):
        assert await IdentitySummarizer().summarize("same") == "same"
