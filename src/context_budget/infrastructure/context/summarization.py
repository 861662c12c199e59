"""
Content summarization policy.

Decides how oversized content is sent to the external Summarizer:
- content up to ``chunk_size`` characters is summarized in one call
- larger content is split into ``chunk_size`` slices summarized one at a time,
  joined by newlines, and compressed once more if still over ``chunk_size``

Summarizer failures never propagate: the affected piece keeps its original text.
"""

from __future__ import annotations

import logging

from context_budget.domain.ports import (
    CancellationOracle,
    ContextBudgetObserver,
    Summarizer,
    notify,
)

logger = logging.getLogger(__name__)

# ~4k tokens per chunk
DEFAULT_CHUNK_SIZE = 16_000


class ContentSummarizer:
    """Chunking and failure policy around an external Summarizer."""

    def __init__(
        self,
        summarizer: Summarizer,
        cancellation: CancellationOracle | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        observer: ContextBudgetObserver | None = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._summarizer = summarizer
        self._cancellation = cancellation
        self._chunk_size = chunk_size
        self._observer = observer

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    async def summarize_content(self, content: str, session_id: str | None = None) -> str:
        """Summarize *content*, chunking when it exceeds the chunk size."""
        if len(content) <= self._chunk_size:
            return await self._summarize_once(content, session_id)

        chunks = [
            content[i : i + self._chunk_size] for i in range(0, len(content), self._chunk_size)
        ]
        partials = []
        for chunk in chunks:
            partials.append(await self._summarize_once(chunk, session_id))

        combined = "\n".join(partials)
        if len(combined) > self._chunk_size:
            combined = await self._summarize_once(combined, session_id)

        logger.debug(
            f"Chunked summarization: {len(content)} chars in {len(chunks)} chunks "
            f"-> {len(combined)} chars"
        )
        return combined

    async def _summarize_once(self, text: str, session_id: str | None) -> str:
        if session_id and await self._is_stopping(session_id):
            return text

        try:
            summary = await self._summarizer.summarize(text, session_id)
        except Exception as e:
            logger.warning(f"Summarization failed, keeping original content: {e}")
            notify(self._observer, "on_summarization_failed", e)
            return text

        if not isinstance(summary, str) or not summary.strip():
            return text
        return summary.strip()

    async def _is_stopping(self, session_id: str) -> bool:
        if self._cancellation is None:
            return False
        return await self._cancellation.is_session_stopping(session_id)


class IdentitySummarizer:
    """Summarizer that returns its input; used when no summarization model is configured."""

    async def summarize(self, text: str, session_id: str | None = None) -> str:
        return text
