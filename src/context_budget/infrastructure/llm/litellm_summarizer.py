"""LiteLLM-backed Summarizer for context reduction."""

from __future__ import annotations

import logging
from typing import Any

from litellm import acompletion

from context_budget.configuration.config import ContextBudgetSettings

logger = logging.getLogger(__name__)

SUMMARY_TOKENS_HINT = 400

SUMMARIZE_PROMPT = """Summarize tool output or conversation focusing on WHAT WAS LEARNED, not what was executed.

PRESERVE (exact format):
- Tool names with prefixes: [server:tool_name] - keep this exact format
- IDs, file paths, URLs, numeric values
- Key data points and findings

FOCUS ON:
- What information was discovered or retrieved
- What elements/data are visible or available
- What actions succeeded or failed and WHY
- Key observations that inform next steps

DO NOT:
- Just say "tool executed successfully" - describe what it returned
- Lose the [toolName] prefix format
- Invent or hallucinate values

Target: ~{max_tokens} tokens. Be concise but preserve actionable information.

SOURCE:
{source}"""


class LiteLLMSummarizer:
    """Summarizer that calls any LiteLLM-supported model.

    Never raises: on provider errors or empty responses the input is returned.

    Example:
        summarizer = LiteLLMSummarizer(model="openai/gpt-4o-mini")
        short = await summarizer.summarize(long_tool_output, session_id="s-1")
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_seconds: int = 60,
        max_tokens: int = 1024,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._base_url = base_url
        self._timeout_seconds = timeout_seconds
        self._max_tokens = max_tokens

    @classmethod
    def from_settings(cls, settings: ContextBudgetSettings) -> LiteLLMSummarizer | None:
        """Build from settings, or None when no summarizer model is configured."""
        if not settings.summarizer_model:
            return None
        return cls(
            model=settings.summarizer_model,
            api_key=settings.summarizer_api_key,
            base_url=settings.summarizer_base_url,
            timeout_seconds=settings.summarizer_timeout_seconds,
        )

    def _build_completion_params(self, text: str) -> dict[str, Any]:
        params: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {
                    "role": "user",
                    "content": SUMMARIZE_PROMPT.format(
                        max_tokens=SUMMARY_TOKENS_HINT, source=text
                    ),
                }
            ],
            "max_tokens": self._max_tokens,
            "temperature": 0.0,
            "timeout": self._timeout_seconds,
        }
        if self._api_key:
            params["api_key"] = self._api_key
        if self._base_url:
            params["api_base"] = self._base_url
        return params

    async def summarize(self, text: str, session_id: str | None = None) -> str:
        try:
            response = await acompletion(**self._build_completion_params(text))
            summary = self._extract_response_text(response)
        except Exception as e:
            logger.warning(f"Summarization call failed (session={session_id}): {e}")
            return text

        if not summary:
            return text
        logger.debug(f"Summarized {len(text)} chars -> {len(summary)} chars")
        return summary

    @staticmethod
    def _extract_response_text(response: Any) -> str:
        """Extract text from LLM response (handles both object and dict formats)."""
        if hasattr(response, "choices") and response.choices:
            content = response.choices[0].message.content
            return content.strip() if isinstance(content, str) else ""
        if isinstance(response, dict):
            content = response.get("choices", [{}])[0].get("message", {}).get("content", "")
            return content.strip() if isinstance(content, str) else ""
        return ""
