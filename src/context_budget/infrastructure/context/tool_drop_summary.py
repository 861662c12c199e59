"""
Compact summaries for history that is about to be dropped.

- ``summarize_tool_messages_for_dropping``: one line per dropped tool result,
  capped so the summary never becomes a budget problem itself
- ``build_progress_summary``: recent session steps from the progress ledger
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from context_budget.domain.model import LLMMessage, StepSummary

MAX_TOOL_SUMMARY_LENGTH = 800
TOOL_SUMMARY_HEADER = "Previously executed tools:"
NO_OUTPUT_PLACEHOLDER = "[No output]"
ERROR_BRIEF_CHARS = 60
BRIEF_MAX_CHARS = 80

MAX_ACTION_SUMMARY_LENGTH = 150
MAX_PROGRESS_SUMMARY_LENGTH = 2000
PROGRESS_SUMMARY_HEADER = "[Session Progress Summary]"
RECENT_STEPS_FALLBACK = 5
IMPORTANT_LEVELS = frozenset({"high", "critical"})

# [toolName] content... or [toolName] ERROR: content...
_TOOL_PREFIX_RE = re.compile(r"^\[([^\]]+)\]\s*(?:ERROR:\s*)?(.*)$", re.DOTALL)


@dataclass(frozen=True)
class ParsedToolResult:
    tool_name: str
    result_content: str


def parse_tool_name_from_content(content: str) -> ParsedToolResult:
    """Split a ``[toolName] body`` tool result; the name is ``unknown`` without a prefix."""
    match = _TOOL_PREFIX_RE.match(content)
    if match:
        return ParsedToolResult(tool_name=match.group(1), result_content=match.group(2))
    return ParsedToolResult(tool_name="unknown", result_content=content)


def _is_error(content: str, result_content: str) -> bool:
    lower = content.lower()
    return (
        "[error]" in lower
        or "] error:" in lower
        or result_content.lower().startswith("error")
    )


def build_tool_brief(content: str) -> tuple[str, str]:
    """Return ``(tool_name, brief)`` describing what a tool result yielded."""
    parsed = parse_tool_name_from_content(content)
    first_line = parsed.result_content.split("\n", 1)[0].strip()

    if _is_error(content, parsed.result_content):
        brief = f"FAILED: {first_line[:ERROR_BRIEF_CHARS]}"
    elif not parsed.result_content or parsed.result_content == NO_OUTPUT_PLACEHOLDER:
        brief = "completed (no output)"
    elif len(first_line) > BRIEF_MAX_CHARS:
        brief = first_line[: BRIEF_MAX_CHARS - 3] + "..."
    else:
        brief = first_line
    return parsed.tool_name, brief


def summarize_tool_messages_for_dropping(
    tool_messages: Sequence[LLMMessage],
    max_length: int = MAX_TOOL_SUMMARY_LENGTH,
) -> str:
    """Summarize dropped tool results as ``[toolName] brief`` lines.

    The whole text, header and overflow marker included, stays within
    ``max_length`` characters.
    """
    if not tool_messages:
        return ""

    total = len(tool_messages)
    lines: list[str] = []
    length = len(TOOL_SUMMARY_HEADER)

    for index, msg in enumerate(tool_messages):
        content = msg.get("content") or ""
        if not isinstance(content, str):
            content = str(content)
        tool_name, brief = build_tool_brief(content)
        entry = f"[{tool_name}] {brief}"

        remaining_after = total - (index + 1)
        reserve = len(f"\n... and {remaining_after} more tool results") if remaining_after else 0
        if length + 1 + len(entry) + reserve > max_length:
            lines.append(f"... and {total - len(lines)} more tool results")
            break

        lines.append(entry)
        length += 1 + len(entry)

    return TOOL_SUMMARY_HEADER + "\n" + "\n".join(lines)


def _truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def build_progress_summary(steps: Sequence[StepSummary]) -> str | None:
    """Describe completed session steps, preferring important ones."""
    if not steps:
        return None

    important = [s for s in steps if s.importance in IMPORTANT_LEVELS]
    selected = important or list(steps)[-RECENT_STEPS_FALLBACK:]

    lines = []
    for step in selected:
        marker = "⚠️" if step.importance == "critical" else "✓"
        summary = _truncate(step.action_summary, MAX_ACTION_SUMMARY_LENGTH)
        lines.append(f"{marker} Step {step.step_number}: {summary}")

    return _truncate(PROGRESS_SUMMARY_HEADER + "\n" + "\n".join(lines), MAX_PROGRESS_SUMMARY_LENGTH)
