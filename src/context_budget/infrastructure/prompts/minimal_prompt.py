"""Minimal system prompt used as the last context reduction tier."""

from __future__ import annotations

from collections.abc import Sequence

from context_budget.domain.model import ToolInfo

BASE_PROMPT = (
    "You are an MCP-capable assistant. Use exact tool names and parameter keys. "
    "Be concise. Call multiple tools at once when possible."
)
AGENT_MODE_SUFFIX = " Continue calling tools until the task is complete."


def format_tool_list(tools: Sequence[ToolInfo]) -> str:
    """Render tools as ``- name(param, ...)`` lines."""
    return "\n".join(f"- {tool.name}({', '.join(tool.parameter_names)})" for tool in tools)


class MinimalSystemPromptBuilder:
    """Builds a compact system prompt listing tool names and parameter keys."""

    def build_minimal_system_prompt(
        self,
        tools: Sequence[ToolInfo],
        is_agent_mode: bool = False,
        relevant_tools: Sequence[ToolInfo] | None = None,
    ) -> str:
        prompt = BASE_PROMPT
        if is_agent_mode:
            prompt += AGENT_MODE_SUFFIX

        if tools:
            prompt += f"\n\nAVAILABLE TOOLS:\n{format_tool_list(tools)}"
        else:
            prompt += "\n\nNo tools are currently available."

        if relevant_tools and tools and len(relevant_tools) < len(tools):
            prompt += f"\n\nMOST RELEVANT:\n{format_tool_list(relevant_tools)}"

        return prompt
