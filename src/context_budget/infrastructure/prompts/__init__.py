from .minimal_prompt import MinimalSystemPromptBuilder

__all__ = ["MinimalSystemPromptBuilder"]
