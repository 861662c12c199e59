"""Model registry, context window resolution and LLM-backed collaborators."""

from .context_window import (
    GLOBAL_FALLBACK_CONTEXT_WINDOW,
    PROVIDER_FALLBACKS,
    ContextWindowCache,
    ContextWindowResolver,
)
from .litellm_summarizer import LiteLLMSummarizer
from .model_registry import (
    MODEL_REGISTRY,
    ModelMatch,
    calculate_match_score,
    find_best_match,
    lookup_model_spec,
    normalize_model_name,
)
from .provider_lookup import OpenAICompatibleModelLookup, build_live_lookups

__all__ = [
    # Registry
    "MODEL_REGISTRY",
    "ModelMatch",
    "calculate_match_score",
    "find_best_match",
    "lookup_model_spec",
    "normalize_model_name",
    # Resolver
    "ContextWindowCache",
    "ContextWindowResolver",
    "GLOBAL_FALLBACK_CONTEXT_WINDOW",
    "PROVIDER_FALLBACKS",
    # Collaborators
    "LiteLLMSummarizer",
    "OpenAICompatibleModelLookup",
    "build_live_lookups",
]
