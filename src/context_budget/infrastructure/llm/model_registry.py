"""Model limits registry for LLM providers.

Centralizes known model constraints (context window, max output tokens) so
that the resolver and the shrink pipeline share a single source of truth.

Keys are normalized patterns matched against normalized model names with a
fuzzy score: exact matches win outright, otherwise longer patterns anchored
at a word boundary beat short generic substrings.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass

from context_budget.domain.model import ModelSpec

logger = logging.getLogger(__name__)

EXACT_MATCH_SCORE = 1000

# Insertion order only matters for equal-score ties (first entry wins).
MODEL_REGISTRY: dict[str, ModelSpec] = {
    # Anthropic Claude 4.x
    "claude-opus-4.5": ModelSpec(200_000, 64_000),
    "claude-opus-4-5": ModelSpec(200_000, 64_000),
    "claude-opus-4.1": ModelSpec(200_000, 32_000),
    "claude-opus-4-1": ModelSpec(200_000, 32_000),
    "claude-opus-4.0": ModelSpec(200_000, 32_000),
    "claude-opus-4-0": ModelSpec(200_000, 32_000),
    "claude-opus-4": ModelSpec(200_000, 32_000),
    "claude-sonnet-4.5": ModelSpec(200_000, 64_000),
    "claude-sonnet-4-5": ModelSpec(200_000, 64_000),
    "claude-sonnet-4.0": ModelSpec(200_000, 64_000),
    "claude-sonnet-4-0": ModelSpec(200_000, 64_000),
    "claude-sonnet-4": ModelSpec(200_000, 64_000),
    "claude-haiku-4.5": ModelSpec(200_000, 64_000),
    "claude-haiku-4-5": ModelSpec(200_000, 64_000),
    # Anthropic Claude 3.x
    "claude-3.7-sonnet": ModelSpec(200_000, 64_000),
    "claude-3-7-sonnet": ModelSpec(200_000, 64_000),
    "claude-3.5-sonnet": ModelSpec(200_000, 8_192),
    "claude-3-5-sonnet": ModelSpec(200_000, 8_192),
    "claude-3.5-haiku": ModelSpec(200_000, 8_192),
    "claude-3-5-haiku": ModelSpec(200_000, 8_192),
    "claude-3-opus": ModelSpec(200_000, 4_096),
    "claude-3-sonnet": ModelSpec(200_000, 4_096),
    "claude-3-haiku": ModelSpec(200_000, 4_096),
    "claude-opus": ModelSpec(200_000, 32_000),
    "claude-sonnet": ModelSpec(200_000, 64_000),
    "claude-haiku": ModelSpec(200_000, 64_000),
    "claude": ModelSpec(200_000, 8_192),
    # OpenAI GPT-5.x
    "gpt-5.2": ModelSpec(128_000, 64_000),
    "gpt-5.1": ModelSpec(128_000, 128_000),
    "gpt-5-codex": ModelSpec(128_000, 128_000),
    "gpt-5-mini": ModelSpec(128_000, 64_000),
    "gpt-5": ModelSpec(128_000, 128_000),
    # OpenAI GPT-4.x
    "gpt-4.1": ModelSpec(128_000, 16_384),
    "gpt-4o-mini": ModelSpec(128_000, 16_384),
    "gpt-4o": ModelSpec(128_000, 16_384),
    "gpt-4-turbo": ModelSpec(128_000, 4_096),
    "gpt-4-32k": ModelSpec(32_768, 4_096),
    "gpt-4": ModelSpec(128_000, 8_192),
    # OpenAI GPT-3.5
    "gpt-3.5-turbo-16k": ModelSpec(16_384, 4_096),
    "gpt-3.5-turbo": ModelSpec(16_384, 4_096),
    "gpt-3.5": ModelSpec(16_384, 4_096),
    # OpenAI o-series; normalization turns "o1" into "o-1", so both spellings are listed
    "o3-mini": ModelSpec(200_000, 100_000),
    "o-3-mini": ModelSpec(200_000, 100_000),
    "o3": ModelSpec(200_000, 100_000),
    "o-3": ModelSpec(200_000, 100_000),
    "o1-mini": ModelSpec(128_000, 65_536),
    "o-1-mini": ModelSpec(128_000, 65_536),
    "o1-preview": ModelSpec(128_000, 32_768),
    "o-1-preview": ModelSpec(128_000, 32_768),
    "o1": ModelSpec(200_000, 100_000),
    "o-1": ModelSpec(200_000, 100_000),
    # Google Gemini
    "gemini-3-pro": ModelSpec(1_000_000, 64_000),
    "gemini-3-flash": ModelSpec(1_048_576, 65_536),
    "gemini-2.5-pro": ModelSpec(1_048_576, 65_536),
    "gemini-2.5-flash-lite": ModelSpec(1_048_576, 65_536),
    "gemini-2.5-flash": ModelSpec(1_048_576, 65_536),
    "gemini-2.0-flash-lite": ModelSpec(1_048_576, 8_192),
    "gemini-2.0-flash": ModelSpec(1_048_576, 8_192),
    "gemini-1.5-pro": ModelSpec(1_000_000, 8_192),
    "gemini-1.5-flash-8b": ModelSpec(1_000_000, 8_192),
    "gemini-1.5-flash": ModelSpec(1_000_000, 8_192),
    "gemini-flash": ModelSpec(1_048_576, 65_536),
    "gemini-pro": ModelSpec(1_000_000, 8_192),
    "gemini": ModelSpec(1_000_000, 8_192),
    # xAI Grok
    "grok-4.1-fast": ModelSpec(2_000_000, 30_000),
    "grok-4-fast": ModelSpec(2_000_000, 30_000),
    "grok-4": ModelSpec(256_000, 64_000),
    "grok-3-mini": ModelSpec(131_072, 8_192),
    "grok-3": ModelSpec(131_072, 8_192),
    "grok-2-vision": ModelSpec(8_192, 4_096),
    "grok-2": ModelSpec(131_072, 8_192),
    "grok-code-fast": ModelSpec(256_000, 10_000),
    "grok": ModelSpec(131_072, 8_192),
    # Meta Llama (Groq, Together, Fireworks, ...)
    "llama-3.3-70b": ModelSpec(128_000, 32_768),
    "llama-3.2-90b": ModelSpec(128_000, 4_096),
    "llama-3.2-11b": ModelSpec(128_000, 4_096),
    "llama-3.2-3b": ModelSpec(128_000, 4_096),
    "llama-3.2-1b": ModelSpec(128_000, 4_096),
    "llama-3.1-405b": ModelSpec(128_000, 4_096),
    "llama-3.1-70b": ModelSpec(128_000, 4_096),
    "llama-3.1-8b": ModelSpec(128_000, 4_096),
    "llama-3-70b": ModelSpec(8_192, 2_048),
    "llama-3-8b": ModelSpec(8_192, 2_048),
    "llama3": ModelSpec(8_192, 2_048),
    "llama-3": ModelSpec(8_192, 2_048),
    "llama-70b": ModelSpec(32_768, 4_096),
    "llama-8b": ModelSpec(8_192, 2_048),
    "llama": ModelSpec(8_192, 2_048),
    # Mistral
    "mistral-large": ModelSpec(128_000, 4_096),
    "mistral-medium": ModelSpec(32_000, 4_096),
    "mistral-small": ModelSpec(32_000, 4_096),
    # "mixtral-8x22b" normalizes to "mixtral-8x-22b"
    "mixtral-8x22b": ModelSpec(65_536, 4_096),
    "mixtral-8x-22b": ModelSpec(65_536, 4_096),
    "mixtral-8x7b": ModelSpec(32_768, 4_096),
    "mixtral-8x-7b": ModelSpec(32_768, 4_096),
    "mixtral": ModelSpec(32_768, 4_096),
    "mistral-7b": ModelSpec(8_192, 2_048),
    "mistral": ModelSpec(32_000, 4_096),
    # DeepSeek; "deepseek-v3" normalizes to "deepseek-3"
    "deepseek-r1": ModelSpec(128_000, 8_192),
    "deepseek-r-1": ModelSpec(128_000, 8_192),
    "deepseek-v3": ModelSpec(128_000, 8_192),
    "deepseek-3": ModelSpec(128_000, 8_192),
    "deepseek-coder": ModelSpec(128_000, 8_192),
    "deepseek-chat": ModelSpec(128_000, 8_192),
    "deepseek": ModelSpec(128_000, 8_192),
    # Qwen; "qwen3" normalizes to "qwen-3"
    "qwen3-coder": ModelSpec(262_144, 262_144),
    "qwen-3-coder": ModelSpec(262_144, 262_144),
    "qwen3-max": ModelSpec(256_000, 32_768),
    "qwen-3-max": ModelSpec(256_000, 32_768),
    "qwen3-235b": ModelSpec(262_144, 4_096),
    "qwen-3-235b": ModelSpec(262_144, 4_096),
    "qwen3-72b": ModelSpec(128_000, 8_192),
    "qwen-3-72b": ModelSpec(128_000, 8_192),
    "qwen3-32b": ModelSpec(128_000, 8_192),
    "qwen-3-32b": ModelSpec(128_000, 8_192),
    "qwen3-8b": ModelSpec(128_000, 20_000),
    "qwen-3-8b": ModelSpec(128_000, 20_000),
    "qwen3": ModelSpec(128_000, 8_192),
    "qwen-3": ModelSpec(128_000, 8_192),
    "qwen2.5": ModelSpec(128_000, 8_192),
    "qwen-2.5": ModelSpec(128_000, 8_192),
    "qwen2": ModelSpec(32_768, 4_096),
    "qwen-2": ModelSpec(32_768, 4_096),
    "qwen": ModelSpec(32_768, 4_096),
    "qwq": ModelSpec(32_768, 4_096),
    # Cohere
    "command-r-plus": ModelSpec(128_000, 4_096),
    "command-r": ModelSpec(128_000, 4_096),
    "command": ModelSpec(4_096, 4_096),
}

# Most specific first; only the first matching prefix is stripped
_PREFIX_PATTERNS = (
    re.compile(r"^accounts/[^/]+/models/"),  # accounts/fireworks/models/...
    re.compile(r"^[a-z0-9]+/[a-z0-9-]+/"),  # openrouter/anthropic/...
    re.compile(r"^[a-z0-9-]+/"),  # anthropic/, openai/, ...
)
_DATE_SUFFIX_PATTERNS = (
    re.compile(r"-\d{8}$"),  # -YYYYMMDD
    re.compile(r"-\d{4}-\d{2}-\d{2}$"),  # -YYYY-MM-DD
    re.compile(r"-\d{6}$"),  # -YYMMDD
)
_TAG_SUFFIX_RE = re.compile(r":[a-z]+$")
_VERSION_P_RE = re.compile(r"v(\d+)p(\d+)")
_VERSION_DASH_RE = re.compile(r"v(\d+)-(\d+)")
_VERSION_RE = re.compile(r"v(\d+)")
_LETTER_DIGIT_RE = re.compile(r"([a-z])(\d)")


@dataclass(frozen=True)
class ModelMatch:
    """Best registry match for a model name."""

    pattern: str
    spec: ModelSpec
    score: int
    normalized: str


def normalize_model_name(model: str) -> str:
    """Normalize a model name for fuzzy matching.

    Examples:
        claude-haiku-4-5-20251001 -> claude-haiku-4-5
        anthropic/claude-3.5-sonnet -> claude-3.5-sonnet
        accounts/fireworks/models/llama-v3p1-70b -> llama-3.1-70b
        gpt4o -> gpt-4o
    """
    normalized = model.lower()

    for pattern in _PREFIX_PATTERNS:
        if pattern.search(normalized):
            normalized = pattern.sub("", normalized, count=1)
            break

    for pattern in _DATE_SUFFIX_PATTERNS:
        normalized = pattern.sub("", normalized)

    normalized = _TAG_SUFFIX_RE.sub("", normalized)

    # Versions before hyphenation, otherwise "v3p1" would become "v-3p-1"
    normalized = _VERSION_P_RE.sub(r"\1.\2", normalized)
    normalized = _VERSION_DASH_RE.sub(r"\1.\2", normalized)
    normalized = _VERSION_RE.sub(r"\1", normalized)

    return _LETTER_DIGIT_RE.sub(r"\1-\2", normalized)


def calculate_match_score(normalized_model: str, pattern: str) -> int:
    """Score how well *pattern* matches *normalized_model* (0 means no match)."""
    if normalized_model == pattern:
        return EXACT_MATCH_SCORE

    position = normalized_model.find(pattern)
    if position < 0:
        return 0

    length_score = len(pattern) * 10
    position_score = len(normalized_model) - position
    boundary_bonus = 50 if position == 0 or normalized_model[position - 1] == "-" else 0
    return length_score + position_score + boundary_bonus


def find_best_match(
    model: str,
    registry: Mapping[str, ModelSpec] | None = None,
) -> ModelMatch | None:
    """Return the highest scoring registry entry for *model*, if any."""
    entries = MODEL_REGISTRY if registry is None else registry
    normalized = normalize_model_name(model)

    best: ModelMatch | None = None
    for pattern, spec in entries.items():
        score = calculate_match_score(normalized, pattern)
        if score > 0 and (best is None or score > best.score):
            best = ModelMatch(pattern=pattern, spec=spec, score=score, normalized=normalized)
    return best


def lookup_model_spec(
    model: str,
    registry: Mapping[str, ModelSpec] | None = None,
) -> ModelSpec | None:
    """Look up the spec for *model* using fuzzy matching."""
    match = find_best_match(model, registry)
    return match.spec if match else None
