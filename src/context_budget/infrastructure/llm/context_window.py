"""
Context Window Resolver - usable context size for a provider/model pair.

Resolution order:
1. User override (positive integer in settings) short-circuits everything
2. Per-resolver cache keyed by (provider_id, model)
3. Live provider lookup, when one is registered for the provider
4. Fuzzy registry match
5. Provider-specific conservative fallback
6. Global conservative fallback

Models are assumed static for the life of the process, so cache entries are
never invalidated. Concurrent writers to the same key compute the same value.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from context_budget.configuration.config import ContextBudgetSettings, get_settings
from context_budget.domain.model import ModelSpec
from context_budget.domain.ports import ContextBudgetObserver, ContextWindowLookup, notify
from context_budget.infrastructure.llm.model_registry import MODEL_REGISTRY, find_best_match

logger = logging.getLogger(__name__)

GLOBAL_FALLBACK_CONTEXT_WINDOW = 64_000

ProviderFallback = Callable[[str], int]


def _groq_fallback(model: str) -> int:
    lower = model.lower()
    if "70b" in lower or "405b" in lower:
        return 32_768
    if "8b" in lower or "9b" in lower:
        return 8_192
    return 32_768


# Unknown models get a conservative window so requests are never oversized
PROVIDER_FALLBACKS: dict[str, ProviderFallback] = {
    "groq": _groq_fallback,
    "openai": lambda model: 16_000,
    "anthropic": lambda model: 100_000,
    "gemini": lambda model: 128_000,
    "google": lambda model: 128_000,
}


class ContextWindowCache:
    """Memoized context window sizes keyed by (provider_id, model)."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], int] = {}

    def get(self, provider_id: str, model: str) -> int | None:
        return self._entries.get((provider_id, model))

    def set(self, provider_id: str, model: str, context_window: int) -> None:
        self._entries[(provider_id, model)] = context_window

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class ContextWindowResolver:
    """
    Resolves the usable context window for a provider/model pair.

    Usage:
        resolver = ContextWindowResolver()
        resolver.resolve_context_window("anthropic", "anthropic/claude-3.7-sonnet-20250219")
        # -> 200000
        await resolver.get_max_context_tokens("openai", "gpt4o")
        # -> 128000
    """

    def __init__(
        self,
        settings: ContextBudgetSettings | None = None,
        cache: ContextWindowCache | None = None,
        registry: Mapping[str, ModelSpec] | None = None,
        provider_fallbacks: Mapping[str, ProviderFallback] | None = None,
        live_lookups: Mapping[str, ContextWindowLookup] | None = None,
        observer: ContextBudgetObserver | None = None,
        global_fallback: int = GLOBAL_FALLBACK_CONTEXT_WINDOW,
    ) -> None:
        self._settings = settings or get_settings()
        self._cache = cache if cache is not None else ContextWindowCache()
        self._registry = registry if registry is not None else MODEL_REGISTRY
        self._provider_fallbacks = (
            provider_fallbacks if provider_fallbacks is not None else PROVIDER_FALLBACKS
        )
        self._live_lookups = dict(live_lookups or {})
        self._observer = observer
        self._global_fallback = global_fallback

    @property
    def cache(self) -> ContextWindowCache:
        return self._cache

    @property
    def override(self) -> int | None:
        """Configured positive override, or None."""
        value = self._settings.max_context_tokens_override
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            return value
        return None

    def resolve_context_window(self, provider_id: str, model: str) -> int:
        """Resolve the context window via cache, registry and fallbacks."""
        cached = self._cache.get(provider_id, model)
        if cached is not None:
            return cached

        result = self._lookup_static(provider_id, model)
        self._cache.set(provider_id, model, result)
        return result

    async def get_max_context_tokens(self, provider_id: str, model: str) -> int:
        """Resolve the context window, honoring the user override and live lookups."""
        override = self.override
        if override is not None:
            notify(self._observer, "on_model_fallback", provider_id, model, override, "override")
            return override

        cached = self._cache.get(provider_id, model)
        if cached is not None:
            return cached

        lookup = self._live_lookups.get(provider_id)
        if lookup is not None:
            live = await self._fetch_live(lookup, provider_id, model)
            if live is not None:
                notify(self._observer, "on_model_fallback", provider_id, model, live, "live_lookup")
                self._cache.set(provider_id, model, live)
                return live

        return self.resolve_context_window(provider_id, model)

    def get_static_context_tokens(self, provider_id: str, model: str) -> int:
        """Override or registry resolution, never touching the network."""
        override = self.override
        if override is not None:
            return override
        return self.resolve_context_window(provider_id, model)

    def resolve_max_output_tokens(self, model: str) -> int | None:
        """Return the output-token ceiling of the matched registry entry."""
        match = find_best_match(model, self._registry)
        return match.spec.max_output_tokens if match else None

    def register_live_lookup(self, provider_id: str, lookup: ContextWindowLookup) -> None:
        self._live_lookups[provider_id] = lookup

    def _lookup_static(self, provider_id: str, model: str) -> int:
        match = find_best_match(model, self._registry)
        if match is not None:
            notify(
                self._observer,
                "on_model_matched",
                model,
                match.normalized,
                match.pattern,
                match.score,
                match.spec.context_window,
            )
            return match.spec.context_window

        fallback = self._provider_fallbacks.get(provider_id)
        if fallback is not None:
            result = fallback(model)
            notify(self._observer, "on_model_fallback", provider_id, model, result, "provider_fallback")
            return result

        notify(
            self._observer,
            "on_model_fallback",
            provider_id,
            model,
            self._global_fallback,
            "global_fallback",
        )
        return self._global_fallback

    async def _fetch_live(
        self,
        lookup: ContextWindowLookup,
        provider_id: str,
        model: str,
    ) -> int | None:
        try:
            value = await lookup.fetch_context_window(model)
        except Exception as e:
            logger.warning(f"Live context window lookup failed for {provider_id}/{model}: {e}")
            return None
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            return value
        return None
