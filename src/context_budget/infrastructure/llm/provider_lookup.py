"""
Live context window lookup against OpenAI-compatible ``/models`` endpoints.

Some providers (Groq) report ``context_window`` on their model objects:

    GET {base_url}/models/{model}
    {"id": "llama-3.3-70b-versatile", "context_window": 131072, ...}

Any failure returns None so the resolver falls back to the static registry.
"""

from __future__ import annotations

import logging

import httpx

from context_budget.configuration.config import ContextBudgetSettings
from context_budget.domain.ports import ContextWindowLookup

logger = logging.getLogger(__name__)


class OpenAICompatibleModelLookup:
    """Fetch a model's context window from a provider API."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    async def fetch_context_window(self, model: str) -> int | None:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(f"{self._base_url}/models/{model}", headers=headers)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            logger.warning(f"Context window lookup request failed for {model}: {e}")
            return None
        except ValueError as e:
            logger.warning(f"Context window lookup returned invalid JSON for {model}: {e}")
            return None

        try:
            value = int(payload["context_window"])
        except (KeyError, TypeError, ValueError):
            logger.debug(f"No context_window reported for {model}")
            return None
        return value if value > 0 else None


def build_live_lookups(settings: ContextBudgetSettings) -> dict[str, ContextWindowLookup]:
    """Live lookups for providers that have credentials configured."""
    lookups: dict[str, ContextWindowLookup] = {}
    if settings.groq_api_key:
        lookups["groq"] = OpenAICompatibleModelLookup(
            base_url=settings.groq_base_url,
            api_key=settings.groq_api_key,
            timeout=settings.provider_lookup_timeout_seconds,
        )
    return lookups
