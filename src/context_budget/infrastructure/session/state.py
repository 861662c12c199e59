"""
In-memory session state for single-process deployments.

- InMemorySessionStateManager: cooperative stop flags (CancellationOracle)
- InMemoryProgressLedger: per-session step summaries (ProgressLedger)
"""

from __future__ import annotations

import logging
from collections import defaultdict

from context_budget.domain.model import StepSummary

logger = logging.getLogger(__name__)


class InMemorySessionStateManager:
    """Tracks which sessions have been asked to stop."""

    def __init__(self) -> None:
        self._stopping: set[str] = set()

    def request_stop(self, session_id: str) -> None:
        self._stopping.add(session_id)
        logger.info(f"Stop requested for session {session_id}")

    def clear(self, session_id: str) -> None:
        self._stopping.discard(session_id)

    async def is_session_stopping(self, session_id: str) -> bool:
        return session_id in self._stopping


class InMemoryProgressLedger:
    """Keeps step summaries per session, ordered by step number."""

    def __init__(self, max_steps_per_session: int = 200) -> None:
        self._max_steps = max_steps_per_session
        self._steps: dict[str, list[StepSummary]] = defaultdict(list)

    def record_step(self, session_id: str, step: StepSummary) -> None:
        steps = self._steps[session_id]
        steps.append(step)
        steps.sort(key=lambda s: s.step_number)
        if len(steps) > self._max_steps:
            del steps[: len(steps) - self._max_steps]

    def clear(self, session_id: str) -> None:
        self._steps.pop(session_id, None)

    async def get_recent_step_summaries(self, session_id: str) -> list[StepSummary]:
        return list(self._steps.get(session_id, []))
