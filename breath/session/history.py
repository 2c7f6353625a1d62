"""In-memory session history.

Stands in for the external history store: it receives every SessionOutcome
(it can be passed directly as the state machine's result sink) and answers
the two questions the safety gate needs, when the last session ended and
what the user's history looks like.
"""

from datetime import datetime
from threading import Lock

from loguru import logger

from breath.safety.levels import TrainingHistorySummary, summarize_outcomes
from breath.session.events import SessionOutcome


class SessionHistory:
    """Thread-safe, append-only list of session outcomes."""

    def __init__(self, outcomes: list[SessionOutcome] | None = None):
        self._outcomes: list[SessionOutcome] = list(outcomes or [])
        self._lock = Lock()

    def __call__(self, outcome: SessionOutcome) -> None:
        self.record(outcome)

    def record(self, outcome: SessionOutcome) -> None:
        with self._lock:
            self._outcomes.append(outcome)
        logger.debug(
            "Session outcome recorded",
            reason=outcome.reason.value,
            rounds_completed=outcome.rounds_completed,
        )

    def outcomes(self) -> list[SessionOutcome]:
        with self._lock:
            return list(self._outcomes)

    def last_session_end_time(self) -> datetime | None:
        with self._lock:
            if not self._outcomes:
                return None
            return max(outcome.ended_at for outcome in self._outcomes)

    def summary(self) -> TrainingHistorySummary:
        return summarize_outcomes(self.outcomes())

    def clear(self) -> None:
        with self._lock:
            self._outcomes.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._outcomes)
