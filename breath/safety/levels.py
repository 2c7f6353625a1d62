"""Experience level derivation from session history.

Advancement is conservative: a user only leaves BEGINNER after enough
sessions, a long enough best hold, and a high safety score. The level is
recomputed from history every time, so it can also drop back.
"""

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from breath.safety.limits import (
    ADVANCED_MIN_BEST_HOLD_SECONDS,
    ADVANCED_MIN_SAFETY_SCORE,
    ADVANCED_MIN_SESSIONS,
    ADVANCEMENT_SAFETY_SCORE_FLOOR,
    INTERMEDIATE_MIN_BEST_HOLD_SECONDS,
    INTERMEDIATE_MIN_SAFETY_SCORE,
    INTERMEDIATE_MIN_SESSIONS,
    ExperienceLevel,
)
from breath.session.events import OutcomeReason, SessionOutcome

# Per-outcome safety score. Stops caused by limits or emergencies weigh
# against advancement; a graceful user stop does not.
OUTCOME_SAFETY_SCORES: dict[OutcomeReason, float] = {
    OutcomeReason.COMPLETED: 1.0,
    OutcomeReason.USER_STOPPED: 1.0,
    OutcomeReason.LIMIT_REACHED: 0.5,
    OutcomeReason.EMERGENCY_STOP: 0.0,
    OutcomeReason.INTERNAL_ERROR: 0.0,
}

RECENT_WINDOW = 10
RECENT_WEIGHT = 0.7
OVERALL_WEIGHT = 0.3


class TrainingHistorySummary(BaseModel):
    """Aggregate of past sessions used for level derivation.

    Attributes:
        session_count: Number of recorded sessions
        safety_score: Weighted safety score in [0, 1]
        best_hold_seconds: Longest completed hold
    """

    model_config = ConfigDict(frozen=True)

    session_count: int = Field(default=0, ge=0)
    safety_score: float = Field(default=1.0, ge=0.0, le=1.0)
    best_hold_seconds: float = Field(default=0.0, ge=0.0)


def safety_score_for_outcome(outcome: SessionOutcome) -> float:
    """Get the safety score of a single session outcome."""
    return OUTCOME_SAFETY_SCORES.get(outcome.reason, 0.0)


def summarize_outcomes(outcomes: Iterable[SessionOutcome]) -> TrainingHistorySummary:
    """Summarize session outcomes into a history summary.

    The safety score weights the most recent sessions more heavily:
    70% average of the last 10 sessions, 30% average of all sessions.

    Args:
        outcomes: Session outcomes in chronological order

    Returns:
        TrainingHistorySummary for the outcomes (perfect score when empty)
    """
    ordered = list(outcomes)
    if not ordered:
        return TrainingHistorySummary()

    scores = [safety_score_for_outcome(outcome) for outcome in ordered]
    recent = scores[-RECENT_WINDOW:]
    overall_average = sum(scores) / len(scores)
    recent_average = sum(recent) / len(recent)
    safety_score = recent_average * RECENT_WEIGHT + overall_average * OVERALL_WEIGHT

    return TrainingHistorySummary(
        session_count=len(ordered),
        safety_score=min(1.0, max(0.0, safety_score)),
        best_hold_seconds=max(outcome.best_hold for outcome in ordered),
    )


def derive_experience_level(history: TrainingHistorySummary) -> ExperienceLevel:
    """Derive the experience level from session history.

    Rules:
    1. No history or safety score below the floor -> BEGINNER
    2. Advanced thresholds met -> ADVANCED
    3. Intermediate thresholds met -> INTERMEDIATE
    4. Otherwise -> BEGINNER

    Args:
        history: Summary of past sessions

    Returns:
        ExperienceLevel the history qualifies for
    """
    if history.session_count == 0:
        return ExperienceLevel.BEGINNER

    if history.safety_score < ADVANCEMENT_SAFETY_SCORE_FLOOR:
        return ExperienceLevel.BEGINNER

    if (
        history.session_count >= ADVANCED_MIN_SESSIONS
        and history.best_hold_seconds >= ADVANCED_MIN_BEST_HOLD_SECONDS
        and history.safety_score >= ADVANCED_MIN_SAFETY_SCORE
    ):
        return ExperienceLevel.ADVANCED

    if (
        history.session_count >= INTERMEDIATE_MIN_SESSIONS
        and history.best_hold_seconds >= INTERMEDIATE_MIN_BEST_HOLD_SECONDS
        and history.safety_score >= INTERMEDIATE_MIN_SAFETY_SCORE
    ):
        return ExperienceLevel.INTERMEDIATE

    return ExperienceLevel.BEGINNER
