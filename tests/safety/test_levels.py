"""Tests for experience level derivation and safety limits."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from breath.safety.levels import TrainingHistorySummary, derive_experience_level, summarize_outcomes
from breath.safety.limits import ExperienceLevel, limits_for_level
from breath.safety.types import SafetyProfile
from breath.session.clock import ManualClock
from breath.session.events import OutcomeReason, SessionOutcome


def _outcome(reason: OutcomeReason = OutcomeReason.COMPLETED, holds: tuple[float, ...] = (30.0,)) -> SessionOutcome:
    start = ManualClock.DEFAULT_START
    return SessionOutcome(
        reason=reason,
        rounds_completed=len(holds),
        total_duration=100.0,
        hold_durations_by_round=holds,
        started_at=start,
        ended_at=start + timedelta(seconds=100),
    )


def test_limits_by_level():
    """Test the hold ceilings and shared session limits."""
    assert limits_for_level(ExperienceLevel.BEGINNER).max_hold_seconds == 30
    assert limits_for_level(ExperienceLevel.INTERMEDIATE).max_hold_seconds == 60
    assert limits_for_level(ExperienceLevel.ADVANCED).max_hold_seconds == 120

    for level in ExperienceLevel:
        limits = limits_for_level(level)
        assert limits.min_rest_ratio == 2.0
        assert limits.max_rounds == 10
        assert limits.max_session_seconds == 1800


def test_recovery_and_round_cost():
    """Test that recovery is twice the hold and a round costs three times it."""
    limits = limits_for_level(ExperienceLevel.BEGINNER)

    assert limits.recovery_seconds_for(20) == 40
    assert limits.round_cost_seconds(20) == 60


def test_no_history_is_beginner():
    """Test that an empty history derives beginner."""
    assert derive_experience_level(TrainingHistorySummary()) is ExperienceLevel.BEGINNER


@pytest.mark.parametrize(
    ("sessions", "best_hold", "score", "expected"),
    [
        (19, 30, 1.0, ExperienceLevel.BEGINNER),
        (20, 29, 1.0, ExperienceLevel.BEGINNER),
        (20, 30, 0.9, ExperienceLevel.INTERMEDIATE),
        (50, 60, 0.94, ExperienceLevel.INTERMEDIATE),
        (50, 59, 1.0, ExperienceLevel.INTERMEDIATE),
        (50, 60, 0.95, ExperienceLevel.ADVANCED),
        (200, 120, 0.89, ExperienceLevel.BEGINNER),
    ],
)
def test_level_thresholds(sessions, best_hold, score, expected):
    """Test the advancement thresholds and the safety score floor."""
    history = TrainingHistorySummary(session_count=sessions, best_hold_seconds=best_hold, safety_score=score)

    assert derive_experience_level(history) is expected


def test_summarize_empty_outcomes():
    """Test that no outcomes summarize to a fresh history."""
    assert summarize_outcomes([]) == TrainingHistorySummary()


def test_summarize_weights_recent_sessions():
    """Test the 70/30 recent/overall weighting of the safety score."""
    outcomes = [_outcome() for _ in range(10)] + [_outcome(OutcomeReason.EMERGENCY_STOP, holds=())]

    summary = summarize_outcomes(outcomes)

    recent = 9 / 10
    overall = 10 / 11
    assert summary.session_count == 11
    assert summary.safety_score == pytest.approx(0.7 * recent + 0.3 * overall)


def test_user_stop_does_not_hurt_score():
    """Test that graceful stops score like completions."""
    summary = summarize_outcomes([_outcome(OutcomeReason.USER_STOPPED), _outcome()])

    assert summary.safety_score == pytest.approx(1.0)


def test_limit_reached_counts_half():
    """Test that a session cut by the duration ceiling scores 0.5."""
    summary = summarize_outcomes([_outcome(OutcomeReason.LIMIT_REACHED)])

    assert summary.safety_score == pytest.approx(0.5)


def test_best_hold_across_sessions():
    """Test that the best hold is the longest completed hold in any session."""
    summary = summarize_outcomes([_outcome(holds=(10, 20)), _outcome(holds=(35,)), _outcome(holds=())])

    assert summary.best_hold_seconds == 35


def test_profile_level_is_derived_from_history():
    """Test that SafetyProfile.experience_level follows its history."""
    history = TrainingHistorySummary(session_count=20, best_hold_seconds=30, safety_score=1.0)

    profile = SafetyProfile(history=history)

    assert profile.experience_level is ExperienceLevel.INTERMEDIATE
    assert profile.limits.max_hold_seconds == 60
    assert profile.model_dump()["experience_level"] == ExperienceLevel.INTERMEDIATE


def test_profile_level_cannot_be_declared():
    """Test that passing experience_level directly is rejected."""
    with pytest.raises(ValidationError):
        SafetyProfile(experience_level=ExperienceLevel.ADVANCED)


def test_profile_is_immutable():
    """Test that profile snapshots cannot be changed in place."""
    profile = SafetyProfile(age_years=30)

    with pytest.raises(ValidationError):
        profile.age_years = 12
