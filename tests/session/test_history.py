"""Tests for the in-memory session history."""

from datetime import timedelta

import pytest

from breath.safety.errors import EligibilityDeniedError
from breath.safety.limits import ExperienceLevel
from breath.session.events import OutcomeReason, SessionOutcome
from breath.session.history import SessionHistory
from breath.session.machine import SessionStateMachine


def _outcome(clock, ended_after_seconds: float, reason=OutcomeReason.COMPLETED) -> SessionOutcome:
    start = clock.now()
    return SessionOutcome(
        reason=reason,
        rounds_completed=1,
        total_duration=ended_after_seconds,
        hold_durations_by_round=(20.0,),
        started_at=start,
        ended_at=start + timedelta(seconds=ended_after_seconds),
    )


def test_empty_history(clock):
    """Test that a new history has no end time and a fresh summary."""
    history = SessionHistory()

    assert len(history) == 0
    assert history.last_session_end_time() is None
    assert history.summary().session_count == 0


def test_history_records_outcomes(clock):
    """Test recording outcomes and reading the latest end time."""
    history = SessionHistory()

    history(_outcome(clock, 300))
    history.record(_outcome(clock, 100))

    assert len(history) == 2
    assert history.last_session_end_time() == clock.now() + timedelta(seconds=300)
    assert history.summary().best_hold_seconds == 20


def test_outcomes_returns_a_copy(clock):
    """Test that callers cannot mutate the stored outcomes."""
    history = SessionHistory([_outcome(clock, 60)])

    history.outcomes().clear()

    assert len(history) == 1
    history.clear()
    assert len(history) == 0


def test_history_as_result_sink_enforces_rest_period(make_profile, make_config, clock):
    """Test that a finished session blocks the next one for an hour."""
    history = SessionHistory()
    machine = SessionStateMachine(clock, result_sink=history)

    machine.start_session(make_config(rounds=1), make_profile())
    clock.run_until_idle()
    assert len(history) == 1

    with pytest.raises(EligibilityDeniedError) as exc_info:
        machine.start_session(
            make_config(rounds=1),
            make_profile(),
            last_session_end_time=history.last_session_end_time(),
        )
    assert exc_info.value.code == "rest_period_active"

    clock.advance(3600)
    machine.start_session(
        make_config(rounds=1),
        make_profile(),
        last_session_end_time=history.last_session_end_time(),
    )
    assert machine.is_active


def test_outcome_records_level_and_program(make_profile, make_config, clock):
    """Test that outcomes carry the level and program they ran with."""
    history = SessionHistory()
    machine = SessionStateMachine(clock, result_sink=history)

    machine.start_session(make_config(hold_seconds=45, rounds=1), make_profile(ExperienceLevel.INTERMEDIATE))
    clock.run_until_idle()

    outcome = history.outcomes()[0]
    assert outcome.experience_level is ExperienceLevel.INTERMEDIATE
    assert outcome.program_name == "Test Program"
    assert outcome.best_hold == 45
    assert outcome.started_at == clock.now() - timedelta(seconds=outcome.total_duration)

