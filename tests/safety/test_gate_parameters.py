"""Tests for session parameter validation.

Level ceilings come from breath.safety.limits and no config can raise them.
"""

from datetime import timedelta

import pytest

from breath.programs.catalog import get_program
from breath.programs.types import HoldPolicy, SessionConfig
from breath.safety.errors import EligibilityDeniedError, ParameterUnsafeError
from breath.safety.gate import (
    HOLD_EXCEEDS_CEILING,
    HOLD_NOT_POSITIVE,
    HOLD_UNAVAILABLE,
    PREPARATION_TOO_LONG,
    ROUNDS_EXCEED_MAXIMUM,
    ROUNDS_NOT_POSITIVE,
    validate_session_parameters,
)
from breath.safety.limits import ExperienceLevel
from breath.safety.types import DenialReason


class BrokenHoldConfig(SessionConfig):
    """Config whose hold lookup fails for every round."""

    def hold_time_for_round(self, round_index: int) -> float:
        raise RuntimeError("hold table unavailable")


class NanHoldConfig(SessionConfig):
    """Config that reports a non-finite hold."""

    def hold_time_for_round(self, round_index: int) -> float:
        return float("nan")


def test_safe_program_is_approved(make_profile, make_config, clock):
    """Test that a program within every ceiling is approved."""
    decision = validate_session_parameters(make_config(hold_seconds=30, rounds=10), make_profile(), None, clock.now())

    assert decision.approved


def test_recent_session_blocks_new_one(make_profile, make_config, clock):
    """Test that a session ending 30 minutes ago triggers the rest period."""
    last_end = clock.now() - timedelta(minutes=30)

    decision = validate_session_parameters(make_config(), make_profile(), last_end, clock.now())

    assert decision.reason is DenialReason.REST_PERIOD_ACTIVE


def test_rest_period_of_exactly_one_hour_is_enough(make_profile, make_config, clock):
    """Test that the one hour rest period is inclusive."""
    last_end = clock.now() - timedelta(hours=1)

    assert validate_session_parameters(make_config(), make_profile(), last_end, clock.now()).approved


def test_rest_period_checked_before_parameters(make_profile, make_config, clock):
    """Test that the rest period is reported even when the program is also unsafe."""
    last_end = clock.now() - timedelta(minutes=5)

    decision = validate_session_parameters(make_config(hold_seconds=90), make_profile(), last_end, clock.now())

    assert decision.reason is DenialReason.REST_PERIOD_ACTIVE


def test_unreadable_last_session_time_denies(make_profile, make_config, clock):
    """Test that an unparseable last session time counts as an active rest period."""
    decision = validate_session_parameters(make_config(), make_profile(), "an hour ago", clock.now())

    assert decision.reason is DenialReason.REST_PERIOD_ACTIVE


def test_rest_period_denial_surfaces_as_eligibility_error(machine, make_profile, make_config, clock):
    """Test that start_session maps a rest period denial to EligibilityDeniedError."""
    with pytest.raises(EligibilityDeniedError) as exc_info:
        machine.start_session(
            make_config(),
            make_profile(),
            last_session_end_time=clock.now() - timedelta(minutes=10),
        )

    assert exc_info.value.code == "rest_period_active"


@pytest.mark.parametrize(
    ("level", "hold_seconds", "approved"),
    [
        (ExperienceLevel.BEGINNER, 30, True),
        (ExperienceLevel.BEGINNER, 31, False),
        (ExperienceLevel.INTERMEDIATE, 60, True),
        (ExperienceLevel.INTERMEDIATE, 61, False),
        (ExperienceLevel.ADVANCED, 120, True),
        (ExperienceLevel.ADVANCED, 121, False),
    ],
)
def test_hold_ceiling_by_level(make_profile, make_config, clock, level, hold_seconds, approved):
    """Test that each level's hold ceiling is enforced under the reject policy."""
    config = make_config(hold_seconds=hold_seconds, rounds=1)

    decision = validate_session_parameters(config, make_profile(level), None, clock.now())

    assert decision.approved is approved
    if not approved:
        assert decision.reason is DenialReason.PARAMETER_UNSAFE
        assert decision.detail == HOLD_EXCEEDS_CEILING


def test_clamp_policy_accepts_over_ceiling_holds(make_profile, make_config, clock):
    """Test that over-ceiling holds are left to the state machine under the clamp policy."""
    config = make_config(hold_seconds=40, rounds=1, hold_policy=HoldPolicy.CLAMP)

    assert validate_session_parameters(config, make_profile(), None, clock.now()).approved


def test_too_many_rounds_is_unsafe(make_profile, make_config, clock):
    """Test that more than 10 rounds is denied even under the clamp policy."""
    config = make_config(rounds=11, hold_policy=HoldPolicy.CLAMP)

    decision = validate_session_parameters(config, make_profile(ExperienceLevel.ADVANCED), None, clock.now())

    assert decision.detail == ROUNDS_EXCEED_MAXIMUM


def test_hold_ceiling_reported_before_round_count(make_profile, make_config, clock):
    """Test check order: an over-ceiling hold is reported before too many rounds."""
    config = make_config(hold_seconds=45, rounds=11)

    decision = validate_session_parameters(config, make_profile(), None, clock.now())

    assert decision.detail == HOLD_EXCEEDS_CEILING


def test_zero_rounds_is_unsafe(make_profile, make_config, clock):
    """Test that a program with no rounds is denied."""
    decision = validate_session_parameters(make_config(rounds=0), make_profile(), None, clock.now())

    assert decision.detail == ROUNDS_NOT_POSITIVE


def test_preparation_as_long_as_session_is_unsafe(make_profile, make_config, clock):
    """Test that preparation reaching the session ceiling is denied."""
    decision = validate_session_parameters(make_config(preparation_seconds=1800), make_profile(), None, clock.now())

    assert decision.detail == PREPARATION_TOO_LONG


def test_failing_hold_lookup_is_unsafe(make_profile, make_config, clock):
    """Test that a hold lookup error denies instead of raising."""
    base = make_config()
    config = BrokenHoldConfig(program=base.program)

    decision = validate_session_parameters(config, make_profile(), None, clock.now())

    assert decision.detail == HOLD_UNAVAILABLE


def test_non_finite_hold_is_unsafe(make_profile, make_config, clock):
    """Test that NaN holds are denied."""
    base = make_config()
    config = NanHoldConfig(program=base.program)

    decision = validate_session_parameters(config, make_profile(), None, clock.now())

    assert decision.detail == HOLD_NOT_POSITIVE


def test_advanced_program_denied_for_beginner(make_profile, clock):
    """Test that a catalog program above the user's level is refused."""
    config = SessionConfig(program=get_program("Advanced Endurance"))

    decision = validate_session_parameters(config, make_profile(), None, clock.now())

    assert decision.detail == HOLD_EXCEEDS_CEILING


def test_advanced_program_approved_for_advanced(make_profile, clock):
    """Test that the same program passes once the level allows it."""
    config = SessionConfig(program=get_program("Advanced Endurance"))

    decision = validate_session_parameters(config, make_profile(ExperienceLevel.ADVANCED), None, clock.now())

    assert decision.approved


def test_unsafe_parameters_raise_on_start(machine, make_profile, make_config, clock, recorder):
    """Test that start_session raises ParameterUnsafeError and schedules nothing."""
    with pytest.raises(ParameterUnsafeError) as exc_info:
        machine.start_session(make_config(hold_seconds=45), make_profile())

    assert exc_info.value.code == "parameter_unsafe"
    assert exc_info.value.decision.detail == HOLD_EXCEEDS_CEILING
    assert recorder.events == []
    assert clock.pending_count == 0
    assert not machine.is_active
