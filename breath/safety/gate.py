"""Safety gate - mandatory checks before any session starts.

Pure decision functions: they never mutate the profile or the config and
always answer synchronously with a Decision.

Fail-safe rule: a missing or unreadable field counts as the corresponding
failure, never as a pass.
"""

import math
from datetime import datetime

from loguru import logger

from breath.programs.types import HoldPolicy, SessionConfig
from breath.safety.limits import (
    EDUCATION_VALIDITY,
    MANDATORY_REST_BETWEEN_SESSIONS,
    MIN_EDUCATION_SCORE,
    MINIMUM_AGE_YEARS,
    SUPERVISION_AGE_YEARS,
    ExperienceLevel,
    limits_for_level,
)
from breath.safety.types import Decision, DenialReason, SafetyProfile
from breath.utils.timezone import to_utc

HOLD_EXCEEDS_CEILING = "hold exceeds ceiling for level"
ROUNDS_EXCEED_MAXIMUM = "round count exceeds maximum for level"
ROUNDS_NOT_POSITIVE = "round count must be at least 1"
HOLD_NOT_POSITIVE = "hold time must be positive"
HOLD_UNAVAILABLE = "hold time unavailable"
PREPARATION_TOO_LONG = "preparation exceeds session duration limit"


def validate_eligibility(profile: SafetyProfile, now: datetime) -> Decision:
    """Check whether the user may train at all.

    Checks run in a fixed order and the first failure wins, so the user is
    guided to the earliest blocking requirement:
    1. Age verified and >= 13                      -> AGE_RESTRICTION
    2. Under 18: emergency contact on file         -> SUPERVISION_REQUIRED
    3. Medical disclaimer accepted                 -> MEDICAL_DISCLAIMER_REQUIRED
    4. Safety education passed                     -> EDUCATION_REQUIRED
    5. Education completed within 90 days          -> EDUCATION_EXPIRED

    Args:
        profile: Snapshot of the user's safety facts
        now: Current time

    Returns:
        Decision (approved, or denied with the specific reason)
    """
    decision = _check_eligibility(profile, now)
    if decision.approved:
        logger.debug("Eligibility approved")
    else:
        logger.info("Eligibility denied", reason=decision.reason.value)
    return decision


def _check_eligibility(profile: SafetyProfile, now: datetime) -> Decision:
    age = getattr(profile, "age_years", None)
    if not isinstance(age, int) or age < MINIMUM_AGE_YEARS:
        return Decision.deny(DenialReason.AGE_RESTRICTION)

    if age < SUPERVISION_AGE_YEARS and getattr(profile, "emergency_contact_on_file", False) is not True:
        return Decision.deny(DenialReason.SUPERVISION_REQUIRED)

    if getattr(profile, "medical_disclaimer_accepted", False) is not True:
        return Decision.deny(DenialReason.MEDICAL_DISCLAIMER_REQUIRED)

    completed_at = getattr(profile, "education_completed_at", None)
    if completed_at is None:
        return Decision.deny(DenialReason.EDUCATION_REQUIRED)

    score = getattr(profile, "education_score", None)
    if not isinstance(score, int | float) or not score >= MIN_EDUCATION_SCORE:
        return Decision.deny(DenialReason.EDUCATION_REQUIRED)

    try:
        since_completion = to_utc(now) - to_utc(completed_at)
    except (AttributeError, TypeError, ValueError):
        return Decision.deny(DenialReason.EDUCATION_REQUIRED)

    # A completion recorded in the future cannot be trusted
    if since_completion.total_seconds() < 0:
        return Decision.deny(DenialReason.EDUCATION_REQUIRED)

    if since_completion > EDUCATION_VALIDITY:
        return Decision.deny(DenialReason.EDUCATION_EXPIRED)

    return Decision.approve()


def validate_session_parameters(
    config: SessionConfig,
    profile: SafetyProfile,
    last_session_end_time: datetime | None,
    now: datetime,
) -> Decision:
    """Check a requested session against the hard limits of the user's level.

    Rules:
    1. At least 1 hour since the last session ended      -> REST_PERIOD_ACTIVE
    2. At least 1 round                                  -> PARAMETER_UNSAFE
    3. Every round's hold positive and, under the REJECT
       hold policy, within the level ceiling             -> PARAMETER_UNSAFE
    4. Round count within the level maximum              -> PARAMETER_UNSAFE
    5. Preparation shorter than the session ceiling      -> PARAMETER_UNSAFE

    The ceilings come from breath.safety.limits and cannot be raised by the
    config. Under the CLAMP policy over-ceiling holds are accepted here and
    reduced by the state machine instead.

    Args:
        config: Requested session (program and hold policy)
        profile: Snapshot of the user's safety facts
        last_session_end_time: End of the previous session, if any
        now: Current time

    Returns:
        Decision (approved, or denied with the specific reason)
    """
    decision = _check_session_parameters(config, profile, last_session_end_time, now)
    if decision.approved:
        logger.debug("Session parameters approved", program=config.program.name)
    else:
        logger.info(
            "Session parameters denied",
            program=config.program.name,
            reason=decision.reason.value,
            detail=decision.detail,
        )
    return decision


def _check_session_parameters(
    config: SessionConfig,
    profile: SafetyProfile,
    last_session_end_time: datetime | None,
    now: datetime,
) -> Decision:
    if last_session_end_time is not None:
        try:
            since_last = to_utc(now) - to_utc(last_session_end_time)
        except (AttributeError, TypeError, ValueError):
            return Decision.deny(DenialReason.REST_PERIOD_ACTIVE)
        if since_last < MANDATORY_REST_BETWEEN_SESSIONS:
            return Decision.deny(DenialReason.REST_PERIOD_ACTIVE)

    level = getattr(profile, "experience_level", ExperienceLevel.BEGINNER)
    if not isinstance(level, ExperienceLevel):
        level = ExperienceLevel.BEGINNER
    limits = limits_for_level(level)

    round_count = config.target_round_count
    if round_count < 1:
        return Decision.parameter_unsafe(ROUNDS_NOT_POSITIVE)

    for round_index in range(round_count):
        try:
            hold = config.hold_time_for_round(round_index)
        except Exception:
            logger.exception("Program hold lookup failed", program=config.program.name, round_index=round_index)
            return Decision.parameter_unsafe(HOLD_UNAVAILABLE)

        if not math.isfinite(hold) or hold <= 0:
            return Decision.parameter_unsafe(HOLD_NOT_POSITIVE)

        if hold > limits.max_hold_seconds and config.hold_policy is HoldPolicy.REJECT:
            logger.debug(
                "Hold above level ceiling",
                round_index=round_index,
                hold_seconds=hold,
                ceiling_seconds=limits.max_hold_seconds,
            )
            return Decision.parameter_unsafe(HOLD_EXCEEDS_CEILING)

    if round_count > limits.max_rounds:
        return Decision.parameter_unsafe(ROUNDS_EXCEED_MAXIMUM)

    if config.preparation_duration >= limits.max_session_seconds:
        return Decision.parameter_unsafe(PREPARATION_TOO_LONG)

    return Decision.approve()
