"""Safety profile mutators.

Each function takes a profile snapshot and returns a new one; snapshots are
frozen, so a session already running keeps the limits it started with.
"""

from collections.abc import Iterable
from datetime import datetime

from loguru import logger

from breath.profile.errors import EducationNotPassedError, InvalidAgeError
from breath.safety.levels import summarize_outcomes
from breath.safety.limits import MIN_EDUCATION_SCORE, MIN_EDUCATION_SECONDS
from breath.safety.types import SafetyProfile
from breath.session.events import SessionOutcome
from breath.utils.timezone import to_utc

MAX_PLAUSIBLE_AGE = 130


def record_age_verification(profile: SafetyProfile, age: int) -> SafetyProfile:
    """Record a verified age.

    Ages below the training minimum are still recorded; the gate denies them.

    Raises:
        InvalidAgeError: If age is outside 0..130
    """
    if not 0 <= age <= MAX_PLAUSIBLE_AGE:
        raise InvalidAgeError(f"Age must be between 0 and {MAX_PLAUSIBLE_AGE}, got {age}")

    logger.info("Age verification recorded", age=age)
    return profile.model_copy(update={"age_years": age})


def record_medical_disclaimer_acceptance(profile: SafetyProfile, accepted_at: datetime) -> SafetyProfile:
    """Record explicit acceptance of the medical disclaimer."""
    logger.info("Medical disclaimer acceptance recorded")
    return profile.model_copy(
        update={
            "medical_disclaimer_accepted": True,
            "medical_disclaimer_accepted_at": to_utc(accepted_at),
        }
    )


def record_emergency_contact(profile: SafetyProfile, on_file: bool = True) -> SafetyProfile:
    """Record whether an emergency contact is on file."""
    logger.info("Emergency contact status recorded", on_file=on_file)
    return profile.model_copy(update={"emergency_contact_on_file": on_file})


def record_education_completion(
    profile: SafetyProfile,
    score: float,
    completed_at: datetime,
    time_spent_seconds: float | None = None,
) -> SafetyProfile:
    """Record a passed safety education attempt.

    Requirements:
    - score >= 0.8
    - time spent >= 5 minutes, when known (faster means it was not read)

    Args:
        profile: Current profile snapshot
        score: Quiz score in [0, 1]
        completed_at: When the attempt finished
        time_spent_seconds: Time taken, if tracked

    Returns:
        Updated profile snapshot

    Raises:
        EducationNotPassedError: If the attempt does not meet the requirements
    """
    if not 0.0 <= score <= 1.0:
        raise EducationNotPassedError(f"Education score must be between 0 and 1, got {score}")

    if score < MIN_EDUCATION_SCORE:
        logger.info("Safety education not passed", score=score)
        raise EducationNotPassedError(
            f"Education score {score:.0%} is below the required {MIN_EDUCATION_SCORE:.0%}"
        )

    if time_spent_seconds is not None and time_spent_seconds < MIN_EDUCATION_SECONDS:
        logger.info("Safety education completed too quickly", time_spent_seconds=time_spent_seconds)
        raise EducationNotPassedError(
            f"Safety education must take at least {int(MIN_EDUCATION_SECONDS // 60)} minutes"
        )

    logger.info("Safety education completion recorded", score=score)
    return profile.model_copy(
        update={
            "education_completed_at": to_utc(completed_at),
            "education_score": score,
        }
    )


def record_session_history(profile: SafetyProfile, outcomes: Iterable[SessionOutcome]) -> SafetyProfile:
    """Attach a history summary built from session outcomes.

    This is the only way the experience level changes.
    """
    history = summarize_outcomes(outcomes)
    updated = profile.model_copy(update={"history": history})
    logger.info(
        "Session history applied",
        session_count=history.session_count,
        safety_score=round(history.safety_score, 3),
        experience_level=updated.experience_level.value,
    )
    return updated
