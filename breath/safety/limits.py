"""Safety limits - single source of truth.

Every ceiling the gate and the session state machine enforce is defined here
as a module constant. Nothing in settings, requests or CLI flags can raise
them: callers only ever read them through limits_for_level().

Values follow the stricter of the historical variants:
- 30s / 60s / 120s hold ceilings by level
- rest is at least 2x the preceding hold
- 10 breath holds and 30 minutes per session
- 1 hour mandatory rest between sessions
"""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from types import MappingProxyType


class ExperienceLevel(str, Enum):
    """Experience level controlling which hold ceiling applies.

    Always derived from session history (see breath.safety.levels), never
    self-declared.
    """

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class SafetyLimits:
    """Hard ceilings for one experience level.

    Attributes:
        max_hold_seconds: Longest single breath hold
        min_rest_ratio: Recovery duration as a multiple of the preceding hold
        max_rounds: Maximum breath holds per session
        max_session_seconds: Maximum wall-clock length of a session
    """

    max_hold_seconds: float
    min_rest_ratio: float
    max_rounds: int
    max_session_seconds: float

    def recovery_seconds_for(self, hold_seconds: float) -> float:
        """Mandatory recovery after a hold of the given length."""
        return hold_seconds * self.min_rest_ratio

    def round_cost_seconds(self, hold_seconds: float) -> float:
        """Time one round (hold plus its recovery) occupies."""
        return hold_seconds + self.recovery_seconds_for(hold_seconds)


MIN_REST_RATIO = 2.0
MAX_ROUNDS_PER_SESSION = 10
MAX_SESSION_SECONDS = 1800.0

_LIMITS_BY_LEVEL = MappingProxyType(
    {
        ExperienceLevel.BEGINNER: SafetyLimits(
            max_hold_seconds=30.0,
            min_rest_ratio=MIN_REST_RATIO,
            max_rounds=MAX_ROUNDS_PER_SESSION,
            max_session_seconds=MAX_SESSION_SECONDS,
        ),
        ExperienceLevel.INTERMEDIATE: SafetyLimits(
            max_hold_seconds=60.0,
            min_rest_ratio=MIN_REST_RATIO,
            max_rounds=MAX_ROUNDS_PER_SESSION,
            max_session_seconds=MAX_SESSION_SECONDS,
        ),
        ExperienceLevel.ADVANCED: SafetyLimits(
            max_hold_seconds=120.0,
            min_rest_ratio=MIN_REST_RATIO,
            max_rounds=MAX_ROUNDS_PER_SESSION,
            max_session_seconds=MAX_SESSION_SECONDS,
        ),
    }
)

# Eligibility
MINIMUM_AGE_YEARS = 13
SUPERVISION_AGE_YEARS = 18
EDUCATION_VALIDITY = timedelta(days=90)
MANDATORY_REST_BETWEEN_SESSIONS = timedelta(hours=1)

# Safety education
MIN_EDUCATION_SCORE = 0.8
MIN_EDUCATION_SECONDS = 300.0

# Level advancement (session count, best hold, safety score floor)
ADVANCEMENT_SAFETY_SCORE_FLOOR = 0.9
INTERMEDIATE_MIN_SESSIONS = 20
INTERMEDIATE_MIN_BEST_HOLD_SECONDS = 30.0
INTERMEDIATE_MIN_SAFETY_SCORE = 0.9
ADVANCED_MIN_SESSIONS = 50
ADVANCED_MIN_BEST_HOLD_SECONDS = 60.0
ADVANCED_MIN_SAFETY_SCORE = 0.95


def limits_for_level(level: ExperienceLevel) -> SafetyLimits:
    """Get the hard limits for an experience level.

    Unknown levels fall back to beginner limits.
    """
    return _LIMITS_BY_LEVEL.get(level, _LIMITS_BY_LEVEL[ExperienceLevel.BEGINNER])
