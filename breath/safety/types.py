"""Safety gate data types.

Decision is a value, not an exception: the gate always returns one, and every
denial carries exactly one specific reason so callers can tell the user what
is missing.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from breath.safety.levels import TrainingHistorySummary, derive_experience_level
from breath.safety.limits import ExperienceLevel, SafetyLimits, limits_for_level


class DenialReason(str, Enum):
    """Specific reason a gate check denied training."""

    EDUCATION_REQUIRED = "education_required"
    EDUCATION_EXPIRED = "education_expired"
    AGE_RESTRICTION = "age_restriction"
    MEDICAL_DISCLAIMER_REQUIRED = "medical_disclaimer_required"
    SUPERVISION_REQUIRED = "supervision_required"
    REST_PERIOD_ACTIVE = "rest_period_active"
    PARAMETER_UNSAFE = "parameter_unsafe"


DENIAL_MESSAGES: dict[DenialReason, str] = {
    DenialReason.EDUCATION_REQUIRED: "Complete safety education to access training",
    DenialReason.EDUCATION_EXPIRED: "Safety education has expired; please renew it",
    DenialReason.AGE_RESTRICTION: "Age verification required; training is available from age 13",
    DenialReason.MEDICAL_DISCLAIMER_REQUIRED: "Accept the medical disclaimer before training",
    DenialReason.SUPERVISION_REQUIRED: "Users under 18 need an emergency contact on file",
    DenialReason.REST_PERIOD_ACTIVE: "You must wait at least 1 hour between training sessions",
    DenialReason.PARAMETER_UNSAFE: "This program exceeds your current safety limits",
}


class Decision(BaseModel):
    """Result of a safety gate check.

    Attributes:
        approved: True when training may proceed
        reason: Denial reason (None when approved)
        detail: Extra context for PARAMETER_UNSAFE denials
    """

    model_config = ConfigDict(frozen=True)

    approved: bool
    reason: DenialReason | None = None
    detail: str | None = None

    @classmethod
    def approve(cls) -> "Decision":
        return cls(approved=True)

    @classmethod
    def deny(cls, reason: DenialReason, detail: str | None = None) -> "Decision":
        return cls(approved=False, reason=reason, detail=detail)

    @classmethod
    def parameter_unsafe(cls, detail: str) -> "Decision":
        return cls.deny(DenialReason.PARAMETER_UNSAFE, detail)

    @property
    def denied(self) -> bool:
        return not self.approved

    @property
    def message(self) -> str:
        """User-facing explanation of the decision."""
        if self.approved:
            return "Ready for training"
        base = DENIAL_MESSAGES.get(self.reason, "Training is not available") if self.reason else "Training is not available"
        if self.detail:
            return f"{base}: {self.detail}"
        return base


class SafetyProfile(BaseModel):
    """Immutable snapshot of the user facts the gate needs.

    The experience level is derived from ``history`` and cannot be supplied
    directly: passing ``experience_level`` is a validation error.

    Attributes:
        age_years: Verified age (None until verified)
        education_completed_at: When safety education was last passed
        education_score: Quiz score of that completion, in [0, 1]
        medical_disclaimer_accepted: Medical disclaimer acknowledged
        medical_disclaimer_accepted_at: When it was acknowledged
        emergency_contact_on_file: Emergency contact recorded (required under 18)
        history: Summary of past sessions
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    age_years: int | None = Field(default=None, ge=0)
    education_completed_at: datetime | None = None
    education_score: float = Field(default=0.0, ge=0.0, le=1.0)
    medical_disclaimer_accepted: bool = False
    medical_disclaimer_accepted_at: datetime | None = None
    emergency_contact_on_file: bool = False
    history: TrainingHistorySummary = Field(default_factory=TrainingHistorySummary)

    @computed_field
    @property
    def experience_level(self) -> ExperienceLevel:
        return derive_experience_level(self.history)

    @property
    def limits(self) -> SafetyLimits:
        return limits_for_level(self.experience_level)
