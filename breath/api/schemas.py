"""API contract schemas.

Clients describe the user's safety facts but never their experience level:
the level always comes from the server's own session history.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from breath.programs.types import HoldPolicy, TrainingProgram
from breath.safety.levels import TrainingHistorySummary
from breath.safety.limits import ExperienceLevel
from breath.safety.types import Decision, DenialReason, SafetyProfile


class ProfilePayload(BaseModel):
    """User safety facts as sent by the client."""

    model_config = ConfigDict(extra="forbid")

    age_years: int | None = Field(default=None, ge=0, description="Verified age in years")
    education_completed_at: datetime | None = Field(default=None, description="ISO 8601 time safety education was passed")
    education_score: float = Field(default=0.0, ge=0.0, le=1.0, description="Safety education quiz score")
    medical_disclaimer_accepted: bool = Field(default=False, description="Medical disclaimer acknowledged")
    emergency_contact_on_file: bool = Field(default=False, description="Emergency contact recorded (required under 18)")

    def to_profile(self, history: TrainingHistorySummary) -> SafetyProfile:
        return SafetyProfile(**self.model_dump(), history=history)


class StartSessionRequest(BaseModel):
    """Request for POST /sessions/start."""

    model_config = ConfigDict(extra="forbid")

    profile: ProfilePayload
    program_name: str = Field(min_length=1, description="Name of a catalog program")
    hold_policy: HoldPolicy = Field(default=HoldPolicy.REJECT, description="reject | clamp over-ceiling holds")


class DecisionResponse(BaseModel):
    """A safety gate decision."""

    approved: bool
    reason: DenialReason | None = None
    detail: str | None = None
    message: str
    experience_level: ExperienceLevel | None = None

    @classmethod
    def from_decision(cls, decision: Decision, experience_level: ExperienceLevel | None = None) -> "DecisionResponse":
        return cls(
            approved=decision.approved,
            reason=decision.reason,
            detail=decision.detail,
            message=decision.message,
            experience_level=experience_level,
        )


class ProgramResponse(BaseModel):
    """A catalog program with its per-round holds expanded."""

    name: str
    description: str
    required_level: ExperienceLevel
    preparation_seconds: float
    target_round_count: int
    max_hold_seconds: float
    holds_by_round: list[float]
    estimated_duration_seconds: float
    safety_notes: str

    @classmethod
    def from_program(cls, program: TrainingProgram) -> "ProgramResponse":
        return cls(
            name=program.name,
            description=program.description,
            required_level=program.required_level,
            preparation_seconds=program.preparation_seconds,
            target_round_count=program.target_round_count,
            max_hold_seconds=program.max_hold_seconds,
            holds_by_round=[program.hold_time_for_round(i) for i in range(program.target_round_count)],
            estimated_duration_seconds=program.estimated_duration_seconds,
            safety_notes=program.safety_notes,
        )


class ErrorDetail(BaseModel):
    """Error body returned inside HTTPException.detail."""

    code: str
    reason: str | None = None
    message: str
