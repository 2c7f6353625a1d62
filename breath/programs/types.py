"""Training program schema.

Programs describe WHAT a session asks for: preparation length, round count
and a hold time per round. They never decide what is safe; the safety gate
and the session state machine apply the level ceilings on top.

Hold times are non-decreasing across rounds for every progression type.
"""

import math
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from breath.safety.limits import MIN_REST_RATIO, ExperienceLevel


class FixedProgression(BaseModel):
    """Same hold every round."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["fixed"] = "fixed"
    hold_seconds: float = Field(gt=0)

    def hold_for_round(self, round_index: int) -> float:
        return self.hold_seconds


class ProgressiveProgression(BaseModel):
    """Hold grows by a fixed increment each round."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["progressive"] = "progressive"
    start_seconds: float = Field(gt=0)
    increment_seconds: float = Field(ge=0)

    def hold_for_round(self, round_index: int) -> float:
        return self.start_seconds + round_index * self.increment_seconds


class Co2TableProgression(BaseModel):
    """Predefined hold sequence; rounds past the end repeat the last entry."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["co2_table"] = "co2_table"
    holds_seconds: tuple[float, ...] = Field(min_length=1)

    @field_validator("holds_seconds")
    @classmethod
    def validate_holds(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        """Holds must be positive, finite and non-decreasing."""
        for hold in value:
            if not math.isfinite(hold) or hold <= 0:
                raise ValueError(f"CO2 table holds must be positive and finite, got {hold}")
        for previous, current in zip(value, value[1:]):
            if current < previous:
                raise ValueError(f"CO2 table holds must not decrease ({previous} -> {current})")
        return value

    def hold_for_round(self, round_index: int) -> float:
        return self.holds_seconds[min(round_index, len(self.holds_seconds) - 1)]


Progression = Annotated[
    FixedProgression | ProgressiveProgression | Co2TableProgression,
    Field(discriminator="kind"),
]


class TrainingProgram(BaseModel):
    """A structured breath training program.

    Attributes:
        name: Unique program name
        description: Short description
        required_level: Level the program is designed for (informational)
        preparation_seconds: Relaxation breathing before the first hold
        target_round_count: Number of breath holds the program asks for
        max_hold_seconds: Program's own cap on any single hold
        progression: How hold time evolves per round
        safety_notes: Guidance shown with the program
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    description: str = ""
    required_level: ExperienceLevel = ExperienceLevel.BEGINNER
    preparation_seconds: float = Field(ge=0)
    target_round_count: int
    max_hold_seconds: float = Field(gt=0)
    progression: Progression
    safety_notes: str = ""

    def hold_time_for_round(self, round_index: int) -> float:
        """Requested hold for a zero-based round, capped at the program maximum.

        Raises:
            ValueError: If round_index is negative
        """
        if round_index < 0:
            raise ValueError(f"round_index must be >= 0, got {round_index}")
        return min(self.progression.hold_for_round(round_index), self.max_hold_seconds)

    @property
    def estimated_duration_seconds(self) -> float:
        """Uncapped estimate: preparation plus every round with mandatory rest."""
        rounds = sum(
            self.hold_time_for_round(i) * (1 + MIN_REST_RATIO) for i in range(max(self.target_round_count, 0))
        )
        return self.preparation_seconds + rounds


class HoldPolicy(str, Enum):
    """What to do with rounds whose hold exceeds the level ceiling.

    - REJECT: refuse the session (ParameterUnsafe)
    - CLAMP: run the session, reducing those holds to the ceiling with an advisory
    """

    REJECT = "reject"
    CLAMP = "clamp"


class SessionConfig(BaseModel):
    """Everything needed to start a session, besides the user's profile."""

    model_config = ConfigDict(frozen=True)

    program: TrainingProgram
    hold_policy: HoldPolicy = HoldPolicy.REJECT

    @property
    def preparation_duration(self) -> float:
        return self.program.preparation_seconds

    @property
    def target_round_count(self) -> int:
        return self.program.target_round_count

    def hold_time_for_round(self, round_index: int) -> float:
        return self.program.hold_time_for_round(round_index)
