"""Built-in training program catalog."""

from types import MappingProxyType

from breath.programs.types import (
    Co2TableProgression,
    FixedProgression,
    ProgressiveProgression,
    TrainingProgram,
)
from breath.safety.limits import ExperienceLevel

DEFAULT_PROGRAMS: tuple[TrainingProgram, ...] = (
    TrainingProgram(
        name="Beginner Foundation",
        description="Introduction to breath control with very short, safe holds",
        required_level=ExperienceLevel.BEGINNER,
        preparation_seconds=60,
        target_round_count=5,
        max_hold_seconds=15,
        progression=FixedProgression(hold_seconds=10),
        safety_notes="Perfect for first-time users. Focus on relaxation and technique.",
    ),
    TrainingProgram(
        name="Beginner Progressive",
        description="Gradual progression from 10 to 25 seconds",
        required_level=ExperienceLevel.BEGINNER,
        preparation_seconds=90,
        target_round_count=6,
        max_hold_seconds=25,
        progression=ProgressiveProgression(start_seconds=10, increment_seconds=3),
        safety_notes="Slowly builds tolerance. Stop if you feel any discomfort.",
    ),
    TrainingProgram(
        name="Intermediate Foundation",
        description="Consistent 35 second holds for technique development",
        required_level=ExperienceLevel.INTERMEDIATE,
        preparation_seconds=120,
        target_round_count=8,
        max_hold_seconds=45,
        progression=FixedProgression(hold_seconds=35),
        safety_notes="Focus on maintaining calm and control throughout holds.",
    ),
    TrainingProgram(
        name="CO2 Tolerance Builder",
        description="Progressive CO2 tolerance training with fixed preparation",
        required_level=ExperienceLevel.INTERMEDIATE,
        preparation_seconds=120,
        target_round_count=8,
        max_hold_seconds=60,
        progression=Co2TableProgression(holds_seconds=(20, 25, 30, 35, 40, 45, 50, 55)),
        safety_notes="Advanced technique. Ensure you're comfortable with basic holds first.",
    ),
    TrainingProgram(
        name="Advanced Endurance",
        description="Extended holds for experienced practitioners",
        required_level=ExperienceLevel.ADVANCED,
        preparation_seconds=180,
        target_round_count=6,
        max_hold_seconds=90,
        progression=ProgressiveProgression(start_seconds=45, increment_seconds=8),
        safety_notes="Only for experienced users. Requires mastery of safety protocols.",
    ),
)

_PROGRAMS_BY_KEY = MappingProxyType({program.name.casefold(): program for program in DEFAULT_PROGRAMS})


def get_program(name: str) -> TrainingProgram:
    """Look up a built-in program by name (case-insensitive).

    Raises:
        KeyError: If no program has that name
    """
    try:
        return _PROGRAMS_BY_KEY[name.strip().casefold()]
    except KeyError:
        raise KeyError(f"Unknown program: {name}") from None


def list_programs(level: ExperienceLevel | None = None) -> list[TrainingProgram]:
    """List built-in programs, optionally only those designed for one level."""
    if level is None:
        return list(DEFAULT_PROGRAMS)
    return [program for program in DEFAULT_PROGRAMS if program.required_level is level]
