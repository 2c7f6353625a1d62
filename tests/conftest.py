"""Root conftest for all tests.

This file makes shared fixtures available across all test modules.
"""

from datetime import timedelta

import pytest

from breath.programs.types import FixedProgression, HoldPolicy, SessionConfig, TrainingProgram
from breath.safety.levels import TrainingHistorySummary
from breath.safety.limits import ExperienceLevel
from breath.safety.types import SafetyProfile
from breath.session.clock import ManualClock
from breath.session.events import PhaseEvent, SessionOutcome
from breath.session.machine import SessionStateMachine

# Histories that qualify for each level
HISTORY_BY_LEVEL = {
    ExperienceLevel.BEGINNER: TrainingHistorySummary(),
    ExperienceLevel.INTERMEDIATE: TrainingHistorySummary(session_count=20, safety_score=1.0, best_hold_seconds=30),
    ExperienceLevel.ADVANCED: TrainingHistorySummary(session_count=50, safety_score=1.0, best_hold_seconds=60),
}


class Recorder:
    """Collects everything a state machine emits."""

    def __init__(self):
        self.events: list[PhaseEvent] = []
        self.outcomes: list[SessionOutcome] = []

    def guidance(self, event: PhaseEvent) -> None:
        self.events.append(event)

    def result(self, outcome: SessionOutcome) -> None:
        self.outcomes.append(outcome)

    def phases(self) -> list[str]:
        return [event.phase.value for event in self.events]

    @property
    def outcome(self) -> SessionOutcome:
        assert len(self.outcomes) == 1, f"expected exactly one outcome, got {len(self.outcomes)}"
        return self.outcomes[0]


@pytest.fixture
def clock():
    """Deterministic clock starting at ManualClock.DEFAULT_START."""
    return ManualClock()


@pytest.fixture
def make_profile(clock):
    """Factory for fully eligible profiles at a given level.

    Education was passed one day before the clock's current time; any field
    can be overridden by keyword.
    """

    def _make(level: ExperienceLevel = ExperienceLevel.BEGINNER, **overrides) -> SafetyProfile:
        fields = {
            "age_years": 30,
            "education_completed_at": clock.now() - timedelta(days=1),
            "education_score": 0.9,
            "medical_disclaimer_accepted": True,
            "emergency_contact_on_file": True,
            "history": HISTORY_BY_LEVEL[level],
        }
        fields.update(overrides)
        return SafetyProfile(**fields)

    return _make


@pytest.fixture
def make_config():
    """Factory for single-progression session configs."""

    def _make(
        hold_seconds: float = 10,
        rounds: int = 3,
        preparation_seconds: float = 60,
        max_hold_seconds: float | None = None,
        hold_policy: HoldPolicy = HoldPolicy.REJECT,
    ) -> SessionConfig:
        program = TrainingProgram(
            name="Test Program",
            preparation_seconds=preparation_seconds,
            target_round_count=rounds,
            max_hold_seconds=max_hold_seconds or max(hold_seconds, 1),
            progression=FixedProgression(hold_seconds=hold_seconds),
        )
        return SessionConfig(program=program, hold_policy=hold_policy)

    return _make


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def machine(clock, recorder):
    """State machine on the manual clock, recording events and outcomes."""
    return SessionStateMachine(clock, guidance_sink=recorder.guidance, result_sink=recorder.result)
